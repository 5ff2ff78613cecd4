# Overview: Caller identity resolution against the external identity provider.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

ROLE_ADMIN = "admin"
ROLE_EMPLOYEE = "employee"


@dataclass(frozen=True)
class Identity:
    user_id: str
    org_id: int
    role: str


def resolve_token(token: str) -> Identity | None:
    """
    Resolve a bearer token to the caller's identity.

    The identity provider is external; its issued tokens are mirrored in
    API_TOKENS (token -> {"user_id", "org_id", "role"}). Unknown tokens and
    malformed entries resolve to None.
    """
    if not token:
        return None
    entry = current_app.config.get("API_TOKENS", {}).get(token)
    if not isinstance(entry, dict):
        return None
    try:
        return Identity(
            user_id=str(entry["user_id"]),
            org_id=int(entry["org_id"]),
            role=str(entry.get("role", ROLE_EMPLOYEE)),
        )
    except (KeyError, TypeError, ValueError):
        current_app.logger.warning("Malformed API token entry ignored")
        return None
