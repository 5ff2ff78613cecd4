# backend/backoffice/config.py
from __future__ import annotations
import json
import os


def _load_api_tokens() -> dict:
    # token -> {"user_id": ..., "org_id": ..., "role": ...}
    raw = os.environ.get("API_TOKENS_JSON", "")
    if not raw.strip():
        return {}
    return json.loads(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identity provider stand-in: bearer tokens issued by the hosted auth service
    API_TOKENS = _load_api_tokens()

    # Store writes retried on lock/optimistic-version conflicts
    STOCK_WRITE_RETRY_ATTEMPTS = int(os.environ.get("STOCK_WRITE_RETRY_ATTEMPTS", "3"))
    STOCK_WRITE_RETRY_BACKOFF = float(os.environ.get("STOCK_WRITE_RETRY_BACKOFF", "0.1"))
