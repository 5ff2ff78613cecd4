# Overview: Append-only audit ledger for engine writes.

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from ..extensions import db
from ..models import LedgerEvent
"""
Ledger Invariants (authoritative)

- Append-only audit log for variant and stock writes.
- No domain/business logic in the ledger itself.
- Events are written inside the same unit of work as the write they record;
  the caller commits.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_ledger_event(
    *,
    org_id: int,
    event_type: str,
    entity_type: str,
    entity_id: int,
    location_id: int | None = None,
    actor_user_id: str | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> LedgerEvent:
    ev = LedgerEvent(
        org_id=org_id,
        location_id=location_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note,
        payload=json.dumps(payload, separators=(",", ":"), sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_ledger_events(
    *,
    org_id: int,
    entity_type: str | None = None,
    event_type: str | None = None,
    limit: int = 100,
) -> list[LedgerEvent]:
    """Tenant-scoped events, newest first."""
    limit = max(1, min(limit, 500))
    q = db.session.query(LedgerEvent).filter(LedgerEvent.org_id == org_id)
    if entity_type:
        q = q.filter(LedgerEvent.entity_type == entity_type)
    if event_type:
        q = q.filter(LedgerEvent.event_type == event_type)
    return q.order_by(LedgerEvent.occurred_at.desc(), LedgerEvent.id.desc()).limit(limit).all()
