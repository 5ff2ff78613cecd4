# Overview: Flask API routes for ledger operations; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..services.identity_service import ROLE_ADMIN
from ..services.ledger_service import list_ledger_events
from ..decorators import require_auth, require_role

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_ledger_events_route():
    """
    Tenant ledger events, newest first.

    Query params:
    - entity_type: str (optional) - e.g. variant, stock_entry
    - event_type: str (optional) - e.g. variant.compensated
    - limit: int (optional) - 1..500, default 100
    """
    limit = request.args.get("limit", default=100, type=int)
    events = list_ledger_events(
        org_id=g.org_id,
        entity_type=request.args.get("entity_type"),
        event_type=request.args.get("event_type"),
        limit=limit,
    )
    return {"items": [e.to_dict() for e in events], "limit": max(1, min(limit, 500))}
