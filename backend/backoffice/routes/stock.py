# Overview: Flask API routes for stock entry; parses input and returns JSON responses.

# backend/backoffice/routes/stock.py
"""
Stock entry routes.

MULTI-TENANT: product_id and location_id from the payload are validated
against the caller's organization (g.org_id); foreign ids answer 404.

SECURITY: All routes require authentication.
- Read operations (catalog, overview, preview) require any known role
- Batch submission requires the admin or employee role

Batch responses:
- 201 when every row succeeded
- 422 with the full per-row report when any row failed (succeeded rows stay committed)
"""
from flask import Blueprint, request, g, current_app

from ..services.catalog_service import load_attribute_catalog, get_product_stock_overview
from ..services.identity_service import ROLE_ADMIN, ROLE_EMPLOYEE
from ..services.stock_batch_service import submit_stock_batch, preview_rows
from ..services.store import StockStore, StoreError
from ..services.tenant_service import (
    TenantAccessError,
    get_current_org_id,
    require_location_in_org,
    require_product_in_org,
)
from ..validation import ValidationError, coerce_int
from ..decorators import require_auth, require_role

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _store() -> StockStore:
    return StockStore(get_current_org_id(), actor_user_id=g.user_id)


def _scope_ids(payload: dict) -> tuple[int, int]:
    if payload.get("product_id") is None:
        raise ValidationError("product_id is required")
    if payload.get("location_id") is None:
        raise ValidationError("location_id is required")
    product_id = coerce_int(payload["product_id"], "product_id")
    location_id = coerce_int(payload["location_id"], "location_id")
    require_product_in_org(product_id, g.org_id)
    require_location_in_org(location_id, g.org_id)
    return product_id, location_id


@stock_bp.get("/products/<int:product_id>/catalog")
@require_auth
def product_catalog(product_id: int):
    """Characteristics of a product with their options, for the entry form."""
    try:
        require_product_in_org(product_id, g.org_id)
        catalog = load_attribute_catalog(_store(), product_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404
    except StoreError:
        current_app.logger.exception("Failed to load attribute catalog")
        return {"error": "Data store unavailable"}, 502
    return catalog.to_dict()


@stock_bp.get("/products/<int:product_id>/overview")
@require_auth
def product_overview(product_id: int):
    """Total stock, stock per location and option values in use."""
    try:
        require_product_in_org(product_id, g.org_id)
        overview = get_product_stock_overview(_store(), product_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404
    except StoreError:
        current_app.logger.exception("Failed to load product overview")
        return {"error": "Data store unavailable"}, 502
    return overview.to_dict()


@stock_bp.post("/preview")
@require_auth
def preview_route():
    """
    Read-only preview of rows before submission.

    Body: {"product_id", "location_id", "rows": [{"options": {...}}]}
    Returns the matched variant, current stock at the location and the
    effective existing price for each row.
    """
    payload = request.get_json(silent=True) or {}

    try:
        product_id, location_id = _scope_ids(payload)
        rows = payload.get("rows") or []
        if not isinstance(rows, list):
            raise ValidationError("rows must be a list")
        previews = preview_rows(_store(), product_id=product_id, location_id=location_id, rows=rows)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except StoreError:
        current_app.logger.exception("Failed to preview stock rows")
        return {"error": "Data store unavailable"}, 502

    return {"product_id": product_id, "location_id": location_id, "rows": previews}


@stock_bp.post("/batches")
@require_auth
@require_role(ROLE_ADMIN, ROLE_EMPLOYEE)
def submit_batch_route():
    """
    Submit an add-inventory batch.

    Body:
    - product_id: int
    - location_id: int
    - entry_date: ISO-8601 date/datetime (optional, default now)
    - rows: [{"options": {characteristic_id: option_id}, "quantity": int, "price": number|str|null}]
    """
    payload = request.get_json(silent=True) or {}

    try:
        product_id, location_id = _scope_ids(payload)
        rows = payload.get("rows")
        if not isinstance(rows, list):
            raise ValidationError("rows must be a list")
        result = submit_stock_batch(
            _store(),
            product_id=product_id,
            location_id=location_id,
            rows=rows,
            entry_date=payload.get("entry_date"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except StoreError:
        current_app.logger.exception("Failed to submit stock batch")
        return {"error": "Data store unavailable"}, 502

    return result.to_dict(), (201 if result.ok else 422)
