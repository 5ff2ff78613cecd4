"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

Every request is scoped to a tenant (organization); ids coming from client
input must be validated against g.org_id before they reach the stock engine.

SECURITY INVARIANTS:
1. Every authenticated request has g.org_id set
2. Location and product ids from client input are validated against g.org_id
3. Cross-tenant ids behave exactly like missing ids (no existence leak)

USAGE:
    from backoffice.services.tenant_service import require_location_in_org

    location = require_location_in_org(location_id, g.org_id)
"""

from flask import current_app, g

from ..extensions import db
from ..models import Location, Product


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted."""
    pass


def get_current_org_id() -> int:
    """
    Get current tenant's org_id from Flask g context.

    SECURITY: Raises TenantAccessError if org_id not set.
    This should never happen after @require_auth, but is a safety check.
    """
    if not hasattr(g, 'org_id') or g.org_id is None:
        raise TenantAccessError("Tenant context not established")
    return g.org_id


def require_location_in_org(location_id: int, org_id: int) -> Location:
    """
    Validate that a location belongs to the specified organization.

    Raises:
        TenantAccessError if location doesn't exist or belongs to different org
    """
    location = db.session.query(Location).filter_by(id=location_id).first()

    if not location:
        raise TenantAccessError("Location not found")

    if location.org_id != org_id:
        _log_cross_tenant_attempt("location", location_id, org_id)
        raise TenantAccessError("Location not found")  # Don't reveal it exists in another org

    return location


def require_product_in_org(product_id: int, org_id: int) -> Product:
    """
    Validate that a product belongs to the specified organization.

    Raises:
        TenantAccessError if product doesn't exist or belongs to different org
    """
    product = db.session.query(Product).filter_by(id=product_id).first()

    if not product:
        raise TenantAccessError("Product not found")

    if product.org_id != org_id:
        _log_cross_tenant_attempt("product", product_id, org_id)
        raise TenantAccessError("Product not found")

    return product


def get_org_locations(org_id: int) -> list[Location]:
    return (
        db.session.query(Location)
        .filter_by(org_id=org_id)
        .order_by(Location.name.asc(), Location.id.asc())
        .all()
    )


def _log_cross_tenant_attempt(entity: str, entity_id: int, org_id: int) -> None:
    current_app.logger.warning(
        "CROSS_TENANT_ACCESS_DENIED %s=%s requested by org=%s user=%s",
        entity,
        entity_id,
        org_id,
        getattr(g, "user_id", None),
    )
