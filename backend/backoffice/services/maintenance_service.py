# Overview: Maintenance operations for variants left behind by failed compensations.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Characteristic, StockEntry, Variant, VariantOptionLink
from .ledger_service import append_ledger_event


def find_orphan_variants(*, org_id: int | None = None) -> list[Variant]:
    """
    Variants with no option links whose product has characteristics.

    These are the "ghosts" a failed compensating delete leaves behind; a
    variant-less product legitimately owns one unlinked variant and is
    excluded.
    """
    link_count = (
        db.session.query(func.count(VariantOptionLink.option_id))
        .filter(VariantOptionLink.variant_id == Variant.id)
        .correlate(Variant)
        .scalar_subquery()
    )
    characteristic_count = (
        db.session.query(func.count(Characteristic.id))
        .filter(Characteristic.product_id == Variant.product_id)
        .correlate(Variant)
        .scalar_subquery()
    )
    q = db.session.query(Variant).filter(link_count == 0, characteristic_count > 0)
    if org_id is not None:
        q = q.filter(Variant.org_id == org_id)
    return q.order_by(Variant.id.asc()).all()


def cleanup_orphan_variants(*, org_id: int | None = None) -> int:
    """
    Delete orphan variants that hold no stock.

    Orphans with stock rows are left in place for manual reconciliation.
    """
    deleted = 0
    for variant in find_orphan_variants(org_id=org_id):
        has_stock = db.session.query(StockEntry.id).filter_by(variant_id=variant.id).first()
        if has_stock:
            continue
        append_ledger_event(
            org_id=variant.org_id,
            event_type="variant.orphan_removed",
            entity_type="variant",
            entity_id=variant.id,
            note="Removed unlinked variant during maintenance",
        )
        db.session.delete(variant)
        deleted += 1
    db.session.commit()
    return deleted
