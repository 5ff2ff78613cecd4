from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StockEntry(db.Model):
    """
    Quantity and price of a variant at one location.

    Invariants:
    - At most one row per (variant_id, location_id).
    - quantity is cumulative and never decremented by stock entry.
    - price_cents, once set, is never overwritten by a merge.
    - price_cents is physically per row but logically a property of the
      variant; all locations should agree (see pricing_service).
    """
    __tablename__ = "stock_entries"
    __table_args__ = (
        db.UniqueConstraint("variant_id", "location_id", name="uq_stock_variant_location"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
        db.Index("ix_stock_variant_price", "variant_id", "price_cents"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents; NULL means "no price recorded yet"
    price_cents = db.Column(db.Integer, nullable=True)

    # Business time of the latest entry (caller-supplied batch date)
    entry_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variant = db.relationship("Variant", backref=db.backref("stock_entries", lazy=True))
    location = db.relationship("Location")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<StockEntry id={self.id} variant_id={self.variant_id} "
            f"location_id={self.location_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "location_id": self.location_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "entry_date": to_utc_z(self.entry_date),
            "version_id": self.version_id,
        }
