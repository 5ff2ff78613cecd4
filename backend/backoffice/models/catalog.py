from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to organizations via org_id.
    A product owns zero or more characteristics; variant-less products are valid.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_org_name", "org_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    characteristics = db.relationship(
        "Characteristic",
        backref="product",
        lazy=True,
        order_by="Characteristic.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Characteristic(db.Model):
    """A named attribute dimension of a product (e.g. "Size")."""
    __tablename__ = "product_characteristics"
    __table_args__ = (
        db.UniqueConstraint("product_id", "name", name="uq_characteristics_product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    options = db.relationship(
        "CharacteristicOption",
        backref="characteristic",
        lazy=True,
        order_by="CharacteristicOption.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
        }


class CharacteristicOption(db.Model):
    """One allowed value of a characteristic (e.g. "Red", "XL")."""
    __tablename__ = "characteristic_options"
    __table_args__ = (
        db.UniqueConstraint("characteristic_id", "value", name="uq_options_characteristic_value"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    characteristic_id = db.Column(
        db.Integer, db.ForeignKey("product_characteristics.id"), nullable=False, index=True
    )
    value = db.Column(db.String(120), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "characteristic_id": self.characteristic_id,
            "value": self.value,
        }


class Variant(db.Model):
    """
    A specific combination of one option per characteristic of a product.

    IDENTITY: a variant has no natural key; it is identified by the exact set
    of option ids linked through VariantOptionLink. option_signature is the
    canonical hash of that set and carries the uniqueness constraint that
    catches two callers provisioning the same combination concurrently.

    LIFECYCLE: created once on first stock entry for a new combination; only
    ever deleted as the compensating step of a failed provisioning.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "option_signature", name="uq_variants_product_signature"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # sha256 hex of the sorted option ids ("" hashed for variant-less products)
    option_signature = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))
    option_links = db.relationship("VariantOptionLink", backref="variant", lazy=True)

    def __repr__(self) -> str:
        return f"<Variant id={self.id} product_id={self.product_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "option_ids": sorted(link.option_id for link in self.option_links),
            "created_at": to_utc_z(self.created_at),
        }


class VariantOptionLink(db.Model):
    __tablename__ = "variant_options"

    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), primary_key=True)
    option_id = db.Column(db.Integer, db.ForeignKey("characteristic_options.id"), primary_key=True, index=True)

    option = db.relationship("CharacteristicOption")
