# Overview: Attribute catalog reads for the stock entry screen.

from __future__ import annotations

from dataclasses import dataclass, field

from .store import StockStore


@dataclass(frozen=True)
class CatalogCharacteristic:
    id: int
    name: str
    options: tuple = ()

    def option_ids(self) -> set[int]:
        return {o.id for o in self.options}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "options": [{"id": o.id, "value": o.value} for o in self.options],
        }


@dataclass(frozen=True)
class AttributeCatalog:
    """A product's attribute signature: its characteristics and their options."""
    product_id: int
    characteristics: tuple = ()

    @property
    def is_empty(self) -> bool:
        return not self.characteristics

    def characteristic_ids(self) -> list[int]:
        return [c.id for c in self.characteristics]

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "characteristics": [c.to_dict() for c in self.characteristics],
        }


def load_attribute_catalog(store: StockStore, product_id: int) -> AttributeCatalog:
    """
    Load a product's characteristics (ordered by id) with their options.

    A product without characteristics yields an empty catalog; that is a
    valid, variant-less product. Store errors propagate unchanged and are
    not retried here.
    """
    characteristics = []
    for row in store.list_characteristics(product_id):
        options = tuple(store.list_options(row.id))
        characteristics.append(CatalogCharacteristic(id=row.id, name=row.name, options=options))
    return AttributeCatalog(product_id=product_id, characteristics=tuple(characteristics))


@dataclass
class ProductStockOverview:
    product_id: int
    total_quantity: int = 0
    by_location: list[dict] = field(default_factory=list)
    option_values: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "total_quantity": self.total_quantity,
            "by_location": self.by_location,
            "option_values": self.option_values,
        }


def get_product_stock_overview(store: StockStore, product_id: int) -> ProductStockOverview:
    """
    Stock of a product summed per location, plus the option values that
    existing variants actually use, grouped by characteristic name.
    """
    by_location = [
        {"location_id": location_id, "location_name": name, "quantity": quantity}
        for location_id, name, quantity in store.stock_by_location(product_id)
    ]

    grouped: dict[str, set[str]] = {}
    for characteristic_id, characteristic_name, value in store.variant_option_values(product_id):
        name = characteristic_name or f"Characteristic {characteristic_id}"
        grouped.setdefault(name, set()).add(value)

    return ProductStockOverview(
        product_id=product_id,
        total_quantity=sum(item["quantity"] for item in by_location),
        by_location=by_location,
        option_values={name: sorted(values) for name, values in sorted(grouped.items())},
    )
