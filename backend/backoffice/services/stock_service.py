# Overview: Stock merge; upserts the (variant, location) stock row without losing increments.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..validation import MAX_QUANTITY
from .store import StockEntryConflict, StockRow, StockStore, StoreError


class MergeError(Exception):
    """Stock insert/update failed after the variant was resolved."""

    def __init__(self, message: str, *, variant_id: int, location_id: int):
        super().__init__(message)
        self.variant_id = variant_id
        self.location_id = location_id


@dataclass(frozen=True)
class MergeResult:
    entry: StockRow
    created: bool
    price_applied: bool


def merge_stock(
    store: StockStore,
    *,
    variant_id: int,
    location_id: int,
    quantity: int,
    price_cents: int | None,
    entry_date: datetime,
) -> MergeResult:
    """
    Add quantity to the variant's stock at location_id.

    - Existing row: quantity is incremented (never overwritten); the price is
      filled only when the row has none, never replaced.
    - No row: a row is inserted with the quantity and the price when positive.
    - Every write stamps entry_date.

    If a concurrent caller inserts the row first, the increment is applied
    to that row instead.

    Raises:
        ValueError: quantity is not positive
        MergeError: any store failure, or the increment would exceed MAX_QUANTITY
    """
    if quantity <= 0:
        raise ValueError("quantity must be > 0")
    fill_price = price_cents if price_cents is not None and price_cents > 0 else None

    try:
        existing = store.get_stock_entry(variant_id, location_id, lock=True)
        if existing is None:
            try:
                entry = store.insert_stock_entry(
                    variant_id=variant_id,
                    location_id=location_id,
                    quantity=quantity,
                    price_cents=fill_price,
                    entry_date=entry_date,
                )
                return MergeResult(entry=entry, created=True, price_applied=fill_price is not None)
            except StockEntryConflict:
                existing = store.get_stock_entry(variant_id, location_id, lock=True)
                if existing is None:
                    raise MergeError(
                        "stock entry conflict but no row found on re-read",
                        variant_id=variant_id,
                        location_id=location_id,
                    )

        if existing.quantity + quantity > MAX_QUANTITY:
            raise MergeError(
                f"stock would exceed {MAX_QUANTITY:,} units (on hand: {existing.quantity})",
                variant_id=variant_id,
                location_id=location_id,
            )

        needs_price = existing.price_cents is None
        entry = store.update_stock_entry(
            existing.id,
            add_quantity=quantity,
            fill_price_cents=fill_price if needs_price else None,
            entry_date=entry_date,
        )
    except StoreError as exc:
        raise MergeError(
            f"could not record stock: {exc.message}",
            variant_id=variant_id,
            location_id=location_id,
        ) from exc

    return MergeResult(
        entry=entry,
        created=False,
        price_applied=needs_price and entry.price_cents is not None,
    )
