# Overview: Price reconciliation; keeps one canonical unit price per variant across locations.

from __future__ import annotations

from dataclasses import dataclass

from .store import StockStore
"""
Price Invariants (authoritative)

- Price is a property of the variant, physically stored on every stock row.
- Precedence: any recorded non-null price on any location's row wins over a
  caller-supplied price; otherwise a positive supplied price is used;
  otherwise the price stays unset.
- The scan always covers all locations, never just the target location.
- Different prices per location for one variant are not supported.
"""

SOURCE_EXISTING = "existing"
SOURCE_SUPPLIED = "supplied"
SOURCE_UNSET = "unset"


@dataclass(frozen=True)
class PriceDecision:
    price_cents: int | None
    source: str

    @property
    def is_set(self) -> bool:
        return self.price_cents is not None and self.price_cents > 0


def decide_price(existing_price_cents: int | None, supplied_price_cents: int | None) -> PriceDecision:
    if existing_price_cents is not None:
        return PriceDecision(price_cents=existing_price_cents, source=SOURCE_EXISTING)
    if supplied_price_cents is not None and supplied_price_cents > 0:
        return PriceDecision(price_cents=supplied_price_cents, source=SOURCE_SUPPLIED)
    return PriceDecision(price_cents=None, source=SOURCE_UNSET)


def reconcile_price(store: StockStore, *, variant_id: int, supplied_price_cents: int | None) -> PriceDecision:
    """
    Effective price for variant_id. Store errors propagate to the caller.
    """
    existing = store.find_any_price(variant_id)
    return decide_price(existing, supplied_price_cents)
