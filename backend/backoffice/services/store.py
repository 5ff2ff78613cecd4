# Overview: Tenant-scoped data store collaborator used by the stock engine.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, TypeVar

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import (
    Characteristic,
    CharacteristicOption,
    Location,
    Product,
    StockEntry,
    Variant,
    VariantOptionLink,
)
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_ledger_event
"""
Store Semantics (authoritative)

- Every public method is one request/response against the relational backend
  and its own unit of work: it commits on success and rolls back on failure.
  There is no way for a caller to group two methods into one transaction.
- Row-level authorization: a store instance is bound to one organization
  (org_id); rows of other tenants are invisible to reads and never written.
- Backend failures surface as StoreError (verbatim message, no retry beyond
  lock/version conflicts handled by run_with_retry).
- Uniqueness backstops surface as VariantSignatureConflict and
  StockEntryConflict so callers can re-read instead of failing.
"""

T = TypeVar("T")


class StoreError(Exception):
    """A data store call failed."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message


class VariantSignatureConflict(StoreError):
    """Another variant with the same option-set signature already exists."""


class StockEntryConflict(StoreError):
    """A stock entry for the (variant, location) pair already exists."""


@dataclass(frozen=True)
class CharacteristicRow:
    id: int
    name: str


@dataclass(frozen=True)
class OptionRow:
    id: int
    value: str


@dataclass(frozen=True)
class StockRow:
    id: int
    variant_id: int
    location_id: int
    quantity: int
    price_cents: int | None
    entry_date: datetime | None

    @classmethod
    def from_model(cls, entry: StockEntry) -> "StockRow":
        return cls(
            id=entry.id,
            variant_id=entry.variant_id,
            location_id=entry.location_id,
            quantity=entry.quantity,
            price_cents=entry.price_cents,
            entry_date=entry.entry_date,
        )


class StockStore:
    """
    Relational backend as seen by one authenticated tenant.

    Args:
        org_id: Tenant every read and write is scoped to
        actor_user_id: Caller identity recorded on ledger events
    """

    def __init__(self, org_id: int, *, actor_user_id: str | None = None):
        self.org_id = org_id
        self.actor_user_id = actor_user_id

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    def _call(self, operation: str, func: Callable[[], T], *, write: bool = False) -> T:
        def _op() -> T:
            result = func()
            if write:
                db.session.commit()
            return result

        try:
            return run_with_retry(_op)
        except StoreError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(operation, str(exc.orig if getattr(exc, "orig", None) else exc)) from exc
        except OverflowError as exc:
            # Driver-side integer range check (e.g. sqlite3 beyond 64 bits)
            db.session.rollback()
            raise StoreError(operation, str(exc)) from exc

    # ------------------------------------------------------------------
    # attribute catalog
    # ------------------------------------------------------------------

    def list_characteristics(self, product_id: int) -> list[CharacteristicRow]:
        def _op():
            rows = (
                db.session.query(Characteristic.id, Characteristic.name)
                .join(Product, Product.id == Characteristic.product_id)
                .filter(Product.id == product_id, Product.org_id == self.org_id)
                .order_by(Characteristic.id.asc())
                .all()
            )
            return [CharacteristicRow(id=r.id, name=r.name) for r in rows]

        return self._call("list_characteristics", _op)

    def list_options(self, characteristic_id: int) -> list[OptionRow]:
        def _op():
            rows = (
                db.session.query(CharacteristicOption.id, CharacteristicOption.value)
                .join(Characteristic, Characteristic.id == CharacteristicOption.characteristic_id)
                .join(Product, Product.id == Characteristic.product_id)
                .filter(
                    CharacteristicOption.characteristic_id == characteristic_id,
                    Product.org_id == self.org_id,
                )
                .order_by(CharacteristicOption.id.asc())
                .all()
            )
            return [OptionRow(id=r.id, value=r.value) for r in rows]

        return self._call("list_options", _op)

    # ------------------------------------------------------------------
    # variants
    # ------------------------------------------------------------------

    def find_variants_by_options(self, product_id: int, option_ids: Iterable[int]) -> list[int]:
        """
        Set-equality lookup: variants of product_id whose linked option-set is
        exactly option_ids. Returns every match (callers treat >1 as corrupt).

        An empty option_ids matches variants with no links at all.
        """
        wanted = sorted(set(option_ids))

        def _op():
            total_links = func.count(VariantOptionLink.option_id)
            matching_links = func.coalesce(
                func.sum(case((VariantOptionLink.option_id.in_(wanted), 1), else_=0)),
                0,
            )
            rows = (
                db.session.query(Variant.id)
                .outerjoin(VariantOptionLink, VariantOptionLink.variant_id == Variant.id)
                .filter(Variant.org_id == self.org_id, Variant.product_id == product_id)
                .group_by(Variant.id)
                .having(total_links == len(wanted))
                .having(matching_links == len(wanted))
                .order_by(Variant.id.asc())
                .all()
            )
            return [r.id for r in rows]

        return self._call("find_variants_by_options", _op)

    def insert_variant(self, product_id: int, option_signature: str) -> int:
        def _op():
            self._require_owned(Product, product_id, "insert_variant")
            variant = Variant(org_id=self.org_id, product_id=product_id, option_signature=option_signature)
            db.session.add(variant)
            try:
                db.session.flush()
            except IntegrityError as exc:
                db.session.rollback()
                raise VariantSignatureConflict(
                    "insert_variant", "variant with this option-set already exists"
                ) from exc
            append_ledger_event(
                org_id=self.org_id,
                event_type="variant.created",
                entity_type="variant",
                entity_id=variant.id,
                actor_user_id=self.actor_user_id,
                payload={"product_id": product_id},
            )
            return variant.id

        return self._call("insert_variant", _op, write=True)

    def insert_variant_option_links(self, variant_id: int, option_ids: Iterable[int]) -> None:
        """Batch insert; all links land or none do."""
        def _op():
            for option_id in sorted(set(option_ids)):
                db.session.add(VariantOptionLink(variant_id=variant_id, option_id=option_id))
            db.session.flush()

        self._call("insert_variant_option_links", _op, write=True)

    def delete_variant(self, variant_id: int) -> bool:
        """
        Compensating delete. Idempotent: deleting an absent variant returns False.
        """
        def _op():
            variant = (
                db.session.query(Variant)
                .filter(Variant.id == variant_id, Variant.org_id == self.org_id)
                .first()
            )
            if variant is None:
                return False
            db.session.query(VariantOptionLink).filter(
                VariantOptionLink.variant_id == variant_id
            ).delete(synchronize_session=False)
            db.session.delete(variant)
            append_ledger_event(
                org_id=self.org_id,
                event_type="variant.compensated",
                entity_type="variant",
                entity_id=variant_id,
                actor_user_id=self.actor_user_id,
                note="Deleted unlinked variant after failed option linking",
            )
            return True

        return self._call("delete_variant", _op, write=True)

    # ------------------------------------------------------------------
    # stock entries
    # ------------------------------------------------------------------

    def get_stock_entry(self, variant_id: int, location_id: int, *, lock: bool = False) -> StockRow | None:
        def _op():
            q = db.session.query(StockEntry).filter(
                StockEntry.org_id == self.org_id,
                StockEntry.variant_id == variant_id,
                StockEntry.location_id == location_id,
            )
            if lock:
                q = lock_for_update(q)
            entry = q.populate_existing().first()
            return StockRow.from_model(entry) if entry else None

        return self._call("get_stock_entry", _op)

    def find_any_price(self, variant_id: int) -> int | None:
        """First recorded non-null price for variant_id across all locations."""
        def _op():
            row = (
                db.session.query(StockEntry.price_cents)
                .filter(
                    StockEntry.org_id == self.org_id,
                    StockEntry.variant_id == variant_id,
                    StockEntry.price_cents.isnot(None),
                )
                .order_by(StockEntry.id.asc())
                .limit(1)
                .first()
            )
            return row.price_cents if row else None

        return self._call("find_any_price", _op)

    def insert_stock_entry(
        self,
        *,
        variant_id: int,
        location_id: int,
        quantity: int,
        price_cents: int | None,
        entry_date: datetime,
    ) -> StockRow:
        def _op():
            self._require_owned(Location, location_id, "insert_stock_entry")
            entry = StockEntry(
                org_id=self.org_id,
                variant_id=variant_id,
                location_id=location_id,
                quantity=quantity,
                price_cents=price_cents,
                entry_date=entry_date,
            )
            db.session.add(entry)
            try:
                db.session.flush()
            except IntegrityError as exc:
                db.session.rollback()
                raise StockEntryConflict(
                    "insert_stock_entry", "stock entry already exists for variant and location"
                ) from exc
            self._append_received(entry.id, location_id, quantity, price_cents, entry_date)
            return StockRow.from_model(entry)

        return self._call("insert_stock_entry", _op, write=True)

    def update_stock_entry(
        self,
        entry_id: int,
        *,
        add_quantity: int,
        fill_price_cents: int | None,
        entry_date: datetime,
    ) -> StockRow:
        """
        Single-statement merge: quantity is incremented server-side and the
        price is only filled where the row has none (COALESCE).
        """
        def _op():
            values = {
                "quantity": StockEntry.quantity + add_quantity,
                "entry_date": entry_date,
                "version_id": StockEntry.version_id + 1,
            }
            if fill_price_cents is not None:
                values["price_cents"] = func.coalesce(StockEntry.price_cents, fill_price_cents)
            result = db.session.execute(
                update(StockEntry)
                .where(StockEntry.id == entry_id, StockEntry.org_id == self.org_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise StoreError("update_stock_entry", f"stock entry {entry_id} not found")
            entry = db.session.get(StockEntry, entry_id, populate_existing=True)
            self._append_received(entry.id, entry.location_id, add_quantity, entry.price_cents, entry_date)
            return StockRow.from_model(entry)

        return self._call("update_stock_entry", _op, write=True)

    def _require_owned(self, model, entity_id: int, operation: str) -> None:
        # Row-level authorization: foreign-tenant rows behave as missing
        owned = (
            db.session.query(model.id)
            .filter(model.id == entity_id, model.org_id == self.org_id)
            .first()
        )
        if owned is None:
            raise StoreError(operation, f"{model.__tablename__} row {entity_id} not found")

    def _append_received(
        self,
        entry_id: int,
        location_id: int,
        quantity: int,
        price_cents: int | None,
        entry_date: datetime,
    ) -> None:
        append_ledger_event(
            org_id=self.org_id,
            location_id=location_id,
            event_type="stock.received",
            entity_type="stock_entry",
            entity_id=entry_id,
            actor_user_id=self.actor_user_id,
            occurred_at=entry_date,
            payload={"quantity_added": quantity, "price_cents": price_cents},
        )

    # ------------------------------------------------------------------
    # read models for the entry screen
    # ------------------------------------------------------------------

    def stock_by_location(self, product_id: int) -> list[tuple[int, str, int]]:
        """(location_id, location_name, total quantity) for every variant of product_id."""
        def _op():
            rows = (
                db.session.query(
                    Location.id,
                    Location.name,
                    func.coalesce(func.sum(StockEntry.quantity), 0).label("quantity"),
                )
                .join(StockEntry, StockEntry.location_id == Location.id)
                .join(Variant, Variant.id == StockEntry.variant_id)
                .filter(
                    StockEntry.org_id == self.org_id,
                    Variant.product_id == product_id,
                )
                .group_by(Location.id, Location.name)
                .order_by(Location.name.asc(), Location.id.asc())
                .all()
            )
            return [(r.id, r.name, int(r.quantity or 0)) for r in rows]

        return self._call("stock_by_location", _op)

    def variant_option_values(self, product_id: int) -> list[tuple[int, str, str]]:
        """(characteristic_id, characteristic_name, option value) used by existing variants."""
        def _op():
            rows = (
                db.session.query(Characteristic.id, Characteristic.name, CharacteristicOption.value)
                .select_from(Variant)
                .join(VariantOptionLink, VariantOptionLink.variant_id == Variant.id)
                .join(CharacteristicOption, CharacteristicOption.id == VariantOptionLink.option_id)
                .join(Characteristic, Characteristic.id == CharacteristicOption.characteristic_id)
                .filter(Variant.org_id == self.org_id, Variant.product_id == product_id)
                .distinct()
                .all()
            )
            return [(r[0], r[1], r[2]) for r in rows]

        return self._call("variant_option_values", _op)
