# Overview: Pytest coverage for the (variant, location) stock merge.

from datetime import datetime

import pytest

from backoffice.models import LedgerEvent, StockEntry
from backoffice.services.stock_service import MergeError, merge_stock
from backoffice.services.store import StockStore, StoreError
from backoffice.services.variant_service import resolve_variant
from backoffice.validation import MAX_QUANTITY


FIRST_DATE = datetime(2026, 3, 1, 9, 0)
SECOND_DATE = datetime(2026, 3, 2, 17, 45)


def _row_quantity(session, variant_id, location_id):
    entry = session.query(StockEntry).filter_by(variant_id=variant_id, location_id=location_id).one()
    return entry.quantity


@pytest.fixture
def variant_m(stock_store, shirt):
    return resolve_variant(
        stock_store, product_id=shirt.id, option_ids=shirt.option_ids(Size="M"), characteristic_count=1
    ).variant_id


class RacingStore(StockStore):
    """Misses the row on the first read, as if another caller inserted it meanwhile."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reads = 0

    def get_stock_entry(self, variant_id, location_id, *, lock=False):
        self.reads += 1
        if self.reads == 1:
            return None
        return super().get_stock_entry(variant_id, location_id, lock=lock)


class FailingUpdateStore(StockStore):
    def update_stock_entry(self, entry_id, **kwargs):
        raise StoreError("update_stock_entry", "database is locked")


class TestMergeStock:

    def test_inserts_new_row(self, db_session, stock_store, variant_m, location_a):
        result = merge_stock(
            stock_store,
            variant_id=variant_m,
            location_id=location_a.id,
            quantity=5,
            price_cents=20000,
            entry_date=FIRST_DATE,
        )

        assert result.created is True
        assert result.price_applied is True
        assert result.entry.quantity == 5
        assert result.entry.price_cents == 20000
        assert result.entry.entry_date == FIRST_DATE

    def test_increments_existing_row_and_keeps_price(self, db_session, stock_store, variant_m, location_a):
        merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                    quantity=5, price_cents=20000, entry_date=FIRST_DATE)

        result = merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                             quantity=3, price_cents=99900, entry_date=SECOND_DATE)

        assert result.created is False
        assert result.price_applied is False
        assert result.entry.quantity == 8
        assert result.entry.price_cents == 20000
        assert result.entry.entry_date == SECOND_DATE

        row = db_session.query(StockEntry).filter_by(variant_id=variant_m, location_id=location_a.id).one()
        assert row.quantity == 8
        assert row.version_id == 2

    def test_fills_missing_price(self, stock_store, variant_m, location_a):
        merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                    quantity=2, price_cents=None, entry_date=FIRST_DATE)

        result = merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                             quantity=1, price_cents=4500, entry_date=SECOND_DATE)

        assert result.price_applied is True
        assert result.entry.quantity == 3
        assert result.entry.price_cents == 4500

    def test_non_positive_price_is_not_written(self, stock_store, variant_m, location_a):
        result = merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                             quantity=2, price_cents=0, entry_date=FIRST_DATE)

        assert result.entry.price_cents is None
        assert result.price_applied is False

    @pytest.mark.parametrize("quantity", [0, -4])
    def test_rejects_non_positive_quantity(self, stock_store, variant_m, location_a, quantity):
        with pytest.raises(ValueError, match="quantity must be > 0"):
            merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                        quantity=quantity, price_cents=100, entry_date=FIRST_DATE)

    def test_insert_conflict_falls_back_to_update(self, db_session, org_a, stock_store, variant_m, location_a):
        merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                    quantity=5, price_cents=20000, entry_date=FIRST_DATE)
        racing = RacingStore(org_a.id)

        result = merge_stock(racing, variant_id=variant_m, location_id=location_a.id,
                             quantity=3, price_cents=None, entry_date=SECOND_DATE)

        assert racing.reads == 2
        assert result.created is False
        assert result.entry.quantity == 8
        assert db_session.query(StockEntry).filter_by(variant_id=variant_m).count() == 1

    def test_store_failure_is_a_merge_error(self, org_a, stock_store, variant_m, location_a):
        merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                    quantity=5, price_cents=20000, entry_date=FIRST_DATE)

        with pytest.raises(MergeError, match="database is locked") as exc_info:
            merge_stock(FailingUpdateStore(org_a.id), variant_id=variant_m, location_id=location_a.id,
                        quantity=1, price_cents=None, entry_date=SECOND_DATE)

        assert exc_info.value.variant_id == variant_m
        assert exc_info.value.location_id == location_a.id

    def test_increment_beyond_maximum_is_a_merge_error(self, db_session, stock_store, variant_m, location_a):
        merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                    quantity=MAX_QUANTITY - 1, price_cents=100, entry_date=FIRST_DATE)

        with pytest.raises(MergeError, match="would exceed"):
            merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                        quantity=2, price_cents=None, entry_date=SECOND_DATE)

        assert _row_quantity(db_session, variant_m, location_a.id) == MAX_QUANTITY - 1

    def test_driver_overflow_is_a_store_error(self, db_session, stock_store, variant_m, location_a):
        with pytest.raises(StoreError, match="insert_stock_entry"):
            stock_store.insert_stock_entry(
                variant_id=variant_m, location_id=location_a.id,
                quantity=10**30, price_cents=None, entry_date=FIRST_DATE,
            )

        assert db_session.query(StockEntry).count() == 0

    def test_foreign_location_is_rejected(self, stock_store, variant_m, location_b):
        with pytest.raises(MergeError, match="not found"):
            merge_stock(stock_store, variant_id=variant_m, location_id=location_b.id,
                        quantity=1, price_cents=100, entry_date=FIRST_DATE)

    def test_each_write_is_recorded_in_ledger(self, db_session, stock_store, variant_m, location_a):
        first = merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                            quantity=5, price_cents=20000, entry_date=FIRST_DATE)
        merge_stock(stock_store, variant_id=variant_m, location_id=location_a.id,
                    quantity=3, price_cents=None, entry_date=SECOND_DATE)

        events = (
            db_session.query(LedgerEvent)
            .filter_by(event_type="stock.received", entity_id=first.entry.id)
            .order_by(LedgerEvent.id.asc())
            .all()
        )
        assert [e.location_id for e in events] == [location_a.id, location_a.id]
        assert [e.occurred_at for e in events] == [FIRST_DATE, SECOND_DATE]
