# Overview: Pytest coverage for variant provisioning, compensation and orphan handling.

"""
Variant Provisioning Tests

Provisioning is two store calls (insert variant, insert links) with one
compensating delete. These tests inject failures into each step and
verify:
1. A link failure deletes the variant it just created
2. A failed compensation surfaces a separately tagged orphan
3. The option-set signature constraint turns a lost race into a re-match
"""

import logging

import pytest

from backoffice.models import LedgerEvent, Variant, VariantOptionLink
from backoffice.services import maintenance_service
from backoffice.services.store import StockStore, StoreError
from backoffice.services.variant_service import (
    MANUAL_CLEANUP_TAG,
    DataIntegrityError,
    ProvisioningError,
    option_signature,
    provision_variant,
    resolve_variant,
)


class FailingInsertStore(StockStore):
    def insert_variant(self, product_id, option_signature):
        raise StoreError("insert_variant", "disk full")


class FailingLinksStore(StockStore):
    def insert_variant_option_links(self, variant_id, option_ids):
        raise StoreError("insert_variant_option_links", "link write timed out")


class FailingLinksAndDeleteStore(FailingLinksStore):
    def delete_variant(self, variant_id):
        raise StoreError("delete_variant", "connection lost")


class TestProvisionVariant:

    def test_creates_variant_and_links(self, db_session, stock_store, sneaker):
        wanted = sneaker.option_ids(Size="38", Color="Blue")

        resolved = provision_variant(stock_store, product_id=sneaker.id, option_ids=wanted)

        assert resolved.created is True
        variant = db_session.get(Variant, resolved.variant_id)
        assert variant.product_id == sneaker.id
        assert variant.option_signature == option_signature(wanted)
        assert sorted(link.option_id for link in variant.option_links) == wanted

    def test_records_ledger_event(self, db_session, stock_store, shirt):
        resolved = provision_variant(stock_store, product_id=shirt.id, option_ids=shirt.option_ids(Size="L"))

        event = db_session.query(LedgerEvent).filter_by(
            event_type="variant.created", entity_id=resolved.variant_id
        ).one()
        assert event.actor_user_id == "user-a"

    def test_insert_failure_leaves_nothing_behind(self, db_session, org_a, shirt):
        store = FailingInsertStore(org_a.id)

        with pytest.raises(ProvisioningError, match="disk full") as exc_info:
            provision_variant(store, product_id=shirt.id, option_ids=shirt.option_ids(Size="M"))

        assert exc_info.value.variant_id is None
        assert exc_info.value.orphan is None
        assert db_session.query(Variant).count() == 0

    def test_link_failure_compensates(self, db_session, org_a, shirt):
        store = FailingLinksStore(org_a.id)

        with pytest.raises(ProvisioningError, match="link write timed out") as exc_info:
            provision_variant(store, product_id=shirt.id, option_ids=shirt.option_ids(Size="M"))

        assert exc_info.value.orphan is None
        assert db_session.query(Variant).count() == 0
        assert db_session.query(LedgerEvent).filter_by(event_type="variant.compensated").count() == 1

    def test_failed_compensation_reports_orphan(self, app, db_session, org_a, shirt, caplog):
        store = FailingLinksAndDeleteStore(org_a.id)

        with caplog.at_level(logging.WARNING, logger=app.logger.name):
            with pytest.raises(ProvisioningError) as exc_info:
                provision_variant(store, product_id=shirt.id, option_ids=shirt.option_ids(Size="M"))

        orphan = exc_info.value.orphan
        assert orphan is not None
        assert orphan.tag == MANUAL_CLEANUP_TAG
        assert orphan.variant_id == exc_info.value.variant_id
        assert "connection lost" in orphan.reason
        assert MANUAL_CLEANUP_TAG in caplog.text

        # The ghost stays until maintenance removes it
        assert [v.id for v in maintenance_service.find_orphan_variants(org_id=org_a.id)] == [orphan.variant_id]

    def test_compensating_delete_is_idempotent(self, stock_store, shirt):
        resolved = provision_variant(stock_store, product_id=shirt.id, option_ids=shirt.option_ids(Size="S"))

        assert stock_store.delete_variant(resolved.variant_id) is True
        assert stock_store.delete_variant(resolved.variant_id) is False


class TestSignatureBackstop:

    def test_lost_race_returns_existing_variant(self, db_session, stock_store, shirt):
        wanted = shirt.option_ids(Size="M")
        winner = provision_variant(stock_store, product_id=shirt.id, option_ids=wanted)

        # A second caller that skipped (or raced past) the matcher
        loser = provision_variant(StockStore(shirt.product.org_id), product_id=shirt.id, option_ids=wanted)

        assert loser.created is False
        assert loser.variant_id == winner.variant_id
        assert db_session.query(Variant).filter_by(product_id=shirt.id).count() == 1

    def test_signature_held_by_unlinked_variant(self, db_session, org_a, stock_store, shirt):
        wanted = shirt.option_ids(Size="M")
        db_session.add(Variant(org_id=org_a.id, product_id=shirt.id, option_signature=option_signature(wanted)))
        db_session.commit()

        with pytest.raises(DataIntegrityError, match=MANUAL_CLEANUP_TAG):
            provision_variant(stock_store, product_id=shirt.id, option_ids=wanted)

    def test_foreign_product_cannot_be_provisioned(self, db_session, stock_store, shirt_b):
        with pytest.raises(ProvisioningError, match="not found"):
            provision_variant(stock_store, product_id=shirt_b.id, option_ids=shirt_b.option_ids(Size="M"))
        assert db_session.query(Variant).count() == 0


class TestResolveVariant:

    def test_idempotent_resolution(self, db_session, stock_store, sneaker):
        wanted = sneaker.option_ids(Size="40", Color="Red")

        first = resolve_variant(stock_store, product_id=sneaker.id, option_ids=wanted, characteristic_count=2)
        second = resolve_variant(stock_store, product_id=sneaker.id, option_ids=wanted, characteristic_count=2)

        assert first.created is True
        assert second.created is False
        assert first.variant_id == second.variant_id
        assert db_session.query(VariantOptionLink).filter_by(variant_id=first.variant_id).count() == 2


class TestOrphanMaintenance:

    def test_cleanup_removes_orphans_without_stock(self, db_session, org_a, shirt, gift_card, stock_store):
        ghost = Variant(org_id=org_a.id, product_id=shirt.id, option_signature="ghost")
        db_session.add(ghost)
        db_session.commit()
        # A variant-less product's unlinked variant is legitimate
        plain = resolve_variant(stock_store, product_id=gift_card.id, option_ids=[], characteristic_count=0)

        deleted = maintenance_service.cleanup_orphan_variants(org_id=org_a.id)

        assert deleted == 1
        assert db_session.get(Variant, plain.variant_id) is not None
        assert db_session.query(Variant).filter_by(option_signature="ghost").count() == 0
        assert db_session.query(LedgerEvent).filter_by(event_type="variant.orphan_removed").count() == 1
