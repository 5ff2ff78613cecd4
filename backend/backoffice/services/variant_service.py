# Overview: Variant resolution; finds the variant for an option-set or provisions it exactly once.

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable

from flask import current_app

from .store import StockStore, StoreError, VariantSignatureConflict
"""
Variant Invariants (authoritative)

- A variant is identified by the exact set of option ids linked to it.
- For a product, no two variants may carry the same option-set. The matcher
  always runs before the provisioner; the option_signature uniqueness
  constraint is the backstop for callers racing across batches.
- Partial selection never matches: when a product has characteristics, the
  caller must supply exactly one option per characteristic.
- More than one match is a data-integrity violation, never resolved by
  picking one.
- Provisioning is a two-step saga (insert variant, insert links) with one
  compensating step (delete variant). A failed compensation leaves an
  orphan that is reported separately for manual cleanup.
"""

MANUAL_CLEANUP_TAG = "manual_cleanup_required"


class ResolutionError(Exception):
    """The matcher's backing lookup failed; the row stays unresolved."""


class DataIntegrityError(Exception):
    """The store violates the one-variant-per-option-set invariant."""

    def __init__(self, message: str, *, product_id: int, option_ids: list[int], variant_ids: list[int] | None = None):
        super().__init__(message)
        self.product_id = product_id
        self.option_ids = option_ids
        self.variant_ids = variant_ids or []


class OrphanedVariantError(Exception):
    """Compensating delete failed; an unlinked variant persists."""

    tag = MANUAL_CLEANUP_TAG

    def __init__(self, variant_id: int, product_id: int, reason: str):
        super().__init__(
            f"variant {variant_id} of product {product_id} could not be removed after a failed "
            f"provisioning ({reason}); {MANUAL_CLEANUP_TAG}"
        )
        self.variant_id = variant_id
        self.product_id = product_id
        self.reason = reason


class ProvisioningError(Exception):
    """Variant insert or option linking failed."""

    def __init__(self, message: str, *, variant_id: int | None = None):
        super().__init__(message)
        self.variant_id = variant_id
        self.orphan: OrphanedVariantError | None = None


@dataclass(frozen=True)
class ResolvedVariant:
    variant_id: int
    created: bool


def option_signature(option_ids: Iterable[int]) -> str:
    """Canonical hash of an option-set: sha256 of the sorted, de-duplicated ids."""
    canonical = ",".join(str(i) for i in sorted(set(option_ids)))
    return hashlib.sha256(canonical.encode("ascii")).hexdigest()


def match_variant(
    store: StockStore,
    *,
    product_id: int,
    option_ids: Iterable[int],
    characteristic_count: int,
) -> int | None:
    """
    Return the variant whose option-set equals option_ids, or None.

    Raises:
        ResolutionError: the lookup failed
        DataIntegrityError: more than one variant carries the option-set
    """
    wanted = sorted(set(option_ids))

    # Partial (or over-) selection is never matched against existing variants
    if len(wanted) != characteristic_count:
        return None

    try:
        matches = store.find_variants_by_options(product_id, wanted)
    except StoreError as exc:
        raise ResolutionError(f"variant lookup failed: {exc.message}") from exc

    if len(matches) > 1:
        current_app.logger.error(
            "Duplicate variants %s for product %s option-set %s", matches, product_id, wanted
        )
        raise DataIntegrityError(
            f"{len(matches)} variants share option-set {wanted} of product {product_id}",
            product_id=product_id,
            option_ids=wanted,
            variant_ids=matches,
        )
    return matches[0] if matches else None


def provision_variant(store: StockStore, *, product_id: int, option_ids: Iterable[int]) -> ResolvedVariant:
    """
    Create one variant for product_id and link it to option_ids.

    Only call after match_variant returned None. If another caller created
    the same option-set in between, its variant is returned with created=False.

    Raises:
        ProvisioningError: insert or linking failed (orphan attached when the
            compensating delete also failed)
        DataIntegrityError: the signature is held by a variant that does not
            carry the option-set
    """
    wanted = sorted(set(option_ids))

    try:
        variant_id = store.insert_variant(product_id, option_signature(wanted))
    except VariantSignatureConflict:
        winner = match_variant(
            store, product_id=product_id, option_ids=wanted, characteristic_count=len(wanted)
        )
        if winner is not None:
            return ResolvedVariant(variant_id=winner, created=False)
        current_app.logger.error(
            "Option-set %s of product %s is held by an unlinked variant", wanted, product_id
        )
        raise DataIntegrityError(
            f"option-set {wanted} of product {product_id} is held by an unlinked variant; "
            f"{MANUAL_CLEANUP_TAG}",
            product_id=product_id,
            option_ids=wanted,
        )
    except StoreError as exc:
        raise ProvisioningError(f"could not create variant: {exc.message}") from exc

    if wanted:
        try:
            store.insert_variant_option_links(variant_id, wanted)
        except StoreError as exc:
            error = ProvisioningError(f"could not link options: {exc.message}", variant_id=variant_id)
            _compensate(store, product_id=product_id, variant_id=variant_id, error=error)
            raise error from exc

    return ResolvedVariant(variant_id=variant_id, created=True)


def _compensate(store: StockStore, *, product_id: int, variant_id: int, error: ProvisioningError) -> None:
    try:
        store.delete_variant(variant_id)
    except StoreError as exc:
        error.orphan = OrphanedVariantError(variant_id, product_id, exc.message)
        current_app.logger.warning("%s", error.orphan)


def resolve_variant(
    store: StockStore,
    *,
    product_id: int,
    option_ids: Iterable[int],
    characteristic_count: int,
) -> ResolvedVariant:
    """Matcher first; provisioner only on a miss."""
    wanted = sorted(set(option_ids))
    existing = match_variant(
        store, product_id=product_id, option_ids=wanted, characteristic_count=characteristic_count
    )
    if existing is not None:
        return ResolvedVariant(variant_id=existing, created=False)
    return provision_variant(store, product_id=product_id, option_ids=wanted)
