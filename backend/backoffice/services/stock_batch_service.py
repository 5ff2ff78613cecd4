# Overview: Add-inventory batches; drives variant resolution, price reconciliation and stock merge per row.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from flask import current_app

from ..time_utils import normalize_entry_date, to_utc_z
from ..validation import (
    ValidationError,
    parse_option_selection,
    parse_price_cents,
    parse_quantity,
)
from .catalog_service import AttributeCatalog, load_attribute_catalog
from .pricing_service import reconcile_price
from .stock_service import MergeError, merge_stock
from .store import StockRow, StockStore, StoreError
from .variant_service import (
    DataIntegrityError,
    ProvisioningError,
    ResolutionError,
    match_variant,
    resolve_variant,
)
"""
Batch Semantics (authoritative)

- Every row is validated before any write; the report lists every invalid
  row, not just the first.
- Valid rows are processed in submission order, one at a time: row N's
  writes start only after row N-1 finished, so two rows naming the same new
  option-set share one variant.
- No cross-row atomicity: a failed row never reverts or retries another.
- Data-integrity violations stop the current row only and are reported with
  severity "fatal".
"""

KIND_VALIDATION = "validation"
KIND_RESOLUTION = "resolution"
KIND_PROVISIONING = "provisioning"
KIND_MERGE = "merge"
KIND_DATA_INTEGRITY = "data_integrity"

SEVERITY_ERROR = "error"
SEVERITY_FATAL = "fatal"

STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class RowError:
    kind: str
    message: str
    severity: str = SEVERITY_ERROR
    fields: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {"kind": self.kind, "message": self.message, "severity": self.severity}
        if self.fields:
            data["fields"] = dict(self.fields)
        return data


@dataclass(frozen=True)
class ValidatedRow:
    row_number: int
    option_ids: tuple
    quantity: int
    price_cents: int | None


@dataclass
class RowOutcome:
    row_number: int
    status: str
    variant_id: int | None = None
    variant_created: bool = False
    stock_entry: StockRow | None = None
    price_source: str | None = None
    error: RowError | None = None
    warnings: list[dict] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCEEDED

    def to_dict(self) -> dict:
        entry = None
        if self.stock_entry is not None:
            entry = {
                "id": self.stock_entry.id,
                "variant_id": self.stock_entry.variant_id,
                "location_id": self.stock_entry.location_id,
                "quantity": self.stock_entry.quantity,
                "price_cents": self.stock_entry.price_cents,
                "entry_date": to_utc_z(self.stock_entry.entry_date),
            }
        return {
            "row_number": self.row_number,
            "status": self.status,
            "variant_id": self.variant_id,
            "variant_created": self.variant_created,
            "stock_entry": entry,
            "price_source": self.price_source,
            "error": self.error.to_dict() if self.error else None,
            "warnings": list(self.warnings),
        }


@dataclass
class BatchResult:
    product_id: int
    location_id: int
    entry_date: datetime
    rows: list[RowOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.succeeded for r in self.rows)

    @property
    def errors(self) -> list[tuple[int, RowError]]:
        return [(r.row_number, r.error) for r in self.rows if r.error is not None]

    @property
    def warnings(self) -> list[dict]:
        return [w for r in self.rows for w in r.warnings]

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "entry_date": to_utc_z(self.entry_date),
            "rows": [r.to_dict() for r in self.rows],
            "errors": [{"row_number": n, **e.to_dict()} for n, e in self.errors],
            "warnings": self.warnings,
        }


def _selected_option_ids(selection: dict[int, int | None]) -> list[int]:
    return sorted({option_id for option_id in selection.values() if option_id is not None})


def _check_selection(catalog: AttributeCatalog, selection: dict[int, int | None]) -> str | None:
    unknown = sorted(set(selection) - set(catalog.characteristic_ids()))
    if unknown:
        return f"unknown characteristic(s) {unknown} for product {catalog.product_id}"

    for characteristic in catalog.characteristics:
        option_id = selection.get(characteristic.id)
        if option_id is None:
            return "select an option for each characteristic"
        if option_id not in characteristic.option_ids():
            return f"option {option_id} is not a value of {characteristic.name}"
    return None


def _lookup_error(kind: str, message: str, fields: dict[str, str], *, severity: str = SEVERITY_ERROR) -> RowError:
    # Field problems found before the lookup failed still belong to the row
    if fields:
        message = "; ".join([message] + [f"{name}: {text}" for name, text in fields.items()])
    return RowError(kind, message, severity=severity, fields=dict(fields))


def _validate_row(
    store: StockStore,
    catalog: AttributeCatalog,
    row_number: int,
    raw: dict[str, Any],
) -> tuple[ValidatedRow | None, RowError | None]:
    fields: dict[str, str] = {}

    selection: dict[int, int | None] | None = None
    try:
        selection = parse_option_selection(raw.get("options"))
    except ValidationError as e:
        fields["options"] = str(e)
    if selection is not None:
        problem = _check_selection(catalog, selection)
        if problem:
            fields["options"] = problem

    quantity = None
    try:
        quantity = parse_quantity(raw.get("quantity"))
    except ValidationError as e:
        fields["quantity"] = str(e)

    price_cents = None
    price_invalid = False
    try:
        price_cents = parse_price_cents(raw.get("price"))
    except ValidationError as e:
        fields["price"] = str(e)
        price_invalid = True

    if not price_invalid and (price_cents is None or price_cents <= 0):
        # Acceptable only when the variant already carries a price somewhere
        if "options" in fields:
            fields["price"] = "price must be > 0"
        else:
            try:
                variant_id = match_variant(
                    store,
                    product_id=catalog.product_id,
                    option_ids=_selected_option_ids(selection),
                    characteristic_count=len(catalog.characteristics),
                )
                existing = store.find_any_price(variant_id) if variant_id is not None else None
            except DataIntegrityError as e:
                return None, _lookup_error(KIND_DATA_INTEGRITY, str(e), fields, severity=SEVERITY_FATAL)
            except ResolutionError as e:
                return None, _lookup_error(KIND_RESOLUTION, str(e), fields)
            except StoreError as e:
                return None, _lookup_error(KIND_RESOLUTION, f"price lookup failed: {e.message}", fields)
            if existing is None:
                fields["price"] = "price must be > 0"

    if fields:
        message = "; ".join(f"{name}: {text}" for name, text in fields.items())
        return None, RowError(KIND_VALIDATION, message, fields=fields)

    return (
        ValidatedRow(
            row_number=row_number,
            option_ids=tuple(_selected_option_ids(selection)),
            quantity=quantity,
            price_cents=price_cents if price_cents and price_cents > 0 else None,
        ),
        None,
    )


def validate_rows(
    store: StockStore,
    catalog: AttributeCatalog,
    rows: list[dict[str, Any]],
) -> list[tuple[ValidatedRow | None, RowError | None]]:
    """Validate every row (reads only, no writes). Row numbers start at 1."""
    results = []
    for row_number, raw in enumerate(rows, start=1):
        if not isinstance(raw, dict):
            results.append((None, RowError(KIND_VALIDATION, "row must be an object")))
            continue
        results.append(_validate_row(store, catalog, row_number, raw))
    return results


def _process_row(
    store: StockStore,
    *,
    catalog: AttributeCatalog,
    location_id: int,
    entry_date: datetime,
    row: ValidatedRow,
) -> RowOutcome:
    outcome = RowOutcome(row_number=row.row_number, status=STATUS_FAILED)

    try:
        resolved = resolve_variant(
            store,
            product_id=catalog.product_id,
            option_ids=row.option_ids,
            characteristic_count=len(catalog.characteristics),
        )
    except DataIntegrityError as e:
        outcome.error = RowError(KIND_DATA_INTEGRITY, str(e), severity=SEVERITY_FATAL)
        return outcome
    except ResolutionError as e:
        outcome.error = RowError(KIND_RESOLUTION, str(e))
        return outcome
    except ProvisioningError as e:
        outcome.error = RowError(KIND_PROVISIONING, str(e))
        if e.orphan is not None:
            outcome.warnings.append({
                "row_number": row.row_number,
                "tag": e.orphan.tag,
                "variant_id": e.orphan.variant_id,
                "message": str(e.orphan),
            })
        return outcome

    outcome.variant_id = resolved.variant_id
    outcome.variant_created = resolved.created

    try:
        decision = reconcile_price(store, variant_id=resolved.variant_id, supplied_price_cents=row.price_cents)
        merged = merge_stock(
            store,
            variant_id=resolved.variant_id,
            location_id=location_id,
            quantity=row.quantity,
            price_cents=decision.price_cents,
            entry_date=entry_date,
        )
    except StoreError as e:
        outcome.error = RowError(KIND_MERGE, f"price lookup failed: {e.message}")
        return outcome
    except MergeError as e:
        outcome.error = RowError(KIND_MERGE, str(e))
        return outcome

    outcome.status = STATUS_SUCCEEDED
    outcome.price_source = decision.source
    outcome.stock_entry = merged.entry
    return outcome


def submit_stock_batch(
    store: StockStore,
    *,
    product_id: int,
    location_id: int,
    rows: list[dict[str, Any]],
    entry_date: Any = None,
) -> BatchResult:
    """
    Add inventory for one product at one location.

    Args:
        store: Tenant-scoped data store
        product_id: Product the rows belong to
        location_id: Location receiving the stock
        rows: Ordered rows {"options": {characteristic_id: option_id},
              "quantity": int, "price": number | str | None}
        entry_date: Business date stamped on every write (default: now)

    Returns:
        BatchResult with one outcome per row, in submission order

    Raises:
        ValidationError: empty batch or unparseable entry_date
        StoreError: the attribute catalog could not be loaded
    """
    if not rows:
        raise ValidationError("at least one row is required")
    try:
        entry_dt = normalize_entry_date(entry_date)
    except ValueError:
        raise ValidationError("entry_date must be an ISO-8601 date or datetime")

    catalog = load_attribute_catalog(store, product_id)
    result = BatchResult(product_id=product_id, location_id=location_id, entry_date=entry_dt)

    validated = validate_rows(store, catalog, rows)

    for row_number, (row, error) in enumerate(validated, start=1):
        if error is not None:
            result.rows.append(RowOutcome(row_number=row_number, status=STATUS_FAILED, error=error))
            continue
        result.rows.append(
            _process_row(store, catalog=catalog, location_id=location_id, entry_date=entry_dt, row=row)
        )

    failed = len(result.errors)
    current_app.logger.info(
        "Stock batch product=%s location=%s rows=%s failed=%s",
        product_id,
        location_id,
        len(result.rows),
        failed,
    )
    return result


def preview_rows(
    store: StockStore,
    *,
    product_id: int,
    location_id: int,
    rows: list[dict[str, Any]],
) -> list[dict]:
    """
    Best-effort, read-only view of what each row would resolve to.

    Incomplete selections and lookup failures preview as "no variant,
    stock 0, no price"; failures are logged, never raised.
    """
    catalog = load_attribute_catalog(store, product_id)
    previews = []

    for row_number, raw in enumerate(rows or [], start=1):
        preview = {
            "row_number": row_number,
            "variant_id": None,
            "current_stock": 0,
            "existing_price_cents": None,
            "complete": False,
        }
        previews.append(preview)

        try:
            selection = parse_option_selection((raw or {}).get("options"))
        except (ValidationError, AttributeError):
            continue
        if _check_selection(catalog, selection) is not None:
            continue
        preview["complete"] = True

        try:
            variant_id = match_variant(
                store,
                product_id=product_id,
                option_ids=_selected_option_ids(selection),
                characteristic_count=len(catalog.characteristics),
            )
            if variant_id is None:
                continue
            entry = store.get_stock_entry(variant_id, location_id)
            global_price = store.find_any_price(variant_id)
        except (ResolutionError, DataIntegrityError, StoreError) as e:
            current_app.logger.warning("Stock preview row %s degraded: %s", row_number, e)
            continue

        preview["variant_id"] = variant_id
        preview["current_stock"] = entry.quantity if entry else 0
        if global_price is not None:
            preview["existing_price_cents"] = global_price
        elif entry is not None:
            preview["existing_price_cents"] = entry.price_cents

    return previews
