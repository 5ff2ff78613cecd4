from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest quantity a stock row holds (32-bit INTEGER column)
MAX_QUANTITY = 2_147_483_647

# Currency decoration accepted (and discarded) on price input
_PRICE_DECORATION = re.compile(r"[\s$,]|MXN", re.IGNORECASE)


class ValidationError(ValueError):
    """400-level input problem."""


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for identifiers and quantities.

    Rejects bools, floats, decimals, scientific notation and blank strings.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_quantity(value: Any) -> int:
    """Quantity to add: a positive integer."""
    if value is None or value == "":
        raise ValidationError("quantity is required")
    qty = coerce_int(value, "quantity")
    if qty <= 0:
        raise ValidationError("quantity must be > 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY:,}")
    return qty


def parse_price_cents(value: Any) -> int | None:
    """
    Normalize a caller-supplied unit price to integer cents.

    - None / "" -> None (no price supplied)
    - int / float / Decimal / str -> rounded half-up to 2 decimals, then cents
    - "$1,250.50" and "200 MXN" style decoration is stripped

    Sign is preserved: the caller decides whether a non-positive price is
    acceptable (it is only when an existing price will be reconciled).
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("price must be a number")

    if isinstance(value, str):
        cleaned = _PRICE_DECORATION.sub("", value)
        if not cleaned:
            return None
        raw = cleaned
    else:
        raw = str(value)

    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError("price must be a number")
    if not amount.is_finite():
        raise ValidationError("price must be a number")

    # Bounded before quantize, which overflows on large exponents ("1e30")
    if abs(amount) > Decimal(MAX_PRICE_CENTS) / 100:
        raise ValidationError(f"price cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")
    cents = int((amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) * 100).to_integral_value())
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"price cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")
    return cents


def parse_option_selection(value: Any) -> dict[int, int | None]:
    """
    Normalize a row's option selection to {characteristic_id: option_id | None}.

    Accepts a JSON object keyed by characteristic id (string keys allowed).
    Unselected characteristics may be null or omitted.
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError("options must be an object keyed by characteristic id")

    selection: dict[int, int | None] = {}
    for raw_key, raw_option in value.items():
        characteristic_id = coerce_int(raw_key, "characteristic id")
        if raw_option is None or raw_option == "":
            selection[characteristic_id] = None
            continue
        selection[characteristic_id] = coerce_int(raw_option, "option id")
    return selection
