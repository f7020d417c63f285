from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from shoptally.time_utils import parse_iso_datetime


# Maximum money amount: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999
MAX_QUANTITY = 1_000_000

ITEM_TYPE_PRODUCT = "Product"
ITEM_TYPE_SERVICE = "Service"
ITEM_TYPES = (ITEM_TYPE_PRODUCT, ITEM_TYPE_SERVICE)


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level: a sale, product, service or expense id does not resolve in scope."""


class ConflictError(ValueError):
    """Business rule conflict detected before any mutation."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds the stock available at check/adjust time."""


class StorageUnavailableError(RuntimeError):
    """Database timed out or could not be reached; safe for the caller to retry."""


def parse_id(value: Any, field: str = "id") -> int:
    """
    Strict integer id coercion.

    Accepts ints and plain digit strings; rejects bools, floats, blanks,
    signs and anything non-numeric.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid {field}")
    if isinstance(value, int):
        if value <= 0:
            raise ValidationError(f"Invalid {field}")
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not (stripped.isascii() and stripped.isdigit()):
            raise ValidationError(f"Invalid {field}")
        parsed = int(stripped)
        if parsed <= 0:
            raise ValidationError(f"Invalid {field}")
        return parsed
    raise ValidationError(f"Invalid {field}")


def parse_quantity(value: Any, field: str = "quantity") -> int:
    """Quantities are positive integers. "3" and 3.0 are accepted, 2.5 is not."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be a whole number")
        qty = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        # Reject decimal points and scientific notation (e.g., "12.5", "1e3")
        digits = stripped.lstrip("-")
        if not (digits.isascii() and digits.isdigit()):
            raise ValidationError(f"{field} must be a whole number")
        qty = int(stripped)
    else:
        raise ValidationError(f"{field} must be a whole number")

    if qty <= 0:
        raise ValidationError("Quantity must be a positive number")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY:,}")
    return qty


def to_cents(value: Any, field: str = "amount") -> int:
    """
    Convert a decimal currency amount (number or numeric string) to integer cents.

    Half-up rounding to the cent. Sign is preserved; range checks are the caller's.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise ValidationError(f"{field} is required")
    else:
        raise ValidationError(f"{field} must be a number")

    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")

    # quantize overflows on huge exponents, so only in-range amounts reach it
    cents = amount * 100
    if abs(cents) <= MAX_AMOUNT_CENTS:
        cents = int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
    return cents


def from_cents(cents: int | None) -> float | None:
    if cents is None:
        return None
    return float(Decimal(cents) / 100)


def parse_optional_cents(value: Any, field: str) -> int:
    """Missing/blank -> 0; otherwise a non-negative cents amount."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    cents = to_cents(value, field)
    if cents < 0:
        raise ValidationError(f"{field} cannot be negative")
    return cents


def parse_optional_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_optional_text(value: Any, field: str, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text or None


def parse_expense_details(value: Any) -> list[dict]:
    """
    Itemized sale-attributable expenses: [{category, amount, description}].

    Amounts are normalized to amount_cents; entries must be objects.
    """
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError("saleExpenseDetails must be a list")

    details = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValidationError("Each sale expense detail must be an object")
        amount_cents = parse_optional_cents(entry.get("amount"), "saleExpenseDetails.amount")
        details.append({
            "category": str(entry.get("category") or "Other").strip(),
            "amount_cents": amount_cents,
            "description": str(entry.get("description") or "").strip(),
        })
    return details
