from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Iterable

from daybook.time_utils import parse_iso_datetime


# Largest single amount accepted in base currency.
# This prevents nonsensical counts and overflowing aggregates.
MAX_AMOUNT = 999_999_999.99


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., closing already exists)."""


def parse_amount(value: Any, field: str, *, allow_zero: bool = True) -> float:
    """
    Coerce an amount in base currency.

    Accepts ints, floats and numeric strings. Rejects booleans, NaN,
    infinities, negatives and values above MAX_AMOUNT.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        try:
            amount = float(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    elif isinstance(value, (int, float)):
        amount = float(value)
    else:
        raise ValidationError(f"{field} must be a number")

    if not math.isfinite(amount):
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if not allow_zero and amount == 0:
        raise ValidationError(f"{field} must be > 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT:,.2f}")
    return amount


def parse_choice(value: Any, field: str, choices: Iterable[str], *, default: str | None = None) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValidationError(f"{field} is required")
    normalized = str(value).strip().upper()
    allowed = list(choices)
    if normalized not in allowed:
        raise ValidationError(f"{field} must be one of {', '.join(allowed)}")
    return normalized


def parse_text(value: Any, field: str, *, required: bool = False, max_length: int = 255) -> str | None:
    if value is None or str(value).strip() == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def parse_optional_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_items(raw_items: Any) -> list[dict]:
    """
    Validate invoice lines into an ordered list of
    {product_id, name, quantity, unit_price}.
    """
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    items: list[dict] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        quantity = parse_amount(raw.get("quantity"), f"items[{index}].quantity", allow_zero=False)
        items.append({
            "product_id": parse_text(raw.get("product_id"), f"items[{index}].product_id", required=True, max_length=64),
            "name": parse_text(raw.get("name"), f"items[{index}].name", required=True),
            "quantity": quantity,
            "unit_price": parse_amount(raw.get("unit_price"), f"items[{index}].unit_price"),
        })
    return items
