"""
Input validation utilities for the storefront backend.

Money values arrive as JSON numbers or strings ("25.50", "25,50"); they are
normalized to Decimal cents here, once, before any business logic runs.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from urllib.parse import urlparse

from fastapi import Path

from domain.errors import ValidationError

CENTS = Decimal("0.01")


def to_cents(value) -> Decimal:
    """
    Coerce a number or numeric string into Decimal rounded half-up to cents.

    Raises:
        ValueError: not a finite number.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        raw = value
    else:
        try:
            raw = Decimal(str(value).strip().replace(",", "."))
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    if not raw.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    try:
        return raw.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"out of range: {value!r}")


def validate_money(value, field: str) -> Decimal:
    """
    Validate a non-negative currency amount.

    Raises:
        ValidationError(400) if the value is non-numeric or negative
    """
    try:
        amount = to_cents(value)
    except ValueError:
        raise ValidationError("must be a number", field=field)
    if amount < 0:
        raise ValidationError("must not be negative", field=field)
    return amount


def validate_endpoint(endpoint: str | None) -> str:
    """
    Validate a push subscription endpoint.

    Raises:
        ValidationError(400) if missing or not an http(s) URL
    """
    endpoint = (endpoint or "").strip()
    if not endpoint:
        raise ValidationError("endpoint is required", field="endpoint")
    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("endpoint must be an http(s) URL", field="endpoint")
    return endpoint


def order_id_path(order_id: str = Path(..., min_length=1, max_length=32, description="Order id")) -> str:
    """FastAPI dependency for order id path parameters."""
    return order_id
