# app/services/common.py
"""Validation and authorization helpers shared by the engine services."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from app.core.constants import UserRole
from app.core.exceptions import ForbiddenError, ValidationError

CENT = Decimal("0.01")


def to_decimal(value, field: str = "amount") -> Decimal:
    if value is None:
        raise ValidationError(f"{field} is required")
    try:
        # str() keeps floats like 19.99 from dragging binary noise along
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")


def round2(value) -> Decimal:
    """Half-up rounding to two decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def require_positive(value, field: str) -> Decimal:
    amount = to_decimal(value, field)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be a positive number")
    return amount


def require_text(value: Optional[str], field: str, min_length: int = 1) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required")
    if len(text) < min_length:
        raise ValidationError(f"{field} must be at least {min_length} characters long")
    return text


def is_party(record, user_id: int, role: str) -> bool:
    """True when user_id is the record's customer/provider for the given role."""
    if role == UserRole.CUSTOMER:
        return record.customer_id == user_id
    if role == UserRole.PROVIDER:
        return record.provider_id == user_id
    return False


def require_party(record, user_id: int, role: str, what: str = "booking") -> None:
    if not is_party(record, user_id, role):
        raise ForbiddenError(f"You do not have access to this {what}")
