from __future__ import annotations
"""Reusable input validation helpers.

Keeps scattered isinstance/strip checks in one place and gives consistent 400
(ValidationError) semantics to services and routes alike.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional
import re

from fieldledger.errors import ValidationError

PHONE_RE = re.compile(r'^\d{10}$')
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
CENT = Decimal('0.01')


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed; returns it for inline usage."""
    if new_status not in allowed:
        raise ValidationError(f"{field_name} invalid")
    return new_status


def positive_int(value: Any, field_name: str, minimum: int = 1) -> int:
    """Coerce ``value`` to an int >= ``minimum``.

    Booleans and fractional numbers are rejected rather than truncated.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{field_name} must be an integer')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f'{field_name} must be an integer')
        value = int(value)
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field_name} must be an integer')
    if n < minimum:
        raise ValidationError(f'{field_name} must be at least {minimum}')
    return n


def positive_decimal(value: Any, field_name: str, minimum: Decimal = CENT) -> Decimal:
    """Coerce a money amount to a ``Decimal`` with at most two places.

    Floats go through ``str`` so ``49.5`` becomes ``49.50`` and not its binary
    expansion.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{field_name} must be a number')
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field_name} must be a number')
    if not amount.is_finite():
        raise ValidationError(f'{field_name} must be a number')
    if amount != amount.quantize(CENT):
        raise ValidationError(f'{field_name} cannot have more than two decimal places')
    if amount < minimum:
        raise ValidationError(f'{field_name} must be at least {minimum}')
    return amount.quantize(CENT)


def required_str(value: Any, field_name: str, min_length: int = 1) -> str:
    if not isinstance(value, str) or len(value.strip()) < min_length:
        if min_length > 1:
            raise ValidationError(f'{field_name} must be at least {min_length} characters')
        raise ValidationError(f'{field_name} is required')
    return value.strip()


def optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError('expected a string')
    return value.strip() or None


def validate_phone(value: Any, field_name: str = 'phone') -> str:
    if not isinstance(value, str) or not PHONE_RE.match(value.strip()):
        raise ValidationError(f'{field_name} must be a 10-digit number')
    return value.strip()


def validate_email(value: Any, field_name: str = 'email') -> str:
    if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
        raise ValidationError(f'{field_name} invalid')
    return value.strip().lower()

__all__ = ['CENT', 'validate_status', 'positive_int', 'positive_decimal', 'required_str', 'optional_str', 'validate_phone', 'validate_email']
