from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import Numeric
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# money columns: two decimal places, read back as Decimal
MONEY = Numeric(12, 2, asdecimal=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value):
    """Serialize dates/datetimes for JSON; naive datetimes are treated as UTC."""
    if value is None:
        return None
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def money_number(value: Decimal):
    """Decimal money as a plain JSON number: ``50`` stays ``50``, ``49.50`` becomes ``49.5``."""
    return int(value) if value == value.to_integral_value() else float(value)
