"""One-time codes and reset tokens.

Employees reset passwords with a 6-digit OTP that, once verified, is exchanged
for a short-lived reset JWT. Admins receive an opaque random token by email;
only its SHA-256 digest is stored.
"""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Optional
import hashlib
import secrets

from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from werkzeug.security import generate_password_hash, check_password_hash

from fieldledger.errors import ValidationError
from fieldledger.models.base import utcnow

RESET_PURPOSE = 'password-reset'
OTP_DIGITS = 6
MAX_OTP_ATTEMPTS = 5


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes for timezone-aware columns
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def generate_otp() -> str:
    return f'{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}'


def _clear_otp(employee) -> None:
    employee.otp_hash = None
    employee.otp_expiry = None
    employee.otp_attempts = 0


def store_otp(employee, ttl: timedelta) -> str:
    """Attach a fresh OTP to ``employee`` and return the plain code for delivery."""
    otp = generate_otp()
    employee.otp_hash = generate_password_hash(otp)
    employee.otp_expiry = utcnow() + ttl
    employee.otp_attempts = 0
    return otp


def verify_otp(session, employee, otp: Optional[str], now: Optional[datetime] = None) -> None:
    """Check and consume the employee's OTP.

    Every outcome is committed before returning or raising: success and expiry
    clear the code, a wrong guess bumps ``otp_attempts`` and the
    ``MAX_OTP_ATTEMPTS``-th wrong guess clears it too.
    """
    now = now or utcnow()
    expiry = _aware(employee.otp_expiry)
    if not employee.otp_hash or expiry is None:
        raise ValidationError('No OTP requested')
    if expiry < now:
        _clear_otp(employee)
        session.commit()
        raise ValidationError('OTP has expired')
    if not otp or not check_password_hash(employee.otp_hash, str(otp)):
        employee.otp_attempts = (employee.otp_attempts or 0) + 1
        if employee.otp_attempts >= MAX_OTP_ATTEMPTS:
            _clear_otp(employee)
            session.commit()
            raise ValidationError('Too many invalid attempts. Please request a new OTP')
        session.commit()
        raise ValidationError('Invalid OTP')
    # single use
    _clear_otp(employee)
    session.commit()


def issue_reset_jwt(employee_id: int, expires: timedelta) -> str:
    return create_access_token(
        identity=str(employee_id),
        additional_claims={'kind': 'employee', 'purpose': RESET_PURPOSE},
        expires_delta=expires,
    )


def decode_reset_jwt(token: Optional[str]) -> int:
    if not token:
        raise ValidationError('Reset token is required')
    try:
        claims = decode_token(token)
    except (JWTExtendedException, PyJWTError):
        raise ValidationError('Invalid or expired reset token')
    if claims.get('purpose') != RESET_PURPOSE or claims.get('kind') != 'employee':
        raise ValidationError('Invalid or expired reset token')
    return int(claims['sub'])


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def token_expired(expiry: Optional[datetime], now: Optional[datetime] = None) -> bool:
    expiry = _aware(expiry)
    return expiry is None or expiry < (now or utcnow())


__all__ = [
    'MAX_OTP_ATTEMPTS', 'generate_otp', 'store_otp', 'verify_otp', 'issue_reset_jwt', 'decode_reset_jwt',
    'generate_reset_token', 'hash_token', 'token_expired',
]
