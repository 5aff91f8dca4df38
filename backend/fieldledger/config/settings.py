"""Environment-backed defaults for the application factory.

Values are read once per ``create_app`` call so tests can set env vars (or pass
an override dict) before building an app.
"""
from __future__ import annotations
from datetime import timedelta
from typing import Any, Dict
import os


def _bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def load_settings() -> Dict[str, Any]:
    return {
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
        # admin dashboard sessions are short, mobile sessions last a week
        'JWT_ACCESS_TOKEN_EXPIRES': timedelta(hours=int(os.getenv('ADMIN_TOKEN_HOURS', '12'))),
        'MOBILE_TOKEN_EXPIRES': timedelta(days=int(os.getenv('MOBILE_TOKEN_DAYS', '7'))),
        # guests cannot sign in again without their device, so their tokens live longer
        'CUSTOMER_GUEST_TOKEN_EXPIRES': timedelta(days=int(os.getenv('CUSTOMER_GUEST_TOKEN_DAYS', '365'))),
        'CUSTOMER_TOKEN_EXPIRES': timedelta(days=int(os.getenv('CUSTOMER_TOKEN_DAYS', '30'))),
        'RESET_JWT_EXPIRES': timedelta(minutes=5),
        'OTP_TTL': timedelta(minutes=int(os.getenv('OTP_TTL_MINUTES', '10'))),
        'ADMIN_RESET_TOKEN_TTL': timedelta(hours=1),
        'DEFAULT_ADMIN_EMAIL': os.getenv('DEFAULT_ADMIN_EMAIL', 'admin@example.com'),
        'DEFAULT_ADMIN_PASSWORD': os.getenv('DEFAULT_ADMIN_PASSWORD', 'ChangeMe123!'),
        'SEED_SUPER_ADMIN': _bool(os.getenv('SEED_SUPER_ADMIN'), False),
        'MAIL_SUPPRESS_SEND': _bool(os.getenv('MAIL_SUPPRESS_SEND'), False),
        'MAIL_SERVER': os.getenv('MAIL_SERVER', 'localhost'),
        'MAIL_PORT': int(os.getenv('MAIL_PORT', '25')),
        'MAIL_USERNAME': os.getenv('MAIL_USERNAME'),
        'MAIL_PASSWORD': os.getenv('MAIL_PASSWORD'),
        'MAIL_USE_TLS': _bool(os.getenv('MAIL_USE_TLS'), False),
        'MAIL_DEFAULT_SENDER': os.getenv('MAIL_DEFAULT_SENDER', 'no-reply@example.com'),
        'ADMIN_RESET_URL': os.getenv('ADMIN_RESET_URL', 'http://localhost:3000/admin/reset-password'),
        'FILE_STORE_DELETE_URL': os.getenv('FILE_STORE_DELETE_URL'),
    }

__all__ = ['load_settings']
