from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, DateTime, CheckConstraint, text
from typing import Optional
from datetime import datetime

from .base import Base


class Customer(Base):
    """A shopper from the customer app.

    Guests are keyed by ``device_id`` and have no password; registered
    customers sign in with email and password.
    """
    __tablename__ = 'customers'
    AUTH_GUEST = 'guest'
    AUTH_REGISTERED = 'registered'
    ALL_AUTH_TYPES = (AUTH_GUEST, AUTH_REGISTERED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # unique but optional; NULLs never collide
    device_id: Mapped[Optional[str]] = mapped_column(String(128), unique=True)
    email: Mapped[Optional[str]] = mapped_column(String(128), unique=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(255))
    auth_type: Mapped[str] = mapped_column(String(16), nullable=False, default=AUTH_GUEST, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    __table_args__ = (
        CheckConstraint("auth_type IN ('guest', 'registered')", name='ck_customer_auth_type'),
    )

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return bool(self.password_hash) and check_password_hash(self.password_hash, raw)
