from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, DateTime, text
from typing import Optional
from datetime import datetime

from .base import Base


class OrganizationSettings(Base):
    """Company details printed on invoices. At most one row exists."""
    __tablename__ = 'organization_settings'
    DEFAULT_COUNTRY = 'India'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_name: Mapped[str] = mapped_column(String(128), nullable=False)
    logo: Mapped[Optional[str]] = mapped_column(String(512))
    address_street: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    address_city: Mapped[str] = mapped_column(String(64), nullable=False, default='')
    address_state: Mapped[str] = mapped_column(String(64), nullable=False, default='')
    address_pincode: Mapped[str] = mapped_column(String(16), nullable=False, default='')
    address_country: Mapped[str] = mapped_column(String(64), nullable=False, default=DEFAULT_COUNTRY)
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    email: Mapped[Optional[str]] = mapped_column(String(128))
    gstin: Mapped[Optional[str]] = mapped_column(String(32))
    pan: Mapped[Optional[str]] = mapped_column(String(16))
    bank_account_name: Mapped[Optional[str]] = mapped_column(String(128))
    bank_account_number: Mapped[Optional[str]] = mapped_column(String(64))
    bank_name: Mapped[Optional[str]] = mapped_column(String(128))
    bank_ifsc_code: Mapped[Optional[str]] = mapped_column(String(16))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))
