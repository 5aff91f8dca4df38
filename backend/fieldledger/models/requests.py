from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, CheckConstraint, text
from typing import Optional
from datetime import datetime
from decimal import Decimal

from .base import Base, MONEY

STATUS_PENDING = 'Pending'
STATUS_APPROVED = 'Approved'
STATUS_REJECTED = 'Rejected'
ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)


class StockRequest(Base):
    __tablename__ = 'stock_requests'
    KIND = 'stock'
    STATUS_PENDING = STATUS_PENDING
    STATUS_APPROVED = STATUS_APPROVED
    STATUS_REJECTED = STATUS_REJECTED
    ALL_STATUSES = ALL_STATUSES
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[Optional[int]] = mapped_column(ForeignKey('employees.id', ondelete='SET NULL'), index=True)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey('products.id', ondelete='SET NULL'))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    processed_by: Mapped[Optional[int]] = mapped_column(ForeignKey('admins.id', ondelete='SET NULL'))
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), index=True)

    employee = relationship('Employee')
    product = relationship('Product')

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_stock_request_quantity'),
    )


class MoneyRequest(Base):
    __tablename__ = 'money_requests'
    KIND = 'money'
    METHOD_CASH = 'Cash'
    METHOD_ONLINE = 'Online'
    ALL_METHODS = (METHOD_CASH, METHOD_ONLINE)
    STATUS_PENDING = STATUS_PENDING
    STATUS_APPROVED = STATUS_APPROVED
    STATUS_REJECTED = STATUS_REJECTED
    ALL_STATUSES = ALL_STATUSES
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[Optional[int]] = mapped_column(ForeignKey('employees.id', ondelete='SET NULL'), index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    method: Mapped[str] = mapped_column(String(8), nullable=False)
    reference_number: Mapped[Optional[str]] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    processed_by: Mapped[Optional[int]] = mapped_column(ForeignKey('admins.id', ondelete='SET NULL'))
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), index=True)

    employee = relationship('Employee')

    __table_args__ = (
        CheckConstraint('amount >= 1', name='ck_money_request_amount'),
        CheckConstraint("method IN ('Cash', 'Online')", name='ck_money_request_method'),
    )
