from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, ForeignKey, Date, DateTime, CheckConstraint, text
from typing import Optional, List
from datetime import date, datetime

from .base import Base


class Counter(Base):
    """Named monotonically increasing sequence (e.g. ``invoice_2026``)."""
    __tablename__ = 'counters'
    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Invoice(Base):
    __tablename__ = 'invoices'
    NUMBER_PREFIX = 'RA'
    STATUS_DRAFT = 'Draft'
    STATUS_SENT = 'Sent'
    STATUS_PAID = 'Paid'
    STATUS_OVERDUE = 'Overdue'
    ALL_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_PAID, STATUS_OVERDUE)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    date_of_issue: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    customer_address: Mapped[str] = mapped_column(String(255), default='')
    customer_city: Mapped[str] = mapped_column(String(64), default='')
    customer_state: Mapped[str] = mapped_column(String(64), default='')
    customer_pincode: Mapped[str] = mapped_column(String(16), default='')
    customer_phone: Mapped[Optional[str]] = mapped_column(String(32))
    customer_email: Mapped[Optional[str]] = mapped_column(String(128))
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    tax_rate: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_due: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_DRAFT)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    items: Mapped[List['InvoiceItem']] = relationship('InvoiceItem', back_populates='invoice', cascade='all, delete-orphan', order_by='InvoiceItem.id')

    __table_args__ = (
        CheckConstraint('subtotal >= 0', name='ck_invoice_subtotal'),
        CheckConstraint('tax_rate >= 0 AND discount >= 0', name='ck_invoice_tax_discount'),
    )


class InvoiceItem(Base):
    __tablename__ = 'invoice_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey('products.id', ondelete='SET NULL'))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    invoice = relationship('Invoice', back_populates='items')

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_invoice_item_quantity'),
        CheckConstraint('unit_price >= 0', name='ck_invoice_item_price'),
    )
