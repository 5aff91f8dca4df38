from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, CheckConstraint, text
from typing import Optional, List
from datetime import datetime

from .base import Base

STATUS_PENDING = 'pending'
STATUS_ONGOING = 'ongoing'
STATUS_DELIVERED = 'delivered'
ALL_STATUSES = (STATUS_PENDING, STATUS_ONGOING, STATUS_DELIVERED)

NOTE_BY_ADMIN = 'admin'
NOTE_BY_CUSTOMER = 'customer'


class ProductRequest(Base):
    """A customer's order enquiry; the contact details are a snapshot taken at submission."""
    __tablename__ = 'product_requests'
    STATUS_PENDING = STATUS_PENDING
    STATUS_ONGOING = STATUS_ONGOING
    STATUS_DELIVERED = STATUS_DELIVERED
    ALL_STATUSES = ALL_STATUSES
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey('customers.id', ondelete='CASCADE'), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    customer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(128))
    customer_address: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    items: Mapped[List['ProductRequestItem']] = relationship(
        'ProductRequestItem', back_populates='request', cascade='all, delete-orphan', order_by='ProductRequestItem.id'
    )
    notes: Mapped[List['ProductRequestNote']] = relationship(
        'ProductRequestNote', back_populates='request', cascade='all, delete-orphan', order_by='ProductRequestNote.id'
    )
    customer = relationship('Customer')

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'ongoing', 'delivered')", name='ck_product_request_status'),
    )


class ProductRequestItem(Base):
    __tablename__ = 'product_request_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey('product_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    # kept when the product is deleted so the request still shows what was asked for
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey('products.id', ondelete='SET NULL'))
    product_title: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    request = relationship('ProductRequest', back_populates='items')
    product = relationship('Product')

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_product_request_item_quantity'),
    )


class ProductRequestNote(Base):
    __tablename__ = 'product_request_notes'
    NOTE_BY_ADMIN = NOTE_BY_ADMIN
    NOTE_BY_CUSTOMER = NOTE_BY_CUSTOMER
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey('product_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    by: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))

    request = relationship('ProductRequest', back_populates='notes')

    __table_args__ = (
        CheckConstraint("by IN ('admin', 'customer')", name='ck_product_request_note_by'),
    )
