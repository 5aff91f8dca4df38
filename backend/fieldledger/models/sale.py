from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, ForeignKey, DateTime, CheckConstraint, text
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from .base import Base, MONEY


class Sale(Base):
    __tablename__ = 'sales'
    METHOD_CASH = 'Cash'
    METHOD_ONLINE = 'Online'
    ALL_METHODS = (METHOD_CASH, METHOD_ONLINE)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[Optional[int]] = mapped_column(ForeignKey('employees.id', ondelete='SET NULL'), index=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(128))
    customer_address: Mapped[Optional[str]] = mapped_column(String(255))
    payment_method: Mapped[str] = mapped_column(String(8), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), index=True)

    items: Mapped[List['SaleItem']] = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan', order_by='SaleItem.id')
    employee = relationship('Employee')

    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='ck_sale_total'),
    )


class SaleItem(Base):
    __tablename__ = 'sale_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sale_id: Mapped[int] = mapped_column(ForeignKey('sales.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey('products.id', ondelete='SET NULL'))
    product_title: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    sale = relationship('Sale', back_populates='items')

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_sale_item_quantity'),
        CheckConstraint('price_per_unit >= 0', name='ck_sale_item_price'),
    )
