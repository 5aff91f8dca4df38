from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, DateTime, CheckConstraint, text
from typing import Optional
from datetime import datetime
from decimal import Decimal

from .base import Base, MONEY


class Product(Base):
    __tablename__ = 'products'
    STATUS_ACTIVE = 'Active'
    STATUS_INACTIVE = 'Inactive'
    ALL_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    photo: Mapped[Optional[str]] = mapped_column(String(512))
    price_base: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    price_lowest_selling: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    # central warehouse stock
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    __table_args__ = (
        CheckConstraint('stock_quantity >= 0', name='ck_product_stock_non_negative'),
        CheckConstraint('price_base >= 0 AND price_lowest_selling >= 0', name='ck_product_price_non_negative'),
        CheckConstraint('price_lowest_selling <= price_base', name='ck_product_lowest_le_base'),
    )
