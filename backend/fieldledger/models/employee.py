from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, Boolean, Date, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, text
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from .base import Base, MONEY


class Employee(Base):
    __tablename__ = 'employees'
    GENDERS = ('Male', 'Female', 'Other')
    STATUS_ONLINE = 'Online'
    STATUS_OFFLINE = 'Offline'
    ALL_STATUSES = (STATUS_ONLINE, STATUS_OFFLINE)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    phone_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    gender: Mapped[str] = mapped_column(String(8), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    date_of_joining: Mapped[date] = mapped_column(Date, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_photo: Mapped[Optional[str]] = mapped_column(String(512))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_OFFLINE)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # Holdings ledger columns; total is kept equal to cash + online by every writer
    holdings_cash: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    holdings_online: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    holdings_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    otp_hash: Mapped[Optional[str]] = mapped_column(String(255))
    otp_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    otp_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    products: Mapped[List['EmployeeProduct']] = relationship(
        'EmployeeProduct', back_populates='employee', cascade='all, delete-orphan', order_by='EmployeeProduct.id'
    )

    __table_args__ = (
        CheckConstraint('holdings_cash >= 0', name='ck_employee_cash_non_negative'),
        CheckConstraint('holdings_online >= 0', name='ck_employee_online_non_negative'),
        # tolerance absorbs float storage on SQLite; exact on PostgreSQL NUMERIC
        CheckConstraint('ABS(holdings_total - holdings_cash - holdings_online) < 0.005', name='ck_employee_holdings_total'),
        CheckConstraint('age >= 18 AND age <= 100', name='ck_employee_age'),
    )

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)


class EmployeeProduct(Base):
    """Quantity of one product currently allocated to one employee."""
    __tablename__ = 'employee_products'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))

    employee = relationship('Employee', back_populates='products')
    product = relationship('Product')

    __table_args__ = (
        UniqueConstraint('employee_id', 'product_id', name='uq_employee_product'),
        CheckConstraint('quantity >= 0', name='ck_allocation_quantity'),
    )
