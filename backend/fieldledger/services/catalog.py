"""Products and employees.

Plain CRUD behind the permission gate. Holdings and allocations are never
written here; they only move through the ledger service.
"""
from __future__ import annotations
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from sqlalchemy import select, func

from fieldledger.constants.permissions import Module, Action
from fieldledger.errors import NotFound, ValidationError, Unauthorized, Forbidden
from fieldledger.models.employee import Employee
from fieldledger.models.product import Product
from fieldledger.services.policy import Principal, authorize
from fieldledger.services.storage import delete_file, replace_file
from fieldledger.utils.validation import (
    positive_int, positive_decimal, required_str, optional_str, validate_phone, validate_email, validate_status,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MIN_AGE, MAX_AGE = 18, 100


# ---------------- Products ---------------- #

def _apply_product_fields(product: Product, data: Dict[str, Any], creating: bool):
    if creating or 'title' in data:
        product.title = required_str(data.get('title'), 'title')
    if 'description' in data:
        product.description = optional_str(data.get('description'))
    if 'photo' in data:
        product.photo = optional_str(data.get('photo'))
    if creating or 'price_base' in data:
        product.price_base = positive_decimal(data.get('price_base'), 'price_base', minimum=Decimal('0'))
    if creating or 'price_lowest_selling' in data:
        product.price_lowest_selling = positive_decimal(data.get('price_lowest_selling'), 'price_lowest_selling', minimum=Decimal('0'))
    if product.price_lowest_selling > product.price_base:
        raise ValidationError('Lowest selling price cannot exceed base price')
    if 'stock_quantity' in data or creating:
        product.stock_quantity = positive_int(data.get('stock_quantity', 0), 'stock_quantity', minimum=0)
    if 'status' in data:
        product.status = validate_status(data.get('status'), Product.ALL_STATUSES)


def get_product(session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if not product:
        raise NotFound('Product not found')
    return product


def create_product(session, principal: Principal, data: Dict[str, Any]) -> Product:
    authorize(principal, Module.PRODUCTS, Action.CREATE)
    product = Product(status=Product.STATUS_ACTIVE)
    _apply_product_fields(product, data, creating=True)
    session.add(product)
    session.commit()
    logger.info('Admin %s created product %s', principal.id, product.id)
    return product


def update_product(session, principal: Principal, product_id: int, data: Dict[str, Any]) -> Product:
    authorize(principal, Module.PRODUCTS, Action.UPDATE)
    product = get_product(session, product_id)
    old_photo = product.photo
    try:
        _apply_product_fields(product, data, creating=False)
        session.commit()
    except Exception:
        session.rollback()
        raise
    replace_file(old_photo, product.photo)
    return product


def toggle_product_status(session, principal: Principal, product_id: int) -> Product:
    authorize(principal, Module.PRODUCTS, Action.TOGGLE_STATUS)
    product = get_product(session, product_id)
    product.status = Product.STATUS_INACTIVE if product.status == Product.STATUS_ACTIVE else Product.STATUS_ACTIVE
    session.commit()
    return product


def delete_product(session, principal: Principal, product_id: int) -> None:
    authorize(principal, Module.PRODUCTS, Action.DELETE)
    product = get_product(session, product_id)
    photo = product.photo
    session.delete(product)
    session.commit()
    delete_file(photo)
    logger.info('Admin %s deleted product %s', principal.id, product_id)


# ---------------- Employees ---------------- #

def _parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError):
        raise ValidationError(f'{field_name} must be an ISO date')


def _password(value: Any) -> str:
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    return value


def _assert_unique(session, employee_id: Optional[int], phone: Optional[str], email: Optional[str]):
    if phone:
        q = select(Employee.id).where(Employee.phone_number == phone)
        if employee_id is not None:
            q = q.where(Employee.id != employee_id)
        if session.execute(q).first():
            raise ValidationError('An employee with this phone number already exists')
    if email:
        q = select(Employee.id).where(func.lower(Employee.email) == email)
        if employee_id is not None:
            q = q.where(Employee.id != employee_id)
        if session.execute(q).first():
            raise ValidationError('An employee with this email already exists')


def _apply_employee_fields(employee: Employee, data: Dict[str, Any], creating: bool):
    if creating or 'full_name' in data:
        employee.full_name = required_str(data.get('full_name'), 'full_name')
    if creating or 'phone_number' in data:
        employee.phone_number = validate_phone(data.get('phone_number'), 'phone_number')
    if creating or 'email' in data:
        employee.email = validate_email(data.get('email'))
    if creating or 'gender' in data:
        employee.gender = validate_status(data.get('gender'), Employee.GENDERS, 'gender')
    if creating or 'age' in data:
        age = positive_int(data.get('age'), 'age')
        if not MIN_AGE <= age <= MAX_AGE:
            raise ValidationError(f'age must be between {MIN_AGE} and {MAX_AGE}')
        employee.age = age
    if creating or 'date_of_joining' in data:
        employee.date_of_joining = _parse_date(data.get('date_of_joining'), 'date_of_joining')
    if 'profile_photo' in data:
        employee.profile_photo = optional_str(data.get('profile_photo'))
    if creating or data.get('password'):
        employee.set_password(_password(data.get('password')))


def get_employee(session, employee_id: int) -> Employee:
    employee = session.get(Employee, employee_id)
    if not employee:
        raise NotFound('Employee not found')
    return employee


def create_employee(session, principal: Principal, data: Dict[str, Any]) -> Employee:
    authorize(principal, Module.EMPLOYEES, Action.CREATE)
    employee = Employee(status=Employee.STATUS_OFFLINE, is_active=True, holdings_cash=0, holdings_online=0, holdings_total=0)
    _apply_employee_fields(employee, data, creating=True)
    _assert_unique(session, None, employee.phone_number, employee.email)
    session.add(employee)
    session.commit()
    logger.info('Admin %s created employee %s', principal.id, employee.id)
    return employee


def update_employee(session, principal: Principal, employee_id: int, data: Dict[str, Any]) -> Employee:
    authorize(principal, Module.EMPLOYEES, Action.UPDATE)
    employee = get_employee(session, employee_id)
    old_photo = employee.profile_photo
    try:
        _apply_employee_fields(employee, data, creating=False)
        _assert_unique(session, employee.id, data.get('phone_number') and employee.phone_number, data.get('email') and employee.email)
        session.commit()
    except Exception:
        session.rollback()
        raise
    replace_file(old_photo, employee.profile_photo)
    return employee


def toggle_employee_active(session, principal: Principal, employee_id: int) -> Employee:
    authorize(principal, Module.EMPLOYEES, Action.TOGGLE_STATUS)
    employee = get_employee(session, employee_id)
    employee.is_active = not employee.is_active
    if not employee.is_active:
        employee.status = Employee.STATUS_OFFLINE
    session.commit()
    logger.info('Admin %s set employee %s active=%s', principal.id, employee_id, employee.is_active)
    return employee


def delete_employee(session, principal: Principal, employee_id: int) -> None:
    authorize(principal, Module.EMPLOYEES, Action.DELETE)
    employee = get_employee(session, employee_id)
    photo = employee.profile_photo
    session.delete(employee)
    session.commit()
    delete_file(photo)
    logger.info('Admin %s deleted employee %s', principal.id, employee_id)


# ---------------- Employee self-service (mobile) ---------------- #

def authenticate_employee(session, email: Optional[str], password: Optional[str]) -> Employee:
    if not email or not password:
        raise ValidationError('Email and password are required')
    employee = session.execute(select(Employee).where(func.lower(Employee.email) == email.strip().lower())).scalar_one_or_none()
    if not employee or not employee.verify_password(password):
        raise Unauthorized('Invalid email or password')
    if not employee.is_active:
        raise Forbidden('Your account has been deactivated. Please contact admin.')
    employee.status = Employee.STATUS_ONLINE
    session.commit()
    return employee


def set_employee_status(session, employee: Employee, status: Any) -> Employee:
    employee.status = validate_status(status, Employee.ALL_STATUSES)
    session.commit()
    return employee


def set_profile_photo(session, employee: Employee, url: Any) -> Employee:
    old_photo = employee.profile_photo
    employee.profile_photo = optional_str(url)
    session.commit()
    replace_file(old_photo, employee.profile_photo)
    return employee


def change_employee_password(session, employee: Employee, current: Any, new: Any) -> Employee:
    if not current or not new:
        raise ValidationError('Current password and new password are required')
    new = _password(new)
    if current == new:
        raise ValidationError('New password must be different from current password')
    if not employee.verify_password(current):
        raise ValidationError('Current password is incorrect')
    employee.set_password(new)
    session.commit()
    return employee


def reset_employee_password(session, employee_id: int, new: Any) -> Employee:
    employee = get_employee(session, employee_id)
    employee.set_password(_password(new))
    employee.otp_hash = None
    employee.otp_expiry = None
    employee.otp_attempts = 0
    session.commit()
    return employee


__all__ = [
    'get_product', 'create_product', 'update_product', 'toggle_product_status', 'delete_product',
    'get_employee', 'create_employee', 'update_employee', 'toggle_employee_active', 'delete_employee',
    'authenticate_employee', 'set_employee_status', 'set_profile_photo', 'change_employee_password',
    'reset_employee_password',
]
