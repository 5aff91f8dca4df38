"""Customer accounts from the customer app.

Guests are identified by the device they sign in from; registered customers
by email and password. Admins can read, edit and delete either kind.
"""
from __future__ import annotations
from typing import Any, Dict, Optional, Tuple
import logging

from sqlalchemy import select, delete, func

from fieldledger.constants.permissions import Module, Action
from fieldledger.errors import Conflict, NotFound, Unauthorized, ValidationError
from fieldledger.models.customer import Customer
from fieldledger.models.product_request import ProductRequest
from fieldledger.services.policy import Principal, authorize
from fieldledger.utils.validation import required_str, optional_str, validate_phone, EMAIL_RE

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _email(value: Any) -> str:
    if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
        raise ValidationError('Please enter a valid email address')
    return value.strip().lower()


def _assert_email_free(session, email: str, customer_id: Optional[int] = None):
    q = select(Customer.id).where(func.lower(Customer.email) == email)
    if customer_id is not None:
        q = q.where(Customer.id != customer_id)
    if session.execute(q).first():
        raise Conflict('Email is already registered')


def get_customer(session, customer_id: int) -> Customer:
    customer = session.get(Customer, customer_id)
    if not customer:
        raise NotFound('Customer not found')
    return customer


def request_count(session, customer_id: int) -> int:
    return session.query(func.count(ProductRequest.id)).filter(ProductRequest.customer_id == customer_id).scalar()


# ---------------- Customer app sign-in ---------------- #

def guest_sign_in(session, data: Dict[str, Any]) -> Tuple[Customer, bool]:
    """Return ``(customer, is_new)`` for the guest bound to ``device_id``.

    A returning device may refresh its name, phone or address; a new device
    must supply name and phone.
    """
    device_id = data.get('device_id')
    if not isinstance(device_id, str) or not device_id.strip():
        raise ValidationError('Device ID is required')
    device_id = device_id.strip()
    customer = session.execute(
        select(Customer).where(Customer.device_id == device_id, Customer.auth_type == Customer.AUTH_GUEST)
    ).scalar_one_or_none()
    if customer is not None:
        if data.get('name'):
            customer.name = required_str(data.get('name'), 'name')
        if data.get('phone'):
            customer.phone = validate_phone(data.get('phone'))
        if data.get('address'):
            customer.address = optional_str(data.get('address'))
        session.commit()
        return customer, False
    if not data.get('name') or not data.get('phone'):
        raise ValidationError('Name and phone are required for new account')
    customer = Customer(
        device_id=device_id,
        name=required_str(data.get('name'), 'name'),
        phone=validate_phone(data.get('phone')),
        address=optional_str(data.get('address')),
        auth_type=Customer.AUTH_GUEST,
    )
    session.add(customer)
    session.commit()
    logger.info('Guest customer %s created', customer.id)
    return customer, True


def register_customer(session, data: Dict[str, Any]) -> Customer:
    if not all(data.get(k) for k in ('email', 'password', 'name', 'phone')):
        raise ValidationError('Email, password, name, and phone are required')
    email = _email(data.get('email'))
    password = data.get('password')
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    _assert_email_free(session, email)
    customer = Customer(
        email=email,
        name=required_str(data.get('name'), 'name'),
        phone=validate_phone(data.get('phone')),
        address=optional_str(data.get('address')),
        auth_type=Customer.AUTH_REGISTERED,
    )
    customer.set_password(password)
    session.add(customer)
    session.commit()
    logger.info('Customer %s registered', customer.id)
    return customer


def authenticate_customer(session, email: Optional[str], password: Optional[str]) -> Customer:
    if not email or not password:
        raise ValidationError('Email and password are required')
    customer = session.execute(
        select(Customer).where(
            func.lower(Customer.email) == str(email).strip().lower(),
            Customer.auth_type == Customer.AUTH_REGISTERED,
        )
    ).scalar_one_or_none()
    if customer is None or not customer.verify_password(password):
        raise Unauthorized('Invalid email or password')
    return customer


# ---------------- Admin ---------------- #

def update_customer(session, principal: Principal, customer_id: int, data: Dict[str, Any]) -> Customer:
    authorize(principal, Module.CUSTOMERS, Action.UPDATE)
    customer = get_customer(session, customer_id)
    # credentials, device binding and auth type are not admin-editable
    try:
        if 'name' in data:
            customer.name = required_str(data.get('name'), 'name')
        if 'phone' in data:
            customer.phone = validate_phone(data.get('phone'))
        if 'address' in data:
            customer.address = optional_str(data.get('address'))
        if 'email' in data:
            if data.get('email') is None and customer.auth_type == Customer.AUTH_REGISTERED:
                raise ValidationError('Registered customers need an email')
            email = _email(data.get('email')) if data.get('email') is not None else None
            if email:
                _assert_email_free(session, email, customer.id)
            customer.email = email
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info('Admin %s updated customer %s', principal.id, customer_id)
    return customer


def delete_customer(session, principal: Principal, customer_id: int) -> int:
    """Delete the customer and every product request they made; returns the request count removed."""
    authorize(principal, Module.CUSTOMERS, Action.DELETE)
    customer = get_customer(session, customer_id)
    removed = session.execute(
        delete(ProductRequest).where(ProductRequest.customer_id == customer_id).execution_options(synchronize_session=False)
    ).rowcount
    session.delete(customer)
    session.commit()
    logger.info('Admin %s deleted customer %s and %s requests', principal.id, customer_id, removed)
    return removed


__all__ = [
    'get_customer', 'request_count', 'guest_sign_in', 'register_customer',
    'authenticate_customer', 'update_customer', 'delete_customer',
]
