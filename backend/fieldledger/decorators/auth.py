from functools import wraps
from typing import Optional
from flask import g
from flask_jwt_extended import verify_jwt_in_request, get_jwt, get_jwt_identity

from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.errors import Unauthorized, Forbidden
from fieldledger.models.admin import Admin
from fieldledger.models.customer import Customer
from fieldledger.models.employee import Employee
from fieldledger.services.policy import Principal, authorize, require_super_admin as _require_super_admin

KIND_ADMIN = 'admin'
KIND_EMPLOYEE = 'employee'
KIND_CUSTOMER = 'customer'


def _identity() -> int:
    try:
        return int(get_jwt_identity())
    except (TypeError, ValueError):
        raise Unauthorized('Invalid token')


def _resolve_principal() -> Principal:
    """Verify the bearer token and rebuild the principal from the admin row.

    Role and permissions always come from the database so revoked access takes
    effect without waiting for the token to expire.
    """
    verify_jwt_in_request()
    claims = get_jwt()
    if claims.get('kind') != KIND_ADMIN or claims.get('purpose'):
        raise Forbidden()
    admin = get_db().get(Admin, _identity(), populate_existing=True)
    if admin is None or not admin.is_active:
        raise Unauthorized('Account not found or inactive')
    principal = Principal.from_admin(admin)
    g.principal = principal
    return principal


def current_principal() -> Optional[Principal]:
    return g.get('principal')


def require_admin(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        _resolve_principal()
        return fn(*args, **kwargs)
    return wrapper


def require_permission(module: Module, action: Action):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            authorize(_resolve_principal(), module, action)
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_super_admin(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        _require_super_admin(_resolve_principal())
        return fn(*args, **kwargs)
    return wrapper


def employee_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        claims = get_jwt()
        if claims.get('kind') != KIND_EMPLOYEE or claims.get('purpose'):
            raise Forbidden()
        employee = get_db().get(Employee, _identity(), populate_existing=True)
        if employee is None:
            raise Unauthorized('Account not found')
        if not employee.is_active:
            raise Forbidden('Your account has been deactivated. Please contact admin.')
        g.employee = employee
        return fn(*args, **kwargs)
    return wrapper


def current_employee() -> Optional[Employee]:
    return g.get('employee')


def customer_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        if get_jwt().get('kind') != KIND_CUSTOMER:
            raise Forbidden()
        customer = get_db().get(Customer, _identity(), populate_existing=True)
        if customer is None:
            raise Unauthorized('Customer not found')
        g.customer = customer
        return fn(*args, **kwargs)
    return wrapper


def current_customer() -> Optional[Customer]:
    return g.get('customer')
