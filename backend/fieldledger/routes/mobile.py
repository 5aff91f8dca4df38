"""Employee-facing API used by the field app.

Every route except the auth ones runs under ``employee_required`` and only
ever touches the calling employee's own rows.
"""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from flask import Blueprint, request, current_app
from flask_jwt_extended import create_access_token
from sqlalchemy import case, func, select
from fieldledger import get_db
from fieldledger.decorators.auth import employee_required, current_employee, KIND_EMPLOYEE
from fieldledger.errors import ValidationError
from fieldledger.models.employee import Employee
from fieldledger.models.requests import StockRequest, MoneyRequest, STATUS_PENDING
from fieldledger.models.sale import Sale, SaleItem
from fieldledger.routes.employees import employee_json, allocations_json
from fieldledger.routes.requests import stock_request_json, money_request_json
from fieldledger.routes.sales import sale_json
from fieldledger.services.catalog import (
    authenticate_employee, set_employee_status, set_profile_photo, change_employee_password, reset_employee_password,
)
from fieldledger.services.ledger import holdings_of
from fieldledger.services.notify import send_otp_email
from fieldledger.services.requests import create_stock_request, create_money_request
from fieldledger.services.sales import record_sale
from fieldledger.services.tokens import store_otp, verify_otp, issue_reset_jwt, decode_reset_jwt
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response

mobile_bp = Blueprint('mobile', __name__)

GENERIC_OTP_MESSAGE = 'If an account with that email exists, an OTP has been sent.'
PERIODS = ('today', 'week', 'month', 'lastMonth', 'lifetime')


def _find_by_email(session, email):
    if not email or not isinstance(email, str):
        return None
    return session.execute(
        select(Employee).where(func.lower(Employee.email) == email.strip().lower())
    ).scalar_one_or_none()


# ---------------- Auth ---------------- #

@mobile_bp.post('/auth/login')
def login():
    data = request.json or {}
    employee = authenticate_employee(get_db(), data.get('email'), data.get('password'))
    token = create_access_token(
        identity=str(employee.id),
        additional_claims={'kind': KIND_EMPLOYEE},
        expires_delta=current_app.config['MOBILE_TOKEN_EXPIRES'],
    )
    return {'access_token': token, 'employee': employee_json(employee)}


@mobile_bp.post('/auth/forgot-password')
def forgot_password():
    session = get_db()
    data = request.json or {}
    employee = _find_by_email(session, data.get('email'))
    if employee is not None and employee.is_active:
        otp = store_otp(employee, current_app.config['OTP_TTL'])
        session.commit()
        send_otp_email(employee.email, otp, employee.full_name)
    return {'message': GENERIC_OTP_MESSAGE}


@mobile_bp.post('/auth/verify-otp')
def verify():
    session = get_db()
    data = request.json or {}
    if not data.get('email') or not data.get('otp'):
        raise ValidationError('Email and OTP are required')
    employee = _find_by_email(session, data.get('email'))
    if employee is None:
        raise ValidationError('Invalid email or OTP')
    verify_otp(session, employee, data.get('otp'))
    return {
        'message': 'OTP verified successfully',
        'reset_token': issue_reset_jwt(employee.id, current_app.config['RESET_JWT_EXPIRES']),
    }


@mobile_bp.post('/auth/reset-password')
def reset_password():
    data = request.json or {}
    employee_id = decode_reset_jwt(data.get('reset_token'))
    reset_employee_password(get_db(), employee_id, data.get('password'))
    return {'message': 'Password has been reset successfully'}


# ---------------- Profile ---------------- #

@mobile_bp.get('/profile')
@employee_required
def profile():
    e = current_employee()
    return {**employee_json(e), 'products': allocations_json(get_db(), e.id)}


@mobile_bp.patch('/profile/status')
@employee_required
def update_status():
    data = request.json or {}
    return employee_json(set_employee_status(get_db(), current_employee(), data.get('status')))


@mobile_bp.patch('/profile/photo')
@employee_required
def update_photo():
    data = request.json or {}
    return employee_json(set_profile_photo(get_db(), current_employee(), data.get('profile_photo')))


@mobile_bp.patch('/profile/password')
@employee_required
def update_password():
    data = request.json or {}
    change_employee_password(get_db(), current_employee(), data.get('current_password'), data.get('new_password'))
    return {'message': 'Password changed successfully'}


# ---------------- Assigned products ---------------- #

@mobile_bp.get('/products')
@employee_required
def products():
    rows = allocations_json(get_db(), current_employee().id)
    return {
        'data': rows,
        'total_products': len(rows),
        'total_quantity': sum(r['quantity'] for r in rows),
    }


# ---------------- Requests ---------------- #

def _own_requests(model, serialize):
    q = get_db().query(model).filter(model.employee_id == current_employee().id)
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(model.status == v), 'validate': lambda v: v in model.ALL_STATUSES},
    }
    q = apply_filters(q, filter_specs, request.args).order_by(model.created_at.desc(), model.id.desc())
    return paginated_response(q, serialize)


@mobile_bp.get('/requests/stock')
@employee_required
def list_stock_requests():
    return _own_requests(StockRequest, stock_request_json)


@mobile_bp.post('/requests/stock')
@employee_required
def create_stock():
    data = request.json or {}
    req = create_stock_request(
        get_db(), current_employee().id, data.get('product_id'), data.get('quantity'), data.get('reason'),
    )
    return stock_request_json(req), 201


@mobile_bp.get('/requests/money')
@employee_required
def list_money_requests():
    return _own_requests(MoneyRequest, money_request_json)


@mobile_bp.post('/requests/money')
@employee_required
def create_money():
    data = request.json or {}
    req = create_money_request(
        get_db(), current_employee().id, data.get('amount'), data.get('method'), data.get('reference_number'),
    )
    return money_request_json(req), 201


# ---------------- Sales ---------------- #

@mobile_bp.get('/sales')
@employee_required
def list_sales():
    q = get_db().query(Sale).filter(Sale.employee_id == current_employee().id)
    filter_specs = {
        'payment_method': {'op': lambda qu, v: qu.filter(Sale.payment_method == v), 'validate': lambda v: v in Sale.ALL_METHODS},
        'product_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Sale.items.any(SaleItem.product_id == v))},
    }
    q = apply_filters(q, filter_specs, request.args).order_by(Sale.created_at.desc(), Sale.id.desc())
    return paginated_response(q, sale_json)


@mobile_bp.post('/sales')
@employee_required
def create_sale():
    data = request.json or {}
    result = record_sale(
        get_db(), current_employee().id, data.get('items'), data.get('customer'), data.get('payment_method'),
    )
    return {**sale_json(result.sale), 'holdings': holdings_of(current_employee())}, 201


@mobile_bp.get('/sales/filters')
@employee_required
def sales_filters():
    session = get_db()
    employee_id = current_employee().id
    product_rows = session.execute(
        select(SaleItem.product_id, func.max(SaleItem.product_title), func.count(SaleItem.id))
        .join(Sale, Sale.id == SaleItem.sale_id)
        .where(Sale.employee_id == employee_id, SaleItem.product_id.is_not(None))
        .group_by(SaleItem.product_id)
        .order_by(func.count(SaleItem.id).desc())
    ).all()
    method_rows = session.execute(
        select(Sale.payment_method, func.count(Sale.id))
        .where(Sale.employee_id == employee_id)
        .group_by(Sale.payment_method)
    ).all()
    return {
        'products': [{'product_id': pid, 'title': title, 'sales_count': n} for pid, title, n in product_rows],
        'payment_methods': [{'method': m, 'count': n} for m, n in method_rows],
    }


# ---------------- Dashboard ---------------- #

def period_range(period: str, now: datetime):
    """Return ``(start, end)`` for a named period; ``end`` is exclusive."""
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today_start + timedelta(days=1)
    if period == 'today':
        return today_start, tomorrow
    if period == 'week':
        # weeks start on Sunday
        return today_start - timedelta(days=(today_start.weekday() + 1) % 7), tomorrow
    if period == 'month':
        return today_start.replace(day=1), tomorrow
    if period == 'lastMonth':
        month_start = today_start.replace(day=1)
        return (month_start - timedelta(days=1)).replace(day=1), month_start
    return None, tomorrow


@mobile_bp.get('/dashboard')
@employee_required
def dashboard():
    period = request.args.get('period', 'today')
    if period not in PERIODS:
        raise ValidationError('Invalid period. Valid values: ' + ', '.join(PERIODS))
    session = get_db()
    employee = current_employee()
    start, end = period_range(period, datetime.now(timezone.utc))

    conds = [Sale.employee_id == employee.id, Sale.created_at < end]
    if start is not None:
        conds.append(Sale.created_at >= start)
    count, revenue, cash_revenue, online_revenue = session.execute(
        select(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_amount), 0),
            func.coalesce(func.sum(case((Sale.payment_method == Sale.METHOD_CASH, Sale.total_amount), else_=0)), 0),
            func.coalesce(func.sum(case((Sale.payment_method == Sale.METHOD_ONLINE, Sale.total_amount), else_=0)), 0),
        ).where(*conds)
    ).one()
    top_products = session.execute(
        select(SaleItem.product_id, func.max(SaleItem.product_title), func.sum(SaleItem.quantity), func.sum(SaleItem.total_price))
        .join(Sale, Sale.id == SaleItem.sale_id)
        .where(*conds)
        .group_by(SaleItem.product_id)
        .order_by(func.sum(SaleItem.quantity).desc())
        .limit(5)
    ).all()
    products = allocations_json(session, employee.id)
    pending_stock = session.query(func.count(StockRequest.id)).filter(
        StockRequest.employee_id == employee.id, StockRequest.status == STATUS_PENDING).scalar()
    pending_money = session.query(func.count(MoneyRequest.id)).filter(
        MoneyRequest.employee_id == employee.id, MoneyRequest.status == STATUS_PENDING).scalar()

    return {
        'period': period,
        'holdings': holdings_of(employee),
        'stock': {
            'total_products': len(products),
            'total_quantity': sum(p['quantity'] for p in products),
            'estimated_value': sum(p['quantity'] * p['price_base'] for p in products),
            'products': products,
        },
        'sales': {
            'total_sales': int(count),
            'total_revenue': revenue,
            'cash_revenue': cash_revenue,
            'online_revenue': online_revenue,
            'top_products': [
                {'product_id': pid, 'title': title, 'quantity_sold': int(qty), 'revenue': rev}
                for pid, title, qty, rev in top_products
            ],
        },
        'pending_requests': {'stock': pending_stock, 'money': pending_money},
    }
