from __future__ import annotations
from datetime import datetime, timedelta, timezone
from flask import Blueprint
from sqlalchemy import func, select
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_permission
from fieldledger.models.employee import Employee
from fieldledger.models.product import Product
from fieldledger.models.requests import StockRequest, MoneyRequest, STATUS_PENDING
from fieldledger.models.sale import Sale

dashboard_bp = Blueprint('dashboard', __name__)

LOW_STOCK_THRESHOLD = 10


def _sales_between(session, start=None, end=None):
    q = select(func.coalesce(func.sum(Sale.total_amount), 0), func.count(Sale.id))
    if start is not None:
        q = q.where(Sale.created_at >= start)
    if end is not None:
        q = q.where(Sale.created_at < end)
    total, count = session.execute(q).one()
    return {'total': total, 'count': int(count)}


def _percent_change(current, previous) -> int:
    if previous <= 0:
        return 0
    return round((current - previous) * 100 / previous)


def _gather_summary(session, now: datetime):
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = today_start.replace(day=1)
    last_month_start = (month_start - timedelta(days=1)).replace(day=1)

    today = _sales_between(session, today_start)
    yesterday = _sales_between(session, today_start - timedelta(days=1), today_start)
    month = _sales_between(session, month_start)
    last_month = _sales_between(session, last_month_start, month_start)

    cash, online, total = session.execute(select(
        func.coalesce(func.sum(Employee.holdings_cash), 0),
        func.coalesce(func.sum(Employee.holdings_online), 0),
        func.coalesce(func.sum(Employee.holdings_total), 0),
    )).one()
    pending_stock = session.query(func.count(StockRequest.id)).filter(StockRequest.status == STATUS_PENDING).scalar()
    pending_money = session.query(func.count(MoneyRequest.id)).filter(MoneyRequest.status == STATUS_PENDING).scalar()
    product_count, stock_total = session.execute(select(
        func.count(Product.id), func.coalesce(func.sum(Product.stock_quantity), 0),
    )).one()
    low_stock = session.query(func.count(Product.id)).filter(Product.stock_quantity < LOW_STOCK_THRESHOLD).scalar()
    employee_count = session.query(func.count(Employee.id)).scalar()
    online_count = session.query(func.count(Employee.id)).filter(Employee.status == Employee.STATUS_ONLINE).scalar()

    return {
        'todaySales': {**today, 'yesterdayTotal': yesterday['total'],
                       'percentChange': _percent_change(today['total'], yesterday['total'])},
        'monthSales': {**month, 'lastMonthTotal': last_month['total'],
                       'percentChange': _percent_change(month['total'], last_month['total'])},
        'lifetimeSales': _sales_between(session),
        'holdings': {'cash': cash, 'online': online, 'total': total},
        'pendingRequests': {'stock': pending_stock, 'money': pending_money, 'total': pending_stock + pending_money},
        'employees': {'total': employee_count, 'online': online_count},
        'products': {'total': product_count, 'stock': int(stock_total), 'lowStock': low_stock},
    }


@dashboard_bp.get('/summary')
@require_permission(Module.DASHBOARD, Action.READ)
def summary():
    return _gather_summary(get_db(), datetime.now(timezone.utc))
