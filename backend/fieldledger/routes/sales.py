from __future__ import annotations
from datetime import date, datetime, time, timedelta, timezone
from flask import Blueprint, request
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_permission, current_principal
from fieldledger.decorators.audit import audit_log
from fieldledger.models.base import isoformat
from fieldledger.models.sale import Sale
from fieldledger.services.sales import record_sale, get_sale, delete_sale
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response
from fieldledger.utils.sorting import apply_multi_sort

sales_bp = Blueprint('sales', __name__)


def _day_start(value: str) -> datetime:
    return datetime.combine(date.fromisoformat(value[:10]), time.min, tzinfo=timezone.utc)


@sales_bp.get('')
@require_permission(Module.SALES, Action.READ)
def list_sales():
    q = get_db().query(Sale)
    filter_specs = {
        'employee_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Sale.employee_id == v)},
        'payment_method': {'op': lambda qu, v: qu.filter(Sale.payment_method == v), 'validate': lambda v: v in Sale.ALL_METHODS},
        'date_from': {'coerce': _day_start, 'op': lambda qu, v: qu.filter(Sale.created_at >= v)},
        'date_to': {'coerce': _day_start, 'op': lambda qu, v: qu.filter(Sale.created_at < v + timedelta(days=1))},
        'search': {'op': lambda qu, v: qu.filter(Sale.customer_name.ilike(f'%{v}%') | Sale.customer_phone.ilike(f'%{v}%'))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'created_at': Sale.created_at, 'total_amount': Sale.total_amount}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Sale.id, default=Sale.created_at.desc())
    return paginated_response(q, sale_json)


@sales_bp.get('/<int:sale_id>')
@require_permission(Module.SALES, Action.READ)
def get_one(sale_id: int):
    return sale_json(get_sale(get_db(), sale_id))


@sales_bp.post('')
@require_permission(Module.SALES, Action.CREATE)
@audit_log(
    'SALE.CREATE',
    entity='Sale',
    entity_id_key='id',
    meta_builder=lambda data, rv, a, kw: {
        'employee_id': data.get('employee_id'),
        'total_amount': data.get('total_amount'),
        'effects': data.get('effects', []),
    },
)
def create():
    data = request.json or {}
    result = record_sale(
        get_db(), data.get('employee_id'), data.get('items'), data.get('customer'), data.get('payment_method'),
        principal=current_principal(),
    )
    return {**sale_json(result.sale), 'effects': [e.to_dict() for e in result.effects]}, 201


@sales_bp.delete('/<int:sale_id>')
@require_permission(Module.SALES, Action.DELETE)
@audit_log('SALE.DELETE', entity='Sale', entity_id_arg='sale_id')
def delete(sale_id: int):
    delete_sale(get_db(), current_principal(), sale_id)
    return {'deleted': True}


def sale_json(s: Sale):
    return {
        'id': s.id,
        'employee_id': s.employee_id,
        'customer': {
            'name': s.customer_name,
            'phone': s.customer_phone,
            'email': s.customer_email,
            'address': s.customer_address,
        },
        'payment_method': s.payment_method,
        'total_amount': s.total_amount,
        'items': [
            {
                'id': i.id,
                'product_id': i.product_id,
                'product_title': i.product_title,
                'quantity': i.quantity,
                'price_per_unit': i.price_per_unit,
                'total_price': i.total_price,
            }
            for i in s.items
        ],
        'created_at': isoformat(s.created_at),
    }
