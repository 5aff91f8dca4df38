from __future__ import annotations
from typing import Optional
from flask import Blueprint, request
from sqlalchemy import func
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_admin, require_permission, require_super_admin, current_principal
from fieldledger.decorators.audit import audit_log
from fieldledger.errors import NotFound
from fieldledger.models.base import isoformat
from fieldledger.models.employee import Employee
from fieldledger.models.product import Product
from fieldledger.models.requests import StockRequest, MoneyRequest
from fieldledger.services.requests import (
    create_stock_request, create_money_request, process_request, delete_request,
)
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response
from fieldledger.utils.sorting import apply_multi_sort

requests_bp = Blueprint('requests', __name__)


def _process_meta(data, rv, args, kwargs):
    return {'status': data.get('status'), 'effects': data.get('effects', [])}


# ---------------- Stock requests ---------------- #

@requests_bp.get('/stock')
@require_permission(Module.REQUESTS, Action.READ)
def list_stock_requests():
    q = get_db().query(StockRequest)
    q = _request_filters(q, StockRequest)
    q = apply_filters(q, {'product_id': {'coerce': int, 'op': lambda qu, v: qu.filter(StockRequest.product_id == v)}}, request.args)
    q = _request_sort(q, StockRequest, {'quantity': StockRequest.quantity})
    return paginated_response(q, stock_request_json, extra={'counts': _status_counts(StockRequest)})


@requests_bp.post('/stock')
@require_permission(Module.REQUESTS, Action.CREATE)
@audit_log('REQUEST.STOCK.CREATE', entity='StockRequest', entity_id_key='id', meta_keys=['employee_id', 'product_id', 'quantity'])
def create_stock():
    data = request.json or {}
    req = create_stock_request(
        get_db(), data.get('employee_id'), data.get('product_id'), data.get('quantity'), data.get('reason'),
        enforce_reason_length=False, principal=current_principal(),
    )
    return stock_request_json(req), 201


@requests_bp.get('/stock/<int:request_id>')
@require_permission(Module.REQUESTS, Action.READ)
def get_stock_request(request_id: int):
    return stock_request_json(_get(StockRequest, request_id))


@requests_bp.put('/stock/<int:request_id>')
@require_admin
@audit_log('REQUEST.STOCK.PROCESS', entity='StockRequest', entity_id_arg='request_id', meta_builder=_process_meta)
def process_stock(request_id: int):
    return _process(StockRequest.KIND, request_id, stock_request_json)


@requests_bp.delete('/stock/<int:request_id>')
@require_super_admin
@audit_log('REQUEST.STOCK.DELETE', entity='StockRequest', entity_id_arg='request_id')
def delete_stock(request_id: int):
    delete_request(get_db(), current_principal(), StockRequest.KIND, request_id)
    return {'deleted': True}


# ---------------- Money requests ---------------- #

@requests_bp.get('/money')
@require_permission(Module.REQUESTS, Action.READ)
def list_money_requests():
    q = get_db().query(MoneyRequest)
    q = _request_filters(q, MoneyRequest)
    q = apply_filters(q, {'method': {'op': lambda qu, v: qu.filter(MoneyRequest.method == v), 'validate': lambda v: v in MoneyRequest.ALL_METHODS}}, request.args)
    q = _request_sort(q, MoneyRequest, {'amount': MoneyRequest.amount})
    return paginated_response(q, money_request_json, extra={'counts': _status_counts(MoneyRequest)})


@requests_bp.post('/money')
@require_permission(Module.REQUESTS, Action.CREATE)
@audit_log('REQUEST.MONEY.CREATE', entity='MoneyRequest', entity_id_key='id', meta_keys=['employee_id', 'amount', 'method'])
def create_money():
    data = request.json or {}
    req = create_money_request(
        get_db(), data.get('employee_id'), data.get('amount'), data.get('method'), data.get('reference_number'),
        principal=current_principal(),
    )
    return money_request_json(req), 201


@requests_bp.get('/money/<int:request_id>')
@require_permission(Module.REQUESTS, Action.READ)
def get_money_request(request_id: int):
    return money_request_json(_get(MoneyRequest, request_id))


@requests_bp.put('/money/<int:request_id>')
@require_admin
@audit_log('REQUEST.MONEY.PROCESS', entity='MoneyRequest', entity_id_arg='request_id', meta_builder=_process_meta)
def process_money(request_id: int):
    return _process(MoneyRequest.KIND, request_id, money_request_json)


@requests_bp.delete('/money/<int:request_id>')
@require_super_admin
@audit_log('REQUEST.MONEY.DELETE', entity='MoneyRequest', entity_id_arg='request_id')
def delete_money(request_id: int):
    delete_request(get_db(), current_principal(), MoneyRequest.KIND, request_id)
    return {'deleted': True}


# ---------------- helpers ---------------- #

def _process(kind: str, request_id: int, serialize):
    data = request.json or {}
    result = process_request(
        get_db(), current_principal(), kind, request_id, data.get('action'), reason=data.get('rejection_reason'),
    )
    return {**serialize(result.request), 'effects': [e.to_dict() for e in result.effects]}


def _get(model, request_id: int):
    req = get_db().get(model, request_id)
    if not req:
        raise NotFound('Request not found')
    return req


def _request_filters(q, model):
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(model.status == v), 'validate': lambda v: v in model.ALL_STATUSES},
        'employee_id': {'coerce': int, 'op': lambda qu, v: qu.filter(model.employee_id == v)},
    }
    return apply_filters(q, filter_specs, request.args)


def _request_sort(q, model, extra_allowed):
    allowed = {'created_at': model.created_at, 'status': model.status, **extra_allowed}
    return apply_multi_sort(q, request.args.get('sort'), allowed, model.id, default=model.created_at.desc())


def _status_counts(model):
    rows = get_db().query(model.status, func.count(model.id)).group_by(model.status).all()
    counts = {s: 0 for s in model.ALL_STATUSES}
    counts.update({status: n for status, n in rows})
    return counts


def _employee_brief(employee_id: Optional[int]):
    # null once the employee has been deleted
    e = get_db().get(Employee, employee_id) if employee_id is not None else None
    if not e:
        return None
    return {'id': e.id, 'full_name': e.full_name, 'phone_number': e.phone_number}


def _request_common(r):
    return {
        'id': r.id,
        'kind': r.KIND,
        'employee_id': r.employee_id,
        'employee': _employee_brief(r.employee_id),
        'status': r.status,
        'rejection_reason': r.rejection_reason,
        'processed_by': r.processed_by,
        'processed_at': isoformat(r.processed_at),
        'created_at': isoformat(r.created_at),
    }


def stock_request_json(r: StockRequest):
    p = get_db().get(Product, r.product_id) if r.product_id is not None else None
    return {
        **_request_common(r),
        'product_id': r.product_id,
        'product': {'id': p.id, 'title': p.title, 'stock_quantity': p.stock_quantity} if p else None,
        'quantity': r.quantity,
        'reason': r.reason,
    }


def money_request_json(r: MoneyRequest):
    return {
        **_request_common(r),
        'amount': r.amount,
        'method': r.method,
        'reference_number': r.reference_number,
    }
