from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import func
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_admin, require_permission, current_principal
from fieldledger.decorators.audit import audit_log
from fieldledger.models.base import isoformat
from fieldledger.models.product_request import ProductRequest, ProductRequestItem, ProductRequestNote
from fieldledger.services.product_requests import (
    get_product_request, update_product_request, manage_note, delete_product_request,
)
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response
from fieldledger.utils.sorting import apply_multi_sort

product_requests_bp = Blueprint('product_requests', __name__)


def _note_meta(data, rv, args, kwargs):
    body = request.json or {}
    return {'action': body.get('action'), 'note_id': body.get('note_id')}


@product_requests_bp.get('')
@require_permission(Module.PRODUCT_REQUESTS, Action.READ)
def list_product_requests():
    q = get_db().query(ProductRequest)
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(ProductRequest.status == v), 'validate': lambda v: v in ProductRequest.ALL_STATUSES},
        'customer_id': {'coerce': int, 'op': lambda qu, v: qu.filter(ProductRequest.customer_id == v)},
        'product_id': {'coerce': int, 'op': lambda qu, v: qu.filter(ProductRequest.items.any(ProductRequestItem.product_id == v))},
        'search': {'op': lambda qu, v: qu.filter(ProductRequest.customer_name.ilike(f'%{v}%'))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'created_at': ProductRequest.created_at, 'status': ProductRequest.status, 'customer_name': ProductRequest.customer_name}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, ProductRequest.id, default=ProductRequest.created_at.desc())
    return paginated_response(q, product_request_json, extra={'counts': status_counts()})


@product_requests_bp.get('/<int:request_id>')
@require_permission(Module.PRODUCT_REQUESTS, Action.READ)
def get_one(request_id: int):
    return product_request_json(get_product_request(get_db(), request_id))


# each part of the body is authorized separately in the service
@product_requests_bp.put('/<int:request_id>')
@require_admin
@audit_log(
    'PRODUCT_REQUEST.UPDATE',
    entity='ProductRequest',
    entity_id_key='id',
    diff_keys=['status', 'customer_name', 'customer_phone', 'customer_email', 'customer_address'],
    pre_fetch=lambda a, kw: _prefetch(kw.get('request_id')),
)
def update(request_id: int):
    req = update_product_request(get_db(), current_principal(), request_id, request.json or {})
    return product_request_json(req)


@product_requests_bp.patch('/<int:request_id>/notes')
@require_permission(Module.PRODUCT_REQUESTS, Action.MANAGE_NOTES)
@audit_log('PRODUCT_REQUEST.NOTE', entity='ProductRequest', entity_id_arg='request_id', meta_builder=_note_meta)
def notes(request_id: int):
    data = request.json or {}
    req = manage_note(get_db(), current_principal(), request_id, data.get('action'), data.get('note_id'), data.get('content'))
    return product_request_json(req)


@product_requests_bp.delete('/<int:request_id>')
@require_permission(Module.PRODUCT_REQUESTS, Action.DELETE)
@audit_log('PRODUCT_REQUEST.DELETE', entity='ProductRequest', entity_id_arg='request_id')
def delete(request_id: int):
    delete_product_request(get_db(), current_principal(), request_id)
    return {'deleted': True}


def status_counts(customer_id=None):
    q = get_db().query(ProductRequest.status, func.count(ProductRequest.id))
    if customer_id is not None:
        q = q.filter(ProductRequest.customer_id == customer_id)
    counts = {s: 0 for s in ProductRequest.ALL_STATUSES}
    counts.update({status: n for status, n in q.group_by(ProductRequest.status).all()})
    counts['total'] = sum(counts.values())
    return counts


def note_json(n: ProductRequestNote):
    return {'id': n.id, 'by': n.by, 'content': n.content, 'created_at': isoformat(n.created_at)}


def product_request_json(r: ProductRequest):
    return {
        'id': r.id,
        'customer_id': r.customer_id,
        'status': r.status,
        'customer_name': r.customer_name,
        'customer_phone': r.customer_phone,
        'customer_email': r.customer_email,
        'customer_address': r.customer_address,
        'products': [
            {'product_id': i.product_id, 'title': i.product_title, 'quantity': i.quantity} for i in r.items
        ],
        'notes': [note_json(n) for n in r.notes],
        'created_at': isoformat(r.created_at),
        'updated_at': isoformat(r.updated_at),
    }


def _prefetch(request_id: int):
    r = get_db().get(ProductRequest, request_id)
    if not r:
        return {}
    return product_request_json(r)
