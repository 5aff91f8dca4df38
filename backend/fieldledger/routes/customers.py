from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import or_
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_permission, current_principal
from fieldledger.decorators.audit import audit_log
from fieldledger.models.base import isoformat
from fieldledger.models.customer import Customer
from fieldledger.services.customers import get_customer, request_count, update_customer, delete_customer
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response
from fieldledger.utils.sorting import apply_multi_sort

customers_bp = Blueprint('customers', __name__)


def _search(q, term: str):
    like = f'%{term}%'
    return q.filter(or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like)))


@customers_bp.get('')
@require_permission(Module.CUSTOMERS, Action.READ)
def list_customers():
    q = get_db().query(Customer)
    filter_specs = {
        'authType': {'op': lambda qu, v: qu.filter(Customer.auth_type == v), 'validate': lambda v: v in Customer.ALL_AUTH_TYPES},
        'search': {'op': _search},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'name': Customer.name, 'created_at': Customer.created_at, 'auth_type': Customer.auth_type, 'id': Customer.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Customer.id, default=Customer.created_at.desc())
    return paginated_response(q, customer_json)


@customers_bp.get('/<int:customer_id>')
@require_permission(Module.CUSTOMERS, Action.READ)
def get_one(customer_id: int):
    session = get_db()
    customer = get_customer(session, customer_id)
    return {**customer_json(customer), 'request_count': request_count(session, customer.id)}


@customers_bp.put('/<int:customer_id>')
@require_permission(Module.CUSTOMERS, Action.UPDATE)
@audit_log(
    'CUSTOMER.UPDATE',
    entity='Customer',
    entity_id_key='id',
    diff_keys=['name', 'phone', 'address', 'email'],
    pre_fetch=lambda a, kw: _prefetch_customer(kw.get('customer_id')),
)
def update(customer_id: int):
    return customer_json(update_customer(get_db(), current_principal(), customer_id, request.json or {}))


@customers_bp.delete('/<int:customer_id>')
@require_permission(Module.CUSTOMERS, Action.DELETE)
@audit_log('CUSTOMER.DELETE', entity='Customer', entity_id_arg='customer_id', meta_keys=['deleted_requests'])
def delete(customer_id: int):
    removed = delete_customer(get_db(), current_principal(), customer_id)
    return {'deleted': True, 'deleted_requests': removed}


def customer_json(c: Customer):
    return {
        'id': c.id,
        'name': c.name,
        'phone': c.phone,
        'email': c.email,
        'address': c.address,
        'auth_type': c.auth_type,
        'device_id': c.device_id,
        'created_at': isoformat(c.created_at),
        'updated_at': isoformat(c.updated_at),
    }


def _prefetch_customer(customer_id: int):
    c = get_db().get(Customer, customer_id)
    if not c:
        return {}
    return customer_json(c)
