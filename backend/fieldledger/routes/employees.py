from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import select
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_permission, current_principal
from fieldledger.decorators.audit import audit_log
from fieldledger.models.base import isoformat
from fieldledger.models.employee import Employee, EmployeeProduct
from fieldledger.models.product import Product
from fieldledger.services.catalog import get_employee, create_employee, update_employee, toggle_employee_active, delete_employee
from fieldledger.services.ledger import holdings_of, assign_product, remove_assignment
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response
from fieldledger.utils.sorting import apply_multi_sort

employees_bp = Blueprint('employees', __name__)


@employees_bp.get('')
@require_permission(Module.EMPLOYEES, Action.READ)
def list_employees():
    q = get_db().query(Employee)
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(Employee.status == v), 'validate': lambda v: v in Employee.ALL_STATUSES},
        'is_active': {'coerce': lambda v: v.lower() == 'true', 'op': lambda qu, v: qu.filter(Employee.is_active == v)},
        'search': {'op': lambda qu, v: qu.filter(
            Employee.full_name.ilike(f'%{v}%') | Employee.email.ilike(f'%{v}%') | Employee.phone_number.ilike(f'%{v}%')
        )},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'full_name': Employee.full_name,
        'holdings_total': Employee.holdings_total,
        'date_of_joining': Employee.date_of_joining,
        'created_at': Employee.created_at,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Employee.id, default=Employee.created_at.desc())
    return paginated_response(q, employee_json)


@employees_bp.get('/<int:employee_id>')
@require_permission(Module.EMPLOYEES, Action.READ)
def get_one(employee_id: int):
    session = get_db()
    e = get_employee(session, employee_id)
    return {**employee_json(e), 'products': allocations_json(session, e.id)}


@employees_bp.post('')
@require_permission(Module.EMPLOYEES, Action.CREATE)
@audit_log('EMPLOYEE.CREATE', entity='Employee', entity_id_key='id', meta_keys=['full_name', 'email'])
def create():
    e = create_employee(get_db(), current_principal(), request.json or {})
    return employee_json(e), 201


@employees_bp.put('/<int:employee_id>')
@require_permission(Module.EMPLOYEES, Action.UPDATE)
@audit_log(
    'EMPLOYEE.UPDATE',
    entity='Employee',
    entity_id_key='id',
    diff_keys=['full_name', 'phone_number', 'email', 'gender', 'age', 'profile_photo'],
    pre_fetch=lambda a, kw: _prefetch_employee(kw.get('employee_id')),
)
def update(employee_id: int):
    e = update_employee(get_db(), current_principal(), employee_id, request.json or {})
    return employee_json(e)


@employees_bp.patch('/<int:employee_id>/active')
@require_permission(Module.EMPLOYEES, Action.TOGGLE_STATUS)
@audit_log('EMPLOYEE.TOGGLE_ACTIVE', entity='Employee', entity_id_key='id', meta_keys=['is_active'])
def toggle_active(employee_id: int):
    e = toggle_employee_active(get_db(), current_principal(), employee_id)
    return employee_json(e)


@employees_bp.delete('/<int:employee_id>')
@require_permission(Module.EMPLOYEES, Action.DELETE)
@audit_log('EMPLOYEE.DELETE', entity='Employee', entity_id_arg='employee_id')
def delete(employee_id: int):
    delete_employee(get_db(), current_principal(), employee_id)
    return {'deleted': True}


# ---------------- Direct product assignment ---------------- #

@employees_bp.get('/<int:employee_id>/products')
@require_permission(Module.EMPLOYEES, Action.READ)
def list_assignments(employee_id: int):
    session = get_db()
    get_employee(session, employee_id)
    return {'data': allocations_json(session, employee_id)}


@employees_bp.post('/<int:employee_id>/products')
@require_permission(Module.EMPLOYEES, Action.ASSIGN_PRODUCTS)
@audit_log(
    'EMPLOYEE.ASSIGN_PRODUCT',
    entity='Employee',
    entity_id_arg='employee_id',
    meta_builder=lambda data, rv, a, kw: {'effects': data.get('effects', [])},
)
def assign(employee_id: int):
    session = get_db()
    data = request.json or {}
    effects = assign_product(session, current_principal(), employee_id, data.get('product_id'), data.get('quantity'))
    return {'effects': [e.to_dict() for e in effects], 'products': allocations_json(session, employee_id)}, 201


@employees_bp.delete('/<int:employee_id>/products/<int:assignment_id>')
@require_permission(Module.EMPLOYEES, Action.ASSIGN_PRODUCTS)
@audit_log(
    'EMPLOYEE.REMOVE_ASSIGNMENT',
    entity='Employee',
    entity_id_arg='employee_id',
    meta_builder=lambda data, rv, a, kw: {'assignment_id': kw.get('assignment_id'), 'effects': data.get('effects', [])},
)
def unassign(employee_id: int, assignment_id: int):
    session = get_db()
    return_to_stock = request.args.get('return_to_stock', 'true').lower() != 'false'
    effects = remove_assignment(session, current_principal(), employee_id, assignment_id, return_to_stock=return_to_stock)
    return {'effects': [e.to_dict() for e in effects], 'products': allocations_json(session, employee_id)}


def employee_json(e: Employee):
    return {
        'id': e.id,
        'full_name': e.full_name,
        'phone_number': e.phone_number,
        'email': e.email,
        'gender': e.gender,
        'age': e.age,
        'date_of_joining': isoformat(e.date_of_joining),
        'profile_photo': e.profile_photo,
        'status': e.status,
        'is_active': e.is_active,
        'holdings': holdings_of(e),
        'created_at': isoformat(e.created_at),
    }


def allocations_json(session, employee_id: int):
    rows = session.execute(
        select(EmployeeProduct, Product)
        .join(Product, Product.id == EmployeeProduct.product_id)
        .where(EmployeeProduct.employee_id == employee_id)
        .order_by(EmployeeProduct.id)
        .execution_options(populate_existing=True)
    ).all()
    return [
        {
            'id': ep.id,
            'product_id': p.id,
            'title': p.title,
            'photo': p.photo,
            'price_base': p.price_base,
            'price_lowest_selling': p.price_lowest_selling,
            'quantity': ep.quantity,
            'assigned_at': isoformat(ep.assigned_at),
        }
        for ep, p in rows
    ]


def _prefetch_employee(employee_id: int):
    e = get_db().get(Employee, employee_id)
    if not e:
        return {}
    return employee_json(e)
