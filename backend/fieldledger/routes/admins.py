from __future__ import annotations
from flask import Blueprint, request
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_admin, require_permission, require_super_admin, current_principal
from fieldledger.decorators.audit import audit_log
from fieldledger.models.admin import Admin
from fieldledger.models.base import isoformat
from fieldledger.services.admins import list_admins, get_admin, create_sub_admin, update_admin, delete_admin
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response
from fieldledger.utils.sorting import apply_multi_sort

admins_bp = Blueprint('admins', __name__)

UPDATABLE_FIELDS = ('name', 'password', 'email', 'permissions', 'is_active', 'role')


@admins_bp.get('')
@require_permission(Module.ADMINS, Action.READ)
def list_all():
    q = list_admins(get_db(), current_principal())
    filter_specs = {
        'role': {'op': lambda qu, v: qu.filter(Admin.role == v), 'validate': lambda v: v in (Admin.ROLE_SUPER_ADMIN, Admin.ROLE_SUB_ADMIN)},
        'search': {'op': lambda qu, v: qu.filter(Admin.name.ilike(f'%{v}%') | Admin.email.ilike(f'%{v}%'))},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = apply_multi_sort(q, request.args.get('sort'), {'name': Admin.name, 'email': Admin.email, 'created_at': Admin.created_at}, Admin.id)
    return paginated_response(q, _admin_json)


@admins_bp.get('/<int:admin_id>')
@require_admin
def get_one(admin_id: int):
    return _admin_json(get_admin(get_db(), current_principal(), admin_id))


@admins_bp.post('')
@require_super_admin
@audit_log('ADMIN.CREATE', entity='Admin', entity_id_key='id', meta_keys=['email', 'permissions'])
def create():
    data = request.json or {}
    admin = create_sub_admin(
        get_db(), current_principal(),
        email=data.get('email'), password=data.get('password'), name=data.get('name'),
        permissions=data.get('permissions'),
    )
    return _admin_json(admin), 201


@admins_bp.put('/<int:admin_id>')
@require_admin
@audit_log(
    'ADMIN.UPDATE',
    entity='Admin',
    entity_id_key='id',
    diff_keys=['name', 'email', 'permissions', 'is_active'],
    pre_fetch=lambda a, kw: _prefetch_admin(kw.get('admin_id')),
)
def update(admin_id: int):
    data = request.json or {}
    changes = {k: data[k] for k in UPDATABLE_FIELDS if k in data}
    admin = update_admin(get_db(), current_principal(), admin_id, changes)
    return _admin_json(admin)


@admins_bp.delete('/<int:admin_id>')
@require_super_admin
@audit_log('ADMIN.DELETE', entity='Admin', entity_id_arg='admin_id')
def delete(admin_id: int):
    delete_admin(get_db(), current_principal(), admin_id)
    return {'deleted': True}


def _admin_json(a: Admin):
    return {
        'id': a.id,
        'email': a.email,
        'name': a.name,
        'role': a.role,
        'permissions': a.permissions or {},
        'is_active': a.is_active,
        'created_at': isoformat(a.created_at),
    }


def _prefetch_admin(admin_id: int):
    a = get_db().get(Admin, admin_id)
    if not a:
        return {}
    return _admin_json(a)
