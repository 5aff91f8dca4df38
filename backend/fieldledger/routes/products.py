from __future__ import annotations
from flask import Blueprint, request
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_permission, current_principal
from fieldledger.decorators.audit import audit_log
from fieldledger.models.base import isoformat
from fieldledger.models.product import Product
from fieldledger.services.catalog import get_product, create_product, update_product, toggle_product_status, delete_product
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response
from fieldledger.utils.sorting import apply_multi_sort

products_bp = Blueprint('products', __name__)


@products_bp.get('')
@require_permission(Module.PRODUCTS, Action.READ)
def list_products():
    q = get_db().query(Product)
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(Product.status == v), 'validate': lambda v: v in Product.ALL_STATUSES},
        'search': {'op': lambda qu, v: qu.filter(Product.title.ilike(f'%{v}%'))},
        'in_stock': {'coerce': lambda v: v.lower() == 'true', 'op': lambda qu, v: qu.filter(Product.stock_quantity > 0) if v else qu.filter(Product.stock_quantity == 0)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'title': Product.title,
        'price_base': Product.price_base,
        'stock_quantity': Product.stock_quantity,
        'created_at': Product.created_at,
        'id': Product.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Product.id, default=Product.created_at.desc())
    return paginated_response(q, product_json)


@products_bp.get('/<int:product_id>')
@require_permission(Module.PRODUCTS, Action.READ)
def get_one(product_id: int):
    return product_json(get_product(get_db(), product_id))


@products_bp.post('')
@require_permission(Module.PRODUCTS, Action.CREATE)
@audit_log('PRODUCT.CREATE', entity='Product', entity_id_key='id', meta_keys=['title', 'stock_quantity'])
def create():
    p = create_product(get_db(), current_principal(), request.json or {})
    return product_json(p), 201


@products_bp.put('/<int:product_id>')
@require_permission(Module.PRODUCTS, Action.UPDATE)
@audit_log(
    'PRODUCT.UPDATE',
    entity='Product',
    entity_id_key='id',
    diff_keys=['title', 'price_base', 'price_lowest_selling', 'stock_quantity', 'status', 'photo'],
    pre_fetch=lambda a, kw: _prefetch_product(kw.get('product_id')),
)
def update(product_id: int):
    p = update_product(get_db(), current_principal(), product_id, request.json or {})
    return product_json(p)


@products_bp.patch('/<int:product_id>/status')
@require_permission(Module.PRODUCTS, Action.TOGGLE_STATUS)
@audit_log('PRODUCT.TOGGLE_STATUS', entity='Product', entity_id_key='id', meta_keys=['status'])
def toggle_status(product_id: int):
    p = toggle_product_status(get_db(), current_principal(), product_id)
    return product_json(p)


@products_bp.delete('/<int:product_id>')
@require_permission(Module.PRODUCTS, Action.DELETE)
@audit_log('PRODUCT.DELETE', entity='Product', entity_id_arg='product_id')
def delete(product_id: int):
    delete_product(get_db(), current_principal(), product_id)
    return {'deleted': True}


def product_json(p: Product):
    return {
        'id': p.id,
        'title': p.title,
        'description': p.description,
        'photo': p.photo,
        'price_base': p.price_base,
        'price_lowest_selling': p.price_lowest_selling,
        'status': p.status,
        'stock_quantity': p.stock_quantity,
        'created_at': isoformat(p.created_at),
    }


def _prefetch_product(product_id: int):
    p = get_db().get(Product, product_id)
    if not p:
        return {}
    return product_json(p)
