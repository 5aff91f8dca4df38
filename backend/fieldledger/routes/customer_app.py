"""Customer-facing API used by the shop app.

Sign-in is either as a guest bound to a device or with email and password.
The product catalogue is public; requests and notes are scoped to the caller.
"""
from __future__ import annotations
from flask import Blueprint, request, current_app
from flask_jwt_extended import create_access_token
from fieldledger import get_db
from fieldledger.decorators.auth import customer_required, current_customer, KIND_CUSTOMER
from fieldledger.models.customer import Customer
from fieldledger.models.product import Product
from fieldledger.models.product_request import ProductRequest
from fieldledger.routes.customers import customer_json
from fieldledger.routes.product_requests import product_request_json, note_json, status_counts
from fieldledger.services.customers import guest_sign_in, register_customer, authenticate_customer
from fieldledger.services.product_requests import create_product_request, get_product_request, add_customer_note
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response

customer_app_bp = Blueprint('customer_app', __name__)


def _token_for(customer: Customer) -> str:
    key = 'CUSTOMER_GUEST_TOKEN_EXPIRES' if customer.auth_type == Customer.AUTH_GUEST else 'CUSTOMER_TOKEN_EXPIRES'
    return create_access_token(
        identity=str(customer.id),
        additional_claims={'kind': KIND_CUSTOMER, 'auth_type': customer.auth_type},
        expires_delta=current_app.config[key],
    )


# ---------------- Auth ---------------- #

@customer_app_bp.post('/auth/guest')
def guest():
    customer, is_new = guest_sign_in(get_db(), request.json or {})
    return {'is_new_user': is_new, 'access_token': _token_for(customer), 'customer': customer_json(customer)}


@customer_app_bp.post('/auth/register')
def register():
    customer = register_customer(get_db(), request.json or {})
    return {'access_token': _token_for(customer), 'customer': customer_json(customer)}, 201


@customer_app_bp.post('/auth/login')
def login():
    data = request.json or {}
    customer = authenticate_customer(get_db(), data.get('email'), data.get('password'))
    return {'access_token': _token_for(customer), 'customer': customer_json(customer)}


@customer_app_bp.get('/profile')
@customer_required
def profile():
    return customer_json(current_customer())


# ---------------- Catalogue ---------------- #

@customer_app_bp.get('/products')
def products():
    q = get_db().query(Product).filter(Product.status == Product.STATUS_ACTIVE)
    filter_specs = {
        'search': {'op': lambda qu, v: qu.filter(Product.title.ilike(f'%{v}%'))},
        'in_stock': {'coerce': lambda v: v.lower() == 'true', 'op': lambda qu, v: qu.filter(Product.stock_quantity > 0) if v else qu},
    }
    q = apply_filters(q, filter_specs, request.args).order_by(Product.title.asc(), Product.id.asc())
    return paginated_response(q, catalogue_json)


def catalogue_json(p: Product):
    # selling floor stays internal
    return {
        'id': p.id,
        'title': p.title,
        'description': p.description,
        'photo': p.photo,
        'price': p.price_base,
        'in_stock': p.stock_quantity > 0,
    }


# ---------------- Requests ---------------- #

@customer_app_bp.get('/requests')
@customer_required
def list_requests():
    customer = current_customer()
    q = get_db().query(ProductRequest).filter(ProductRequest.customer_id == customer.id)
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(ProductRequest.status == v), 'validate': lambda v: v in ProductRequest.ALL_STATUSES},
    }
    q = apply_filters(q, filter_specs, request.args).order_by(ProductRequest.created_at.desc(), ProductRequest.id.desc())
    return paginated_response(q, product_request_json, extra={'counts': status_counts(customer.id)})


@customer_app_bp.post('/requests')
@customer_required
def create_request():
    req = create_product_request(get_db(), current_customer(), request.json or {})
    return product_request_json(req), 201


@customer_app_bp.get('/requests/<int:request_id>')
@customer_required
def get_request(request_id: int):
    return product_request_json(get_product_request(get_db(), request_id, customer_id=current_customer().id))


@customer_app_bp.get('/requests/<int:request_id>/notes')
@customer_required
def list_notes(request_id: int):
    req = get_product_request(get_db(), request_id, customer_id=current_customer().id)
    return {'data': [note_json(n) for n in req.notes]}


@customer_app_bp.post('/requests/<int:request_id>/notes')
@customer_required
def add_note(request_id: int):
    data = request.json or {}
    note = add_customer_note(get_db(), current_customer(), request_id, data.get('content'))
    return note_json(note), 201
