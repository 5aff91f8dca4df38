"""Product requests raised from the customer app.

A request moves freely between pending, ongoing and delivered. Admin edits are
split by permission: status needs ``productRequests.updateStatus``, admin notes
need ``productRequests.manageNotes`` and the contact snapshot needs
``productRequests.update``.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select

from fieldledger.constants.permissions import Module, Action
from fieldledger.errors import NotFound, ValidationError
from fieldledger.models.customer import Customer
from fieldledger.models.product import Product
from fieldledger.models.product_request import (
    ProductRequest, ProductRequestItem, ProductRequestNote, NOTE_BY_ADMIN, NOTE_BY_CUSTOMER,
)
from fieldledger.services.policy import Principal, authorize
from fieldledger.utils.validation import optional_str, positive_int, required_str, validate_phone, validate_status

logger = logging.getLogger(__name__)

NOTE_ACTIONS = ('update', 'delete')


def _note_content(value: Any, message: str = 'Note content is required') -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value.strip()


def _parse_items(session, products: Any) -> List[ProductRequestItem]:
    if not isinstance(products, list) or not products:
        raise ValidationError('At least one product is required')
    items = []
    for entry in products:
        if not isinstance(entry, dict) or entry.get('product_id') is None:
            raise ValidationError('Each product must have valid product ID and quantity')
        try:
            product_id = positive_int(entry.get('product_id'), 'product_id')
            quantity = positive_int(entry.get('quantity'), 'quantity')
        except ValidationError:
            raise ValidationError('Each product must have valid product ID and quantity')
        product = session.execute(
            select(Product).where(Product.id == product_id, Product.status == Product.STATUS_ACTIVE)
        ).scalar_one_or_none()
        if product is None:
            raise ValidationError(f'Product {product_id} not found or inactive')
        items.append(ProductRequestItem(product_id=product.id, product_title=product.title, quantity=quantity))
    return items


def get_product_request(session, request_id: int, customer_id: Optional[int] = None) -> ProductRequest:
    req = session.get(ProductRequest, request_id)
    if not req or (customer_id is not None and req.customer_id != customer_id):
        raise NotFound('Product request not found')
    return req


def create_product_request(session, customer: Customer, data: Dict[str, Any]) -> ProductRequest:
    """Submit a request; contact fields fall back to the customer's own record."""
    items = _parse_items(session, data.get('products'))
    name = optional_str(data.get('name')) or customer.name
    phone = optional_str(data.get('phone')) or customer.phone
    if not name or not phone:
        raise ValidationError('Name and phone are required')
    req = ProductRequest(
        customer_id=customer.id,
        status=ProductRequest.STATUS_PENDING,
        customer_name=name,
        customer_phone=validate_phone(phone),
        customer_email=optional_str(data.get('email')) or customer.email,
        customer_address=optional_str(data.get('address')) or customer.address,
        items=items,
    )
    notes = optional_str(data.get('notes'))
    if notes:
        req.notes.append(ProductRequestNote(by=NOTE_BY_CUSTOMER, content=notes))
    session.add(req)
    session.commit()
    logger.info('Customer %s submitted product request %s (%s lines)', customer.id, req.id, len(items))
    return req


def update_product_request(session, principal: Principal, request_id: int, data: Dict[str, Any]) -> ProductRequest:
    """Apply a status change, a new admin note and/or contact-detail edits.

    Each part is authorized on its own; a body carrying none of them is rejected.
    """
    req = get_product_request(session, request_id)
    changed = False
    try:
        if data.get('status') is not None:
            authorize(principal, Module.PRODUCT_REQUESTS, Action.UPDATE_STATUS)
            req.status = validate_status(data.get('status'), ProductRequest.ALL_STATUSES)
            changed = True
        if isinstance(data.get('note'), str) and data['note'].strip():
            authorize(principal, Module.PRODUCT_REQUESTS, Action.MANAGE_NOTES)
            req.notes.append(ProductRequestNote(by=NOTE_BY_ADMIN, content=data['note'].strip()))
            changed = True
        details = data.get('customer_details')
        if isinstance(details, dict) and details:
            authorize(principal, Module.PRODUCT_REQUESTS, Action.UPDATE)
            if 'name' in details:
                req.customer_name = required_str(details.get('name'), 'name')
            if 'phone' in details:
                req.customer_phone = validate_phone(details.get('phone'))
            if 'email' in details:
                req.customer_email = optional_str(details.get('email'))
            if 'address' in details:
                req.customer_address = optional_str(details.get('address'))
            changed = True
        if not changed:
            raise ValidationError('No valid fields to update')
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info('Admin %s updated product request %s', principal.id, request_id)
    return req


def _note_of(req: ProductRequest, note_id: Any) -> ProductRequestNote:
    try:
        note_id = positive_int(note_id, 'note_id')
    except ValidationError:
        raise ValidationError('Valid note_id is required')
    for note in req.notes:
        if note.id == note_id:
            return note
    raise NotFound('Note not found')


def manage_note(session, principal: Principal, request_id: int, action: Any, note_id: Any,
                content: Any = None) -> ProductRequest:
    """Edit or remove one note by id. Admins may edit customer notes too, as the dashboard allows."""
    authorize(principal, Module.PRODUCT_REQUESTS, Action.MANAGE_NOTES)
    if action not in NOTE_ACTIONS:
        raise ValidationError("Invalid action. Use 'update' or 'delete'")
    req = get_product_request(session, request_id)
    note = _note_of(req, note_id)
    if action == 'delete':
        req.notes.remove(note)
    else:
        note.content = _note_content(content, 'Content is required for update')
    session.commit()
    logger.info('Admin %s %sd note %s on product request %s', principal.id, action, note.id, request_id)
    return req


def add_customer_note(session, customer: Customer, request_id: int, content: Any) -> ProductRequestNote:
    content = _note_content(content)
    req = get_product_request(session, request_id, customer_id=customer.id)
    note = ProductRequestNote(by=NOTE_BY_CUSTOMER, content=content)
    req.notes.append(note)
    session.commit()
    return note


def delete_product_request(session, principal: Principal, request_id: int) -> None:
    authorize(principal, Module.PRODUCT_REQUESTS, Action.DELETE)
    req = get_product_request(session, request_id)
    session.delete(req)
    session.commit()
    logger.info('Admin %s deleted product request %s', principal.id, request_id)


__all__ = [
    'get_product_request', 'create_product_request', 'update_product_request', 'manage_note',
    'add_customer_note', 'delete_product_request',
]
