from __future__ import annotations
from datetime import date
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from fieldledger.constants.permissions import Module, Action
from fieldledger.errors import NotFound, ValidationError
from fieldledger.models.invoice import Counter, Invoice, InvoiceItem
from fieldledger.services.policy import Principal, authorize
from fieldledger.utils.validation import positive_int, required_str, optional_str, validate_status

logger = logging.getLogger(__name__)


def next_invoice_number(session, year: int) -> str:
    """Increment the per-year counter and format ``RA-<year>-<seq:04d>``."""
    name = f'invoice_{year}'
    bump = update(Counter).where(Counter.name == name).values(seq=Counter.seq + 1)
    if session.execute(bump).rowcount == 0:
        try:
            with session.begin_nested():
                session.add(Counter(name=name, seq=1))
                session.flush()
        except IntegrityError:
            session.execute(bump)
    seq = session.execute(select(Counter.seq).where(Counter.name == name)).scalar_one()
    return f'{Invoice.NUMBER_PREFIX}-{year}-{seq:04d}'


def _parse_date(value: Any, field_name: str) -> date:
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError):
        raise ValidationError(f'{field_name} must be an ISO date')


def _parse_items(items: Any) -> List[InvoiceItem]:
    if not isinstance(items, list) or not items:
        raise ValidationError('At least one item is required')
    out = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError('Invalid item')
        qty = positive_int(item.get('quantity'), 'quantity')
        unit = positive_int(item.get('unit_price'), 'unit_price', minimum=0)
        product_id = item.get('product_id')
        out.append(InvoiceItem(
            product_id=positive_int(product_id, 'product_id') if product_id is not None else None,
            description=required_str(item.get('description'), 'Item description'),
            quantity=qty,
            unit_price=unit,
            amount=qty * unit,
        ))
    return out


def _apply_totals(invoice: Invoice, tax_rate: int, discount: int):
    subtotal = sum(i.amount for i in invoice.items)
    tax_amount = (subtotal * tax_rate + 50) // 100
    total = subtotal + tax_amount - discount
    if total < 0:
        raise ValidationError('Discount cannot exceed invoice total')
    invoice.subtotal = subtotal
    invoice.tax_rate = tax_rate
    invoice.tax_amount = tax_amount
    invoice.discount = discount
    invoice.total = total
    invoice.amount_due = total


def _apply_fields(invoice: Invoice, data: Dict[str, Any], creating: bool):
    if creating or 'date_of_issue' in data:
        invoice.date_of_issue = _parse_date(data.get('date_of_issue'), 'date_of_issue')
    if creating or 'due_date' in data:
        invoice.due_date = _parse_date(data.get('due_date'), 'due_date')
    if invoice.due_date < invoice.date_of_issue:
        raise ValidationError('due_date cannot be before date_of_issue')
    customer = data.get('customer')
    if creating or customer is not None:
        if not isinstance(customer, dict):
            raise ValidationError('Customer information is required')
        invoice.customer_name = required_str(customer.get('name'), 'Customer name')
        invoice.customer_address = optional_str(customer.get('address')) or ''
        invoice.customer_city = optional_str(customer.get('city')) or ''
        invoice.customer_state = optional_str(customer.get('state')) or ''
        invoice.customer_pincode = optional_str(customer.get('pincode')) or ''
        invoice.customer_phone = optional_str(customer.get('phone'))
        invoice.customer_email = optional_str(customer.get('email'))
    if 'notes' in data:
        invoice.notes = optional_str(data.get('notes'))
    if 'status' in data:
        invoice.status = validate_status(data.get('status'), Invoice.ALL_STATUSES)
    if creating or 'items' in data:
        invoice.items = _parse_items(data.get('items'))
    tax_rate = positive_int(data.get('tax_rate', invoice.tax_rate or 0), 'tax_rate', minimum=0)
    discount = positive_int(data.get('discount', invoice.discount or 0), 'discount', minimum=0)
    _apply_totals(invoice, tax_rate, discount)


def get_invoice(session, invoice_id: int) -> Invoice:
    invoice = session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound('Invoice not found')
    return invoice


def create_invoice(session, principal: Principal, data: Dict[str, Any], today: Optional[date] = None) -> Invoice:
    authorize(principal, Module.INVOICES, Action.CREATE)
    invoice = Invoice(status=Invoice.STATUS_DRAFT)
    try:
        _apply_fields(invoice, data, creating=True)
        invoice.invoice_number = next_invoice_number(session, (today or date.today()).year)
        session.add(invoice)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info('Admin %s created invoice %s', principal.id, invoice.invoice_number)
    return invoice


def update_invoice(session, principal: Principal, invoice_id: int, data: Dict[str, Any]) -> Invoice:
    authorize(principal, Module.INVOICES, Action.UPDATE)
    invoice = get_invoice(session, invoice_id)
    try:
        _apply_fields(invoice, data, creating=False)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return invoice


def delete_invoice(session, principal: Principal, invoice_id: int) -> None:
    authorize(principal, Module.INVOICES, Action.DELETE)
    invoice = get_invoice(session, invoice_id)
    session.delete(invoice)
    session.commit()
    logger.info('Admin %s deleted invoice %s', principal.id, invoice.invoice_number)


__all__ = ['next_invoice_number', 'get_invoice', 'create_invoice', 'update_invoice', 'delete_invoice']
