from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import select

from fieldledger.constants.permissions import Module, Action
from fieldledger.errors import NotFound, ValidationError, InsufficientStock
from fieldledger.models.employee import Employee, EmployeeProduct
from fieldledger.models.product import Product
from fieldledger.models.sale import Sale, SaleItem
from fieldledger.services.ledger import LedgerEffect, consume_allocation, credit_holdings
from fieldledger.services.policy import Principal, authorize
from fieldledger.utils.validation import (
    positive_int, positive_decimal, required_str, optional_str, validate_phone, validate_email,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleResult:
    sale: Sale
    effects: Tuple[LedgerEffect, ...] = ()


def _parse_items(items: Any) -> List[Dict[str, Any]]:
    if not isinstance(items, list) or not items:
        raise ValidationError('At least one item is required')
    parsed = []
    for i, item in enumerate(items, start=1):
        if not isinstance(item, dict) or item.get('product_id') is None:
            raise ValidationError(f'Item {i}: Product is required')
        try:
            parsed.append({
                'product_id': positive_int(item.get('product_id'), 'product_id'),
                'quantity': positive_int(item.get('quantity'), 'quantity'),
                'price_per_unit': positive_decimal(item.get('price_per_unit'), 'price_per_unit', minimum=Decimal('0')),
            })
        except ValidationError as e:
            raise ValidationError(f'Item {i}: {e.description}')
    return parsed


def _parse_customer(customer: Any) -> Dict[str, Optional[str]]:
    if not isinstance(customer, dict):
        raise ValidationError('Customer information is required')
    email = customer.get('email')
    return {
        'name': required_str(customer.get('name'), 'Customer name'),
        'phone': validate_phone(customer.get('phone'), 'Customer phone'),
        'email': validate_email(email) if email else None,
        'address': optional_str(customer.get('address')),
    }


def _check_allocations(session, employee_id: int, lines: List[Dict[str, int]]):
    wanted: Dict[int, int] = {}
    for line in lines:
        wanted[line['product_id']] = wanted.get(line['product_id'], 0) + line['quantity']
    held = dict(session.execute(
        select(EmployeeProduct.product_id, EmployeeProduct.quantity)
        .where(EmployeeProduct.employee_id == employee_id, EmployeeProduct.product_id.in_(list(wanted)))
    ).all())
    missing = sorted(pid for pid in wanted if pid not in held)
    if missing:
        raise ValidationError("You don't have these products assigned", missing=missing)
    short = [
        {'product_id': pid, 'available': held[pid], 'requested': qty}
        for pid, qty in wanted.items() if held[pid] < qty
    ]
    if short:
        first = short[0]
        summary = '; '.join(f"product {s['product_id']} (have {s['available']}, need {s['requested']})" for s in short)
        raise InsufficientStock(first['available'], first['requested'], description=f'Insufficient stock for: {summary}', items=short)
    return wanted


def record_sale(session, employee_id: int, items: Any, customer: Any, payment_method: Any,
                principal: Optional[Principal] = None) -> SaleResult:
    """Record a sale out of the employee's allocations and credit their holdings.

    Every line is checked before anything is written; the allocation draw-down,
    holdings credit and sale rows commit together.
    """
    if principal is not None:
        authorize(principal, Module.SALES, Action.CREATE)
    lines = _parse_items(items)
    cust = _parse_customer(customer)
    if payment_method not in Sale.ALL_METHODS:
        raise ValidationError('Payment method must be "Cash" or "Online"')
    if session.get(Employee, employee_id) is None:
        raise NotFound('Employee not found')
    wanted = _check_allocations(session, employee_id, lines)
    titles = dict(session.execute(select(Product.id, Product.title).where(Product.id.in_(list(wanted)))).all())
    total = sum(line['quantity'] * line['price_per_unit'] for line in lines)
    try:
        effects = [consume_allocation(session, employee_id, pid, qty) for pid, qty in wanted.items()]
        if total > 0:
            effects.append(credit_holdings(session, employee_id, payment_method, total))
        sale = Sale(
            employee_id=employee_id,
            customer_name=cust['name'],
            customer_phone=cust['phone'],
            customer_email=cust['email'],
            customer_address=cust['address'],
            payment_method=payment_method,
            total_amount=total,
            items=[
                SaleItem(
                    product_id=line['product_id'],
                    product_title=titles.get(line['product_id'], ''),
                    quantity=line['quantity'],
                    price_per_unit=line['price_per_unit'],
                    total_price=line['quantity'] * line['price_per_unit'],
                )
                for line in lines
            ],
        )
        session.add(sale)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info('Sale %s recorded for employee %s (%s %s)', sale.id, employee_id, payment_method, total)
    return SaleResult(sale, tuple(effects))


def get_sale(session, sale_id: int, employee_id: Optional[int] = None) -> Sale:
    sale = session.get(Sale, sale_id)
    if not sale or (employee_id is not None and sale.employee_id != employee_id):
        raise NotFound('Sale not found')
    return sale


def delete_sale(session, principal: Principal, sale_id: int) -> None:
    """Remove a sale record. Allocations and holdings are not reversed."""
    authorize(principal, Module.SALES, Action.DELETE)
    sale = get_sale(session, sale_id)
    session.delete(sale)
    session.commit()
    logger.info('Admin %s deleted sale %s', principal.id, sale_id)


__all__ = ['SaleResult', 'record_sale', 'get_sale', 'delete_sale']
