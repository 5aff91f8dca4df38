"""Holdings and stock-allocation ledgers.

Every read-check-write against a shared counter is a single conditional UPDATE
whose WHERE clause carries the guard; ``rowcount == 0`` means the guard failed
(or the row is gone) and the row is re-read only to build the error. Nothing in
this module commits: callers own the transaction boundary and roll back on any
raised error, so a failed guard never leaves a partial write behind.

Each mutation returns a ``LedgerEffect`` so callers can report exactly what
moved.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Union
import logging

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError

from fieldledger.constants.permissions import Module, Action
from fieldledger.errors import NotFound, ValidationError, InsufficientHoldings, InsufficientStock
from fieldledger.models.base import utcnow
from fieldledger.models.employee import Employee, EmployeeProduct
from fieldledger.models.product import Product
from fieldledger.services.policy import Principal, authorize
from fieldledger.utils.validation import positive_int, positive_decimal

logger = logging.getLogger(__name__)

METHOD_CASH = 'Cash'
METHOD_ONLINE = 'Online'
HOLDINGS_FIELDS = {
    METHOD_CASH: 'holdings_cash',
    METHOD_ONLINE: 'holdings_online',
}


@dataclass(frozen=True)
class LedgerEffect:
    kind: str  # holdings | stock | allocation
    entity: str
    entity_id: int
    field: str
    delta: Union[int, Decimal]

    def to_dict(self) -> Dict[str, object]:
        return {
            'kind': self.kind,
            'entity': self.entity,
            'entity_id': self.entity_id,
            'field': self.field,
            'delta': self.delta,
        }


def _holdings_column(method: str):
    field = HOLDINGS_FIELDS.get(method)
    if field is None:
        raise ValidationError('method must be Cash or Online')
    return field, getattr(Employee, field)


# ---------------- Holdings ---------------- #

def holdings_of(employee: Optional[Employee]) -> Dict[str, Decimal]:
    if employee is None:
        return {'cash': 0, 'online': 0, 'total': 0}
    return {
        'cash': employee.holdings_cash or 0,
        'online': employee.holdings_online or 0,
        'total': employee.holdings_total or 0,
    }


def credit_holdings(session, employee_id: int, method: str, amount) -> LedgerEffect:
    field, col = _holdings_column(method)
    amount = positive_decimal(amount, 'amount')
    res = session.execute(
        update(Employee)
        .where(Employee.id == employee_id)
        .values({col: col + amount, Employee.holdings_total: Employee.holdings_total + amount})
    )
    if res.rowcount == 0:
        raise NotFound('Employee not found')
    return LedgerEffect('holdings', 'Employee', employee_id, field, amount)


def debit_holdings(session, employee_id: int, method: str, amount) -> LedgerEffect:
    field, col = _holdings_column(method)
    amount = positive_decimal(amount, 'amount')
    res = session.execute(
        update(Employee)
        .where(Employee.id == employee_id, col >= amount)
        .values({col: col - amount, Employee.holdings_total: Employee.holdings_total - amount})
    )
    if res.rowcount == 0:
        available = session.execute(select(col).where(Employee.id == employee_id)).scalar_one_or_none()
        if available is None:
            raise NotFound('Employee not found')
        raise InsufficientHoldings(method, available, amount)
    return LedgerEffect('holdings', 'Employee', employee_id, field, -amount)


# ---------------- Central stock ---------------- #

def deduct_stock(session, product_id: int, qty: int) -> LedgerEffect:
    qty = positive_int(qty, 'quantity')
    res = session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock_quantity >= qty)
        .values(stock_quantity=Product.stock_quantity - qty)
    )
    if res.rowcount == 0:
        available = session.execute(select(Product.stock_quantity).where(Product.id == product_id)).scalar_one_or_none()
        if available is None:
            raise NotFound('Product not found')
        raise InsufficientStock(available, qty, product_id=product_id)
    return LedgerEffect('stock', 'Product', product_id, 'stock_quantity', -qty)


def restore_stock(session, product_id: int, qty: int) -> LedgerEffect:
    qty = positive_int(qty, 'quantity')
    res = session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock_quantity=Product.stock_quantity + qty)
    )
    if res.rowcount == 0:
        raise NotFound('Product not found')
    return LedgerEffect('stock', 'Product', product_id, 'stock_quantity', qty)


# ---------------- Allocations ---------------- #

def _increment_allocation(session, employee_id: int, product_id: int, qty: int) -> int:
    res = session.execute(
        update(EmployeeProduct)
        .where(EmployeeProduct.employee_id == employee_id, EmployeeProduct.product_id == product_id)
        .values(quantity=EmployeeProduct.quantity + qty)
    )
    return res.rowcount


def _allocation_id(session, employee_id: int, product_id: int) -> Optional[int]:
    return session.execute(
        select(EmployeeProduct.id).where(EmployeeProduct.employee_id == employee_id, EmployeeProduct.product_id == product_id)
    ).scalar_one_or_none()


def allocate(session, employee_id: int, product_id: int, qty: int) -> LedgerEffect:
    """Add ``qty`` to the employee's allocation of a product, creating it if needed."""
    qty = positive_int(qty, 'quantity')
    if _increment_allocation(session, employee_id, product_id, qty) == 0:
        try:
            with session.begin_nested():
                session.add(EmployeeProduct(employee_id=employee_id, product_id=product_id, quantity=qty, assigned_at=utcnow()))
                session.flush()
        except IntegrityError:
            # lost the insert race to a concurrent approval; merge into its row
            logger.info('Allocation insert raced for employee %s product %s, merging', employee_id, product_id)
            if _increment_allocation(session, employee_id, product_id, qty) == 0:
                raise
    return LedgerEffect('allocation', 'EmployeeProduct', _allocation_id(session, employee_id, product_id), 'quantity', qty)


def consume_allocation(session, employee_id: int, product_id: int, qty: int) -> LedgerEffect:
    """Draw down an allocation after a sale; the row is removed once it reaches zero."""
    qty = positive_int(qty, 'quantity')
    alloc_id = _allocation_id(session, employee_id, product_id)
    res = session.execute(
        update(EmployeeProduct)
        .where(
            EmployeeProduct.employee_id == employee_id,
            EmployeeProduct.product_id == product_id,
            EmployeeProduct.quantity >= qty,
        )
        .values(quantity=EmployeeProduct.quantity - qty)
    )
    if res.rowcount == 0:
        available = session.execute(
            select(EmployeeProduct.quantity).where(EmployeeProduct.employee_id == employee_id, EmployeeProduct.product_id == product_id)
        ).scalar_one_or_none() or 0
        raise InsufficientStock(
            available, qty,
            description=f'Insufficient assigned quantity. Only {available} assigned.',
            product_id=product_id,
        )
    session.execute(
        delete(EmployeeProduct)
        .where(EmployeeProduct.employee_id == employee_id, EmployeeProduct.product_id == product_id, EmployeeProduct.quantity <= 0)
        .execution_options(synchronize_session='fetch')
    )
    return LedgerEffect('allocation', 'EmployeeProduct', alloc_id, 'quantity', -qty)


def _get_employee(session, employee_id: int) -> Employee:
    emp = session.get(Employee, employee_id)
    if not emp:
        raise NotFound('Employee not found')
    return emp


def assign_product(session, principal: Principal, employee_id: int, product_id: int, qty) -> List[LedgerEffect]:
    """Direct assignment: move ``qty`` from central stock into an employee's allocation."""
    authorize(principal, Module.EMPLOYEES, Action.ASSIGN_PRODUCTS)
    qty = positive_int(qty, 'quantity')
    _get_employee(session, employee_id)
    if session.get(Product, product_id) is None:
        raise NotFound('Product not found')
    try:
        effects = [
            deduct_stock(session, product_id, qty),
            allocate(session, employee_id, product_id, qty),
        ]
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info('Admin %s assigned %s of product %s to employee %s', principal.id, qty, product_id, employee_id)
    return effects


def remove_assignment(session, principal: Principal, employee_id: int, assignment_id: int, return_to_stock: bool = True) -> List[LedgerEffect]:
    """Remove an allocation entirely, optionally returning its quantity to central stock."""
    authorize(principal, Module.EMPLOYEES, Action.ASSIGN_PRODUCTS)
    _get_employee(session, employee_id)
    try:
        row = session.execute(
            select(EmployeeProduct.product_id, EmployeeProduct.quantity)
            .where(EmployeeProduct.id == assignment_id, EmployeeProduct.employee_id == employee_id)
        ).one_or_none()
        if row is None:
            raise NotFound('Assignment not found')
        product_id, quantity = row
        # guard on the quantity we read so a concurrent sale cannot be returned to stock
        res = session.execute(
            delete(EmployeeProduct)
            .where(EmployeeProduct.id == assignment_id, EmployeeProduct.quantity == quantity)
            .execution_options(synchronize_session='fetch')
        )
        if res.rowcount == 0:
            raise ValidationError('Assignment changed while removing it, retry')
        effects = [LedgerEffect('allocation', 'EmployeeProduct', assignment_id, 'quantity', -quantity)]
        if return_to_stock and quantity > 0:
            effects.append(restore_stock(session, product_id, quantity))
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info('Admin %s removed assignment %s from employee %s (returned=%s)', principal.id, assignment_id, employee_id, return_to_stock)
    return effects


__all__ = [
    'LedgerEffect', 'HOLDINGS_FIELDS', 'holdings_of', 'credit_holdings', 'debit_holdings',
    'deduct_stock', 'restore_stock', 'allocate', 'consume_allocation', 'assign_product', 'remove_assignment',
]
