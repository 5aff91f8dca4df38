"""Stock and money request lifecycle.

Both kinds share ``Pending -> {Approved, Rejected}``; only the ledger effect of
approval differs. An approval runs as one transaction:

1. claim the request with ``UPDATE ... WHERE status = 'Pending'``,
2. apply the guarded ledger updates,
3. commit once.

Any failure rolls the whole unit back, so the request stays Pending and the
ledgers are untouched. A lost claim means another admin processed the request
first and surfaces as ``AlreadyProcessed``.

Creation-time holdings checks are advisory; approval re-validates through the
guarded debit and that result is the binding one.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Tuple
import logging

from sqlalchemy import select, update

from fieldledger.constants.permissions import Module, Action
from fieldledger.errors import NotFound, ValidationError, AlreadyProcessed, InsufficientHoldings
from fieldledger.models.base import utcnow
from fieldledger.models.employee import Employee
from fieldledger.models.product import Product
from fieldledger.models.requests import StockRequest, MoneyRequest, STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED
from fieldledger.services.ledger import LedgerEffect, HOLDINGS_FIELDS, debit_holdings, deduct_stock, allocate
from fieldledger.services.policy import Principal, authorize, require_super_admin
from fieldledger.utils.fsm import TransitionValidator
from fieldledger.utils.validation import positive_int, positive_decimal

logger = logging.getLogger(__name__)

REQUEST_FSM = TransitionValidator({
    STATUS_PENDING: {STATUS_APPROVED, STATUS_REJECTED},
    STATUS_APPROVED: set(),
    STATUS_REJECTED: set(),
})

REQUEST_MODELS = {
    StockRequest.KIND: StockRequest,
    MoneyRequest.KIND: MoneyRequest,
}

MIN_STOCK_REASON_LENGTH = 10
MIN_MONEY_REQUEST = Decimal('1')


@dataclass(frozen=True)
class ApprovalResult:
    request: Any
    effects: Tuple[LedgerEffect, ...] = ()


def _model_for(kind: str):
    model = REQUEST_MODELS.get(kind)
    if model is None:
        raise ValidationError('kind must be stock or money')
    return model


def _load(session, model, request_id: int):
    req = session.get(model, request_id)
    if not req:
        raise NotFound('Request not found')
    return req


def _claim(session, model, request_id: int, target: str, principal: Principal, rejection_reason: Optional[str] = None):
    values = {
        'status': target,
        'processed_by': principal.id,
        'processed_at': utcnow(),
    }
    if rejection_reason is not None:
        values['rejection_reason'] = rejection_reason
    res = session.execute(
        update(model)
        .where(model.id == request_id, model.status.in_(sorted(REQUEST_FSM.sources_for(target))))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        current = session.execute(select(model.status).where(model.id == request_id)).scalar_one_or_none()
        if current is None:
            raise NotFound('Request not found')
        REQUEST_FSM.assert_can_transition(current, target)
        raise AlreadyProcessed()


def _finish(session, req, effects) -> ApprovalResult:
    session.commit()
    session.refresh(req)
    return ApprovalResult(req, tuple(effects))


# ---------------- Creation ---------------- #

def create_stock_request(session, employee_id: int, product_id: int, qty, reason: Optional[str],
                         enforce_reason_length: bool = True, principal: Optional[Principal] = None) -> StockRequest:
    if principal is not None:
        authorize(principal, Module.REQUESTS, Action.CREATE)
    qty = positive_int(qty, 'quantity')
    reason = (reason or '').strip()
    if not reason:
        raise ValidationError('reason is required')
    if enforce_reason_length and len(reason) < MIN_STOCK_REASON_LENGTH:
        raise ValidationError(f'Reason must be at least {MIN_STOCK_REASON_LENGTH} characters')
    if session.get(Employee, employee_id) is None:
        raise NotFound('Employee not found')
    product = session.get(Product, product_id)
    if product is None:
        raise NotFound('Product not found')
    if product.status != Product.STATUS_ACTIVE:
        raise ValidationError('Product is not available')
    req = StockRequest(employee_id=employee_id, product_id=product_id, quantity=qty, reason=reason, status=STATUS_PENDING)
    session.add(req)
    session.commit()
    logger.info('Stock request %s created for employee %s (product %s x%s)', req.id, employee_id, product_id, qty)
    return req


def create_money_request(session, employee_id: int, amount, method: str, reference_number: Optional[str] = None,
                         principal: Optional[Principal] = None) -> MoneyRequest:
    if principal is not None:
        authorize(principal, Module.REQUESTS, Action.CREATE)
    amount = positive_decimal(amount, 'amount', minimum=MIN_MONEY_REQUEST)
    if method not in MoneyRequest.ALL_METHODS:
        raise ValidationError('method must be Cash or Online')
    reference_number = (reference_number or '').strip() or None
    if method == MoneyRequest.METHOD_ONLINE and not reference_number:
        raise ValidationError('Reference number is required for online transfers')
    employee = session.get(Employee, employee_id)
    if employee is None:
        raise NotFound('Employee not found')
    # advisory only; approval re-checks against live holdings
    available = getattr(employee, HOLDINGS_FIELDS[method]) or 0
    if available < amount:
        raise InsufficientHoldings(method, available, amount)
    req = MoneyRequest(
        employee_id=employee_id,
        amount=amount,
        method=method,
        reference_number=reference_number if method == MoneyRequest.METHOD_ONLINE else None,
        status=STATUS_PENDING,
    )
    session.add(req)
    session.commit()
    logger.info('Money request %s created for employee %s (%s %s)', req.id, employee_id, method, amount)
    return req


# ---------------- Approval / rejection ---------------- #

def approve_money_request(session, principal: Principal, request_id: int) -> ApprovalResult:
    authorize(principal, Module.REQUESTS, Action.APPROVE)
    req = _load(session, MoneyRequest, request_id)
    REQUEST_FSM.assert_can_transition(req.status, STATUS_APPROVED)
    if req.employee_id is None:
        raise NotFound('Employee not found')
    try:
        _claim(session, MoneyRequest, request_id, STATUS_APPROVED, principal)
        effects = [debit_holdings(session, req.employee_id, req.method, req.amount)]
        result = _finish(session, req, effects)
    except Exception:
        session.rollback()
        raise
    logger.info('Admin %s approved money request %s (%s %s)', principal.id, request_id, req.method, req.amount)
    return result


def approve_stock_request(session, principal: Principal, request_id: int) -> ApprovalResult:
    authorize(principal, Module.REQUESTS, Action.APPROVE)
    req = _load(session, StockRequest, request_id)
    REQUEST_FSM.assert_can_transition(req.status, STATUS_APPROVED)
    if req.employee_id is None or session.get(Employee, req.employee_id) is None:
        raise NotFound('Employee not found')
    if req.product_id is None:
        raise NotFound('Product not found')
    try:
        _claim(session, StockRequest, request_id, STATUS_APPROVED, principal)
        effects = [
            deduct_stock(session, req.product_id, req.quantity),
            allocate(session, req.employee_id, req.product_id, req.quantity),
        ]
        result = _finish(session, req, effects)
    except Exception:
        session.rollback()
        raise
    logger.info('Admin %s approved stock request %s (product %s x%s)', principal.id, request_id, req.product_id, req.quantity)
    return result


def _reject(session, principal: Principal, model, request_id: int, reason: Optional[str]) -> ApprovalResult:
    authorize(principal, Module.REQUESTS, Action.REJECT)
    reason = (reason or '').strip()
    if not reason:
        raise ValidationError('Rejection reason is required')
    req = _load(session, model, request_id)
    REQUEST_FSM.assert_can_transition(req.status, STATUS_REJECTED)
    try:
        _claim(session, model, request_id, STATUS_REJECTED, principal, rejection_reason=reason)
        result = _finish(session, req, [])
    except Exception:
        session.rollback()
        raise
    logger.info('Admin %s rejected %s request %s', principal.id, model.KIND, request_id)
    return result


def reject_money_request(session, principal: Principal, request_id: int, reason: Optional[str]) -> ApprovalResult:
    return _reject(session, principal, MoneyRequest, request_id, reason)


def reject_stock_request(session, principal: Principal, request_id: int, reason: Optional[str]) -> ApprovalResult:
    return _reject(session, principal, StockRequest, request_id, reason)


_HANDLERS = {
    (StockRequest.KIND, 'approve'): lambda s, p, rid, reason: approve_stock_request(s, p, rid),
    (StockRequest.KIND, 'reject'): reject_stock_request,
    (MoneyRequest.KIND, 'approve'): lambda s, p, rid, reason: approve_money_request(s, p, rid),
    (MoneyRequest.KIND, 'reject'): reject_money_request,
}


def process_request(session, principal: Principal, kind: str, request_id: int, action: Optional[str],
                    reason: Optional[str] = None) -> ApprovalResult:
    """Dispatch ``{action: approve|reject}`` to the matching transition."""
    _model_for(kind)
    handler = _HANDLERS.get((kind, action))
    if handler is None:
        raise ValidationError('action must be approve or reject')
    return handler(session, principal, request_id, reason)


def delete_request(session, principal: Principal, kind: str, request_id: int) -> None:
    require_super_admin(principal)
    model = _model_for(kind)
    req = _load(session, model, request_id)
    session.delete(req)
    session.commit()
    logger.info('Admin %s deleted %s request %s (status %s)', principal.id, kind, request_id, req.status)


__all__ = [
    'REQUEST_FSM', 'REQUEST_MODELS', 'ApprovalResult', 'create_stock_request', 'create_money_request',
    'approve_money_request', 'approve_stock_request', 'reject_money_request', 'reject_stock_request',
    'process_request', 'delete_request',
]
