from __future__ import annotations
from flask import Blueprint, request
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_permission, current_principal
from fieldledger.decorators.audit import audit_log
from fieldledger.models.base import isoformat
from fieldledger.models.invoice import Invoice
from fieldledger.services.invoices import get_invoice, create_invoice, update_invoice, delete_invoice
from fieldledger.utils.filters import apply_filters
from fieldledger.utils.listing import paginated_response
from fieldledger.utils.sorting import apply_multi_sort

invoices_bp = Blueprint('invoices', __name__)


@invoices_bp.get('')
@require_permission(Module.INVOICES, Action.READ)
def list_invoices():
    q = get_db().query(Invoice)
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(Invoice.status == v), 'validate': lambda v: v in Invoice.ALL_STATUSES},
        'search': {'op': lambda qu, v: qu.filter(Invoice.invoice_number.ilike(f'%{v}%') | Invoice.customer_name.ilike(f'%{v}%'))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'invoice_number': Invoice.invoice_number,
        'date_of_issue': Invoice.date_of_issue,
        'due_date': Invoice.due_date,
        'total': Invoice.total,
        'created_at': Invoice.created_at,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Invoice.id, default=Invoice.created_at.desc())
    return paginated_response(q, invoice_json)


@invoices_bp.get('/<int:invoice_id>')
@require_permission(Module.INVOICES, Action.READ)
def get_one(invoice_id: int):
    return invoice_json(get_invoice(get_db(), invoice_id))


@invoices_bp.post('')
@require_permission(Module.INVOICES, Action.CREATE)
@audit_log('INVOICE.CREATE', entity='Invoice', entity_id_key='id', meta_keys=['invoice_number', 'total'])
def create():
    inv = create_invoice(get_db(), current_principal(), request.json or {})
    return invoice_json(inv), 201


@invoices_bp.put('/<int:invoice_id>')
@require_permission(Module.INVOICES, Action.UPDATE)
@audit_log(
    'INVOICE.UPDATE',
    entity='Invoice',
    entity_id_key='id',
    diff_keys=['status', 'total', 'due_date', 'notes'],
    pre_fetch=lambda a, kw: _prefetch_invoice(kw.get('invoice_id')),
)
def update(invoice_id: int):
    inv = update_invoice(get_db(), current_principal(), invoice_id, request.json or {})
    return invoice_json(inv)


@invoices_bp.delete('/<int:invoice_id>')
@require_permission(Module.INVOICES, Action.DELETE)
@audit_log('INVOICE.DELETE', entity='Invoice', entity_id_arg='invoice_id')
def delete(invoice_id: int):
    delete_invoice(get_db(), current_principal(), invoice_id)
    return {'deleted': True}


def invoice_json(inv: Invoice):
    return {
        'id': inv.id,
        'invoice_number': inv.invoice_number,
        'date_of_issue': isoformat(inv.date_of_issue),
        'due_date': isoformat(inv.due_date),
        'customer': {
            'name': inv.customer_name,
            'address': inv.customer_address,
            'city': inv.customer_city,
            'state': inv.customer_state,
            'pincode': inv.customer_pincode,
            'phone': inv.customer_phone,
            'email': inv.customer_email,
        },
        'items': [
            {
                'id': i.id,
                'product_id': i.product_id,
                'description': i.description,
                'quantity': i.quantity,
                'unit_price': i.unit_price,
                'amount': i.amount,
            }
            for i in inv.items
        ],
        'subtotal': inv.subtotal,
        'tax_rate': inv.tax_rate,
        'tax_amount': inv.tax_amount,
        'discount': inv.discount,
        'total': inv.total,
        'amount_due': inv.amount_due,
        'notes': inv.notes,
        'status': inv.status,
        'created_at': isoformat(inv.created_at),
    }


def _prefetch_invoice(invoice_id: int):
    inv = get_db().get(Invoice, invoice_id)
    if not inv:
        return {}
    return invoice_json(inv)
