"""Central enum definitions for permission modules and actions.

Stored admin permission maps are keyed by ``Module`` values and hold lists of
``Action`` values. Extend cautiously; never rename a value silently since stored
admin documents reference them by string.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, List, Tuple


class Module(str, Enum):
    DASHBOARD = 'dashboard'
    PRODUCTS = 'products'
    EMPLOYEES = 'employees'
    CUSTOMERS = 'customers'
    PRODUCT_REQUESTS = 'productRequests'
    SALES = 'sales'
    INVOICES = 'invoices'
    REQUESTS = 'requests'
    ADMINS = 'admins'


class Action(str, Enum):
    READ = 'read'
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    TOGGLE_STATUS = 'toggleStatus'
    ASSIGN_PRODUCTS = 'assignProducts'
    UPDATE_STATUS = 'updateStatus'
    MANAGE_NOTES = 'manageNotes'
    APPROVE = 'approve'
    REJECT = 'reject'
    ORG_SETTINGS = 'orgSettings'


STANDARD_ACTIONS: Tuple[Action, ...] = (Action.READ, Action.CREATE, Action.UPDATE, Action.DELETE)
SPECIAL_ACTIONS: Tuple[Action, ...] = (
    Action.TOGGLE_STATUS,
    Action.ASSIGN_PRODUCTS,
    Action.UPDATE_STATUS,
    Action.MANAGE_NOTES,
    Action.APPROVE,
    Action.REJECT,
    Action.ORG_SETTINGS,
)

ROLE_SUPER_ADMIN = 'super-admin'
ROLE_SUB_ADMIN = 'sub-admin'
ALL_ROLES = (ROLE_SUPER_ADMIN, ROLE_SUB_ADMIN)

MODULE_STANDARD_ACTIONS: Dict[Module, Tuple[Action, ...]] = {
    Module.DASHBOARD: (Action.READ,),
    Module.PRODUCTS: (Action.READ, Action.CREATE, Action.UPDATE, Action.DELETE),
    Module.EMPLOYEES: (Action.READ, Action.CREATE, Action.UPDATE, Action.DELETE),
    # customers sign up from the mobile app
    Module.CUSTOMERS: (Action.READ, Action.UPDATE, Action.DELETE),
    # product requests come from customers
    Module.PRODUCT_REQUESTS: (Action.READ, Action.UPDATE, Action.DELETE),
    # sales are immutable
    Module.SALES: (Action.READ, Action.CREATE, Action.DELETE),
    Module.INVOICES: (Action.READ, Action.CREATE, Action.UPDATE, Action.DELETE),
    # requests only move through approve/reject
    Module.REQUESTS: (Action.READ, Action.CREATE),
    Module.ADMINS: (Action.READ, Action.CREATE, Action.UPDATE, Action.DELETE),
}

MODULE_SPECIAL_ACTIONS: Dict[Module, Tuple[Action, ...]] = {
    Module.DASHBOARD: (),
    Module.PRODUCTS: (Action.TOGGLE_STATUS,),
    Module.EMPLOYEES: (Action.TOGGLE_STATUS, Action.ASSIGN_PRODUCTS),
    Module.CUSTOMERS: (),
    Module.PRODUCT_REQUESTS: (Action.UPDATE_STATUS, Action.MANAGE_NOTES),
    Module.SALES: (),
    Module.INVOICES: (Action.ORG_SETTINGS,),
    Module.REQUESTS: (Action.APPROVE, Action.REJECT),
    Module.ADMINS: (),
}

MODULE_ACTIONS: Dict[Module, Tuple[Action, ...]] = {
    m: MODULE_STANDARD_ACTIONS[m] + MODULE_SPECIAL_ACTIONS[m] for m in Module
}

MODULE_LABELS: Dict[Module, str] = {
    Module.DASHBOARD: 'Dashboard',
    Module.PRODUCTS: 'Products',
    Module.EMPLOYEES: 'Employees',
    Module.CUSTOMERS: 'Customers',
    Module.PRODUCT_REQUESTS: 'Product Requests',
    Module.SALES: 'Sales',
    Module.INVOICES: 'Invoices',
    Module.REQUESTS: 'Requests (Stock/Money)',
    Module.ADMINS: 'Admin Management',
}

SPECIAL_ACTION_LABELS: Dict[Action, str] = {
    Action.TOGGLE_STATUS: 'Toggle Status',
    Action.ASSIGN_PRODUCTS: 'Assign Products',
    Action.UPDATE_STATUS: 'Update Status',
    Action.MANAGE_NOTES: 'Manage Notes',
    Action.APPROVE: 'Approve',
    Action.REJECT: 'Reject',
    Action.ORG_SETTINGS: 'Org Settings',
}

# Plain-string forms as stored on Admin.permissions
SUPER_ADMIN_PERMISSIONS: Dict[str, List[str]] = {
    m.value: [a.value for a in MODULE_ACTIONS[m]] for m in Module
}

DEFAULT_SUB_ADMIN_PERMISSIONS: Dict[str, List[str]] = {
    Module.DASHBOARD.value: [Action.READ.value],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for module, actions in MODULE_ACTIONS.items():
        for act in actions:
            codes.append(f"{module.value}.{act.value}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()
