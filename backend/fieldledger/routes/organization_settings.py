from __future__ import annotations
from flask import Blueprint, request
from fieldledger import get_db
from fieldledger.constants.permissions import Module, Action
from fieldledger.decorators.auth import require_permission, current_principal
from fieldledger.decorators.audit import audit_log
from fieldledger.services.organization import current_settings, settings_json, save_settings

organization_settings_bp = Blueprint('organization_settings', __name__)


@organization_settings_bp.get('')
@require_permission(Module.INVOICES, Action.READ)
def get_settings():
    return settings_json(current_settings(get_db()))


@organization_settings_bp.put('')
@require_permission(Module.INVOICES, Action.ORG_SETTINGS)
@audit_log('ORG_SETTINGS.UPDATE', entity='OrganizationSettings', entity_id_key='id', meta_keys=['company_name'])
def put_settings():
    return settings_json(save_settings(get_db(), current_principal(), request.json or {}))
