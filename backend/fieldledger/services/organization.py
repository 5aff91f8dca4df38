from __future__ import annotations
from typing import Any, Dict, Optional
import logging

from sqlalchemy import select

from fieldledger.constants.permissions import Module, Action
from fieldledger.errors import ValidationError
from fieldledger.models.organization import OrganizationSettings
from fieldledger.services.policy import Principal, authorize
from fieldledger.utils.validation import optional_str, required_str

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ('street', 'city', 'state', 'pincode', 'country')
BANK_FIELDS = ('account_name', 'account_number', 'bank_name', 'ifsc_code')
FLAT_FIELDS = ('logo', 'phone', 'email', 'gstin', 'pan')


def current_settings(session) -> Optional[OrganizationSettings]:
    return session.execute(select(OrganizationSettings).order_by(OrganizationSettings.id).limit(1)).scalar_one_or_none()


def settings_json(org: Optional[OrganizationSettings]) -> Dict[str, Any]:
    """Nested settings document; an unsaved organization reads back as empty defaults."""
    if org is None:
        return {
            'company_name': '',
            'logo': None,
            'address': {'street': '', 'city': '', 'state': '', 'pincode': '', 'country': OrganizationSettings.DEFAULT_COUNTRY},
            'phone': None,
            'email': None,
            'gstin': None,
            'pan': None,
            'bank_details': {k: None for k in BANK_FIELDS},
        }
    return {
        'id': org.id,
        'company_name': org.company_name,
        'logo': org.logo,
        'address': {f: getattr(org, f'address_{f}') for f in ADDRESS_FIELDS},
        'phone': org.phone,
        'email': org.email,
        'gstin': org.gstin,
        'pan': org.pan,
        'bank_details': {
            'account_name': org.bank_account_name,
            'account_number': org.bank_account_number,
            'bank_name': org.bank_name,
            'ifsc_code': org.bank_ifsc_code,
        },
    }


def save_settings(session, principal: Principal, data: Dict[str, Any]) -> OrganizationSettings:
    """Create the settings row on first save, update it afterwards."""
    authorize(principal, Module.INVOICES, Action.ORG_SETTINGS)
    if not isinstance(data.get('company_name'), str) or not data['company_name'].strip():
        raise ValidationError('Company name is required')
    org = current_settings(session)
    created = org is None
    if created:
        org = OrganizationSettings(
            company_name='', address_street='', address_city='', address_state='', address_pincode='',
            address_country=OrganizationSettings.DEFAULT_COUNTRY,
        )
        session.add(org)
    org.company_name = required_str(data.get('company_name'), 'company_name')
    for f in FLAT_FIELDS:
        if f in data:
            setattr(org, f, optional_str(data.get(f)))
    address = data.get('address')
    if isinstance(address, dict):
        for f in ADDRESS_FIELDS:
            if f in address:
                value = optional_str(address.get(f)) or ''
                if f == 'country' and not value:
                    value = OrganizationSettings.DEFAULT_COUNTRY
                setattr(org, f'address_{f}', value)
    bank = data.get('bank_details')
    if isinstance(bank, dict):
        for f in BANK_FIELDS:
            if f in bank:
                column = f'bank_{f}' if f != 'bank_name' else 'bank_name'
                setattr(org, column, optional_str(bank.get(f)))
    session.commit()
    logger.info('Admin %s %s organization settings', principal.id, 'created' if created else 'updated')
    return org


__all__ = ['current_settings', 'settings_json', 'save_settings']
