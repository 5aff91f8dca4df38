from __future__ import annotations
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple
import logging

from sqlalchemy import select, func

from fieldledger.constants.permissions import Module, Action, ROLE_SUPER_ADMIN, ROLE_SUB_ADMIN
from fieldledger.errors import NotFound, ValidationError, Unauthorized, Forbidden
from fieldledger.models.admin import Admin
from fieldledger.models.base import utcnow
from fieldledger.services.permissions import validate_permissions, default_permissions
from fieldledger.services.policy import (
    Principal, authorize, assert_can_create_admin, assert_can_update_admin, assert_can_delete_admin,
)
from fieldledger.services.tokens import generate_reset_token, hash_token, token_expired
from fieldledger.utils.validation import required_str, validate_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _password(value: Any) -> str:
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    return value


def _email_taken(session, email: str, exclude_id: Optional[int] = None) -> bool:
    q = select(Admin.id).where(func.lower(Admin.email) == email)
    if exclude_id is not None:
        q = q.where(Admin.id != exclude_id)
    return session.execute(q).first() is not None


def seed_super_admin(session, email: str, password: str) -> Admin:
    """Ensure the root account exists. Safe to run repeatedly.

    An existing super-admin wins; otherwise an admin with ``email`` is promoted
    (covers rows created before roles existed) or a new one is created.
    """
    email = email.strip().lower()
    existing = session.execute(select(Admin).where(Admin.role == ROLE_SUPER_ADMIN)).scalars().first()
    if existing:
        return existing
    admin = session.execute(select(Admin).where(func.lower(Admin.email) == email)).scalar_one_or_none()
    if admin:
        admin.role = ROLE_SUPER_ADMIN
        admin.permissions = default_permissions(ROLE_SUPER_ADMIN)
        admin.is_active = True
        logger.info('Promoted admin %s to super-admin', admin.id)
    else:
        admin = Admin(email=email, name='Super Admin', role=ROLE_SUPER_ADMIN,
                      permissions=default_permissions(ROLE_SUPER_ADMIN), is_active=True, password_hash='')
        admin.set_password(password)
        session.add(admin)
        logger.info('Seeded super-admin %s', email)
    session.commit()
    return admin


def authenticate_admin(session, email: Optional[str], password: Optional[str]) -> Admin:
    if not email or not password:
        raise ValidationError('email and password required')
    admin = session.execute(select(Admin).where(func.lower(Admin.email) == email.strip().lower())).scalar_one_or_none()
    if not admin or not admin.verify_password(password):
        raise Unauthorized('Invalid credentials')
    if not admin.is_active:
        raise Forbidden('Account is deactivated')
    return admin


def list_admins(session, principal: Principal):
    authorize(principal, Module.ADMINS, Action.READ)
    return session.query(Admin)


def get_admin(session, principal: Principal, admin_id: int) -> Admin:
    if principal is None or principal.id != admin_id:
        authorize(principal, Module.ADMINS, Action.READ)
    admin = session.get(Admin, admin_id)
    if not admin:
        raise NotFound('Admin not found')
    return admin


def create_sub_admin(session, principal: Principal, email: Any, password: Any, name: Any,
                     permissions: Optional[Dict[str, Any]] = None) -> Admin:
    assert_can_create_admin(principal)
    email = validate_email(email)
    name = required_str(name, 'name')
    password = _password(password)
    perms = validate_permissions(permissions) if permissions is not None else default_permissions(ROLE_SUB_ADMIN)
    if _email_taken(session, email):
        raise ValidationError('An admin with this email already exists')
    admin = Admin(email=email, name=name, role=ROLE_SUB_ADMIN, permissions=perms, is_active=True, password_hash='')
    admin.set_password(password)
    session.add(admin)
    session.commit()
    logger.info('Admin %s created sub-admin %s', principal.id, admin.id)
    return admin


def update_admin(session, principal: Principal, admin_id: int, changes: Dict[str, Any]) -> Admin:
    target = session.get(Admin, admin_id)
    if not target:
        raise NotFound('Admin not found')
    allowed = assert_can_update_admin(principal, target, changes)
    try:
        if 'name' in allowed:
            target.name = required_str(allowed['name'], 'name')
        if 'password' in allowed:
            target.set_password(_password(allowed['password']))
        if 'email' in allowed:
            email = validate_email(allowed['email'])
            if _email_taken(session, email, exclude_id=target.id):
                raise ValidationError('An admin with this email already exists')
            target.email = email
        if 'permissions' in allowed:
            target.permissions = validate_permissions(allowed['permissions'])
        if 'is_active' in allowed:
            if not isinstance(allowed['is_active'], bool):
                raise ValidationError('is_active must be a boolean')
            target.is_active = allowed['is_active']
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info('Admin %s updated admin %s (%s)', principal.id, target.id, sorted(allowed))
    return target


def delete_admin(session, principal: Principal, admin_id: int) -> None:
    target = session.get(Admin, admin_id)
    if not target:
        raise NotFound('Admin not found')
    assert_can_delete_admin(principal, target)
    session.delete(target)
    session.commit()
    logger.info('Admin %s deleted admin %s', principal.id, admin_id)


def issue_admin_reset_token(session, email: Optional[str], ttl: timedelta) -> Tuple[Optional[Admin], Optional[str]]:
    """Store a reset token for ``email``; returns (None, None) for unknown or inactive accounts."""
    if not email:
        raise ValidationError('email required')
    admin = session.execute(select(Admin).where(func.lower(Admin.email) == email.strip().lower())).scalar_one_or_none()
    if not admin or not admin.is_active:
        return None, None
    token = generate_reset_token()
    admin.reset_token = hash_token(token)
    admin.reset_token_expiry = utcnow() + ttl
    session.commit()
    return admin, token


def reset_admin_password(session, token: Optional[str], new_password: Any) -> Admin:
    if not token:
        raise ValidationError('token required')
    password = _password(new_password)
    admin = session.execute(select(Admin).where(Admin.reset_token == hash_token(token))).scalar_one_or_none()
    if not admin or token_expired(admin.reset_token_expiry):
        raise ValidationError('Invalid or expired reset token')
    admin.set_password(password)
    admin.reset_token = None
    admin.reset_token_expiry = None
    session.commit()
    logger.info('Admin %s reset their password', admin.id)
    return admin


__all__ = [
    'seed_super_admin', 'authenticate_admin', 'list_admins', 'get_admin', 'create_sub_admin',
    'update_admin', 'delete_admin', 'issue_admin_reset_token', 'reset_admin_password',
]
