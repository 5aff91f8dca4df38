from __future__ import annotations
from flask import Blueprint, request, current_app
from flask_jwt_extended import create_access_token
from fieldledger import get_db
from fieldledger.decorators.auth import require_admin, current_principal, KIND_ADMIN
from fieldledger.routes.admins import _admin_json
from fieldledger.services.admins import authenticate_admin, get_admin, issue_admin_reset_token, reset_admin_password
from fieldledger.services.audit import add_audit
from fieldledger.services.notify import send_password_reset_email
from fieldledger.services.permissions import accessible_modules, first_accessible_module
from fieldledger.services.policy import Principal

auth_bp = Blueprint('auth', __name__)

GENERIC_RESET_MESSAGE = 'If an account with that email exists, a password reset link has been sent.'


def _session_json(principal: Principal, admin):
    landing = first_accessible_module(principal)
    return {
        'admin': _admin_json(admin),
        'accessible_modules': [m.value for m in accessible_modules(principal)],
        'redirect': landing.value if landing else None,
    }


@auth_bp.post('/login')
def login():
    session = get_db()
    data = request.json or {}
    admin = authenticate_admin(session, data.get('email'), data.get('password'))
    principal = Principal.from_admin(admin)
    token = create_access_token(identity=str(admin.id), additional_claims={
        'kind': KIND_ADMIN,
        'role': admin.role,
    })
    add_audit(session, 'AUTH.LOGIN', 'Admin', admin.id, principal=principal)
    session.commit()
    return {'access_token': token, **_session_json(principal, admin)}


@auth_bp.get('/me')
@require_admin
def me():
    principal = current_principal()
    admin = get_admin(get_db(), principal, principal.id)
    return _session_json(principal, admin)


@auth_bp.post('/forgot-password')
def forgot_password():
    data = request.json or {}
    admin, token = issue_admin_reset_token(get_db(), data.get('email'), current_app.config['ADMIN_RESET_TOKEN_TTL'])
    if admin is not None:
        send_password_reset_email(admin.email, token, admin.name)
    return {'message': GENERIC_RESET_MESSAGE}


@auth_bp.post('/reset-password')
def reset_password():
    data = request.json or {}
    reset_admin_password(get_db(), data.get('token'), data.get('password'))
    return {'message': 'Password has been reset successfully'}
