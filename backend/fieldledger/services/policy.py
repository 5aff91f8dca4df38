from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging

from fieldledger.constants.permissions import Module, Action, ROLE_SUPER_ADMIN
from fieldledger.errors import Unauthorized, Forbidden
from fieldledger.services.permissions import PermissionMap, EMPTY_PERMISSIONS, can, sanitize_permissions, is_super_admin

logger = logging.getLogger(__name__)

# Fields any admin may change on their own account
SELF_SERVICE_FIELDS = frozenset({'name', 'password'})
# Fields a super-admin may change on a sub-admin
SUB_ADMIN_FIELDS = frozenset({'name', 'password', 'permissions', 'is_active', 'email'})


@dataclass(frozen=True)
class Principal:
    """The acting admin, passed explicitly into every service call."""
    id: int
    role: str
    permissions: PermissionMap = field(default_factory=lambda: EMPTY_PERMISSIONS)
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_super_admin(self) -> bool:
        return is_super_admin(self.role)

    @classmethod
    def from_admin(cls, admin) -> 'Principal':
        perms = EMPTY_PERMISSIONS if admin.role == ROLE_SUPER_ADMIN else sanitize_permissions(admin.permissions)
        return cls(id=admin.id, role=admin.role, permissions=perms, email=admin.email, name=admin.name)


def authorize(principal: Optional[Principal], module: Module, action: Action) -> Principal:
    if principal is None:
        raise Unauthorized()
    if not can(principal, module, action):
        # generic message; never reveal which module/action was missing
        raise Forbidden()
    return principal


def require_super_admin(principal: Optional[Principal]) -> Principal:
    if principal is None:
        raise Unauthorized()
    if not principal.is_super_admin:
        raise Forbidden()
    return principal


def assert_can_create_admin(principal: Optional[Principal]) -> Principal:
    return require_super_admin(principal)


def assert_can_update_admin(principal: Optional[Principal], target, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Return the subset of ``changes`` that may be applied to ``target``.

    Raises Forbidden when the principal may not touch the record at all or asks
    for a field it cannot write.
    """
    if principal is None:
        raise Unauthorized()
    requested = {k: v for k, v in changes.items() if v is not None}
    if 'role' in requested:
        # never writable through the update path
        requested.pop('role')
        logger.info('Ignored role change on admin %s by %s', target.id, principal.id)
    is_self = principal.id == target.id
    if target.role == ROLE_SUPER_ADMIN:
        if not is_self:
            raise Forbidden()
        ignored = sorted(set(requested) - SELF_SERVICE_FIELDS)
        if ignored:
            logger.info('Ignored immutable super-admin fields %s on admin %s', ignored, target.id)
        return {k: v for k, v in requested.items() if k in SELF_SERVICE_FIELDS}
    if principal.is_super_admin:
        unknown = set(requested) - SUB_ADMIN_FIELDS
        if unknown:
            raise Forbidden()
        return requested
    if not is_self:
        raise Forbidden()
    if set(requested) - SELF_SERVICE_FIELDS:
        raise Forbidden()
    return requested


def assert_can_delete_admin(principal: Optional[Principal], target) -> Principal:
    require_super_admin(principal)
    if principal.id == target.id:
        raise Forbidden('You cannot delete your own account')
    if target.role == ROLE_SUPER_ADMIN:
        raise Forbidden('Super admin account cannot be deleted')
    return principal


__all__ = [
    'Principal', 'authorize', 'require_super_admin', 'assert_can_create_admin',
    'assert_can_update_admin', 'assert_can_delete_admin',
]
