"""Permission evaluator.

Pure functions over a principal's role and permission map. Nothing here touches
the database or the request context, so the same checks back API gating and any
affordance decisions a client wants to mirror.

A principal is anything exposing ``role`` and ``permissions``. ``permissions``
may be a sanitized ``PermissionMap`` (``Module`` -> tuple of ``Action``) or the
raw JSON stored on an admin row; unknown keys and values are never trusted.
"""
from __future__ import annotations
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from fieldledger.constants.permissions import (
    Module, Action, MODULE_ACTIONS, SPECIAL_ACTIONS, ROLE_SUPER_ADMIN, ROLE_SUB_ADMIN,
    SUPER_ADMIN_PERMISSIONS, DEFAULT_SUB_ADMIN_PERMISSIONS,
)
from fieldledger.errors import ValidationError

PermissionMap = Mapping[Module, Tuple[Action, ...]]
ModuleLike = Union[Module, str]
ActionLike = Union[Action, str]

EMPTY_PERMISSIONS: PermissionMap = MappingProxyType({})


def _as_module(value: Any) -> Optional[Module]:
    if isinstance(value, Module):
        return value
    try:
        return Module(value)
    except (ValueError, TypeError):
        return None


def _as_action(value: Any) -> Optional[Action]:
    if isinstance(value, Action):
        return value
    try:
        return Action(value)
    except (ValueError, TypeError):
        return None


def is_super_admin(role: Any) -> bool:
    return role == ROLE_SUPER_ADMIN


def is_special_action(action: ActionLike) -> bool:
    return _as_action(action) in SPECIAL_ACTIONS


def _granted_actions(permissions: Any, module: Module) -> Iterable[Any]:
    if not isinstance(permissions, Mapping):
        return ()
    granted = permissions.get(module)
    if granted is None:
        granted = permissions.get(module.value)
    if not isinstance(granted, (list, tuple, set, frozenset)):
        return ()
    return granted


def can(principal: Any, module: ModuleLike, action: ActionLike) -> bool:
    """Return True when ``principal`` may perform ``action`` on ``module``.

    Super-admins pass without a lookup. Everyone else needs the action both in
    their stored map and in the module's vocabulary.
    """
    if principal is None:
        return False
    if is_super_admin(getattr(principal, 'role', None)):
        return True
    mod = _as_module(module)
    act = _as_action(action)
    if mod is None or act is None:
        return False
    if act not in MODULE_ACTIONS[mod]:
        return False
    for granted in _granted_actions(getattr(principal, 'permissions', None), mod):
        if _as_action(granted) is act:
            return True
    return False


def can_any(principal: Any, module: ModuleLike, actions: Iterable[ActionLike]) -> bool:
    return any(can(principal, module, a) for a in actions)


def can_access_module(principal: Any, module: ModuleLike) -> bool:
    return can(principal, module, Action.READ)


def accessible_modules(principal: Any) -> List[Module]:
    return [m for m in Module if can_access_module(principal, m)]


def first_accessible_module(principal: Any) -> Optional[Module]:
    """Landing module after login; None means nothing is readable."""
    mods = accessible_modules(principal)
    return mods[0] if mods else None


def sanitize_permissions(raw: Any) -> PermissionMap:
    """Project stored permission JSON onto the registry.

    Unknown modules and actions are dropped, duplicates collapse, and actions
    come back in vocabulary order. The result is read-only.
    """
    if not isinstance(raw, Mapping):
        return EMPTY_PERMISSIONS
    out: Dict[Module, Tuple[Action, ...]] = {}
    for key, values in raw.items():
        mod = _as_module(key)
        if mod is None or not isinstance(values, (list, tuple, set, frozenset)):
            continue
        wanted = {a for a in (_as_action(v) for v in values) if a is not None}
        kept = tuple(a for a in MODULE_ACTIONS[mod] if a in wanted)
        if kept:
            out[mod] = kept
    return MappingProxyType(out)


def validate_permissions(raw: Any) -> Dict[str, List[str]]:
    """Write-path check: reject anything outside the registry instead of dropping it."""
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValidationError('permissions must be an object of module -> actions')
    errors: List[str] = []
    for key, values in raw.items():
        mod = _as_module(key)
        if mod is None:
            errors.append(f'unknown module {key}')
            continue
        if not isinstance(values, (list, tuple)):
            errors.append(f'{key} must be a list')
            continue
        for v in values:
            act = _as_action(v)
            if act is None or act not in MODULE_ACTIONS[mod]:
                errors.append(f'{key}.{v} not allowed')
    if errors:
        raise ValidationError('Invalid permissions', errors=errors)
    return {m.value: [a.value for a in acts] for m, acts in sanitize_permissions(raw).items()}


def default_permissions(role: str) -> Dict[str, List[str]]:
    if is_super_admin(role):
        return {k: list(v) for k, v in SUPER_ADMIN_PERMISSIONS.items()}
    if role == ROLE_SUB_ADMIN:
        return {k: list(v) for k, v in DEFAULT_SUB_ADMIN_PERMISSIONS.items()}
    return {}


def serialize_permissions(perms: PermissionMap) -> Dict[str, List[str]]:
    return {m.value: [a.value for a in acts] for m, acts in perms.items()}


__all__ = [
    'PermissionMap', 'can', 'can_any', 'can_access_module', 'accessible_modules', 'first_accessible_module',
    'sanitize_permissions', 'validate_permissions', 'default_permissions', 'serialize_permissions',
    'is_super_admin', 'is_special_action',
]
