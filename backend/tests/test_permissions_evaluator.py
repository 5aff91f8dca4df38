from types import SimpleNamespace
import pytest
from fieldledger.constants.permissions import (
    Module, Action, MODULE_ACTIONS, ALL_PERMISSION_CODES, ROLE_SUPER_ADMIN, ROLE_SUB_ADMIN,
)
from fieldledger.errors import ValidationError
from fieldledger.services.permissions import (
    can, can_any, can_access_module, accessible_modules, first_accessible_module,
    sanitize_permissions, validate_permissions, default_permissions, is_special_action,
)


def sub(perms):
    return SimpleNamespace(role=ROLE_SUB_ADMIN, permissions=perms)


SUPER = SimpleNamespace(role=ROLE_SUPER_ADMIN, permissions=None)


def test_super_admin_passes_every_check_without_a_map():
    for module, actions in MODULE_ACTIONS.items():
        for action in actions:
            assert can(SUPER, module, action)
    assert accessible_modules(SUPER) == list(Module)
    assert first_accessible_module(SUPER) is Module.DASHBOARD


def test_sub_admin_needs_explicit_grant():
    p = sub({'products': ['read', 'toggleStatus']})
    assert can(p, Module.PRODUCTS, Action.READ)
    assert can(p, 'products', 'toggleStatus')
    assert not can(p, Module.PRODUCTS, Action.DELETE)
    assert not can(p, Module.EMPLOYEES, Action.READ)


def test_action_outside_module_vocabulary_is_denied_even_if_stored():
    # requests has no delete, dashboard only has read
    p = sub({'requests': ['read', 'delete'], 'dashboard': ['read', 'create']})
    assert can(p, Module.REQUESTS, Action.READ)
    assert not can(p, Module.REQUESTS, Action.DELETE)
    assert not can(p, Module.DASHBOARD, Action.CREATE)


@pytest.mark.parametrize('perms', [None, {}, 'products', {'products': 'read'}, {'products': None}])
def test_malformed_maps_grant_nothing(perms):
    assert not can(sub(perms), Module.PRODUCTS, Action.READ)
    assert accessible_modules(sub(perms)) == []
    assert first_accessible_module(sub(perms)) is None


def test_unknown_module_or_action_strings_are_false():
    p = sub({'products': ['read']})
    assert not can(p, 'warehouse', 'read')
    assert not can(p, 'products', 'explode')
    assert not can(None, Module.PRODUCTS, Action.READ)


def test_can_any_and_module_access():
    p = sub({'requests': ['approve']})
    assert can_any(p, Module.REQUESTS, [Action.APPROVE, Action.REJECT])
    assert not can_any(p, Module.REQUESTS, [Action.READ, Action.REJECT])
    # approve alone does not make the module visible
    assert not can_access_module(p, Module.REQUESTS)


def test_accessible_modules_follow_registry_order():
    p = sub({'admins': ['read'], 'sales': ['read'], 'products': ['read']})
    assert accessible_modules(p) == [Module.PRODUCTS, Module.SALES, Module.ADMINS]
    assert first_accessible_module(p) is Module.PRODUCTS


def test_sanitize_drops_unknowns_dedupes_and_orders():
    raw = {
        'products': ['toggleStatus', 'read', 'read', 'bogus'],
        'unknown': ['read'],
        'requests': ['delete'],
        'sales': 'read',
    }
    clean = sanitize_permissions(raw)
    assert dict(clean) == {Module.PRODUCTS: (Action.READ, Action.TOGGLE_STATUS)}
    with pytest.raises(TypeError):
        clean[Module.SALES] = (Action.READ,)  # type: ignore[index]
    assert dict(sanitize_permissions(None)) == {}


def test_validate_permissions_rejects_unknown_entries():
    with pytest.raises(ValidationError) as exc:
        validate_permissions({'products': ['read', 'fly'], 'warehouse': ['read'], 'requests': ['delete']})
    errors = exc.value.extra['errors']
    assert 'products.fly not allowed' in errors
    assert 'unknown module warehouse' in errors
    assert 'requests.delete not allowed' in errors
    assert validate_permissions({'employees': ['assignProducts', 'read']}) == {'employees': ['read', 'assignProducts']}
    with pytest.raises(ValidationError):
        validate_permissions(['products.read'])


def test_defaults_and_special_actions():
    assert default_permissions(ROLE_SUB_ADMIN) == {'dashboard': ['read']}
    full = default_permissions(ROLE_SUPER_ADMIN)
    assert sum(len(v) for v in full.values()) == len(ALL_PERMISSION_CODES)
    assert default_permissions('guest') == {}
    assert is_special_action(Action.APPROVE)
    assert is_special_action('assignProducts')
    assert not is_special_action(Action.READ)
    assert 'requests.approve' in ALL_PERMISSION_CODES
    assert 'requests.delete' not in ALL_PERMISSION_CODES
