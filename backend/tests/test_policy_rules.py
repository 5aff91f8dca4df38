from types import SimpleNamespace
import pytest
from fieldledger.constants.permissions import Module, Action, ROLE_SUPER_ADMIN, ROLE_SUB_ADMIN
from fieldledger.errors import Unauthorized, Forbidden
from fieldledger.services.permissions import sanitize_permissions
from fieldledger.services.policy import (
    Principal, authorize, require_super_admin, assert_can_update_admin, assert_can_delete_admin,
)

ROOT = Principal(id=1, role=ROLE_SUPER_ADMIN)
ALICE = Principal(id=2, role=ROLE_SUB_ADMIN, permissions=sanitize_permissions({'admins': ['read', 'update']}))
ROOT_ROW = SimpleNamespace(id=1, role=ROLE_SUPER_ADMIN)
ALICE_ROW = SimpleNamespace(id=2, role=ROLE_SUB_ADMIN)
BOB_ROW = SimpleNamespace(id=3, role=ROLE_SUB_ADMIN)


def test_authorize_without_principal_is_unauthorized():
    with pytest.raises(Unauthorized):
        authorize(None, Module.PRODUCTS, Action.READ)


def test_authorize_denial_is_generic():
    with pytest.raises(Forbidden) as exc:
        authorize(ALICE, Module.REQUESTS, Action.APPROVE)
    assert exc.value.description == 'Forbidden'
    assert authorize(ALICE, Module.ADMINS, Action.READ) is ALICE
    assert authorize(ROOT, Module.REQUESTS, Action.APPROVE) is ROOT


def test_principal_from_admin_row():
    row = SimpleNamespace(id=9, role=ROLE_SUB_ADMIN, permissions={'sales': ['read', 'nope']}, email='x@example.com', name='X')
    p = Principal.from_admin(row)
    assert dict(p.permissions) == {Module.SALES: (Action.READ,)}
    assert not p.is_super_admin
    root = Principal.from_admin(SimpleNamespace(id=1, role=ROLE_SUPER_ADMIN, permissions={'sales': ['read']}, email='r', name='R'))
    assert dict(root.permissions) == {}
    assert root.is_super_admin


def test_principal_defaults_to_empty_frozen_permissions():
    bare = Principal(id=5, role=ROLE_SUB_ADMIN)
    assert dict(bare.permissions) == {}
    assert bare.permissions is Principal(id=6, role=ROLE_SUB_ADMIN).permissions
    with pytest.raises(TypeError):
        bare.permissions[Module.SALES] = (Action.READ,)
    assert not authorize_quietly(bare)


def authorize_quietly(principal):
    try:
        authorize(principal, Module.DASHBOARD, Action.READ)
    except Forbidden:
        return False
    return True


def test_super_admin_edits_sub_admin_and_role_is_ignored():
    allowed = assert_can_update_admin(ROOT, BOB_ROW, {
        'name': 'Bob', 'permissions': {'sales': ['read']}, 'is_active': False, 'role': ROLE_SUPER_ADMIN,
    })
    assert allowed == {'name': 'Bob', 'permissions': {'sales': ['read']}, 'is_active': False}


def test_super_admin_cannot_write_unknown_fields():
    with pytest.raises(Forbidden):
        assert_can_update_admin(ROOT, BOB_ROW, {'reset_token': 'x'})


def test_super_admin_record_is_self_service_only():
    allowed = assert_can_update_admin(ROOT, ROOT_ROW, {'name': 'Root', 'email': 'new@example.com', 'is_active': False})
    assert allowed == {'name': 'Root'}
    with pytest.raises(Forbidden):
        assert_can_update_admin(ALICE, ROOT_ROW, {'name': 'Mallory'})


def test_sub_admin_may_only_touch_own_name_and_password():
    assert assert_can_update_admin(ALICE, ALICE_ROW, {'name': 'Alice', 'password': 'longenough'}) == {
        'name': 'Alice', 'password': 'longenough',
    }
    with pytest.raises(Forbidden):
        assert_can_update_admin(ALICE, ALICE_ROW, {'permissions': {'admins': ['delete']}})
    with pytest.raises(Forbidden):
        # admins.update does not reach other accounts
        assert_can_update_admin(ALICE, BOB_ROW, {'name': 'Bobby'})


def test_delete_rules():
    with pytest.raises(Forbidden) as exc:
        assert_can_delete_admin(ROOT, ROOT_ROW)
    assert exc.value.description == 'You cannot delete your own account'
    with pytest.raises(Forbidden):
        assert_can_delete_admin(ALICE, BOB_ROW)
    with pytest.raises(Forbidden):
        assert_can_delete_admin(Principal(id=5, role=ROLE_SUPER_ADMIN), ROOT_ROW)
    assert assert_can_delete_admin(ROOT, BOB_ROW) is ROOT


def test_require_super_admin():
    with pytest.raises(Unauthorized):
        require_super_admin(None)
    with pytest.raises(Forbidden):
        require_super_admin(ALICE)
    assert require_super_admin(ROOT) is ROOT
