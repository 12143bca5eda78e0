"""
Permission table tests (pure logic, no database).

Tests that verify:
1. Every (role, operation) pair resolves to the documented rule
2. Cross-tenant denials surface as 404, role denials as 403
3. Members may only mutate tasks assigned to them
4. Tenant admins can never delete themselves

Run: pytest backend/test_authz.py -v
"""

import pytest

from backend.auth_context import AuthContext
from backend.authz import (
    PERMISSIONS,
    DenyReason,
    Operation,
    Rule,
    authorize,
    enforce,
    enforce_role,
    require_self_delete_guard,
    rule_for,
)
from backend.errors import AuthorizationError, NotFoundError
from backend.models import Role


def _identity(role, tenant_id="tenant-a", user_id="user-1"):
    return AuthContext(user_id=user_id, tenant_id=tenant_id, role=role, email=f"{user_id}@example.com")


SYSTEM = _identity(Role.system_admin, tenant_id=None, user_id="root")
ADMIN = _identity(Role.tenant_admin, user_id="admin-1")
MEMBER = _identity(Role.member, user_id="member-1")


class TestPermissionTable:
    @pytest.mark.parametrize("op", [Operation.TENANT_LIST, Operation.TENANT_READ, Operation.TENANT_UPDATE,
                                    Operation.TENANT_DELETE, Operation.DASHBOARD_READ, Operation.AUDIT_LIST])
    def test_system_admin_allowed_system_wide(self, op):
        assert rule_for(Role.system_admin, op) == Rule.ALLOW

    @pytest.mark.parametrize("op", [Operation.USER_LIST, Operation.PROJECT_CREATE, Operation.TASK_CLAIM,
                                    Operation.TASK_DELETE])
    def test_system_admin_has_no_tenant_crud(self, op):
        assert rule_for(Role.system_admin, op) == Rule.DENY

    def test_tenant_admin_owns_everything_in_tenant(self):
        for op in Operation:
            if op in (Operation.TENANT_LIST, Operation.TENANT_DELETE):
                assert rule_for(Role.tenant_admin, op) == Rule.DENY
            else:
                assert rule_for(Role.tenant_admin, op) == Rule.OWN_TENANT, op

    @pytest.mark.parametrize("op,rule", [
        (Operation.TASK_CREATE, Rule.OWN_TENANT),
        (Operation.TASK_CLAIM, Rule.OWN_TENANT),
        (Operation.TASK_UPDATE, Rule.OWN_TENANT_ASSIGNED),
        (Operation.TASK_UPDATE_STATUS, Rule.OWN_TENANT_ASSIGNED),
        (Operation.TASK_DELETE, Rule.OWN_TENANT_ASSIGNED),
        (Operation.PROJECT_CREATE, Rule.DENY),
        (Operation.USER_CREATE, Rule.DENY),
        (Operation.AUDIT_LIST, Rule.DENY),
        (Operation.TENANT_UPDATE, Rule.DENY),
    ])
    def test_member_rules(self, op, rule):
        assert rule_for(Role.member, op) == rule

    def test_unlisted_pairs_are_denied(self):
        assert (Role.member, Operation.TENANT_LIST) not in PERMISSIONS
        assert rule_for(Role.member, Operation.TENANT_LIST) == Rule.DENY


class TestAuthorize:
    def test_own_tenant_resource_allowed(self):
        assert authorize(ADMIN, Operation.PROJECT_UPDATE, resource_tenant_id="tenant-a").allowed

    def test_foreign_tenant_resource_is_cross_tenant(self):
        decision = authorize(ADMIN, Operation.PROJECT_UPDATE, resource_tenant_id="tenant-b")
        assert not decision.allowed
        assert decision.reason == DenyReason.CROSS_TENANT

    def test_system_admin_ignores_tenant(self):
        assert authorize(SYSTEM, Operation.TENANT_UPDATE, resource_tenant_id="tenant-b").allowed

    def test_member_on_own_task(self):
        decision = authorize(MEMBER, Operation.TASK_UPDATE_STATUS, resource_tenant_id="tenant-a",
                             resource_assignee_id="member-1")
        assert decision.allowed

    def test_member_on_someone_elses_task(self):
        decision = authorize(MEMBER, Operation.TASK_DELETE, resource_tenant_id="tenant-a",
                             resource_assignee_id="member-2")
        assert decision.reason == DenyReason.NOT_ASSIGNEE

    def test_member_on_unassigned_task(self):
        decision = authorize(MEMBER, Operation.TASK_UPDATE, resource_tenant_id="tenant-a",
                             resource_assignee_id=None)
        assert decision.reason == DenyReason.NOT_ASSIGNEE


class TestEnforce:
    def test_cross_tenant_raises_not_found(self):
        with pytest.raises(NotFoundError) as exc:
            enforce(MEMBER, Operation.TASK_READ, resource_tenant_id="tenant-b", not_found_message="Task not found")
        assert exc.value.status_code == 404
        assert exc.value.message == "Task not found"

    def test_role_denial_raises_forbidden(self):
        with pytest.raises(AuthorizationError) as exc:
            enforce(MEMBER, Operation.PROJECT_DELETE, resource_tenant_id="tenant-a")
        assert exc.value.status_code == 403

    def test_enforce_role_lets_member_attempt_assignee_ops(self):
        # Assignee check happens later, against the stored task
        enforce_role(MEMBER, Operation.TASK_UPDATE)

    def test_enforce_role_blocks_system_admin_from_tenant_crud(self):
        with pytest.raises(AuthorizationError):
            enforce_role(SYSTEM, Operation.PROJECT_LIST)


class TestSelfDeleteGuard:
    def test_blocks_own_id(self):
        with pytest.raises(AuthorizationError):
            require_self_delete_guard(ADMIN, "admin-1")

    def test_allows_other_ids(self):
        require_self_delete_guard(ADMIN, "member-1")
