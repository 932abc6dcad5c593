"""
Approval policy resolver and decision guards.

Resolution order: exact department row, then the organization-wide row,
then the configured default.
"""

import random
from uuid import uuid4

import pytest

from reservation_engines.approval import (
    can_manage_transfer,
    check_decision_authority,
    resolve_for_resource,
    resolve_required_role,
)
from reservation_kernel.domain.policy import ApprovalPolicyRule
from reservation_kernel.domain.resource import (
    ORGANIZATION_WIDE_DEPARTMENT,
    OwnerScope,
    ResourceInfo,
    ResourceKind,
    ResourceStatus,
)
from reservation_kernel.domain.roles import Principal, Role
from reservation_kernel.exceptions import CrossOrganizationError, InsufficientRoleError

ORG = uuid4()
OTHER_ORG = uuid4()


def rule(scope=ResourceKind.ASSET, role=Role.MANAGER, department=None, org=ORG):
    return ApprovalPolicyRule(org, scope, role, department)


def asset(department: str | None = "Design", org=ORG) -> ResourceInfo:
    return ResourceInfo(
        resource_id=uuid4(),
        organization_id=org,
        kind=ResourceKind.ASSET,
        name="Camera",
        owner_scope=OwnerScope.DEPARTMENT if department else OwnerScope.ORGANIZATION,
        owner_department=department or ORGANIZATION_WIDE_DEPARTMENT,
        status=ResourceStatus.RETIRED,
    )


class TestResolveRequiredRole:

    def test_organization_wide_row_applies_to_department_asset(self):
        policies = [rule(role=Role.MANAGER)]
        role = resolve_required_role(
            policies, ORG, ResourceKind.ASSET, OwnerScope.DEPARTMENT, "Design",
        )
        assert role == Role.MANAGER

    def test_department_row_wins(self):
        policies = [rule(role=Role.MANAGER), rule(role=Role.ADMIN, department="Design")]
        role = resolve_required_role(
            policies, ORG, ResourceKind.ASSET, OwnerScope.DEPARTMENT, "Design",
        )
        assert role == Role.ADMIN

    def test_department_row_ignored_for_organization_owned(self):
        policies = [rule(role=Role.ADMIN, department="Design")]
        role = resolve_required_role(
            policies, ORG, ResourceKind.ASSET, OwnerScope.ORGANIZATION, "Design",
        )
        assert role == Role.MANAGER

    def test_default_when_nothing_matches(self):
        role = resolve_required_role([], ORG, ResourceKind.SPACE, OwnerScope.ORGANIZATION, None)
        assert role == Role.MANAGER

    def test_configured_default(self):
        role = resolve_required_role(
            [], ORG, ResourceKind.SPACE, OwnerScope.ORGANIZATION, None, default=Role.ADMIN,
        )
        assert role == Role.ADMIN

    def test_other_scopes_and_organizations_ignored(self):
        policies = [
            rule(scope=ResourceKind.VEHICLE, role=Role.ADMIN),
            rule(role=Role.ADMIN, org=OTHER_ORG),
            rule(role=Role.ADMIN, department="Design", org=OTHER_ORG),
        ]
        role = resolve_required_role(
            policies, ORG, ResourceKind.ASSET, OwnerScope.DEPARTMENT, "Design",
        )
        assert role == Role.MANAGER

    def test_order_independent(self):
        policies = [
            rule(role=Role.USER),
            rule(role=Role.ADMIN, department="Design"),
            rule(role=Role.MANAGER, department="Finance"),
            rule(scope=ResourceKind.SPACE, role=Role.ADMIN),
        ]
        expected = resolve_required_role(
            policies, ORG, ResourceKind.ASSET, OwnerScope.DEPARTMENT, "Design",
        )
        shuffler = random.Random(7)
        for _ in range(10):
            shuffled = policies[:]
            shuffler.shuffle(shuffled)
            assert resolve_required_role(
                shuffled, ORG, ResourceKind.ASSET, OwnerScope.DEPARTMENT, "Design",
            ) == expected

    def test_accepts_string_inputs(self):
        role = resolve_required_role(
            [rule(role=Role.ADMIN)], ORG, "asset", "organization", None,
        )
        assert role == Role.ADMIN

    def test_resolve_for_resource(self):
        policies = [rule(role=Role.ADMIN, department="Design")]
        assert resolve_for_resource(policies, asset("Design")) == Role.ADMIN
        assert resolve_for_resource(policies, asset(None)) == Role.MANAGER


class TestDecisionAuthority:

    @pytest.mark.parametrize("required", list(Role))
    def test_plain_user_always_rejected(self, required):
        actor = Principal(uuid4(), Role.USER, ORG)
        with pytest.raises(InsufficientRoleError):
            check_decision_authority(actor, required, ORG)

    def test_manager_below_admin_policy(self):
        actor = Principal(uuid4(), Role.MANAGER, ORG)
        with pytest.raises(InsufficientRoleError) as exc_info:
            check_decision_authority(actor, Role.ADMIN, ORG)
        assert exc_info.value.required_role == "admin"

    def test_admin_passes_manager_policy(self):
        check_decision_authority(Principal(uuid4(), Role.ADMIN, ORG), Role.MANAGER, ORG)

    def test_other_organization_rejected(self):
        actor = Principal(uuid4(), Role.ADMIN, OTHER_ORG)
        with pytest.raises(CrossOrganizationError):
            check_decision_authority(actor, Role.MANAGER, ORG)


class TestTransferManagement:

    def test_owning_department_member_may_decide(self):
        member = Principal(uuid4(), Role.USER, ORG, "Design")
        assert can_manage_transfer(member, asset("Design"))

    def test_other_department_member_may_not(self):
        member = Principal(uuid4(), Role.USER, ORG, "Finance")
        assert not can_manage_transfer(member, asset("Design"))

    def test_manager_may_decide(self):
        assert can_manage_transfer(Principal(uuid4(), Role.MANAGER, ORG), asset("Design"))

    def test_other_organization_may_not(self):
        assert not can_manage_transfer(Principal(uuid4(), Role.ADMIN, OTHER_ORG), asset("Design"))
