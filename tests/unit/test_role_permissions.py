import uuid

import pytest

from lmsbox.api.permissions import can_author_in_org, can_manage_org, is_member_of_org
from lmsbox.utils.role_permissions import (
    get_allowed_roles,
    get_role_permissions,
    role_allows_manage,
    role_allows_write,
)


def _ctx(role=None, *, org_id=None, is_superadmin=False, can_write=True):
    memberships = []
    if role:
        memberships.append({"organization_id": str(org_id), "role": role, "can_read": True, "can_write": can_write})
    return {
        "id": uuid.uuid4(),
        "is_superadmin": is_superadmin,
        "memberships": memberships,
        "memberships_by_org": {m["organization_id"]: m for m in memberships},
    }


def test_allowed_roles():
    assert get_allowed_roles() == {"owner", "admin", "instructor", "learner"}


@pytest.mark.parametrize(
    "role,can_write",
    [("owner", True), ("admin", True), ("instructor", True), ("learner", False)],
)
def test_default_permissions(role, can_write):
    assert get_role_permissions(role) == {"can_read": True, "can_write": can_write}


def test_unknown_role_rejected():
    with pytest.raises(ValueError):
        get_role_permissions("editor")


def test_default_permissions_are_fresh_dicts():
    perms = get_role_permissions("owner")
    perms["can_read"] = False
    assert get_role_permissions("owner")["can_read"] is True


def test_role_groups():
    assert role_allows_manage("owner") and role_allows_manage("admin")
    assert not role_allows_manage("instructor")
    assert role_allows_write("instructor")
    assert not role_allows_write("learner")



def test_permission_helpers_per_role():
    org_id = uuid.uuid4()
    other = uuid.uuid4()

    admin = _ctx("admin", org_id=org_id)
    assert can_manage_org(org_id, admin) and can_author_in_org(org_id, admin)
    assert not is_member_of_org(other, admin)

    instructor = _ctx("instructor", org_id=org_id)
    assert can_author_in_org(org_id, instructor)
    assert not can_manage_org(org_id, instructor)

    learner = _ctx("learner", org_id=org_id, can_write=False)
    assert is_member_of_org(org_id, learner)
    assert not can_author_in_org(org_id, learner)
    assert not can_manage_org(org_id, learner)


def test_superadmin_passes_every_check():
    ctx = _ctx(is_superadmin=True)
    org_id = uuid.uuid4()
    assert is_member_of_org(org_id, ctx)
    assert can_manage_org(org_id, ctx)
    assert can_author_in_org(org_id, ctx)


def test_missing_context_denied():
    org_id = uuid.uuid4()
    assert not is_member_of_org(org_id, None)
    assert not can_manage_org(org_id, {})
