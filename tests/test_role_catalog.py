from __future__ import annotations

import pytest

from portfolio_api.core import role_catalog
from portfolio_api.models import RoleName


def test_roles_are_listed_by_hierarchy_level() -> None:
    roles = role_catalog.list_roles()

    assert [role.name for role in roles] == [RoleName.TEACHER, RoleName.VERIFIER, RoleName.ADMINISTRATOR]
    assert [role.hierarchy_level for role in roles] == [1, 2, 3]


@pytest.mark.parametrize("name", ["teacher", RoleName.VERIFIER, "administrator"])
def test_catalog_accepts_strings_and_enum_members(name: object) -> None:
    assert role_catalog.is_valid_role(name)
    assert role_catalog.get_role(name) is not None


def test_unknown_role_grants_nothing() -> None:
    assert not role_catalog.is_valid_role("superuser")
    assert role_catalog.get_role("superuser") is None
    assert role_catalog.permissions_for("superuser") == frozenset()


def test_administrator_does_not_inherit_lower_role_permissions() -> None:
    admin = role_catalog.permissions_for(RoleName.ADMINISTRATOR)

    assert "roles.assign" in admin
    assert "documents.upload" not in admin
    assert "documents.review" not in admin


def test_all_permissions_is_union_of_roles() -> None:
    expected = (
        role_catalog.TEACHER_PERMISSIONS
        | role_catalog.VERIFIER_PERMISSIONS
        | role_catalog.ADMINISTRATOR_PERMISSIONS
    )
    assert role_catalog.all_permissions() == expected


def test_outranks_is_strict() -> None:
    assert role_catalog.outranks("administrator", "teacher")
    assert role_catalog.outranks("verifier", "teacher")
    assert not role_catalog.outranks("teacher", "teacher")
    assert not role_catalog.outranks("teacher", "verifier")
    assert not role_catalog.outranks("superuser", "teacher")


def test_permission_strings_are_namespaced() -> None:
    for permission in role_catalog.all_permissions():
        resource, _, action = permission.partition(".")
        assert resource and action, permission
