import pytest

from school_platform.core.access import AccessControl
from school_platform.core.exceptions import AccessDenied, NotFoundError
from school_platform.core.filters import filter_rows
from school_platform.core.policy import Action, AllowFiltered, Deny, EntityKind, ListScope
from school_platform.database.store import COMPETITIONS

from tests.conftest import as_caller, ids


@pytest.fixture
def access(store):
    return AccessControl(store)


def test_grant_lookups(access, world):
    assert access.grant_exists(world.restricted_b["id"], world.school_a["id"])
    assert not access.grant_exists(world.restricted_b["id"], world.school_c["id"])
    assert not access.grant_exists(world.restricted_b["id"], None)
    assert access.granted_competition_ids(world.school_a["id"]) == (world.restricted_b["id"],)
    assert access.granted_competition_ids(None) == ()


def test_restricted_competition_readable_only_with_grant(access, world):
    access.authorize(as_caller(world.student_a), Action.READ_ONE, EntityKind.COMPETITION, target=world.restricted_b)
    with pytest.raises(AccessDenied):
        access.authorize(as_caller(world.student_a), Action.READ_ONE, EntityKind.COMPETITION,
                         target=world.restricted_c)


def test_private_competition_of_other_tenant_is_denied(access, world):
    decision = access.check(as_caller(world.admin_a), Action.READ_ONE, EntityKind.COMPETITION, target=world.private_b)
    assert isinstance(decision, Deny)
    with pytest.raises(AccessDenied) as excinfo:
        access.authorize(as_caller(world.admin_a), Action.READ_ONE, EntityKind.COMPETITION, target=world.private_b)
    assert excinfo.value.status_code == 403


def test_authorize_existing_returns_the_row(access, world):
    row = access.authorize_existing(as_caller(world.student_b), Action.READ_ONE, EntityKind.COMPETITION,
                                    {"id": world.private_b["id"]})
    assert row == world.private_b


def test_missing_target_is_not_found_not_denied(access, world):
    with pytest.raises(NotFoundError) as excinfo:
        access.authorize_existing(as_caller(world.admin_a), Action.READ_ONE, EntityKind.COMPETITION,
                                  {"id": "no-such-competition"})
    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Competition not found"


def test_role_denials_come_before_the_lookup(access, world, store):
    store.calls.clear()
    with pytest.raises(AccessDenied):
        access.authorize_existing(as_caller(world.student_a), Action.DELETE, EntityKind.COMPETITION,
                                  {"id": "no-such-competition"})
    assert store.calls == []


def test_allowed_school_target_is_the_competition(access, world):
    row = access.authorize_existing(as_caller(world.admin_b), Action.CREATE, EntityKind.ALLOWED_SCHOOL,
                                    {"id": world.private_b["id"]})
    assert row["id"] == world.private_b["id"]
    with pytest.raises(AccessDenied) as excinfo:
        access.authorize_existing(as_caller(world.admin_a), Action.CREATE, EntityKind.ALLOWED_SCHOOL,
                                  {"id": world.private_b["id"]})
    assert excinfo.value.message == "Cannot manage allowed schools for competitions from other tenants"


def test_superuser_skips_fact_lookups(access, world, store):
    store.calls.clear()
    access.authorize(as_caller(world.root), Action.READ_ONE, EntityKind.COMPETITION, target=world.restricted_c)
    assert store.calls == []


def test_competition_row_filter_includes_grants(access, world, store):
    row_filter = access.row_filter(as_caller(world.student_a), EntityKind.COMPETITION)
    visible = filter_rows(store.tables[COMPETITIONS], row_filter)
    assert ids(visible) == {
        world.public_a["id"], world.private_a["id"], world.restricted_a["id"],
        world.public_b["id"], world.restricted_b["id"],
    }


def test_superuser_row_filter_is_unrestricted(access, world):
    assert access.row_filter(as_caller(world.root), EntityKind.COMPETITION) is None


def test_tenant_row_filter_is_own_tenant(access, world, store):
    decision = access.check(as_caller(world.admin_b), Action.READ_MANY, EntityKind.TENANT)
    assert isinstance(decision, AllowFiltered)
    assert ids(filter_rows(store.tables["tenants"], decision.row_filter)) == {world.school_b["id"]}


def test_accessible_competition_filter_is_a_set_union(access, world, store):
    # A grant for a competition B already owns must not produce a duplicate
    store.insert("competition_allowed_schools", {"competition_id": world.restricted_b["id"],
                                                 "school_id": world.school_b["id"]})
    row_filter = access.accessible_competition_filter(world.school_b["id"])
    visible = filter_rows(store.tables[COMPETITIONS], row_filter)
    assert len(visible) == len(ids(visible))
    assert ids(visible) == {
        world.public_a["id"], world.public_b["id"], world.private_b["id"], world.restricted_b["id"],
        world.restricted_c["id"],
    }


def test_tenant_scoped_listing_mismatch_is_denied(access, world):
    with pytest.raises(AccessDenied) as excinfo:
        access.authorize(as_caller(world.admin_a), Action.READ_MANY, EntityKind.USER,
                         scope=ListScope.TENANT, scope_tenant_id=world.school_b["id"])
    assert excinfo.value.message == "Access denied: tenant mismatch"
