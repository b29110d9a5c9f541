from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from school_platform.core.exceptions import StoreError, Unauthenticated
from school_platform.core.policy import Role
from school_platform.modules.auth.service import AuthService, clear_auth_cache


@pytest.fixture(autouse=True)
def empty_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


def auth_user(user_id="u-1", email="pupil@north.example.com", app_metadata=None):
    return SimpleNamespace(user=SimpleNamespace(id=user_id, email=email, app_metadata=app_metadata))


@pytest.fixture
def supabase():
    return MagicMock()


@pytest.fixture
def service(supabase, store, admin_client):
    return AuthService(supabase, store, admin_client=admin_client)


def test_current_user_is_cached_per_token(service, supabase):
    supabase.auth.get_user.return_value = auth_user(app_metadata={"role": "student", "tenant_id": "t-1"})
    first = service.get_current_user("token-a")
    second = service.get_current_user("token-a")
    assert first == second == {
        "id": "u-1", "email": "pupil@north.example.com", "app_metadata": {"role": "student", "tenant_id": "t-1"},
    }
    supabase.auth.get_user.assert_called_once_with(jwt="token-a")


def test_invalid_token_is_unauthenticated(service, supabase):
    supabase.auth.get_user.side_effect = Exception("invalid JWT: token is expired")
    with pytest.raises(Unauthenticated) as excinfo:
        service.get_current_user("bad")
    assert excinfo.value.message == "Invalid or expired token"
    assert excinfo.value.status_code == 401


def test_missing_user_is_unauthenticated(service, supabase):
    supabase.auth.get_user.return_value = SimpleNamespace(user=None)
    with pytest.raises(Unauthenticated):
        service.get_current_user("token")


def test_complete_claims_build_caller_without_backfill(service, supabase, store, admin_client):
    supabase.auth.get_user.return_value = auth_user(app_metadata={"role": "school_admin", "tenant_id": "t-1"})
    caller = service.resolve_caller("token")
    assert caller.role == Role.SCHOOL_ADMIN
    assert caller.tenant_id == "t-1"
    assert store.calls == []
    admin_client.auth.admin.update_user_by_id.assert_not_called()


def test_missing_claims_are_backfilled_from_users_table(service, supabase, world, admin_client):
    supabase.auth.get_user.return_value = auth_user(user_id=world.admin_b["id"], app_metadata={})
    caller = service.resolve_caller("token")
    assert caller.role == Role.SCHOOL_ADMIN
    assert caller.tenant_id == world.school_b["id"]
    admin_client.auth.admin.update_user_by_id.assert_called_once_with(
        world.admin_b["id"],
        {"app_metadata": {"tenant_id": world.school_b["id"], "role": "school_admin"}},
    )


def test_repair_is_idempotent(service, world, admin_client):
    user_data = {"id": world.student_a["id"], "email": world.student_a["email"],
                 "app_metadata": {"role": "student", "tenant_id": world.school_a["id"]}}
    claims, row, fixed = service.repair_claims(user_data, force=True)
    assert row["id"] == world.student_a["id"]
    assert fixed is False
    assert claims == {"role": "student", "tenant_id": world.school_a["id"]}
    admin_client.auth.admin.update_user_by_id.assert_not_called()


def test_repair_without_users_row_keeps_claims(service, admin_client):
    claims, row, fixed = service.repair_claims({"id": "ghost", "app_metadata": {"role": "student"}})
    assert (claims, row, fixed) == ({"role": "student"}, None, False)


def test_sync_failure_is_reported_not_raised(service, admin_client):
    admin_client.auth.admin.update_user_by_id.side_effect = Exception("service role key missing")
    assert service.sync_claims("u-1", "t-1", "student") is False


def test_unknown_role_claim_is_rejected(service):
    with pytest.raises(Unauthenticated) as excinfo:
        service.caller_from_user({"id": "u-1", "app_metadata": {"role": "principal", "tenant_id": "t-1"}})
    assert excinfo.value.message == "Invalid role claim"


def test_missing_role_defaults_to_student(service):
    caller = service.caller_from_user({"id": "u-1", "email": None, "app_metadata": {"tenant_id": "t-1"}})
    assert caller.role == Role.STUDENT
    assert not caller.is_superuser


def test_required_sync_failure_raises(service, admin_client):
    admin_client.auth.admin.update_user_by_id.side_effect = Exception("timeout")
    with pytest.raises(StoreError):
        service.sync_claims("u-1", "t-1", "student", required=True)


def test_revoke_clears_claims_and_evicts_cached_identity(service, supabase, admin_client):
    supabase.auth.get_user.return_value = auth_user(app_metadata={"role": "school_admin", "tenant_id": "t-1"})
    service.get_current_user("token")
    assert service.revoke_claims("u-1") is True
    admin_client.auth.admin.update_user_by_id.assert_called_once_with(
        "u-1", {"app_metadata": {"tenant_id": None, "role": None}},
    )
    service.get_current_user("token")
    assert supabase.auth.get_user.call_count == 2
