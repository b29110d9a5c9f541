from school_platform.database.store import TENANTS

from tests.conftest import ids


def test_superuser_lists_every_tenant(client_as, world):
    response = client_as(world.root).get("/api/v1/tenants")
    assert response.status_code == 200
    assert ids(response.json()) == {world.school_a["id"], world.school_b["id"], world.school_c["id"]}


def test_non_superuser_lists_only_own_tenant(client_as, world):
    response = client_as(world.student_a).get("/api/v1/tenants")
    assert response.status_code == 200
    assert ids(response.json()) == {world.school_a["id"]}


def test_read_own_tenant(client_as, world):
    response = client_as(world.admin_b).get(f"/api/v1/tenants/{world.school_b['id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "Southside Academy"


def test_read_other_tenant_is_forbidden(client_as, world):
    response = client_as(world.admin_b).get(f"/api/v1/tenants/{world.school_a['id']}")
    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied: Cannot view other tenants"


def test_missing_tenant_is_forbidden_for_non_superusers(client_as, world):
    response = client_as(world.admin_b).get("/api/v1/tenants/no-such-tenant")
    assert response.status_code == 403


def test_missing_tenant_is_not_found_for_superuser(client_as, world):
    response = client_as(world.root).get("/api/v1/tenants/no-such-tenant")
    assert response.status_code == 404
    assert response.json()["detail"] == "Tenant not found"


def test_superuser_manages_tenants(client_as, world, store):
    client = client_as(world.root)
    created = client.post("/api/v1/tenants", json={"name": "Westside Prep"})
    assert created.status_code == 201
    tenant_id = created.json()["id"]

    renamed = client.put(f"/api/v1/tenants/{tenant_id}", json={"name": "Westside Preparatory"})
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Westside Preparatory"

    assert client.delete(f"/api/v1/tenants/{tenant_id}").status_code == 204
    assert store.count(TENANTS, id=tenant_id) == 0


def test_admin_cannot_manage_tenants(client_as, world, store):
    client = client_as(world.admin_a)
    assert client.post("/api/v1/tenants", json={"name": "Rogue"}).status_code == 403
    assert client.put(f"/api/v1/tenants/{world.school_a['id']}", json={"name": "Mine"}).status_code == 403
    assert client.delete(f"/api/v1/tenants/{world.school_b['id']}").status_code == 403
    assert store.count(TENANTS) == 3


def test_blank_tenant_name_is_rejected(client_as, world):
    assert client_as(world.root).post("/api/v1/tenants", json={"name": ""}).status_code == 422
