"""Tests for the tenant-scoped projects API."""

from __future__ import annotations

import pytest

from conftest import create_key


async def _create(client, member, name="Apollo") -> dict:
    resp = await client.post("/api/projects", json={"name": name, "description": "moonshot"}, headers=member.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestRoleGates:
    @pytest.mark.asyncio
    async def test_manager_can_create_but_not_delete(self, client, manager_a):
        proj = await _create(client, manager_a)
        assert proj["organization_id"] == manager_a.organization_id
        assert proj["created_by"] == manager_a.user_id

        resp = await client.delete(f"/api/projects/{proj['id']}", headers=manager_a.headers)
        assert resp.status_code == 403
        assert resp.json() == {"message": "Insufficient permissions."}

    @pytest.mark.asyncio
    async def test_user_cannot_create(self, client, user_a):
        resp = await client.post("/api/projects", json={"name": "x"}, headers=user_a.headers)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_user_can_read(self, client, manager_a, user_a):
        proj = await _create(client, manager_a)
        resp = await client.get(f"/api/projects/{proj['id']}", headers=user_a.headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Apollo"

    @pytest.mark.asyncio
    async def test_admin_can_delete(self, client, admin_a):
        proj = await _create(client, admin_a)
        resp = await client.delete(f"/api/projects/{proj['id']}", headers=admin_a.headers)
        assert resp.status_code == 204
        resp = await client.get(f"/api/projects/{proj['id']}", headers=admin_a.headers)
        assert resp.status_code == 404


class TestUpdate:
    @pytest.mark.asyncio
    async def test_partial_update(self, client, manager_a):
        proj = await _create(client, manager_a)
        resp = await client.put(f"/api/projects/{proj['id']}", json={"name": "Gemini"}, headers=manager_a.headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["name"] == "Gemini"
        assert body["description"] == "moonshot"

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, client, manager_a):
        proj = await _create(client, manager_a)
        resp = await client.put(f"/api/projects/{proj['id']}", json={"name": ""}, headers=manager_a.headers)
        assert resp.status_code == 422


class TestTenantIsolation:
    @pytest.mark.asyncio
    async def test_other_tenant_sees_nothing(self, client, admin_a, admin_b):
        proj = await _create(client, admin_a)

        resp = await client.get("/api/projects", headers=admin_b.headers)
        assert resp.json() == []

        for method, kwargs in (("GET", {}), ("PUT", {"json": {"name": "pwned"}}), ("DELETE", {})):
            resp = await client.request(method, f"/api/projects/{proj['id']}", headers=admin_b.headers, **kwargs)
            assert resp.status_code == 404, method
            assert resp.json() == {"message": "Project not found."}

        resp = await client.get(f"/api/projects/{proj['id']}", headers=admin_a.headers)
        assert resp.json()["name"] == "Apollo"


class TestApiKeyAccess:
    @pytest.mark.asyncio
    async def test_key_reads_own_org_projects(self, client, admin_a, admin_b, org_a):
        mine = await _create(client, admin_a, "Mine")
        await _create(client, admin_b, "Theirs")
        key = await create_key(org_a)

        resp = await client.get("/api/projects", headers={"x-api-key": key.key})
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json()] == [mine["id"]]

        resp = await client.get("/api/service/projects", headers={"x-api-key": key.key})
        assert [p["id"] for p in resp.json()] == [mine["id"]]

    @pytest.mark.asyncio
    async def test_key_cannot_write(self, client, org_a):
        key = await create_key(org_a)
        resp = await client.post("/api/projects", json={"name": "x"}, headers={"x-api-key": key.key})
        assert resp.status_code == 401
