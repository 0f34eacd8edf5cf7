"""Tests for credential stages and guard composition, driven through the HTTP app.

The status / message pairs below are part of the public contract: clients
match on them.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.auth.pipeline import guard
from app.auth.tokens import issue_token
from app.utils import background
from app.utils.metrics import metrics

from conftest import OTHER_SECRET, create_key


class TestBearerToken:
    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        resp = await client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json() == {"message": "Access token required."}
        assert resp.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["Token abc", "Bearer", "Bearer   ", "abc"])
    async def test_malformed_header(self, client, header):
        resp = await client.get("/api/auth/me", headers={"Authorization": header})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Access token required."

    @pytest.mark.asyncio
    async def test_bad_signature(self, client, org_a):
        token = issue_token("u-1", "admin", org_a, secret=OTHER_SECRET)
        resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403
        assert resp.json() == {"message": "Invalid or expired token."}

    @pytest.mark.asyncio
    async def test_expired(self, client, org_a):
        issued = datetime.now(timezone.utc) - timedelta(days=2)
        token = issue_token("u-1", "admin", org_a, now=issued)
        resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403
        assert resp.json()["message"] == "Invalid or expired token."

    @pytest.mark.asyncio
    async def test_valid_token_resolves_principal(self, client, manager_a):
        resp = await client.get("/api/auth/me", headers=manager_a.headers)
        assert resp.status_code == 200
        assert resp.json() == {
            "user_id": manager_a.user_id,
            "role": "manager",
            "organization_id": manager_a.organization_id,
        }
        assert metrics.get_counter("auth_success_total", {"method": "bearer"}) == 1

    @pytest.mark.asyncio
    async def test_bearer_route_ignores_api_key(self, client, org_a):
        key = await create_key(org_a)
        resp = await client.get("/api/auth/me", headers={"x-api-key": key.key})
        assert resp.status_code == 401


class TestApiKey:
    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        resp = await client.get("/api/service/whoami")
        assert resp.status_code == 401
        assert resp.json() == {"message": "API key missing."}

    @pytest.mark.asyncio
    async def test_unknown_key(self, client, org_a):
        resp = await client.get("/api/service/whoami", headers={"x-api-key": "f" * 64})
        assert resp.status_code == 401
        assert resp.json() == {"message": "Invalid or revoked API key."}
        assert metrics.get_counter("auth_failure_total", {"method": "api_key", "reason": "invalid"}) == 1

    @pytest.mark.asyncio
    async def test_revoked_key(self, client, org_a):
        key = await create_key(org_a, revoked=True)
        resp = await client.get("/api/service/whoami", headers={"x-api-key": key.key})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid or revoked API key."

    @pytest.mark.asyncio
    async def test_valid_key_resolves_org_principal(self, client, org_a):
        key = await create_key(org_a)
        resp = await client.get("/api/service/whoami", headers={"x-api-key": key.key})
        assert resp.status_code == 200
        assert resp.json() == {"organization_id": org_a, "role": "user", "api_key_id": key.id}

    @pytest.mark.asyncio
    async def test_every_use_is_audited(self, client, org_a, admin_a):
        key = await create_key(org_a)
        for _ in range(2):
            await client.get("/api/service/whoami", headers={"x-api-key": key.key})
        await background.drain()
        resp = await client.get("/api/audit", params={"event": "api_key_usage"}, headers=admin_a.headers)
        entries = resp.json()["entries"]
        assert len(entries) == 2
        assert all(e["details"]["apiKeyId"] == key.id for e in entries)
        assert all(e["details"]["endpoint"] == "/api/service/whoami" for e in entries)

    @pytest.mark.asyncio
    async def test_rejected_requests_are_not_audited(self, client, org_a, admin_a, admin_b):
        created = await client.post("/api/projects", json={"name": "Globex secret"}, headers=admin_b.headers)
        key = await create_key(org_a)
        headers = {"x-api-key": key.key}

        resp = await client.get(f"/api/projects/{created.json()['id']}", headers=headers)
        assert resp.status_code == 404
        resp = await client.post("/api/projects", json={"name": "x"}, headers=headers)
        assert resp.status_code == 401
        await background.drain()

        resp = await client.get("/api/audit", params={"event": "api_key_usage"}, headers=admin_a.headers)
        assert resp.json()["entries"] == []

    @pytest.mark.asyncio
    async def test_successful_read_after_rejection_is_audited_once(self, client, org_a, admin_a):
        key = await create_key(org_a)
        headers = {"x-api-key": key.key}
        await client.get("/api/projects/does-not-exist", headers=headers)
        await client.get("/api/projects", headers=headers)
        await background.drain()

        resp = await client.get("/api/audit", params={"event": "api_key_usage"}, headers=admin_a.headers)
        entries = resp.json()["entries"]
        assert [e["details"]["endpoint"] for e in entries] == ["/api/projects"]


class TestBearerOrApiKey:
    @pytest.mark.asyncio
    async def test_invalid_key_wins_over_valid_token(self, client, admin_a):
        headers = dict(admin_a.headers, **{"x-api-key": "0" * 64})
        resp = await client.get("/api/projects", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid or revoked API key."

    @pytest.mark.asyncio
    async def test_falls_back_to_bearer(self, client, user_a):
        resp = await client.get("/api/projects", headers=user_a.headers)
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_no_credentials(self, client):
        resp = await client.get("/api/projects")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Access token required."


def test_guard_needs_stages():
    with pytest.raises(ValueError):
        guard()
