"""Tests for registration, login and /me."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from app.auth.tokens import verify_token
from app.utils import background

from conftest import TEST_PASSWORD, create_member


async def _events(client, admin) -> list[dict]:
    await background.drain()
    resp = await client.get("/api/audit", headers=admin.headers)
    return resp.json()["entries"]


class TestRegister:
    @pytest.mark.asyncio
    async def test_first_user_creates_org_with_requested_role(self, client):
        resp = await client.post("/api/auth/register", json={
            "email": "Founder@Example.com",
            "password": "s3cret!",
            "organization": "Initech",
            "role": "admin",
        })
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["user"]["email"] == "founder@example.com"
        assert body["user"]["role"] == "admin"
        principal = verify_token(body["token"])
        assert principal.role == "admin"
        assert principal.organization_id == body["user"]["organization_id"]

    @pytest.mark.asyncio
    async def test_joining_existing_org_starts_as_user(self, client):
        first = await client.post("/api/auth/register", json={
            "email": "a@example.com", "password": "s3cret!", "organization": "Initech", "role": "admin",
        })
        second = await client.post("/api/auth/register", json={
            "email": "b@example.com", "password": "s3cret!", "organization": "Initech", "role": "admin",
        })
        assert second.status_code == 201
        assert second.json()["user"]["role"] == "user"
        assert second.json()["user"]["organization_id"] == first.json()["user"]["organization_id"]

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client):
        payload = {"email": "a@example.com", "password": "s3cret!", "organization": "Initech"}
        await client.post("/api/auth/register", json=payload)
        resp = await client.post("/api/auth/register", json=payload)
        assert resp.status_code == 409
        assert resp.json() == {"message": "User already exists."}

    @pytest.mark.asyncio
    async def test_invalid_role(self, client):
        resp = await client.post("/api/auth/register", json={
            "email": "a@example.com", "password": "s3cret!", "organization": "Initech", "role": "root",
        })
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_short_password(self, client):
        resp = await client.post("/api/auth/register", json={
            "email": "a@example.com", "password": "123", "organization": "Initech",
        })
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_password_longer_than_bcrypt_limit(self, client):
        resp = await client.post("/api/auth/register", json={
            "email": "a@example.com", "password": "é" * 40, "organization": "Initech",
        })
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_blank_organization(self, client):
        resp = await client.post("/api/auth/register", json={
            "email": "a@example.com", "password": "s3cret!", "organization": "   ",
        })
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_organization_name_is_trimmed(self, client):
        first = await client.post("/api/auth/register", json={
            "email": "a@example.com", "password": "s3cret!", "organization": "Initech", "role": "admin",
        })
        second = await client.post("/api/auth/register", json={
            "email": "b@example.com", "password": "s3cret!", "organization": "  Initech ",
        })
        assert second.status_code == 201
        assert second.json()["user"]["organization_id"] == first.json()["user"]["organization_id"]

    @pytest.mark.asyncio
    async def test_duplicate_email_caught_by_constraint(self, client):
        # Two registrations racing past the existence check: the unique index decides.
        payload = {"email": "a@example.com", "password": "s3cret!", "organization": "Initech"}
        await client.post("/api/auth/register", json=payload)
        with patch("app.services.user_service.get_user_by_email", AsyncMock(return_value=None)):
            resp = await client.post("/api/auth/register", json=payload)
        assert resp.status_code == 409
        assert resp.json() == {"message": "User already exists."}


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_issues_token(self, client, manager_a):
        resp = await client.post("/api/auth/login", json={"email": manager_a.email, "password": TEST_PASSWORD})
        assert resp.status_code == 200
        body = resp.json()
        assert body["token_type"] == "bearer"
        principal = verify_token(body["token"])
        assert principal.user_id == manager_a.user_id
        assert principal.role == "manager"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, manager_a):
        resp = await client.post("/api/auth/login", json={"email": manager_a.email, "password": "nope"})
        assert resp.status_code == 401
        assert resp.json() == {"message": "Invalid credentials."}

    @pytest.mark.asyncio
    async def test_unknown_email(self, client):
        resp = await client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "x"})
        assert resp.status_code == 401
        assert resp.json() == {"message": "Invalid credentials."}

    @pytest.mark.asyncio
    async def test_overlong_password_is_rejected_not_errored(self, client, manager_a):
        resp = await client.post("/api/auth/login", json={"email": manager_a.email, "password": "x" * 100})
        assert resp.status_code == 401
        assert resp.json() == {"message": "Invalid credentials."}

    @pytest.mark.asyncio
    async def test_long_password_sharing_a_prefix_does_not_match(self, client, manager_a):
        password = TEST_PASSWORD + "y" * 80
        resp = await client.post("/api/auth/login", json={"email": manager_a.email, "password": password})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_attempts_are_audited_without_password(self, client, admin_a, org_a):
        member = await create_member(org_a, "user")
        await client.post("/api/auth/login", json={"email": member.email, "password": "wrong-one"})
        await client.post("/api/auth/login", json={"email": member.email, "password": TEST_PASSWORD})
        entries = await _events(client, admin_a)
        by_event = {e["event"]: e for e in entries}
        assert by_event["login_failure"]["user_id"] == member.user_id
        assert by_event["login_failure"]["details"] == {"email": member.email}
        assert by_event["login_success"]["user_id"] == member.user_id
        assert "wrong-one" not in str(entries)


class TestMe:
    @pytest.mark.asyncio
    async def test_role_claim_survives_role_change(self, client, admin_a, user_a):
        # Issued tokens keep their claims until they expire.
        resp = await client.put(f"/api/users/{user_a.user_id}/role", json={"role": "manager"}, headers=admin_a.headers)
        assert resp.status_code == 200
        me = await client.get("/api/auth/me", headers=user_a.headers)
        assert me.json()["role"] == "user"
