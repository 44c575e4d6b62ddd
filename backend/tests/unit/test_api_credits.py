"""Tests for the scheduler trigger (/credits/deduct-daily) and app wiring."""

import pytest
from httpx import AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import cron_headers, make_user
from tollgate.core.config import settings
from tollgate.models.user import User, UserStatus

_URL = "/api/v1/credits/deduct-daily"


@pytest.mark.asyncio
class TestCronAuthorization:
    async def test_missing_header(self, client: AsyncClient) -> None:
        response = await client.post(_URL)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_wrong_secret(self, client: AsyncClient) -> None:
        response = await client.post(_URL, headers=cron_headers("nope"))
        assert response.status_code == 401

    async def test_wrong_scheme(self, client: AsyncClient) -> None:
        secret = settings.cron_secret.get_secret_value()
        response = await client.post(_URL, headers={"Authorization": f"Basic {secret}"})
        assert response.status_code == 401

    async def test_unset_secret_rejects_everything(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "cron_secret", SecretStr(""))

        response = await client.post(_URL, headers={"Authorization": "Bearer "})

        assert response.status_code == 401


@pytest.mark.asyncio
class TestCronDeduction:
    async def test_runs_batch(
        self, client: AsyncClient, db_session: AsyncSession, member_user: User
    ) -> None:
        last = await make_user(db_session, credits=1)

        response = await client.post(_URL, headers=cron_headers())

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["success"] is True
        assert data["total_processed"] == 2
        assert data["total_blocked"] == 1
        assert data["errors"] == []

        await db_session.refresh(last)
        await db_session.refresh(member_user)
        assert last.status == UserStatus.BLOCKED
        assert member_user.credits == 4

    async def test_stats(
        self, client: AsyncClient, db_session: AsyncSession, member_user: User
    ) -> None:
        await make_user(db_session, status=UserStatus.BLOCKED, credits=0)

        response = await client.get(_URL, headers=cron_headers())

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["eligible_for_deduction"] == 1
        assert data["status_breakdown"]["APPROVED"] == {"users": 1, "credits": 5}
        assert data["status_breakdown"]["BLOCKED"] == {"users": 1, "credits": 0}
        assert data["last_run"] is None


@pytest.mark.asyncio
class TestAppWiring:
    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}

    async def test_security_headers(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/auth/status")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store, max-age=0"
