"""Tests for the /admin endpoints.

Every endpoint checks the admin role on the live row; the rest of the
behavior is exercised through the service tests, so these focus on the
HTTP contract: envelopes, messages, status codes.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import make_user, session_cookie, sign_in
from tollgate.core.config import settings
from tollgate.models.user import User, UserRole, UserStatus

_BASE = "/api/v1/admin"


@pytest.fixture
def as_admin(client: AsyncClient, admin_user: User) -> AsyncClient:
    sign_in(client, admin_user)
    return client


# =============================================================================
# Access
# =============================================================================


@pytest.mark.asyncio
class TestAdminAccess:
    async def test_member_gets_admin_required(
        self, client: AsyncClient, member_user: User
    ) -> None:
        sign_in(client, member_user)

        response = await client.get(f"{_BASE}/users")

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["code"] == "ADMIN_REQUIRED"
        assert error["details"] == [{"redirect": "/unauthorized"}]

    async def test_demoted_admin_loses_access_immediately(
        self, client: AsyncClient, db_session: AsyncSession, admin_user: User
    ) -> None:
        sign_in(client, admin_user)
        admin_user.role = UserRole.USER.value
        await db_session.commit()

        response = await client.get(f"{_BASE}/stats")

        assert response.status_code == 403

    async def test_no_session(self, client: AsyncClient) -> None:
        response = await client.get(f"{_BASE}/users")
        assert response.status_code == 401

    async def test_status_verifies_admin(
        self, as_admin: AsyncClient, admin_user: User
    ) -> None:
        response = await as_admin.get(f"{_BASE}/status")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Admin access verified"
        assert body["data"] == {
            "admin_id": str(admin_user.id),
            "email": "admin@example.com",
            "role": "ADMIN",
        }

    async def test_status_denies_member(
        self, client: AsyncClient, member_user: User
    ) -> None:
        sign_in(client, member_user)

        response = await client.get(f"{_BASE}/status")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ADMIN_REQUIRED"


# =============================================================================
# Users
# =============================================================================


@pytest.mark.asyncio
class TestListUsersEndpoint:
    async def test_envelope_and_meta(
        self, as_admin: AsyncClient, member_user: User
    ) -> None:
        response = await as_admin.get(
            f"{_BASE}/users", params={"per_page": 1, "sort_by": "email"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["total"] == 2
        assert body["meta"]["total_pages"] == 2
        assert body["meta"]["has_next_page"] is True
        assert body["data"][0]["email"] == "member@example.com"
        assert "days_since_registration" in body["data"][0]

    async def test_status_filter(
        self, as_admin: AsyncClient, db_session: AsyncSession
    ) -> None:
        await make_user(db_session, status=UserStatus.PENDING)

        response = await as_admin.get(f"{_BASE}/users", params={"status": "PENDING"})

        assert response.json()["meta"]["total"] == 1

    async def test_bad_sort_column(self, as_admin: AsyncClient) -> None:
        response = await as_admin.get(
            f"{_BASE}/users", params={"sort_by": "password_hash"}
        )
        assert response.status_code == 400


@pytest.mark.asyncio
class TestAdjustCreditsEndpoint:
    async def test_add_unblocks(
        self, as_admin: AsyncClient, db_session: AsyncSession
    ) -> None:
        user = await make_user(db_session, status=UserStatus.BLOCKED, credits=0)

        response = await as_admin.put(
            f"{_BASE}/users/{user.id}/credits", json={"amount": 5}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "5 credits added successfully"
        assert body["data"]["user"]["credits"] == 5
        assert body["data"]["user"]["status"] == "APPROVED"
        assert body["data"]["previous_status"] == "BLOCKED"
        assert body["data"]["log_entry"]["admin_email"] == "admin@example.com"

    async def test_deduct_clamps(
        self, as_admin: AsyncClient, member_user: User
    ) -> None:
        response = await as_admin.put(
            f"{_BASE}/users/{member_user.id}/credits",
            json={"amount": -10, "reason": "abuse"},
        )

        body = response.json()
        assert body["message"] == "10 credits deducted successfully"
        assert body["data"]["user"]["credits"] == 0
        assert body["data"]["user"]["status"] == "BLOCKED"
        assert body["data"]["log_entry"]["amount"] == -5

    @pytest.mark.parametrize("amount", [1001, "5", 2.5, True])
    async def test_rejects_bad_amounts(
        self, as_admin: AsyncClient, member_user: User, amount: object
    ) -> None:
        response = await as_admin.put(
            f"{_BASE}/users/{member_user.id}/credits", json={"amount": amount}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_unknown_user(self, as_admin: AsyncClient) -> None:
        response = await as_admin.put(
            f"{_BASE}/users/{uuid.uuid4()}/credits", json={"amount": 1}
        )
        assert response.status_code == 404

    async def test_adjustment_invalidates_member_claims(
        self, client: AsyncClient, admin_user: User, member_user: User
    ) -> None:
        member_token = session_cookie(member_user)
        client.cookies.set(settings.auth_cookie_name, member_token)
        assert (await client.get("/api/v1/dashboard")).status_code == 200

        sign_in(client, admin_user)
        await client.put(f"{_BASE}/users/{member_user.id}/credits", json={"amount": -5})

        # The member's claims still say APPROVED with 5 credits
        client.cookies.clear()
        client.cookies.set(settings.auth_cookie_name, member_token)
        response = await client.get("/api/v1/dashboard")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ACCOUNT_BLOCKED"


@pytest.mark.asyncio
class TestStatusEndpoints:
    async def test_single_status_change(
        self, as_admin: AsyncClient, db_session: AsyncSession
    ) -> None:
        user = await make_user(db_session, status=UserStatus.PENDING, credits=0)

        response = await as_admin.put(
            f"{_BASE}/users/{user.id}/status", json={"status": "APPROVED"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "User status updated to approved"
        assert body["data"]["status"] == "APPROVED"

    async def test_cannot_change_own_status(
        self, as_admin: AsyncClient, admin_user: User
    ) -> None:
        response = await as_admin.put(
            f"{_BASE}/users/{admin_user.id}/status", json={"status": "BLOCKED"}
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CANNOT_MODIFY_SELF"

    async def test_invalid_status_value(
        self, as_admin: AsyncClient, member_user: User
    ) -> None:
        response = await as_admin.put(
            f"{_BASE}/users/{member_user.id}/status", json={"status": "ACTIVE"}
        )
        assert response.status_code == 400

    async def test_batch_status_change(
        self, as_admin: AsyncClient, db_session: AsyncSession
    ) -> None:
        a = await make_user(db_session, status=UserStatus.PENDING)
        b = await make_user(db_session, status=UserStatus.PENDING)

        response = await as_admin.put(
            f"{_BASE}/users/batch-status",
            json={"user_ids": [str(a.id), str(b.id)], "status": "REJECTED"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "2 user(s) status updated to rejected"
        assert body["data"]["updated_count"] == 2

    async def test_batch_too_large(self, as_admin: AsyncClient) -> None:
        ids = [str(uuid.uuid4()) for _ in range(101)]
        response = await as_admin.put(
            f"{_BASE}/users/batch-status", json={"user_ids": ids, "status": "APPROVED"}
        )
        assert response.status_code == 400

    async def test_batch_with_unknown_id(
        self, as_admin: AsyncClient, member_user: User
    ) -> None:
        response = await as_admin.put(
            f"{_BASE}/users/batch-status",
            json={"user_ids": [str(member_user.id), str(uuid.uuid4())], "status": "BLOCKED"},
        )
        assert response.status_code == 404


# =============================================================================
# Ledger history and batch processes
# =============================================================================


@pytest.mark.asyncio
class TestLedgerEndpoints:
    async def test_credit_logs_listed(
        self, as_admin: AsyncClient, member_user: User
    ) -> None:
        await as_admin.put(
            f"{_BASE}/users/{member_user.id}/credits", json={"amount": 3}
        )

        response = await as_admin.get(f"{_BASE}/users/{member_user.id}/credit-logs")

        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["total"] == 1
        assert body["data"][0]["amount"] == 3
        assert body["data"][0]["type"] == "ADDED"
        assert body["data"][0]["admin_email"] == "admin@example.com"

    async def test_block_zero_credits_messages(
        self, as_admin: AsyncClient, db_session: AsyncSession
    ) -> None:
        # admin_user itself is APPROVED with 0 credits and gets swept too
        await make_user(db_session, credits=0)

        first = await as_admin.post(f"{_BASE}/users/block-zero-credits")
        second = await as_admin.post(f"{_BASE}/users/block-zero-credits")

        assert first.json()["message"] == (
            "Successfully blocked 2 users with zero credits"
        )
        assert second.json()["message"] == "No users need to be blocked"
        assert second.json()["data"]["blocked_count"] == 0

    async def test_manual_daily_deduction(
        self, as_admin: AsyncClient, member_user: User
    ) -> None:
        response = await as_admin.post(f"{_BASE}/credits/deduct-daily")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["success"] is True
        assert data["total_processed"] == 1
        assert data["processed_users"][0]["email"] == member_user.email
        assert data["processed_users"][0]["new_credits"] == 4

    async def test_stats_and_integrity(
        self, as_admin: AsyncClient, member_user: User
    ) -> None:
        stats = (await as_admin.get(f"{_BASE}/stats")).json()["data"]
        integrity = (await as_admin.get(f"{_BASE}/integrity")).json()["data"]

        assert stats["user_stats"]["total"] == 2
        assert stats["user_stats"]["active"] == 1
        assert stats["credit_stats"]["total_credits"] == 5
        assert stats["credit_stats"]["average_credits_per_user"] == 2.5
        assert integrity == {"total_users": 2, "total_credit_logs": 0}
