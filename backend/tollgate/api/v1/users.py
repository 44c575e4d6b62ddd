"""Member-facing endpoints.

Three gate strengths are on display here:
- /users/me: any signed-in user, live row.
- /dashboard: approved area, claims trusted while fresh.
- /protected/example: credit-metered capability, live row.
"""

from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from tollgate.api.deps import ApprovedAreaClaims, CreditedUser, CurrentUser
from tollgate.core.responses import DataResponse, MessageDataResponse
from tollgate.schemas.user import UserOverviewResponse

router = APIRouter()


class DashboardResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user: dict
    claims_issued_at: datetime


class ProtectedAccessResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str
    credits: int
    access_time: datetime


# ===================================================================
# GET /users/me
# ===================================================================


@router.get("/users/me")
async def get_me(user: CurrentUser) -> DataResponse[UserOverviewResponse]:
    """Current user, read live, with expiry estimate and account age."""
    return DataResponse(data=UserOverviewResponse.from_user(user))


# ===================================================================
# GET /dashboard
# ===================================================================


@router.get("/dashboard")
async def dashboard(claims: ApprovedAreaClaims) -> DataResponse[DashboardResponse]:
    """Approved-area landing data.

    Served from session claims while they are fresh, so the credits shown
    may lag the ledger by up to CLAIMS_TTL_SECONDS.
    """
    return DataResponse(
        data=DashboardResponse(
            user=claims.to_public_dict(),
            claims_issued_at=claims.issued_at,
        )
    )


# ===================================================================
# GET /protected/example
# ===================================================================


@router.get("/protected/example")
async def protected_example(
    user: CreditedUser,
) -> MessageDataResponse[ProtectedAccessResponse]:
    """Credit-metered capability; denied the moment credits hit 0."""
    return MessageDataResponse(
        data=ProtectedAccessResponse(
            user_id=str(user.id),
            credits=user.credits,
            access_time=datetime.now(UTC),
        ),
        message="Access granted to protected content",
    )
