"""Pydantic request/response schemas for API endpoints."""

from tollgate.schemas.admin import (
    BatchStatusResponse,
    BatchStatusUpdateRequest,
    CreditAdjustmentRequest,
    CreditAdjustmentResponse,
    DeductionResultResponse,
    DeductionStatsResponse,
    IntegrityResponse,
    PlatformStatsResponse,
    StatusUpdateRequest,
    SweepResponse,
)
from tollgate.schemas.user import (
    CreditLogResponse,
    UserOverviewResponse,
    UserResponse,
)

__all__ = [
    "BatchStatusResponse",
    "BatchStatusUpdateRequest",
    "CreditAdjustmentRequest",
    "CreditAdjustmentResponse",
    "CreditLogResponse",
    "DeductionResultResponse",
    "DeductionStatsResponse",
    "IntegrityResponse",
    "PlatformStatsResponse",
    "StatusUpdateRequest",
    "SweepResponse",
    "UserOverviewResponse",
    "UserResponse",
]
