"""API v1 router aggregator.

All v1 endpoint routers are included here under the /api/v1 prefix.
"""

from fastapi import APIRouter

from tollgate.api.v1 import admin, auth, credits, users

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

router.include_router(auth.router, prefix="/auth", tags=["auth"])

# =============================================================================
# Members
# =============================================================================

router.include_router(users.router, tags=["users"])

# =============================================================================
# Admin and batch processes
# =============================================================================

router.include_router(admin.router, prefix="/admin", tags=["admin"])
router.include_router(credits.router, prefix="/credits", tags=["credits"])
