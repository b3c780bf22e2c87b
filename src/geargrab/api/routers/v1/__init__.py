"""API v1 routers."""

from fastapi import APIRouter

from .admin import router as admin_router
from .registration import router as registration_router
from .webhooks import router as webhooks_router

# Create v1 router that includes all v1 endpoints
router = APIRouter(prefix="/v1")

router.include_router(registration_router)
router.include_router(admin_router)
router.include_router(webhooks_router)

__all__ = ["admin_router", "registration_router", "router", "webhooks_router"]
