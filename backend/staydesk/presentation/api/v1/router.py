"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from staydesk.presentation.api.v1.endpoints.health import router as health_router
from staydesk.presentation.api.v1.endpoints.auth import router as auth_router
from staydesk.presentation.api.v1.endpoints.resources import router as resources_router
from staydesk.presentation.api.v1.endpoints.dashboard import router as dashboard_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(auth_router)
router.include_router(resources_router)
router.include_router(dashboard_router)
