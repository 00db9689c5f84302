"""Health check endpoint — no dependencies, never calls upstream."""

from fastapi import APIRouter

from staydesk.config import get_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Returns the application status and the upstream it is configured for."""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "upstream": settings.api_base_url,
        "fallback_enabled": settings.fallback_enabled,
    }
