"""Dashboard summary endpoint."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from staydesk.application.schemas import DashboardResponse
from staydesk.application.services import DashboardService
from staydesk.domain.exceptions import GatewayError
from staydesk.infrastructure.dependencies import get_dashboard_service
from staydesk.presentation.api.errors import http_error

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardResponse:
    """Record counts per resource kind, including locally held records."""
    try:
        summary = await service.summary()
    except GatewayError as e:
        raise http_error(e) from e
    return DashboardResponse(**asdict(summary))
