"""Login state endpoints — sign in, sign up, sign out and the current profile."""

from fastapi import APIRouter, Depends, HTTPException, status

from staydesk.application.schemas import (
    LoginRequest,
    RecordResponse,
    RegisterRequest,
    SessionResponse,
)
from staydesk.application.services import AuthService
from staydesk.domain.entities import UserSession
from staydesk.domain.exceptions import GatewayError
from staydesk.infrastructure.dependencies import get_auth_service
from staydesk.presentation.api.errors import http_error

router = APIRouter(prefix="/auth", tags=["Auth"])


def _session_response(session: UserSession) -> SessionResponse:
    return SessionResponse(
        user_id=session.user_id,
        name=session.name,
        email=session.email,
        role=session.role,
        is_admin=session.is_admin,
        profile=session.profile,
    )


@router.post("/login", response_model=SessionResponse)
async def login(
    data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    try:
        session = await service.login(data.email, data.password)
    except GatewayError as e:
        raise http_error(e) from e
    return _session_response(session)


@router.post("/register", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> RecordResponse:
    """Create an account upstream. Does not log the new user in."""
    try:
        record = await service.register(data.model_dump())
    except GatewayError as e:
        raise http_error(e) from e
    return RecordResponse(id=record.id, data=record.data)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(service: AuthService = Depends(get_auth_service)) -> None:
    await service.logout()


@router.get("/me", response_model=SessionResponse)
async def current_user(service: AuthService = Depends(get_auth_service)) -> SessionResponse:
    session = await service.current()
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
    return _session_response(session)


@router.post("/me/refresh", response_model=SessionResponse)
async def refresh_profile(service: AuthService = Depends(get_auth_service)) -> SessionResponse:
    """Re-read the logged-in user's profile from upstream."""
    try:
        session = await service.refresh_profile()
    except GatewayError as e:
        raise http_error(e) from e
    return _session_response(session)
