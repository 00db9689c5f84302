"""Translate domain errors into HTTP errors carrying the user-facing message."""

from fastapi import HTTPException, status

from staydesk.domain.exceptions import (
    ForbiddenError,
    GatewayError,
    MutationInProgressError,
    NotFoundError,
    ResourceUnavailableError,
    UnauthorizedError,
    ValidationError,
    describe_error,
)

_STATUS_BY_ERROR: list[tuple[type[Exception], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (ResourceUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (MutationInProgressError, status.HTTP_409_CONFLICT),
    (GatewayError, status.HTTP_502_BAD_GATEWAY),
]


def http_error(error: Exception) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=describe_error(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=describe_error(error)
    )
