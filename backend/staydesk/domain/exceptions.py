"""Domain-specific exceptions — framework-independent.

Gateways raise the typed ``GatewayError`` subclasses; only the
MutationCoordinator reinterprets ``ForbiddenError`` into a recovery path.
Every error carries a ``user_message`` suitable for display.
"""


class GatewayError(Exception):
    """Raised when the upstream booking API rejects or fails a call."""

    user_message = "Something went wrong while talking to the booking service."

    def __init__(self, resource: str, status_code: int | None, message: str):
        self.resource = resource
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{resource}] {status_code}: {message}")


class NotFoundError(GatewayError):
    """Raised when a requested record does not exist upstream or locally."""

    user_message = "Record not found."

    def __init__(self, resource: str, record_id: int | str, message: str = ""):
        self.record_id = record_id
        super().__init__(
            resource, 404, message or f"{resource} with id '{record_id}' not found"
        )


class ForbiddenError(GatewayError):
    """Raised on 403: the caller may not write this record.

    ``not_owned`` is set by the MutationCoordinator once it has decided the
    refusal means "this record belongs to someone else" rather than a
    write-restricted API.
    """

    user_message = "You are not allowed to change this record."

    def __init__(self, resource: str, message: str = "Forbidden", *, not_owned: bool = False):
        self.not_owned = not_owned
        super().__init__(resource, 403, message)

    @property
    def display_message(self) -> str:
        if self.not_owned:
            return "This record is not owned by you, so it cannot be changed."
        return self.user_message


class ValidationError(GatewayError):
    """Raised on 400: the payload was rejected. Message is upstream's, verbatim."""

    user_message = "The submitted data is invalid."

    def __init__(self, resource: str, message: str, status_code: int = 400):
        super().__init__(resource, status_code, message)


class UnauthorizedError(GatewayError):
    """Raised on 401: missing or expired access token."""

    user_message = "Your session has expired, please log in again."

    def __init__(self, resource: str, message: str = "Unauthorized"):
        super().__init__(resource, 401, message)


class ResourceUnavailableError(GatewayError):
    """Raised when every candidate endpoint failed at the transport level."""

    user_message = "Cannot reach the booking service, check your connection."

    def __init__(self, resource: str, attempts: list[str], message: str = ""):
        self.attempts = attempts
        super().__init__(
            resource,
            None,
            message or f"all endpoints failed ({', '.join(attempts) or 'none tried'})",
        )


class ServerError(GatewayError):
    """Raised on 5xx responses. Never retried automatically."""

    user_message = "Server error, try again later."


class UnexpectedResponseError(GatewayError):
    """Raised when a response body matches none of the known envelope shapes."""

    user_message = "The booking service returned an unexpected response."


class AssetUploadFailedError(GatewayError):
    """Non-fatal: the record mutation succeeded but its asset upload did not."""

    user_message = "The record was saved but its image could not be uploaded."


class MutationInProgressError(Exception):
    """Raised when the same mutation intent is submitted while still running."""

    user_message = "This change is already being saved."

    def __init__(self, key: tuple):
        self.key = key
        super().__init__(f"Mutation {key} is already submitting")


class ConfigurationError(Exception):
    """Raised when the console is wired with an invalid configuration."""


def describe_error(error: Exception) -> str:
    """Return the one human-readable message shown for a failed operation."""
    if isinstance(error, ForbiddenError):
        return error.display_message
    if isinstance(error, ValidationError) and error.message:
        return f"{error.user_message} {error.message}"
    user_message = getattr(error, "user_message", None)
    if user_message:
        return user_message
    return str(error) or "Unexpected error."
