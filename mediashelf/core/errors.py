# mediashelf/core/errors.py
from fastapi import Request, status
from fastapi.responses import JSONResponse


class AccountError(Exception):
    """
    Base class for failures raised by the account core.

    Each subclass carries the HTTP status it maps to and a stable,
    caller-visible message. The boundary layer (see `account_error_handler`)
    is the only place these become HTTP responses.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Account error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Forbidden(AccountError):
    """An authorization rule failed. No detail on which rule."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(AccountError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class Conflict(AccountError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Username already taken"


class Invalid(AccountError):
    """Payload contains a disallowed mutation."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid update"


class StoreError(AccountError):
    """The account store failed. Fatal to the current request, never retried."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Account store failure"


async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    """Map a typed account failure to `{"detail": message}` with its status."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
