# calendar_bridge/core/exceptions.py
from fastapi import HTTPException, status


class AuthError(HTTPException):
    """Base for every authentication failure; always answered with 401."""

    default_detail = "Unauthorized"

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail or self.default_detail)


class AuthenticationRequired(AuthError):
    default_detail = "Email is required"


class NotAuthenticated(AuthError):
    default_detail = "User not authenticated"


class SessionExpired(AuthError):
    default_detail = "Session expired. Please sign in again."
