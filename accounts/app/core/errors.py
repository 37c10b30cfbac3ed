"""Error taxonomy shared by services and routes.

Each error carries the HTTP status it maps to. The detail string is for
logs only; responses are always empty-bodied.
"""

from typing import Optional


class AccountServiceError(Exception):
    """Base error with an HTTP status code and an internal detail."""

    status_code: int = 500

    def __init__(self, detail: str = "", headers: Optional[dict[str, str]] = None):
        self.detail = detail or self.__class__.__name__
        self.headers = headers
        super().__init__(self.detail)


class ValidationError(AccountServiceError):
    """Malformed, missing or forbidden input field."""

    status_code = 400

    def __init__(self, detail: str = "", field: Optional[str] = None):
        super().__init__(detail)
        self.field = field


class ConflictError(AccountServiceError):
    """Duplicate email or duplicate profile picture."""

    status_code = 400


class AuthError(AccountServiceError):
    status_code = 401

    def __init__(self, detail: str = ""):
        super().__init__(detail, headers={"WWW-Authenticate": "Basic"})


class ForbiddenError(AccountServiceError):
    """Unverified account accessing a gated resource."""

    status_code = 403


class TokenExpiredError(ForbiddenError):
    """Verification token matched but is past its expiry."""


class NotFoundError(AccountServiceError):
    status_code = 404


class UnavailableError(AccountServiceError):
    """Backing store unreachable."""

    status_code = 503


class InternalError(AccountServiceError):
    status_code = 500
