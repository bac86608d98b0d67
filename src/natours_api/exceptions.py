"""AppError hierarchy for operational and unexpected failures."""

from __future__ import annotations


class AppError(Exception):
    """Structured application error forwarded to the global error handler.

    ``status`` is derived from the status code class: ``"fail"`` for 4xx,
    ``"error"`` for everything else.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        is_operational: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.is_operational = is_operational

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationFailed(AppError):
    """Bad input or failed validation (400)."""

    def __init__(self, message: str = "Invalid input data") -> None:
        super().__init__(message, status_code=400)


class AuthenticationFailed(AppError):
    """Authentication check failed (401)."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, status_code=401)


class PermissionDenied(AppError):
    """Role check failed (403)."""

    def __init__(
        self, message: str = "You do not have permission to perform this action"
    ) -> None:
        super().__init__(message, status_code=403)


class NotFound(AppError):
    """Requested record or route does not exist (404)."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message, status_code=404)


class PayloadTooLarge(AppError):
    """Request body exceeds the configured limit (413)."""

    def __init__(self, message: str = "Request body too large") -> None:
        super().__init__(message, status_code=413)


class Throttled(AppError):
    """Rate limit exceeded (429)."""

    def __init__(
        self,
        message: str = "Too many requests from this IP, please try again in an hour!",
        *,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class UnhandledError(AppError):
    """Non-operational wrapper around an unexpected exception."""

    def __init__(
        self, message: str = "Unhandled error", *, cause: BaseException | None = None
    ) -> None:
        super().__init__(message, status_code=500, is_operational=False)
        self.cause = cause


class CastError(ValueError):
    """A raw value could not be converted to the type of ``path``."""

    def __init__(self, path: str, value: object) -> None:
        super().__init__(f"Cast to {path} failed for value {value!r}")
        self.path = path
        self.value = value
