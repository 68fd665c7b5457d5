from typing import Any, Optional


class AppError(Exception):
    """Base for errors that map onto an HTTP response."""
    status: int = 400
    code: str = "bad_request"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def extra(self) -> dict:
        return {}


class Unauthorized(AppError):
    status = 401
    code = "unauthorized"


class Forbidden(AppError):
    status = 403
    code = "forbidden"


class NotFound(AppError):
    status = 404
    code = "not_found"


class InvalidState(AppError):
    status = 400
    code = "invalid_state"


class InvalidTransition(AppError):
    status = 400
    code = "invalid_transition"


class AlreadyAssigned(AppError):
    status = 409
    code = "already_assigned"


class InvalidOperation(AppError):
    status = 400
    code = "invalid_operation"


class QuotaExceeded(AppError):
    status = 429
    code = "quota_exceeded"

    def extra(self) -> dict:
        return {"needs_subscription": True}


class PaymentProviderError(AppError):
    status = 502
    code = "payment_provider_error"
