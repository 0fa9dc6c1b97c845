"""Domain errors and their HTTP mapping"""

from typing import Optional


class DomainError(Exception):
    """Base class for errors surfaced to API clients as ``{"ok": false, "error": code}``"""

    status_code = 400
    code = "error"

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None, headers: Optional[dict] = None):
        self.code = code or self.code
        self.message = message or self.code.replace("_", " ")
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.code, "message": self.message}


class ValidationError(DomainError):
    status_code = 400
    code = "validation"


class UnauthorizedError(DomainError):
    status_code = 401
    code = "unauthorized"


class ForbiddenError(DomainError):
    status_code = 403
    code = "forbidden"


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class ConflictError(DomainError):
    status_code = 409
    code = "conflict"


class RateLimitedError(DomainError):
    status_code = 429
    code = "rate_limited"


class ServerError(DomainError):
    status_code = 500
    code = "server_error"


class PaymentProviderError(DomainError):
    status_code = 502
    code = "payment_provider_error"
