"""
Domain error taxonomy. Services raise these; the API layer maps them to
HTTP responses in one place (see smartlearn.main).
"""


class DomainError(Exception):
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code}


class ValidationError(DomainError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class Unauthorized(DomainError):
    status_code = 401
    default_code = "UNAUTHORIZED"


class Forbidden(DomainError):
    status_code = 403
    default_code = "FORBIDDEN"


class NotFound(DomainError):
    status_code = 404
    default_code = "NOT_FOUND"


class Conflict(DomainError):
    status_code = 409
    default_code = "CONFLICT"


class GatewayAuthenticityError(DomainError):
    """Merchant or signature mismatch on an inbound gateway notification."""

    status_code = 400
    default_code = "GATEWAY_AUTHENTICITY"


class ExternalServiceError(DomainError):
    """Storage, renderer or email collaborator failure."""

    status_code = 502
    default_code = "EXTERNAL_SERVICE_ERROR"


class RateLimited(DomainError):
    status_code = 429
    default_code = "RATE_LIMITED"
