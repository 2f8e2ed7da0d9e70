"""Exception hierarchy shared by the service layer and the API."""

from typing import Any

from fastapi import status


class CubordError(Exception):
    """Base class for every failure the service layer raises on purpose."""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> dict[str, Any]:
        """Build the JSON error envelope returned to API clients."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            },
            "detail": self.message,
        }


class ValidationError(CubordError):
    """The caller supplied missing or malformed input."""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidArgumentError(ValidationError):
    """An identity claim could not be turned into a user record."""

    code = "INVALID_ARGUMENT"


class AuthenticationRequiredError(CubordError):
    code = "AUTHENTICATION_REQUIRED"
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(CubordError):
    """Authenticated, but not a member of the household that owns the resource."""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class InsufficientPermissionError(CubordError):
    """Authenticated member lacking the elevated role the operation needs."""

    code = "INSUFFICIENT_PERMISSION"
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(CubordError):
    code = "RESOURCE_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Any = None):
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} with id {identifier} not found"
        super().__init__(message)
        self.resource = resource


class ConflictError(CubordError):
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class ResourceStateError(CubordError):
    """The resource is in a state that does not allow the operation."""

    code = "INVALID_RESOURCE_STATE"
    status_code = status.HTTP_409_CONFLICT


class BusinessRuleViolationError(CubordError):
    code = "BUSINESS_RULE_VIOLATION"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class DataIntegrityError(CubordError):
    """A write failed inside the persistence layer."""

    code = "DATA_INTEGRITY_ERROR"


class ExternalServiceError(CubordError):
    """A third-party API answered with an error or could not be used."""

    code = "EXTERNAL_SERVICE_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class ServiceUnavailableError(ExternalServiceError):
    """The third-party API was unreachable, timed out or answered 5xx."""

    code = "SERVICE_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class RateLimitExceededError(ExternalServiceError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class ParsingError(CubordError):
    """A third-party payload could not be parsed."""

    code = "UNSUPPORTED_FORMAT"
    status_code = status.HTTP_502_BAD_GATEWAY
