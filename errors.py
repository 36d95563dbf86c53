"""
Error taxonomy shared by the repositories, the auth gate and the HTTP layer.

Every failure carries a machine-readable ``kind`` and a human-readable
``message``; the FastAPI exception handlers in main.py render them.
"""

from typing import List, Optional

from fastapi import status
from pydantic import ValidationError


class ServiceError(Exception):
    kind = "ServiceError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationFailed(ServiceError):
    kind = "ValidationFailed"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, details: List[dict], message: str = "Validation failed"):
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["details"] = self.details
        return body


class Conflict(ServiceError):
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFound(ServiceError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class Unauthorized(ServiceError):
    kind = "Unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class IdGenerationExhausted(ServiceError):
    kind = "IdGenerationExhausted"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class StoreUnavailable(ServiceError):
    kind = "StoreUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Database is unavailable, please try again later"):
        super().__init__(message)


def _field_message(msg: str) -> str:
    # pydantic prefixes messages raised from validators
    for prefix in ("Value error, ", "Assertion failed, "):
        if msg.startswith(prefix):
            return msg[len(prefix):]
    return msg


def translate_validation_error(errors) -> ValidationFailed:
    """Turn pydantic (or FastAPI request) validation errors into ValidationFailed.

    Accepts a ``pydantic.ValidationError`` or the list returned by its
    ``errors()`` method. The ``body`` prefix FastAPI adds to request
    locations is dropped so fields read the same either way.
    """
    if isinstance(errors, ValidationError):
        errors = errors.errors()
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append({
            "field": ".".join(loc) or None,
            "message": _field_message(err.get("msg", "Invalid value")),
        })
    return ValidationFailed(details)
