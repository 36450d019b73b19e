"""
Typed API errors.

Raised anywhere inside a request (guards, services, handlers) and translated
to a JSON response by the handlers registered in ``create_app()``:

    {"error": "<code>", "code": <status>, ...details}
"""
from typing import Any, Dict, Optional


class ApiError(Exception):
    status_code = 500
    error = "internal_error"

    def __init__(self, error: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None, headers=None):
        super().__init__(error or self.error)
        if error:
            self.error = error
        self.details = details or {}
        self.headers = headers or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.error, "code": self.status_code}
        payload.update(self.details)
        return payload


class BadRequest(ApiError):
    status_code = 400
    error = "bad_request"


class Unauthorized(ApiError):
    status_code = 401
    error = "unauthorized"


class Forbidden(ApiError):
    status_code = 403
    error = "forbidden"


class NotFound(ApiError):
    status_code = 404
    error = "not_found"


class Conflict(ApiError):
    status_code = 409
    error = "conflict"


class RateLimited(ApiError):
    status_code = 429
    error = "rate_limited"


def validation_error(errors) -> BadRequest:
    """400 with a field -> message list, same shape for every form."""
    return BadRequest("validation_error", details={"details": errors})
