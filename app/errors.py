from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    kind = "error"
    default_status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        status_code: int | None = None,
        code: str | None = None,
        message: str = "Request failed.",
        details: dict[str, Any] | list[Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code or self.default_status_code
        self.code = code or self.default_code
        self.message = message
        self.details = details


class ValidationError(ApiError):
    kind = "validation_error"
    default_status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, code: str, message: str, details: dict[str, Any] | list[Any] | None = None):
        super().__init__(code=code, message=message, details=details)


class GeofenceViolation(ValidationError):
    kind = "geofence_violation"

    def __init__(self, *, distance_m: int, required_m: int, zone_name: str | None = None):
        place = zone_name or "the meeting point"
        super().__init__(
            "OUTSIDE_GEOFENCE",
            f"You are {distance_m}m away from {place}. Must be within {required_m}m to check in.",
            details={"distance": distance_m, "required": required_m},
        )
        self.distance_m = distance_m
        self.required_m = required_m


class Unauthorized(ApiError):
    kind = "unauthorized"
    default_status_code = 401
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized.", code: str | None = None):
        super().__init__(code=code, message=message)


class Forbidden(ApiError):
    kind = "forbidden"
    default_status_code = 403
    default_code = "FORBIDDEN"

    def __init__(self, message: str = "Insufficient permissions.", code: str | None = None):
        super().__init__(code=code, message=message)


class NotFound(ApiError):
    kind = "not_found"
    default_status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, message: str = "Not found.", code: str | None = None):
        super().__init__(code=code, message=message)


class Conflict(ApiError):
    kind = "conflict"
    default_status_code = 409
    default_code = "CONFLICT"

    def __init__(self, code: str, message: str):
        super().__init__(code=code, message=message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    kind: str = "error",
    details: Any = None,
) -> JSONResponse:
    error: dict[str, Any] = {
        "kind": kind,
        "code": code,
        "message": message,
        "request_id": get_request_id(request),
    }
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})
