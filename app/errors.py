from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


def unauthorized(message: str = "Missing bearer token.", *, code: str = "INVALID_TOKEN") -> ApiError:
    return ApiError(status_code=401, code=code, message=message)


def forbidden() -> ApiError:
    # Same body for every rule so callers cannot tell which check failed.
    return ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")


def not_found(entity: str) -> ApiError:
    return ApiError(status_code=404, code="NOT_FOUND", message=f"{entity} not found.")


def conflict(message: str) -> ApiError:
    return ApiError(status_code=409, code="CONFLICT", message=message)


def validation_error(message: str) -> ApiError:
    return ApiError(status_code=400, code="VALIDATION_ERROR", message=message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
