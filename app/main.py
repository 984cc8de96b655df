import asyncio
from contextlib import suppress
from datetime import datetime, timezone
import logging
import time
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors import ApiError, error_response
from app.logging_utils import bind_request_context, reset_request_context, setup_json_logging
from app.routers import admin, auth, organization, resources, users
from app.services.sessions import sweep_expired_sessions
from app.settings import get_cors_origins, get_settings

settings = get_settings()
setup_json_logging(settings.log_level)
logger = logging.getLogger("app.request")
session_worker_logger = logging.getLogger("app.session_worker")

HTTP_ERROR_CODES = {
    400: "VALIDATION_ERROR",
    401: "INVALID_TOKEN",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    423: "ACCOUNT_LOCKED",
    429: "TOO_MANY_ATTEMPTS",
}


app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    request.state.request_id = request_id
    request.state.actor = getattr(request.state, "actor", "system")
    request.state.actor_id = getattr(request.state, "actor_id", "system")
    context_token = bind_request_context(request_id=request_id, method=request.method, path=request.url.path)

    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "request_complete",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "latency_ms": latency_ms,
                "actor": getattr(request.state, "actor", "system"),
                "actor_id": getattr(request.state, "actor_id", "system"),
                "company_id": getattr(request.state, "company_id", None),
            },
        )
        reset_request_context(context_token)


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
    )


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    status_code = exc.status_code
    code = HTTP_ERROR_CODES.get(status_code, "HTTP_ERROR")
    message = str(exc.detail) if exc.detail else "Request failed."
    return error_response(
        request,
        status_code=status_code,
        code=code,
        message=message,
    )


def _describe_validation_errors(errors: list[dict[str, Any]]) -> str:
    # Echo locations and messages only; submitted values may hold passwords.
    parts = []
    for error in errors:
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = str(error.get("msg", "Invalid value"))
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request."


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status_code=400,
        code="VALIDATION_ERROR",
        message=_describe_validation_errors(list(exc.errors())),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return error_response(
        request,
        status_code=500,
        code="INTERNAL_ERROR",
        message="Unexpected server error.",
    )


# auth first: /api/users/me must win over /api/users/{user_id}
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(organization.router)
app.include_router(resources.router)
app.include_router(admin.router)


async def _session_sweep_loop(stop_event: asyncio.Event) -> None:
    interval_seconds = max(15, int(settings.session_sweep_interval_seconds))
    while not stop_event.is_set():
        try:
            purged = await asyncio.to_thread(sweep_expired_sessions, datetime.now(timezone.utc))
        except Exception:
            session_worker_logger.exception("session_sweep_tick_failed")
        else:
            if purged:
                session_worker_logger.info("session_sweep_tick", extra={"purged_sessions": purged})

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue


@app.on_event("startup")
async def start_session_sweeper() -> None:
    if not settings.session_sweep_enabled:
        return
    if getattr(app.state, "session_sweep_task", None) is not None:
        return

    stop_event = asyncio.Event()
    task = asyncio.create_task(_session_sweep_loop(stop_event))
    app.state.session_sweep_stop_event = stop_event
    app.state.session_sweep_task = task
    session_worker_logger.info(
        "session_sweep_started",
        extra={
            "interval_seconds": max(15, int(settings.session_sweep_interval_seconds)),
            "session_backend": settings.session_backend,
        },
    )


@app.on_event("shutdown")
async def stop_session_sweeper() -> None:
    stop_event: asyncio.Event | None = getattr(app.state, "session_sweep_stop_event", None)
    task: asyncio.Task[None] | None = getattr(app.state, "session_sweep_task", None)
    if stop_event is not None:
        stop_event.set()
    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    app.state.session_sweep_stop_event = None
    app.state.session_sweep_task = None


@app.get("/health")
def health() -> dict[str, Any]:
    task = getattr(app.state, "session_sweep_task", None)
    return {
        "status": "ok",
        "app": settings.app_name,
        "session_backend": settings.session_backend,
        "role_hierarchy_enabled": settings.role_hierarchy_enabled,
        "session_sweeper_running": task is not None and not task.done(),
    }
