from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from .api.deps import manager_scope
from .api.v1.routers.approvals import router as approvals_router
from .api.v1.routers.health import router as health_router
from .core.config import Settings, get_settings, validate_settings
from .core.errors import WorkflowError
from .core.logging import configure_structlog, get_logger
from .core.observability import add_prometheus, add_tracing
from .db import get_engine
from .middleware.logging import RequestLoggingMiddleware
from .schemas.approvals import ErrorBody, ErrorEnvelope
from .services.expiry_sweeper import maybe_start_expiry_sweeper, maybe_stop_expiry_sweeper

logger = get_logger(__name__)


def _error(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    body = ErrorEnvelope(error=ErrorBody(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def _on_workflow_error(request: Request, exc: WorkflowError) -> JSONResponse:
    # 5xx here means the change was approved but not applied
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("request.workflow_error", path=request.url.path, code=exc.code, error=exc.message)
    return _error(exc.status_code, exc.code, exc.message, exc.details)


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    logger.warning("request.validation_error", path=request.url.path, errors=errors)
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        {"errors": errors},
    )


async def _on_rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("request.rate_limited", path=request.url.path, limit=str(exc.detail))
    return _error(status.HTTP_429_TOO_MANY_REQUESTS, "RATE_LIMITED", f"Rate limit exceeded: {exc.detail}")


async def _on_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "NOT_FOUND" if exc.status_code == status.HTTP_404_NOT_FOUND else "HTTP_ERROR"
    return _error(exc.status_code, code, str(exc.detail))


async def _on_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("request.database_error", path=request.url.path, error=str(exc), exc_info=True)
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "DATABASE_ERROR", "Database error occurred")


async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "request.unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=True,
    )
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
    )


def _install_rate_limiting(app: FastAPI, settings: Settings) -> None:
    if not settings.rate_limit_enabled:
        logger.info("rate_limiting.disabled")
        return
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.rate_limit_per_min}/minute"],
    )
    app.add_middleware(SlowAPIMiddleware)
    logger.info("rate_limiting.enabled", limit_per_min=settings.rate_limit_per_min)


def create_app() -> FastAPI:
    settings = get_settings()
    try:
        validate_settings(settings)
    except ValueError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    configure_structlog(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Human-in-the-loop approval queue for AI-proposed store changes",
    )

    app.add_exception_handler(WorkflowError, _on_workflow_error)
    app.add_exception_handler(RequestValidationError, _on_validation_error)
    app.add_exception_handler(RateLimitExceeded, _on_rate_limited)
    app.add_exception_handler(StarletteHTTPException, _on_http_error)
    app.add_exception_handler(SQLAlchemyError, _on_database_error)
    app.add_exception_handler(Exception, _on_unhandled)

    # Added innermost first: CORS wraps logging, which wraps the limiter
    _install_rate_limiting(app, settings)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    add_prometheus(app, app_name="workflow_engine")
    if settings.otel_enabled:
        add_tracing(
            app,
            service_name=settings.service_name,
            version=settings.app_version,
            endpoint=settings.otel_exporter_otlp_endpoint,
        )

    @app.on_event("startup")
    def on_startup() -> None:
        logger.info("startup", service=settings.service_name, port=settings.port, env=settings.env)
        get_engine()
        maybe_start_expiry_sweeper(app, manager_scope)

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        maybe_stop_expiry_sweeper(app)
        logger.info("shutdown", service=settings.service_name)

    app.include_router(health_router)
    app.include_router(approvals_router)

    return app


app = create_app()
