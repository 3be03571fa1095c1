from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from connectpay.api.connect import router as connect_router
from connectpay.api.onboarding import router as onboarding_router
from connectpay.api.payments import router as payments_router
from connectpay.api.webhooks import router as webhooks_router
from connectpay.config import settings
from connectpay.container import Services, build_services
from connectpay.errors import PaymentsError, UpstreamError
from connectpay.middleware.request_context import RequestContextMiddleware

# Configure structlog
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        (
            structlog.dev.ConsoleRenderer()
            if settings.APP_ENV == "development"
            else structlog.processors.JSONRenderer()
        ),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(0),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info(
        "starting_up",
        env=app.state.services.settings.APP_ENV,
        platform_fee_percent=app.state.services.settings.PLATFORM_FEE_PERCENT,
    )
    yield
    log.info("shutting_down")


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

def _error_response(status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=body)


async def payments_error_handler(request: Request, exc: PaymentsError) -> JSONResponse:
    log.warning(
        "request_failed",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        error=exc.message,
    )
    decline_code = exc.decline_code if isinstance(exc, UpstreamError) else None
    return _error_response(
        exc.status_code, exc.message, code=exc.code, declineCode=decline_code,
    )


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part != "body")
        problems.append(f"{location}: {error['msg']}" if location else error["msg"])
    return _error_response(400, "; ".join(problems) or "Invalid request")


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
    return _error_response(exc.status_code, message)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_error", error=str(exc))
    detail = str(exc) if request.app.state.services.settings.APP_ENV == "development" else None
    return _error_response(500, "Internal server error", error=detail)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(services: Services | None = None) -> FastAPI:
    """Build the FastAPI app around *services* (fresh in-memory state if omitted)."""
    services = services or build_services(settings)

    app = FastAPI(
        title="Stripe Connect Marketplace API",
        version="2.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in services.settings.CORS_ORIGIN.split(",")],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(PaymentsError, payments_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(connect_router)
    app.include_router(onboarding_router)
    app.include_router(payments_router)
    app.include_router(webhooks_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": {
                "stripe_connect": "active",
                "stripe_onboarding": "active",
                "payments": "active",
                "webhooks": "active",
            },
        }

    return app


app = create_app()
