from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Settings, settings
from app.core.errors import (
    MetricsAPIException,
    build_unhandled_exception_handler,
    http_exception_handler,
    metrics_exception_handler,
    validation_exception_handler,
)
from app.core.logging import configure_logging
from app.db.base import get_db
from app.domain.units import MetricType, get_valid_units
from app.middleware.rate_limit import RateLimiter
from app.middleware.request_id import RequestIdMiddleware
from app.routers import metrics as metrics_router
from app.schemas.metric import ApiInfoResponse

API_VERSION = "1.0.0"


def create_app(settings: Settings) -> FastAPI:
    configure_logging(settings)

    app = FastAPI(
        title="Metrics API",
        description=(
            "**Health metrics with unit conversion**\n\n"
            "Records distance and temperature measurements, normalizes every "
            "value to a base unit (meter / kelvin) and serves paginated lists "
            "and per-day chart data in any supported unit.\n\n"
            "All error responses follow the `{success, error: {code, message, details}}` envelope."
        ),
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    # --- Middleware ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-Id",
            "RateLimit-Limit",
            "RateLimit-Remaining",
            "RateLimit-Reset",
            "Retry-After",
        ],
    )
    app.add_middleware(RequestIdMiddleware)

    # --- Exception handlers (most specific first) ---
    app.add_exception_handler(MetricsAPIException, metrics_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(
        Exception, build_unhandled_exception_handler(expose_details=not settings.is_production)
    )

    # --- Routers ---
    rate_limiter = RateLimiter.from_settings(settings)
    app.state.rate_limiter = rate_limiter
    app.include_router(metrics_router.router, dependencies=[Depends(rate_limiter)])

    @app.get("/health", tags=["health"], summary="Health check")
    def health(db: Session = Depends(get_db)):
        """
        Returns `{"status": "ok", "db": "ok"}` when both the API and the database
        are reachable. Returns HTTP 503 if the DB is down.
        """
        try:
            db.execute(text("SELECT 1"))
            db_status = "ok"
        except SQLAlchemyError:
            db_status = "unreachable"

        if db_status != "ok":
            return JSONResponse(
                status_code=503,
                content={"status": "error", "db": db_status},
            )
        return {"status": "ok", "db": "ok", "env": settings.APP_ENV}

    @app.get("/api", tags=["health"], response_model=ApiInfoResponse, summary="API information")
    def api_info():
        """Service metadata and the units accepted for each metric type."""
        return ApiInfoResponse(
            name="Metrics API",
            version=API_VERSION,
            description="Metrics tracking with unit conversion",
            endpoints={
                "metrics": "/metrics",
                "chart": "/metrics/chart",
                "health": "/health",
            },
            supported_units={t.value: get_valid_units(t) for t in MetricType},
        )

    return app


app = create_app(settings)
