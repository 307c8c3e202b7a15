"""FastAPI application factory"""

import logging
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.requests import Request
from starlette.responses import Response

from offer_gateway.api.dependencies import get_request_id
from offer_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from offer_gateway.api.v1 import offers, next_payments
from offer_gateway.domain.exceptions import (
    DomainException,
    ForbiddenError,
    InternalFailureError,
    NotFoundError,
    PreconditionFailedError,
    ValidationFailureError,
)
from offer_gateway.infrastructure.observability.logging import setup_logging
from offer_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    NotFoundError: 404,
    ForbiddenError: 403,
    PreconditionFailedError: 412,
    ValidationFailureError: 422,
    InternalFailureError: 500,
}


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Translate domain failures into HTTP responses"""
    status_code = STATUS_CODES.get(type(exc), 500)
    request_id = get_request_id(request)

    if status_code >= 500:
        logger.error(f"Operation failed: {exc}", extra={"request_id": request_id, "path": request.url.path})
    else:
        logger.warning(f"Request rejected: {exc}", extra={"request_id": request_id, "path": request.url.path})

    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Offer Gateway",
        description="Property offer lifecycle and installment payment tracking service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(offers.router, prefix="/v1", tags=["offers"])
    app.include_router(next_payments.router, prefix="/v1", tags=["next-payments"])

    return app


app = create_app()
