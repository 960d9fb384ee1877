"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from coop_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from coop_ledger.api.v1 import interest, loans, members, payments, reports
from coop_ledger.infrastructure.observability.logging import setup_logging
from coop_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Cooperative Loan Ledger",
        description="Member balances, loan interest accrual, payments and loan applications",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name, "storage": settings.storage_backend}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(members.router, prefix="/v1", tags=["members"])
    app.include_router(interest.router, prefix="/v1", tags=["interest"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])

    return app


app = create_app()
