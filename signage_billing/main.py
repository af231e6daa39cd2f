import logging

import uvicorn
from fastapi import FastAPI

from signage_billing.config import settings
from signage_billing.exception_handlers import register_exception_handlers
from signage_billing.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from signage_billing.routes import audit_log, billing, displays, organizations, plans, promotions

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    setup_structured_logging(log_level=settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title=settings.app_name,
        description="Plan catalog, promotions, entitlement guards and admin audit for the signage platform",
        debug=settings.debug,
        version=settings.app_version,
    )

    app.add_middleware(StructuredLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(plans.router, prefix=API_PREFIX)
    app.include_router(promotions.router, prefix=API_PREFIX)
    app.include_router(organizations.router, prefix=API_PREFIX)
    app.include_router(audit_log.router, prefix=API_PREFIX)
    app.include_router(billing.router, prefix=API_PREFIX)
    app.include_router(displays.router, prefix=API_PREFIX)

    @app.get("/", tags=["Health"])
    async def health() -> dict:
        return {"status": "ok", "service": settings.app_name, "version": settings.app_version}

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("signage_billing.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
