from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the process-wide collaborators: the aggregate store, the transaction
engine and the rate admission policy are built here once, stored on
``app.state`` and handed to handlers by reference.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ratings_api.adapters.store import AbstractAggregateStore, create_store
from ratings_api.api.routes import company_router, health_router
from ratings_api.core.config import Settings, settings as default_settings
from ratings_api.core.exception_handlers import setup_exception_handlers
from ratings_api.core.logging import configure_logging
from ratings_api.core.middleware import request_id_middleware
from ratings_api.core.openapi import apply_openapi_customizations
from ratings_api.core.rate_limit import RateAdmission
from ratings_api.services.company_service import CompanyService
from ratings_api.services.transaction_engine import TransactionEngine

logger = logging.getLogger(__name__)


def _parse_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()] or ["*"]


def create_app(
    app_settings: Settings | None = None,
    *,
    store: AbstractAggregateStore | None = None,
    rate_admission: RateAdmission | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        store: Pre-built store (tests); built from settings when omitted.
        rate_admission: Pre-built admission policy (tests); built from
            settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    if store is None:
        store = create_store(cfg.store)
    engine = TransactionEngine(store, max_attempts=cfg.app.transaction_max_attempts)
    service = CompanyService(
        store,
        engine,
        create_missing=cfg.app.create_missing_companies,
    )
    admission = (
        rate_admission if rate_admission is not None else RateAdmission.from_settings(cfg.app)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "app.startup",
            extra={
                "store_backend": type(store).__name__,
                "rate_limit_enabled": admission.enabled,
                "create_missing_companies": cfg.app.create_missing_companies,
            },
        )
        try:
            yield
        finally:
            await store.close()
            logger.info("app.shutdown")

    app = FastAPI(
        title="Company Ratings API",
        description=(
            "Anonymous, rate-limited votes on employers (worth it, keep working, "
            "work setting, general rating, weekly hours) folded into one aggregate "
            "record per company with optimistic concurrency."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.state.settings = cfg
    app.state.store = store
    app.state.company_service = service
    app.state.rate_admission = admission

    # Middleware
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(cfg.app.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[cfg.log.request_id_header, "Retry-After"],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(company_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
