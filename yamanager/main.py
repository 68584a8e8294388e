"""
YaManager — application entry point.

This is the **only** file that assembles the app. All business logic lives
in the `services/` package; `api/` is a thin REST layer over it.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from yamanager.api.api import api_router
from yamanager.api.endpoints.files import limiter
from yamanager.core.config import settings
from yamanager.core.exceptions import (ErrorCode, error_response,
                                       register_exception_handlers)
from yamanager.db.base import Base
from yamanager.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from yamanager.models.calendar_entry import CalendarEntry  # noqa: F401
from yamanager.models.default_settings import DefaultSettings  # noqa: F401
from yamanager.models.user import User, UserPolicy  # noqa: F401
from yamanager.services.policy import seed_defaults

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    async with async_session_factory() as session:
        await seed_defaults(session)

    logger.info("YaManager v%s started", settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Vacation, sick-day and overtime management",
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def request_deadline(request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), settings.REQUEST_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.error("%s %s exceeded %ss", request.method, request.url.path, settings.REQUEST_TIMEOUT_SECONDS)
            return error_response(ErrorCode.TIMEOUT, request.query_params.get("lang"))

    application.state.limiter = limiter
    register_exception_handlers(application)

    application.include_router(api_router, prefix=settings.API_PREFIX)

    return application


app = create_app()
