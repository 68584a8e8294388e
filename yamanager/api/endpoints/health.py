"""Public health check — DB and Redis connectivity."""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.api.deps import get_db
from yamanager.core.config import settings
from yamanager.schemas.common import HealthResponse

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    result = HealthResponse(status="ok", database="down", redis="down", version=settings.VERSION)

    try:
        await db.execute(select(1))
        result.database = "up"
    except SQLAlchemyError as e:
        logger.error("Health check DB failure: %s", e)
        result.status = "degraded"

    client = aioredis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
    try:
        await client.ping()
        result.redis = "up"
    except (RedisError, OSError) as e:
        logger.warning("Health check Redis failure: %s", e)
    finally:
        await client.aclose()

    return result
