# reco_engine/core/lifespan.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from reco_engine.db import mongo, redis as r
from reco_engine.core.config import get_settings
from reco_engine.core.scheduler import BatchScheduler
from reco_engine.domain.services.recommend_svc import RecommendationService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    # Mongo is required
    await mongo.connect()

    # Redis is optional
    if settings.REDIS_URL:
        await r.connect()
    else:
        logger.info("No REDIS_URL provided, popular cache and distributed locks disabled")

    scheduler = BatchScheduler(settings.recompute_interval_s)
    scheduler.start()

    # Application runs
    yield

    # --- Shutdown ---
    await scheduler.stop()
    # let fire-and-forget analytics writes land before the client closes
    await RecommendationService.drain()

    try:
        await r.disconnect()
    except Exception as e:
        logger.warning("Redis disconnect failed: %s", e)

    await mongo.disconnect()
    logger.info("Mongo disconnected")
