# reco_engine/core/scheduler.py
import asyncio
import logging
from typing import Optional

from reco_engine.core.config import get_settings
from reco_engine.db import mongo
from reco_engine.db.redis import get_redis
from reco_engine.domain.repositories.product_repo import ProductRepo
from reco_engine.domain.services import wiring

logger = logging.getLogger(__name__)


async def run_batch_once() -> None:
    """
    One pass over every shop: popularity first, then the edge table.
    A failing shop is logged; the next shop still runs.
    """
    settings = get_settings()
    db, redis = mongo.get_db(), get_redis()
    popularity = wiring.build_popularity_calculator(db, redis, settings)
    precomputer = wiring.build_precomputer(db, redis, settings)

    for shop in await ProductRepo(db).list_shops():
        try:
            await popularity.recompute(shop, settings.popularity_window_days)
            await precomputer.recompute_shop(shop)
        except Exception:
            logger.exception("scheduled batch failed shop=%s", shop)


async def _loop(interval_s: int) -> None:
    while True:
        await asyncio.sleep(interval_s)
        try:
            await run_batch_once()
        except Exception:
            logger.exception("scheduled batch pass failed")


class BatchScheduler:
    """Periodic recompute task owned by the app lifespan."""

    def __init__(self, interval_s: int):
        self.interval_s = interval_s
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self.interval_s <= 0:
            logger.info("batch scheduler disabled (recompute_interval_s=%s)", self.interval_s)
            return
        self._task = asyncio.get_running_loop().create_task(_loop(self.interval_s))
        logger.info("batch scheduler started interval=%ss", self.interval_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("batch scheduler stopped")
