# reco_engine/api/v1/routers/admin.py
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from reco_engine.api.deps import popularity_svc, precompute_svc
from reco_engine.api.v1.schemas.reco import AckOut
from reco_engine.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def _run_recompute(precomputer, shop: str) -> None:
    try:
        await precomputer.recompute_shop(shop)
    except Exception:
        logger.exception("background recompute failed shop=%s", shop)


async def _run_popularity(calculator, shop: str, window_days: int) -> None:
    try:
        await calculator.recompute(shop, window_days)
    except Exception:
        logger.exception("background popularity failed shop=%s", shop)


@router.post("/recompute", response_model=AckOut, status_code=202)
async def recompute_shop(
    background_tasks: BackgroundTasks,
    shop: str = Query(..., min_length=1),
    precomputer = Depends(precompute_svc),
) -> AckOut:
    """Start rebuilding the shop's edge table and return immediately."""
    background_tasks.add_task(_run_recompute, precomputer, shop)
    logger.info("recompute scheduled shop=%s", shop)
    return AckOut(
        message="Recommendation calculation started. This may take several minutes.",
        shop=shop,
        job="recompute",
    )


@router.post("/popularity", response_model=AckOut, status_code=202)
async def recompute_popularity(
    background_tasks: BackgroundTasks,
    shop: str = Query(..., min_length=1),
    window_days: Optional[int] = Query(None, ge=1, le=365),
    calculator = Depends(popularity_svc),
    settings: Settings = Depends(get_settings),
) -> AckOut:
    days = window_days or settings.popularity_window_days
    background_tasks.add_task(_run_popularity, calculator, shop, days)
    logger.info("popularity scheduled shop=%s window_days=%s", shop, days)
    return AckOut(message=f"Popularity recompute started ({days}-day window).", shop=shop, job="popularity")
