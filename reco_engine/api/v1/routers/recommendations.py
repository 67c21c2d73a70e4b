# reco_engine/api/v1/routers/recommendations.py
from datetime import datetime, timezone
from typing import Optional
import logging
import time

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from reco_engine.api.deps import ingestion_svc, recommendation_svc
from reco_engine.api.v1.schemas.reco import RecoMetadataOut, RecommendationsOut
from reco_engine.core.config import Settings, get_settings
from reco_engine.core.errors import RecoEngineError, StoreError
from reco_engine.domain.models.product import ProductAttrs

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recommendations"])


async def _ensure_placeholder(ingest, product_id: str, shop: str) -> None:
    try:
        if await ingest.products.get_product(product_id, shop) is None:
            await ingest.ensure_product(ProductAttrs(product_id=product_id), shop)
    except RecoEngineError as e:
        logger.warning("placeholder product not created product_id=%s shop=%s err=%s", product_id, shop, e)


@router.get("/recommendations", response_model=RecommendationsOut)
async def get_recommendations(
    background_tasks: BackgroundTasks,
    product_id: str = Query(..., min_length=1, alias="productId"),
    shop: str = Query(..., min_length=1),
    user_id: Optional[str] = Query(None, alias="userId"),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    limit: Optional[int] = Query(None, ge=1),
    svc = Depends(recommendation_svc),
    ingest = Depends(ingestion_svc),
    settings: Settings = Depends(get_settings),
):
    """
    Ranked recommendations for a product page.
    Unknown products get a placeholder metadata record once the response is
    sent, so later batch runs can pick them up. The tier for this request is
    decided before the placeholder exists.
    """
    limit = min(limit or settings.default_limit, settings.max_limit)
    t0 = time.perf_counter()

    try:
        items = await svc.recommend(product_id, shop, user_id=user_id, session_id=session_id, limit=limit)
    except StoreError as e:
        logger.error("recommendations failed product_id=%s shop=%s err=%s", product_id, shop, e)
        raise HTTPException(status_code=503, detail="Failed to get recommendations")

    if settings.create_placeholder_products:
        background_tasks.add_task(_ensure_placeholder, ingest, product_id, shop)

    logger.info(
        "Response: recommendations product_id=%s shop=%s count=%s elapsed_time=%.4fs",
        product_id, shop, len(items), time.perf_counter() - t0,
    )
    return RecommendationsOut(
        recommendations=items,
        metadata=RecoMetadataOut(
            requested_product=product_id,
            shop=shop,
            recommendation_count=len(items),
            timestamp=datetime.now(timezone.utc),
        ),
    )
