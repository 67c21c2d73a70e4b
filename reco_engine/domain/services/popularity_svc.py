import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from reco_engine.domain.repositories.interaction_repo import InteractionRepo
from reco_engine.domain.repositories.popular_cache_repo import PopularProductsCacheRepo
from reco_engine.domain.repositories.product_repo import ProductRepo
from reco_engine.domain.services.constants import POPULARITY_VIEW_WEIGHT, POPULARITY_PURCHASE_WEIGHT

logger = logging.getLogger(__name__)


def _normalize(counts: Dict[str, int]) -> Dict[str, float]:
    top = max(counts.values(), default=0)
    if top <= 0:
        return {pid: 0.0 for pid in counts}
    return {pid: n / top for pid, n in counts.items()}


def blend_popularity(views: Dict[str, int], purchases: Dict[str, int]) -> Dict[str, float]:
    """
    popularity = 0.3 * views/max(views) + 0.7 * units/max(units), per product
    that had any interaction. Products absent from both maps are not returned.
    """
    view_norm = _normalize(views)
    purchase_norm = _normalize(purchases)
    scores = {}
    for pid in set(views) | set(purchases):
        score = POPULARITY_VIEW_WEIGHT * view_norm.get(pid, 0.0) + POPULARITY_PURCHASE_WEIGHT * purchase_norm.get(pid, 0.0)
        scores[pid] = max(0.0, min(1.0, score))
    return scores


class PopularityCalculator:
    """Windowed popularity scores. Full-shop batch, idempotent."""

    def __init__(self, products: ProductRepo, interactions: InteractionRepo,
                 cache: Optional[PopularProductsCacheRepo] = None):
        self.products = products
        self.interactions = interactions
        self.cache = cache

    async def recompute(self, shop_domain: str, window_days: int = 30, *, now: Optional[datetime] = None) -> int:
        """Returns the number of products whose popularity was written."""
        t0 = time.perf_counter()
        since = (now or datetime.now(timezone.utc)) - timedelta(days=window_days)
        logger.info("popularity start shop=%s window_days=%s since=%s", shop_domain, window_days, since.isoformat())

        views = await self.interactions.view_counts_since(shop_domain, since)
        purchases = await self.interactions.purchase_quantities_since(shop_domain, since)
        scores = blend_popularity(views, purchases)

        updated = 0
        for product_id, score in sorted(scores.items()):
            if await self.products.set_popularity(shop_domain, product_id, score):
                updated += 1

        if self.cache is not None:
            try:
                await self.cache.invalidate_shop(shop_domain)
            except Exception as e:
                logger.warning("popularity cache invalidate error shop=%s err=%s", shop_domain, e)

        logger.info(
            "popularity done shop=%s viewed=%s purchased=%s updated=%s total_time=%.3fs",
            shop_domain, len(views), len(purchases), updated, time.perf_counter() - t0,
        )
        return updated
