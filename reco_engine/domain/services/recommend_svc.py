# reco_engine/domain/services/recommend_svc.py
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, List, Optional, Set, Tuple

from reco_engine.core.errors import StoreError
from reco_engine.domain.models.product import Product
from reco_engine.domain.models.recommendation import RecommendationRequest, RecommendationType, ScoredProduct
from reco_engine.domain.repositories.edge_repo import EdgeRepo
from reco_engine.domain.repositories.interaction_repo import InteractionRepo
from reco_engine.domain.repositories.popular_cache_repo import PopularProductsCacheRepo
from reco_engine.domain.repositories.product_repo import ProductRepo
from reco_engine.domain.repositories.profile_repo import ProfileRepo
from reco_engine.domain.repositories.request_log_repo import RequestLogRepo
from reco_engine.domain.services.constants import (
    SCORE_PERSONALIZED, SCORE_SESSION, SCORE_POPULAR,
    REASON_PERSONALIZED, REASON_SESSION, REASON_POPULAR,
    SESSION_RECENT_PRODUCTS, MAX_EDGES_PER_SOURCE,
    TIER_PRECOMPUTED, TIER_PERSONALIZED, TIER_SESSION, TIER_SIMILARITY, TIER_POPULAR, TIER_NONE,
)
from reco_engine.domain.services.similarity import rank_similar

logger = logging.getLogger(__name__)

_MISSING = object()

# strong refs to in-flight analytics writes; the loop only keeps weak ones
_background_tasks: Set[asyncio.Task] = set()


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, float(score)))


def _scored(product: Product, reason: str, score: float) -> ScoredProduct:
    return ScoredProduct(
        id=product.product_id,
        title=product.title,
        price=product.price,
        type=product.type or None,
        vendor=product.vendor or None,
        reason=reason,
        score=_clamp(score),
    )


def _attribute_sets(products: List[Product]) -> Tuple[Set[str], Set[str], Set[str]]:
    types = {p.type for p in products if p.type}
    vendors = {p.vendor for p in products if p.vendor}
    tags = {t for p in products for t in p.tags}
    return types, vendors, tags


class RecommendationService:
    """
    Read-only query side. recommend() walks a fixed tier order and returns the
    first tier with at least one result:

      precomputed edges -> personalized -> session -> live similarity -> popular

    Store failures in the first four tiers count as an empty tier; the
    popularity tier is the only one allowed to raise.
    """

    def __init__(
        self,
        products: ProductRepo,
        profiles: ProfileRepo,
        interactions: InteractionRepo,
        edges: EdgeRepo,
        *,
        request_log: Optional[RequestLogRepo] = None,
        popular_cache: Optional[PopularProductsCacheRepo] = None,
        popular_cache_ttl: int = 300,
    ):
        self.products = products
        self.profiles = profiles
        self.interactions = interactions
        self.edges = edges
        self.request_log = request_log
        self.popular_cache = popular_cache
        self.popular_cache_ttl = popular_cache_ttl

    async def recommend(
        self,
        product_id: str,
        shop_domain: str,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        limit: int = 5,
    ) -> List[ScoredProduct]:
        t0 = time.perf_counter()
        logger.info(
            "recommend start product_id=%s shop=%s user_id=%s session_id=%s limit=%s",
            product_id, shop_domain, user_id, session_id, limit,
        )
        if limit <= 0:
            return []

        tier, items = await self._resolve(product_id, shop_domain, user_id, session_id, limit)

        logger.info(
            "recommend done product_id=%s shop=%s tier=%s items=%s total_time=%.3fs",
            product_id, shop_domain, tier, len(items), time.perf_counter() - t0,
        )
        self._track(RecommendationRequest(
            shop_domain=shop_domain,
            product_id=product_id,
            user_id=user_id,
            session_id=session_id,
            tier=tier,
            recommendation_count=len(items),
            requested_at=datetime.now(timezone.utc),
        ))
        return items

    async def _resolve(self, product_id, shop_domain, user_id, session_id, limit) -> Tuple[str, List[ScoredProduct]]:
        items = await self._guarded(TIER_PRECOMPUTED, self._precomputed(product_id, shop_domain, limit))
        if items:
            return TIER_PRECOMPUTED, items

        if user_id:
            items = await self._guarded(TIER_PERSONALIZED, self._personalized(product_id, shop_domain, user_id, limit))
            if items:
                return TIER_PERSONALIZED, items

        if session_id:
            items = await self._guarded(TIER_SESSION, self._session(product_id, shop_domain, session_id, limit))
            if items:
                return TIER_SESSION, items

        source = await self._guarded(TIER_SIMILARITY, self.products.get_product(product_id, shop_domain), default=_MISSING)
        if source is None:
            logger.info("source product %s not found for shop %s", product_id, shop_domain)
        elif source is not _MISSING and not source.has_attributes():
            logger.info("source product %s has no attributes shop=%s, skipping similarity", product_id, shop_domain)
        elif source is not _MISSING:
            items = await self._guarded(TIER_SIMILARITY, self._live_similarity(source, shop_domain, limit))
            if items:
                return TIER_SIMILARITY, items

        # no guard: a store failure here is a hard failure
        items = await self._popular(product_id, shop_domain, limit)
        return (TIER_POPULAR if items else TIER_NONE), items

    async def _guarded(self, tier: str, call: Awaitable, default=None):
        try:
            result = await call
        except StoreError as e:
            logger.warning("recommend tier=%s store error, falling through: %s", tier, e)
            return [] if default is None else default
        return result

    # ----- tiers -------------------------------------------------------------

    async def _precomputed(self, product_id: str, shop_domain: str, limit: int) -> List[ScoredProduct]:
        # edges to products missing from metadata are skipped, so read the whole set
        edges = await self.edges.list_for_source(shop_domain, product_id, MAX_EDGES_PER_SOURCE)
        if not edges:
            return []
        by_id = {p.product_id: p for p in await self.products.get_many(shop_domain, {e.recommended_product_id for e in edges})}

        items = []
        for e in edges:
            product = by_id.get(e.recommended_product_id)
            if product is None:
                logger.warning("edge target %s missing from metadata shop=%s", e.recommended_product_id, shop_domain)
                continue
            items.append(_scored(product, RecommendationType(e.recommendation_type).label, e.score))
            if len(items) == limit:
                break
        return items

    async def _personalized(self, product_id: str, shop_domain: str, user_id: str, limit: int) -> List[ScoredProduct]:
        profile = await self.profiles.get(user_id, shop_domain)
        if profile is None or not profile.has_signals():
            return []

        viewed = await self.products.get_many(shop_domain, profile.viewed_products)
        _, _, tags = _attribute_sets(viewed)
        matches = await self.products.find_matching(
            shop_domain,
            types=sorted(profile.preferred_categories),
            vendors=sorted(profile.preferred_brands),
            tags=sorted(tags),
            exclude=[product_id],
            limit=limit,
        )
        return [_scored(p, REASON_PERSONALIZED, SCORE_PERSONALIZED) for p in matches]

    async def _session(self, product_id: str, shop_domain: str, session_id: str, limit: int) -> List[ScoredProduct]:
        recent_ids = await self.interactions.recent_session_products(
            shop_domain, session_id, exclude=[product_id], limit=SESSION_RECENT_PRODUCTS,
        )
        if not recent_ids:
            return []

        recent = await self.products.get_many(shop_domain, recent_ids)
        types, vendors, tags = _attribute_sets(recent)
        matches = await self.products.find_matching(
            shop_domain,
            types=sorted(types),
            vendors=sorted(vendors),
            tags=sorted(tags),
            exclude=[product_id, *recent_ids],
            limit=limit,
        )
        return [_scored(p, REASON_SESSION, SCORE_SESSION) for p in matches]

    async def _live_similarity(self, source: Product, shop_domain: str, limit: int) -> List[ScoredProduct]:
        catalog = await self.products.list_by_shop(shop_domain)
        return [_scored(s.product, s.reason, s.score) for s in rank_similar(source, catalog, limit)]

    async def _popular(self, product_id: str, shop_domain: str, limit: int) -> List[ScoredProduct]:
        products = await self._popular_products(shop_domain, limit + 1)
        picked = [p for p in products if p.product_id != product_id][:limit]
        return [_scored(p, REASON_POPULAR, SCORE_POPULAR) for p in picked]

    async def _popular_products(self, shop_domain: str, size: int) -> List[Product]:
        if self.popular_cache is None:
            return await self.products.list_popular(shop_domain, size)

        key = self.popular_cache.key(shop_domain, size)
        try:
            cached = await self.popular_cache.get(key)
        except Exception as e:
            logger.warning("popular cache get error key=%s err=%s", key, e)
            cached = None
        # a short list means the shop had fewer products than asked for; products
        # created since then would be missing from it
        if cached is not None and len(cached) >= size:
            logger.debug("popular cache_hit key=%s items=%s", key, len(cached))
            return cached

        products = await self.products.list_popular(shop_domain, size)
        try:
            await self.popular_cache.set(key, products, self.popular_cache_ttl)
        except Exception as e:
            logger.warning("popular cache set error key=%s err=%s", key, e)
        return products

    # ----- analytics -----------------------------------------------------------

    def _track(self, record: RecommendationRequest) -> None:
        """Fire-and-forget: never awaited by recommend(), never raises."""
        if self.request_log is None:
            return
        try:
            task = asyncio.get_running_loop().create_task(self._write_request(record))
        except RuntimeError as e:
            logger.warning("request tracking not scheduled: %s", e)
            return
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    async def _write_request(self, record: RecommendationRequest) -> None:
        try:
            await self.request_log.insert(record)
        except Exception as e:
            logger.warning("failed to track recommendation request shop=%s product=%s err=%s",
                           record.shop_domain, record.product_id, e)

    @staticmethod
    async def drain() -> None:
        """Wait for pending analytics writes (shutdown, tests)."""
        if _background_tasks:
            await asyncio.gather(*list(_background_tasks), return_exceptions=True)
