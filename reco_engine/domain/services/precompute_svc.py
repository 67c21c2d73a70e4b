# reco_engine/domain/services/precompute_svc.py
import asyncio
import logging
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel

from reco_engine.domain.models.product import Product
from reco_engine.domain.models.recommendation import Candidate, RecommendationEdge, RecommendationType
from reco_engine.domain.repositories.edge_repo import EdgeRepo
from reco_engine.domain.repositories.interaction_repo import InteractionRepo
from reco_engine.domain.repositories.product_repo import ProductRepo
from reco_engine.domain.services.constants import (
    TOP_K_BOUGHT_TOGETHER, TOP_K_SIMILAR, TOP_K_ALSO_VIEWED,
    BOOST_BOUGHT_TOGETHER, BOOST_ALSO_VIEWED, ALSO_VIEWED_CAP,
)
from reco_engine.domain.services.similarity import rank_similar
from reco_engine.utils.locks import KeyedLocks

logger = logging.getLogger(__name__)


class RecomputeSummary(BaseModel):
    shop_domain: str
    products: int = 0
    succeeded: int = 0
    failed: int = 0
    edges: int = 0


def _top(counts: Dict[str, float], k: int) -> List[Candidate]:
    # score desc, product id asc: reruns produce the same order
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:k]
    return [Candidate(product_id=pid, score=min(1.0, score)) for pid, score in ranked]


class RecommendationPrecomputer:
    """
    Batch job deriving the precomputed edge table of a shop:
    frequently-bought-together, attribute similarity and also-viewed.
    """

    def __init__(
        self,
        products: ProductRepo,
        interactions: InteractionRepo,
        edges: EdgeRepo,
        *,
        locks: Optional[KeyedLocks] = None,
        concurrency: int = 1,
    ):
        self.products = products
        self.interactions = interactions
        self.edges = edges
        self.locks = locks or KeyedLocks()
        self.concurrency = max(1, concurrency)

    # ----- candidate sets ---------------------------------------------------

    async def frequently_bought_together(self, product_id: str, shop_domain: str) -> List[Candidate]:
        order_ids = await self.interactions.order_ids_with_product(shop_domain, product_id)
        if not order_ids:
            return []
        items = await self.interactions.items_for_orders(shop_domain, order_ids)

        # one co-occurrence per order, however many lines it has
        pairs = {(item.order_id, item.product_id) for item in items if item.product_id != product_id}
        counts: Dict[str, float] = defaultdict(float)
        for _, other in pairs:
            counts[other] += 1
        total = len(set(order_ids))
        return _top({pid: n / total for pid, n in counts.items()}, TOP_K_BOUGHT_TOGETHER)

    async def similar_products(self, source: Product, catalog: List[Product]) -> List[Candidate]:
        ranked = rank_similar(source, catalog, TOP_K_SIMILAR)
        return [Candidate(product_id=s.product.product_id, score=s.score) for s in ranked]

    async def also_viewed(self, product_id: str, shop_domain: str) -> List[Candidate]:
        viewers = await self.interactions.viewers_of(shop_domain, product_id)
        if not viewers:
            return []
        sessions = {s for s, _ in viewers if s}
        users = {u for _, u in viewers if u}
        views = await self.interactions.views_by_viewers(shop_domain, sorted(sessions), sorted(users))

        # distinct viewers per co-viewed product
        co_viewers: Dict[str, set] = defaultdict(set)
        for view in views:
            if view.product_id != product_id:
                co_viewers[view.product_id].add((view.session_id, view.user_id))
        total = len(viewers)
        counts = {pid: min(ALSO_VIEWED_CAP, len(who) / total) for pid, who in co_viewers.items()}
        return _top(counts, TOP_K_ALSO_VIEWED)

    # ----- merge -----------------------------------------------------------

    @staticmethod
    def merge(
        shop_domain: str,
        source_product_id: str,
        bought_together: List[Candidate],
        similar: List[Candidate],
        viewed: List[Candidate],
        *,
        calculated_at: datetime,
    ) -> List[RecommendationEdge]:
        def edge(c: Candidate, kind: RecommendationType, boost: float) -> RecommendationEdge:
            return RecommendationEdge(
                shop_domain=shop_domain,
                source_product_id=source_product_id,
                recommended_product_id=c.product_id,
                recommendation_type=kind,
                score=min(1.0, c.score + boost),
                last_calculated=calculated_at,
            )

        return (
            [edge(c, RecommendationType.FREQUENTLY_BOUGHT_TOGETHER, BOOST_BOUGHT_TOGETHER) for c in bought_together]
            + [edge(c, RecommendationType.SIMILAR_PRODUCTS, 0.0) for c in similar]
            + [edge(c, RecommendationType.ALSO_VIEWED, BOOST_ALSO_VIEWED) for c in viewed]
        )

    # ----- entry points ------------------------------------------------------

    async def recompute_product(
        self,
        product_id: str,
        shop_domain: str,
        *,
        catalog: Optional[List[Product]] = None,
    ) -> List[RecommendationEdge]:
        """
        Rebuild and atomically replace the edge set of one source product.
        Unknown products are skipped (stored edges untouched) and return [].
        """
        async with self.locks.hold(f"recompute:{shop_domain}:{product_id}"):
            if catalog is None:
                catalog = await self.products.list_by_shop(shop_domain)
            source = next((p for p in catalog if p.product_id == product_id), None)
            if source is None:
                logger.info("recompute skip: product %s not found in shop %s", product_id, shop_domain)
                return []

            bought_together = await self.frequently_bought_together(product_id, shop_domain)
            similar = await self.similar_products(source, catalog)
            viewed = await self.also_viewed(product_id, shop_domain)

            edges = self.merge(
                shop_domain, product_id, bought_together, similar, viewed,
                calculated_at=datetime.now(timezone.utc),
            )
            await self.edges.replace_for_source(shop_domain, product_id, edges)
            logger.debug(
                "recompute product=%s shop=%s fbt=%s similar=%s also_viewed=%s",
                product_id, shop_domain, len(bought_together), len(similar), len(viewed),
            )
            return edges

    async def recompute_shop(self, shop_domain: str) -> RecomputeSummary:
        """
        Recompute every product of the shop. One product failing is logged
        and skipped; the pass always runs to the end.
        """
        t0 = time.perf_counter()
        catalog = await self.products.list_by_shop(shop_domain)
        summary = RecomputeSummary(shop_domain=shop_domain, products=len(catalog))
        logger.info("recompute_shop start shop=%s products=%s concurrency=%s", shop_domain, len(catalog), self.concurrency)

        sem = asyncio.Semaphore(self.concurrency)

        async def _one(product: Product) -> None:
            async with sem:
                try:
                    edges = await self.recompute_product(product.product_id, shop_domain, catalog=catalog)
                except Exception:
                    logger.exception("recompute failed product=%s shop=%s", product.product_id, shop_domain)
                    summary.failed += 1
                    return
                summary.succeeded += 1
                summary.edges += len(edges)

        if self.concurrency == 1:
            for product in catalog:
                await _one(product)
        else:
            await asyncio.gather(*(_one(p) for p in catalog))

        logger.info(
            "recompute_shop done shop=%s succeeded=%s failed=%s edges=%s total_time=%.3fs",
            shop_domain, summary.succeeded, summary.failed, summary.edges, time.perf_counter() - t0,
        )
        return summary
