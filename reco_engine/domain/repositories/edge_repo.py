# reco_engine/domain/repositories/edge_repo.py

from __future__ import annotations
import logging
from typing import List, Sequence

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from reco_engine.core.errors import translate_store_errors
from reco_engine.domain.models.recommendation import RecommendationEdge

logger = logging.getLogger(__name__)


class EdgeRepo:
    """
    Precomputed recommendation edges ('product_recommendations').
    The edge set of a source product is only ever replaced as a whole.
    """

    def __init__(self, db: AsyncIOMotorDatabase, *, use_transactions: bool = True,
                 collection_name: str = "product_recommendations"):
        self.db = db
        self.col = db[collection_name]
        self.use_transactions = use_transactions

    @translate_store_errors
    async def list_for_source(self, shop_domain: str, source_product_id: str, limit: int) -> List[RecommendationEdge]:
        cursor = (
            self.col.find({"shop_domain": shop_domain, "source_product_id": source_product_id}, {"_id": 0})
            .sort([("score", DESCENDING), ("_id", ASCENDING)])
            .limit(limit)
        )
        return [RecommendationEdge.model_validate(doc) async for doc in cursor]

    @translate_store_errors
    async def replace_for_source(
        self,
        shop_domain: str,
        source_product_id: str,
        edges: Sequence[RecommendationEdge],
    ) -> int:
        """
        Delete every edge of (shop_domain, source_product_id) and insert `edges`,
        in one transaction when enabled. Returns the number of edges written.
        """
        key = {"shop_domain": shop_domain, "source_product_id": source_product_id}
        docs = [e.model_dump() | {"recommendation_type": e.recommendation_type.value} for e in edges]

        if not self.use_transactions:
            # standalone mongod: caller holds the per-key lock
            await self.col.delete_many(key)
            if docs:
                await self.col.insert_many(docs, ordered=True)
            return len(docs)

        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                deleted = await self.col.delete_many(key, session=session)
                if docs:
                    await self.col.insert_many(docs, ordered=True, session=session)
        logger.debug(
            "edges replaced shop=%s source=%s deleted=%s inserted=%s",
            shop_domain, source_product_id, deleted.deleted_count, len(docs),
        )
        return len(docs)
