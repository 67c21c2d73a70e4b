# reco_engine/domain/repositories/interaction_repo.py

from __future__ import annotations
import logging
import time
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from reco_engine.core.errors import translate_store_errors
from reco_engine.domain.models.events import CartEvent, Order, OrderItem, ProductView

logger = logging.getLogger(__name__)

ViewerKey = Tuple[str, str | None]  # (session_id, user_id)


class InteractionRepo:
    """
    Append-only interaction log: product_views, cart_events, orders, order_items.
    Order items carry the parent's completed_at (denormalized at write time) so
    windowed purchase counts need no join.
    """

    def __init__(self, db: AsyncIOMotorDatabase, *, use_transactions: bool = True):
        self.db = db
        self.use_transactions = use_transactions
        self.views = db["product_views"]
        self.carts = db["cart_events"]
        self.orders = db["orders"]
        self.items = db["order_items"]

    # ----- writes -----------------------------------------------------------

    @translate_store_errors
    async def insert_view(self, view: ProductView) -> None:
        await self.views.insert_one(view.model_dump())

    @translate_store_errors
    async def insert_cart_event(self, event: CartEvent) -> None:
        doc = event.model_dump()
        doc["event_type"] = event.event_type.value
        await self.carts.insert_one(doc)

    @translate_store_errors
    async def insert_order(self, order: Order, items: Sequence[OrderItem]) -> None:
        """
        Write the order header and its items together. With transactions both
        land or neither does. Without them the items go first and the header
        last, so a failed write leaves no header and a retry starts clean.
        """
        header = order.model_dump()
        docs = [{**item.model_dump(), "completed_at": order.completed_at} for item in items]
        key = {"shop_domain": order.shop_domain, "order_id": order.order_id}

        if not self.use_transactions:
            if await self.orders.find_one(key, {"_id": 1}) is not None:
                raise DuplicateKeyError(f"order {order.order_id} already recorded")
            # leftovers of an earlier attempt that never got its header
            await self.items.delete_many(key)
            if docs:
                await self.items.insert_many(docs, ordered=True)
            await self.orders.insert_one(header)
            return

        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                await self.orders.insert_one(header, session=session)
                if docs:
                    await self.items.insert_many(docs, ordered=True, session=session)

    # ----- co-purchase --------------------------------------------------------

    @translate_store_errors
    async def order_ids_with_product(self, shop_domain: str, product_id: str) -> List[str]:
        return await self.items.distinct("order_id", {"shop_domain": shop_domain, "product_id": product_id})

    @translate_store_errors
    async def items_for_orders(self, shop_domain: str, order_ids: Iterable[str]) -> List[OrderItem]:
        ids = list(order_ids)
        if not ids:
            return []
        cursor = self.items.find({"shop_domain": shop_domain, "order_id": {"$in": ids}}, {"_id": 0, "completed_at": 0})
        return [OrderItem.model_validate(doc) async for doc in cursor]

    # ----- co-view ------------------------------------------------------------

    @translate_store_errors
    async def viewers_of(self, shop_domain: str, product_id: str) -> List[ViewerKey]:
        """Distinct (session_id, user_id) pairs that viewed the product."""
        pipeline = [
            {"$match": {"shop_domain": shop_domain, "product_id": product_id}},
            {"$group": {"_id": {"s": "$session_id", "u": "$user_id"}}},
        ]
        docs = await self.views.aggregate(pipeline).to_list(length=None)
        return [(d["_id"].get("s"), d["_id"].get("u")) for d in docs]

    @translate_store_errors
    async def views_by_viewers(
        self,
        shop_domain: str,
        session_ids: Iterable[str],
        user_ids: Iterable[str],
    ) -> List[ProductView]:
        clauses = []
        sessions, users = list(session_ids), list(user_ids)
        if sessions:
            clauses.append({"session_id": {"$in": sessions}})
        if users:
            clauses.append({"user_id": {"$in": users}})
        if not clauses:
            return []
        cursor = self.views.find({"shop_domain": shop_domain, "$or": clauses}, {"_id": 0})
        return [ProductView.model_validate(doc) async for doc in cursor]

    @translate_store_errors
    async def recent_session_products(
        self,
        shop_domain: str,
        session_id: str,
        exclude: Iterable[str] = (),
        limit: int = 10,
    ) -> List[str]:
        """Distinct product_ids viewed in the session, most recent view first."""
        match = {"shop_domain": shop_domain, "session_id": session_id}
        excluded = list(exclude)
        if excluded:
            match["product_id"] = {"$nin": excluded}
        pipeline = [
            {"$match": match},
            {"$group": {"_id": "$product_id", "last_seen_at": {"$max": "$viewed_at"}}},
            {"$sort": {"last_seen_at": -1, "_id": 1}},
            {"$limit": limit},
        ]
        docs = await self.views.aggregate(pipeline).to_list(length=limit)
        return [d["_id"] for d in docs]

    # ----- popularity ----------------------------------------------------------

    @translate_store_errors
    async def view_counts_since(self, shop_domain: str, since: datetime) -> Dict[str, int]:
        pipeline = [
            {"$match": {"shop_domain": shop_domain, "viewed_at": {"$gte": since}}},
            {"$group": {"_id": "$product_id", "n": {"$sum": 1}}},
        ]
        t0 = time.perf_counter()
        docs = await self.views.aggregate(pipeline).to_list(length=None)
        logger.debug("view_counts_since shop=%s products=%s db_time=%.3fs", shop_domain, len(docs), time.perf_counter() - t0)
        return {d["_id"]: int(d["n"]) for d in docs}

    @translate_store_errors
    async def purchase_quantities_since(self, shop_domain: str, since: datetime) -> Dict[str, int]:
        pipeline = [
            {"$match": {"shop_domain": shop_domain, "completed_at": {"$gte": since}}},
            {"$group": {"_id": "$product_id", "units": {"$sum": "$quantity"}}},
        ]
        t0 = time.perf_counter()
        docs = await self.items.aggregate(pipeline).to_list(length=None)
        logger.debug("purchase_quantities_since shop=%s products=%s db_time=%.3fs", shop_domain, len(docs), time.perf_counter() - t0)
        return {d["_id"]: int(d["units"]) for d in docs}
