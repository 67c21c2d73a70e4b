# reco_engine/domain/repositories/product_repo.py

from __future__ import annotations
from typing import Optional, List, Iterable
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument, ASCENDING, DESCENDING
from reco_engine.core.errors import translate_store_errors
from reco_engine.domain.models.product import Product, ProductAttrs, UNKNOWN_TITLE

# popularity desc, then insertion order
POPULAR_SORT = [("popularity", DESCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)]
INSERTION_SORT = [("created_at", ASCENDING), ("_id", ASCENDING)]


class ProductRepo:
    """
    Metadata store backed by the 'products' collection.
    One document per (shop_domain, product_id). `popularity` is written only
    through set_popularity().
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    @translate_store_errors
    async def ensure_product(self, attrs: ProductAttrs, shop_domain: str) -> Product:
        """
        Upsert by product_id. Present, non-empty attributes overwrite; the rest
        keep their stored value (or the creation default on insert).
        """
        present = attrs.present_fields()
        defaults = {
            "title": UNKNOWN_TITLE,
            "type": None,
            "vendor": None,
            "price": 0.0,
            "tags": [],
            "collections": [],
        }
        on_insert = {k: v for k, v in defaults.items() if k not in present}
        on_insert.update(popularity=0.0, created_at=datetime.now(timezone.utc))

        update = {"$setOnInsert": on_insert}
        if present:
            update["$set"] = present

        doc = await self.col.find_one_and_update(
            {"shop_domain": shop_domain, "product_id": attrs.product_id},
            update,
            upsert=True,
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        return Product.model_validate(doc)

    @translate_store_errors
    async def get_product(self, product_id: str, shop_domain: str) -> Optional[Product]:
        doc = await self.col.find_one({"shop_domain": shop_domain, "product_id": product_id}, {"_id": 0})
        return Product.model_validate(doc) if doc else None

    @translate_store_errors
    async def get_many(self, shop_domain: str, product_ids: Iterable[str]) -> List[Product]:
        ids = list(product_ids)
        if not ids:
            return []
        cursor = self.col.find({"shop_domain": shop_domain, "product_id": {"$in": ids}}, {"_id": 0})
        return [Product.model_validate(doc) async for doc in cursor]

    @translate_store_errors
    async def list_by_shop(self, shop_domain: str) -> List[Product]:
        cursor = self.col.find({"shop_domain": shop_domain}, {"_id": 0}).sort(INSERTION_SORT)
        return [Product.model_validate(doc) async for doc in cursor]

    @translate_store_errors
    async def list_popular(self, shop_domain: str, limit: int, exclude: Iterable[str] = ()) -> List[Product]:
        query = {"shop_domain": shop_domain}
        excluded = list(exclude)
        if excluded:
            query["product_id"] = {"$nin": excluded}
        cursor = self.col.find(query, {"_id": 0}).sort(POPULAR_SORT).limit(limit)
        return [Product.model_validate(doc) async for doc in cursor]

    @translate_store_errors
    async def find_matching(
        self,
        shop_domain: str,
        *,
        types: Iterable[str] = (),
        vendors: Iterable[str] = (),
        tags: Iterable[str] = (),
        exclude: Iterable[str] = (),
        limit: int = 10,
    ) -> List[Product]:
        """
        Products whose type is in `types`, or vendor in `vendors`, or sharing a
        tag with `tags`; popularity desc. Empty criteria match nothing.
        """
        clauses = []
        types, vendors, tags = list(types), list(vendors), list(tags)
        if types:
            clauses.append({"type": {"$in": types}})
        if vendors:
            clauses.append({"vendor": {"$in": vendors}})
        if tags:
            clauses.append({"tags": {"$in": tags}})
        if not clauses:
            return []

        query = {"shop_domain": shop_domain, "$or": clauses}
        excluded = list(exclude)
        if excluded:
            query["product_id"] = {"$nin": excluded}
        cursor = self.col.find(query, {"_id": 0}).sort(POPULAR_SORT).limit(limit)
        return [Product.model_validate(doc) async for doc in cursor]

    @translate_store_errors
    async def set_popularity(self, shop_domain: str, product_id: str, value: float) -> bool:
        res = await self.col.update_one(
            {"shop_domain": shop_domain, "product_id": product_id},
            {"$set": {"popularity": value}},
            upsert=False,  # popularity never creates a product
        )
        return res.matched_count > 0

    @translate_store_errors
    async def list_shops(self) -> List[str]:
        return sorted(await self.col.distinct("shop_domain"))
