# reco_engine/domain/repositories/profile_repo.py

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from reco_engine.core.errors import translate_store_errors
from reco_engine.domain.models.profile import ProfileSignals, UserProfile


class ProfileRepo:
    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "user_profiles"):
        self.col = db[collection_name]

    @translate_store_errors
    async def get(self, user_id: str, shop_domain: str) -> Optional[UserProfile]:
        doc = await self.col.find_one({"shop_domain": shop_domain, "user_id": user_id}, {"_id": 0})
        return UserProfile.model_validate(doc) if doc else None

    @translate_store_errors
    async def touch(
        self,
        user_id: str,
        shop_domain: str,
        signals: ProfileSignals,
        *,
        history_size: int = 50,
    ) -> UserProfile:
        """
        Upsert the profile: categories/brands are set-unioned, viewed products
        appended (keeping the last `history_size`), purchases appended.
        """
        add_to_set = {}
        if signals.category:
            add_to_set["preferred_categories"] = signals.category
        if signals.brand:
            add_to_set["preferred_brands"] = signals.brand

        push = {}
        if signals.viewed_product:
            push["viewed_products"] = {"$each": [signals.viewed_product], "$slice": -history_size}
        if signals.purchased_products:
            push["purchased_products"] = {"$each": list(signals.purchased_products)}

        update = {"$set": {"last_active": datetime.now(timezone.utc)}}
        if add_to_set:
            update["$addToSet"] = add_to_set
        if push:
            update["$push"] = push

        # array fields absent from this update still need a value on insert
        touched = set(add_to_set) | set(push)
        on_insert = {
            name: []
            for name in ("preferred_categories", "preferred_brands", "viewed_products", "purchased_products")
            if name not in touched
        }
        if on_insert:
            update["$setOnInsert"] = on_insert

        doc = await self.col.find_one_and_update(
            {"shop_domain": shop_domain, "user_id": user_id},
            update,
            upsert=True,
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        return UserProfile.model_validate(doc)
