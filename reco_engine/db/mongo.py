# reco_engine/db/mongo.py
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from reco_engine.core.config import get_settings
import certifi

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None

# collection -> list of (keys, options)
INDEXES = {
    "products": [
        ([("shop_domain", ASCENDING), ("product_id", ASCENDING)], {"unique": True}),
        ([("shop_domain", ASCENDING), ("popularity", DESCENDING), ("created_at", ASCENDING)], {}),
    ],
    "product_views": [
        ([("shop_domain", ASCENDING), ("product_id", ASCENDING)], {}),
        ([("shop_domain", ASCENDING), ("session_id", ASCENDING), ("viewed_at", DESCENDING)], {}),
        ([("shop_domain", ASCENDING), ("user_id", ASCENDING)], {}),
    ],
    "cart_events": [
        ([("shop_domain", ASCENDING), ("product_id", ASCENDING)], {}),
    ],
    "orders": [
        ([("shop_domain", ASCENDING), ("order_id", ASCENDING)], {"unique": True}),
        ([("shop_domain", ASCENDING), ("completed_at", DESCENDING)], {}),
    ],
    "order_items": [
        ([("shop_domain", ASCENDING), ("product_id", ASCENDING)], {}),
        ([("shop_domain", ASCENDING), ("order_id", ASCENDING)], {}),
    ],
    "user_profiles": [
        ([("shop_domain", ASCENDING), ("user_id", ASCENDING)], {"unique": True}),
    ],
    "product_recommendations": [
        ([("shop_domain", ASCENDING), ("source_product_id", ASCENDING), ("score", DESCENDING)], {}),
    ],
}


def get_db() -> AsyncIOMotorDatabase:
    assert _db is not None, "Mongo DB not initialized"
    return _db


def _new_client() -> AsyncIOMotorClient:
    settings = get_settings()
    opts = dict(
        uuidRepresentation="standard",
        serverSelectionTimeoutMS=6000,
        connectTimeoutMS=6000,
    )
    if settings.MONGO_TLS:
        opts.update(tls=True, tlsCAFile=certifi.where())
    return AsyncIOMotorClient(settings.MONGO_URI, **opts)


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    for name, specs in INDEXES.items():
        for keys, options in specs:
            await db[name].create_index(keys, **options)


async def connect():
    """
    Create the Motor client and make sure indexes exist.
    A failed ping at startup is logged, not fatal: the client stays lazy and
    the first real query retries the connection.
    """
    global _client, _db
    settings = get_settings()

    _client = _new_client()
    _db = _client[settings.MONGO_DB]
    try:
        await _client.admin.command("ping")
        await ensure_indexes(_db)
        logger.info("Mongo connected (ping ok) db=%s", settings.MONGO_DB)
    except Exception as e:
        logger.warning("Mongo ping at startup failed, will connect lazily: %s", e)


async def disconnect():
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
