from typing import Optional, Iterable
from redis.asyncio import Redis
from reco_engine.domain.models.product import Product
import json


class PopularProductsCacheRepo:
    """
    Redis cache of a shop's popularity-ordered product list.
    Stores and retrieves lists of Product objects; no business logic here.
    """
    def __init__(self, redis: Redis, key_prefix: str = "popular"):
        self.cache = redis
        self.prefix = key_prefix

    def key(self, shop_domain: str, size: int) -> str:
        return f"{self.prefix}:{shop_domain}:{size}"

    async def get(self, key: str) -> Optional[list[Product]]:
        """Cached list for key, or None on miss."""
        raw = await self.cache.get(key)
        if raw:
            return [Product.model_validate(x) for x in json.loads(raw)]
        return None

    async def set(self, key: str, products: Iterable[Product], ttl: int) -> None:
        payload = [p.model_dump(mode="json") for p in products]
        await self.cache.set(key, json.dumps(payload), ex=ttl)

    async def invalidate_shop(self, shop_domain: str) -> int:
        """Drop every cached list of the shop. Returns the number of keys deleted."""
        keys = [k async for k in self.cache.scan_iter(match=f"{self.prefix}:{shop_domain}:*")]
        if not keys:
            return 0
        return await self.cache.delete(*keys)
