"""
Shared fixtures: in-memory repositories with the same async interface as the
Mongo-backed ones, so services can be exercised without a database.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Tuple

import pytest

from reco_engine.core.errors import StoreError
from reco_engine.domain.models.events import OrderItem, ProductView
from reco_engine.domain.models.product import Product, ProductAttrs
from reco_engine.domain.models.profile import UserProfile
from reco_engine.domain.services.ingest_svc import IngestionService
from reco_engine.domain.services.popularity_svc import PopularityCalculator
from reco_engine.domain.services.precompute_svc import RecommendationPrecomputer
from reco_engine.domain.services.recommend_svc import RecommendationService

SHOP = "demo.myshopify.com"
NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


class _Failing:
    """Mixin: methods named in `fail_on` raise StoreError."""

    def __init__(self):
        self.fail_on = set()
        self.calls = defaultdict(int)

    def _hit(self, name: str) -> None:
        self.calls[name] += 1
        if name in self.fail_on:
            raise StoreError(f"{name} unavailable")


class FakeProductRepo(_Failing):
    def __init__(self):
        super().__init__()
        self.rows: Dict[Tuple[str, str], Product] = {}  # insertion ordered

    async def ensure_product(self, attrs: ProductAttrs, shop_domain: str) -> Product:
        self._hit("ensure_product")
        key = (shop_domain, attrs.product_id)
        present = attrs.present_fields()
        if key in self.rows:
            self.rows[key] = self.rows[key].model_copy(update=present)
        else:
            self.rows[key] = Product(
                product_id=attrs.product_id,
                shop_domain=shop_domain,
                created_at=datetime.now(timezone.utc),
                **present,
            )
        return self.rows[key]

    async def get_product(self, product_id, shop_domain):
        self._hit("get_product")
        return self.rows.get((shop_domain, product_id))

    async def get_many(self, shop_domain, product_ids):
        self._hit("get_many")
        wanted = set(product_ids)
        return [p for (s, pid), p in self.rows.items() if s == shop_domain and pid in wanted]

    async def list_by_shop(self, shop_domain):
        self._hit("list_by_shop")
        return [p for (s, _), p in self.rows.items() if s == shop_domain]

    def _popular(self, shop_domain, exclude=()):
        rows = [p for (s, pid), p in self.rows.items() if s == shop_domain and pid not in set(exclude)]
        return sorted(rows, key=lambda p: -p.popularity)

    async def list_popular(self, shop_domain, limit, exclude=()):
        self._hit("list_popular")
        return self._popular(shop_domain, exclude)[:limit]

    async def find_matching(self, shop_domain, *, types=(), vendors=(), tags=(), exclude=(), limit=10):
        self._hit("find_matching")
        types, vendors, tags = set(types), set(vendors), set(tags)
        if not (types or vendors or tags):
            return []
        rows = [
            p for p in self._popular(shop_domain, exclude)
            if p.type in types or p.vendor in vendors or tags & set(p.tags)
        ]
        return rows[:limit]

    async def set_popularity(self, shop_domain, product_id, value):
        self._hit("set_popularity")
        key = (shop_domain, product_id)
        if key not in self.rows:
            return False
        self.rows[key] = self.rows[key].model_copy(update={"popularity": value})
        return True

    async def list_shops(self):
        self._hit("list_shops")
        return sorted({s for s, _ in self.rows})

    # test helper
    def add(self, product_id, shop_domain=SHOP, **attrs) -> Product:
        attrs.setdefault("title", product_id.upper())
        product = Product(product_id=product_id, shop_domain=shop_domain, **attrs)
        self.rows[(shop_domain, product_id)] = product
        return product


class FakeInteractionRepo(_Failing):
    def __init__(self):
        super().__init__()
        self.views: List[ProductView] = []
        self.carts = []
        self.orders = []
        self.items: List[Tuple[OrderItem, datetime]] = []

    async def insert_view(self, view):
        self._hit("insert_view")
        self.views.append(view)

    async def insert_cart_event(self, event):
        self._hit("insert_cart_event")
        self.carts.append(event)

    async def insert_order(self, order, items):
        self._hit("insert_order")
        self.orders.append(order)
        self.items.extend((item, order.completed_at) for item in items)

    async def order_ids_with_product(self, shop_domain, product_id):
        self._hit("order_ids_with_product")
        return sorted({i.order_id for i, _ in self.items if i.shop_domain == shop_domain and i.product_id == product_id})

    async def items_for_orders(self, shop_domain, order_ids):
        self._hit("items_for_orders")
        ids = set(order_ids)
        return [i for i, _ in self.items if i.shop_domain == shop_domain and i.order_id in ids]

    async def viewers_of(self, shop_domain, product_id):
        self._hit("viewers_of")
        return sorted(
            {(v.session_id, v.user_id) for v in self.views if v.shop_domain == shop_domain and v.product_id == product_id},
            key=str,
        )

    async def views_by_viewers(self, shop_domain, session_ids, user_ids):
        self._hit("views_by_viewers")
        sessions, users = set(session_ids), set(user_ids)
        return [
            v for v in self.views
            if v.shop_domain == shop_domain and (v.session_id in sessions or (v.user_id and v.user_id in users))
        ]

    async def recent_session_products(self, shop_domain, session_id, exclude=(), limit=10):
        self._hit("recent_session_products")
        last_seen = {}
        for v in self.views:
            if v.shop_domain == shop_domain and v.session_id == session_id and v.product_id not in set(exclude):
                last_seen[v.product_id] = max(last_seen.get(v.product_id, v.viewed_at), v.viewed_at)
        ranked = sorted(last_seen.items(), key=lambda kv: (-kv[1].timestamp(), kv[0]))
        return [pid for pid, _ in ranked[:limit]]

    async def view_counts_since(self, shop_domain, since):
        self._hit("view_counts_since")
        counts = defaultdict(int)
        for v in self.views:
            if v.shop_domain == shop_domain and v.viewed_at >= since:
                counts[v.product_id] += 1
        return dict(counts)

    async def purchase_quantities_since(self, shop_domain, since):
        self._hit("purchase_quantities_since")
        units = defaultdict(int)
        for item, completed_at in self.items:
            if item.shop_domain == shop_domain and completed_at >= since:
                units[item.product_id] += item.quantity
        return dict(units)

    # test helpers
    def view(self, product_id, session_id, user_id=None, at=None, shop_domain=SHOP):
        self.views.append(ProductView(
            product_id=product_id, shop_domain=shop_domain, session_id=session_id,
            user_id=user_id, viewed_at=at or NOW,
        ))

    def order(self, order_id, *product_ids, quantity=1, at=None, shop_domain=SHOP):
        for pid in product_ids:
            item = OrderItem(order_id=order_id, shop_domain=shop_domain, product_id=pid, quantity=quantity)
            self.items.append((item, at or NOW))


class FakeProfileRepo(_Failing):
    def __init__(self):
        super().__init__()
        self.rows: Dict[Tuple[str, str], UserProfile] = {}

    async def get(self, user_id, shop_domain):
        self._hit("get")
        return self.rows.get((shop_domain, user_id))

    async def touch(self, user_id, shop_domain, signals, *, history_size=50):
        self._hit("touch")
        current = self.rows.get((shop_domain, user_id)) or UserProfile(user_id=user_id, shop_domain=shop_domain)
        categories = list(current.preferred_categories)
        if signals.category and signals.category not in categories:
            categories.append(signals.category)
        brands = list(current.preferred_brands)
        if signals.brand and signals.brand not in brands:
            brands.append(signals.brand)
        viewed = list(current.viewed_products)
        if signals.viewed_product:
            viewed = (viewed + [signals.viewed_product])[-history_size:]
        profile = current.model_copy(update={
            "preferred_categories": categories,
            "preferred_brands": brands,
            "viewed_products": viewed,
            "purchased_products": list(current.purchased_products) + list(signals.purchased_products),
            "last_active": datetime.now(timezone.utc),
        })
        self.rows[(shop_domain, user_id)] = profile
        return profile

    def add(self, user_id, shop_domain=SHOP, **fields):
        self.rows[(shop_domain, user_id)] = UserProfile(user_id=user_id, shop_domain=shop_domain, **fields)


class FakeEdgeRepo(_Failing):
    def __init__(self):
        super().__init__()
        self.rows: Dict[Tuple[str, str], list] = {}

    async def list_for_source(self, shop_domain, source_product_id, limit):
        self._hit("list_for_source")
        edges = self.rows.get((shop_domain, source_product_id), [])
        return sorted(edges, key=lambda e: -e.score)[:limit]

    async def replace_for_source(self, shop_domain, source_product_id, edges):
        self._hit("replace_for_source")
        self.rows[(shop_domain, source_product_id)] = list(edges)
        return len(edges)


class FakeRequestLog(_Failing):
    def __init__(self):
        super().__init__()
        self.records = []

    async def insert(self, record):
        self._hit("insert")
        self.records.append(record)


@pytest.fixture
def products():
    return FakeProductRepo()


@pytest.fixture
def interactions():
    return FakeInteractionRepo()


@pytest.fixture
def profiles():
    return FakeProfileRepo()


@pytest.fixture
def edges():
    return FakeEdgeRepo()


@pytest.fixture
def request_log():
    return FakeRequestLog()


@pytest.fixture
def recommender(products, profiles, interactions, edges, request_log):
    return RecommendationService(products, profiles, interactions, edges, request_log=request_log)


@pytest.fixture
def precomputer(products, interactions, edges):
    return RecommendationPrecomputer(products, interactions, edges)


@pytest.fixture
def popularity(products, interactions):
    return PopularityCalculator(products, interactions)


@pytest.fixture
def ingest(products, interactions, profiles):
    return IngestionService(products, interactions, profiles, profile_history_size=3)


@pytest.fixture
def days_ago():
    return lambda n: NOW - timedelta(days=n)
