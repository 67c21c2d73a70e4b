# reco_engine/domain/services/ingest_svc.py
import logging
from typing import Optional, Sequence

from reco_engine.core.errors import NotFoundError, ValidationError
from reco_engine.domain.models.events import CartEvent, Order, OrderItem, ProductView
from reco_engine.domain.models.product import Product, ProductAttrs
from reco_engine.domain.models.profile import ProfileSignals, UserProfile
from reco_engine.domain.repositories.interaction_repo import InteractionRepo
from reco_engine.domain.repositories.product_repo import ProductRepo
from reco_engine.domain.repositories.profile_repo import ProfileRepo

logger = logging.getLogger(__name__)


def _require(value, name: str, kind: str) -> None:
    if not value or not str(value).strip():
        raise ValidationError(f"{kind}: missing {name}", {"field": name})


class IngestionService:
    """
    Typed write path: every interaction upserts the product it references,
    appends to the interaction log and, when the event names a user, updates
    that user's profile.
    """

    def __init__(self, products: ProductRepo, interactions: InteractionRepo, profiles: ProfileRepo,
                 *, profile_history_size: int = 50):
        self.products = products
        self.interactions = interactions
        self.profiles = profiles
        self.profile_history_size = profile_history_size

    async def ensure_product(self, attrs: ProductAttrs, shop_domain: str) -> Product:
        _require(attrs.product_id, "product_id", "product")
        _require(shop_domain, "shop_domain", "product")
        return await self.products.ensure_product(attrs, shop_domain)

    async def record_view(self, view: ProductView, product: Optional[ProductAttrs] = None) -> Product:
        _require(view.product_id, "product_id", "view")
        _require(view.shop_domain, "shop_domain", "view")
        _require(view.session_id, "session_id", "view")

        stored = await self.ensure_product(product or ProductAttrs(product_id=view.product_id), view.shop_domain)
        await self.interactions.insert_view(view)
        if view.user_id:
            await self.touch_user_profile(view.user_id, view.shop_domain, ProfileSignals(
                viewed_product=view.product_id,
                category=stored.type,
                brand=stored.vendor,
            ))
        logger.debug("view recorded shop=%s product=%s session=%s", view.shop_domain, view.product_id, view.session_id)
        return stored

    async def record_cart_event(self, event: CartEvent, product: Optional[ProductAttrs] = None) -> Product:
        _require(event.product_id, "product_id", "cart event")
        _require(event.shop_domain, "shop_domain", "cart event")
        _require(event.session_id, "session_id", "cart event")

        attrs = product or ProductAttrs(product_id=event.product_id, price=event.price or None)
        stored = await self.ensure_product(attrs, event.shop_domain)
        await self.interactions.insert_cart_event(event)
        if event.user_id:
            await self.touch_user_profile(event.user_id, event.shop_domain, ProfileSignals(
                category=stored.type,
                brand=stored.vendor,
            ))
        logger.debug("cart %s recorded shop=%s product=%s qty=%s",
                     event.event_type.value, event.shop_domain, event.product_id, event.quantity)
        return stored

    async def record_order(self, order: Order, items: Sequence[OrderItem],
                           products: Sequence[ProductAttrs] = ()) -> int:
        """Returns the number of line items written."""
        _require(order.order_id, "order_id", "order")
        _require(order.shop_domain, "shop_domain", "order")
        for item in items:
            _require(item.product_id, "product_id", "order item")
            if item.order_id != order.order_id or item.shop_domain != order.shop_domain:
                raise ValidationError("order item does not belong to order",
                                      {"order_id": order.order_id, "item_order_id": item.order_id})

        attrs_by_id = {a.product_id: a for a in products}
        for item in items:
            attrs = attrs_by_id.get(item.product_id) or ProductAttrs(product_id=item.product_id, price=item.price or None)
            await self.ensure_product(attrs, order.shop_domain)

        await self.interactions.insert_order(order, items)
        if order.user_id and items:
            purchased = list(dict.fromkeys(item.product_id for item in items))
            await self.touch_user_profile(order.user_id, order.shop_domain, ProfileSignals(purchased_products=purchased))
        logger.info("order recorded shop=%s order_id=%s items=%s", order.shop_domain, order.order_id, len(items))
        return len(items)

    async def touch_user_profile(self, user_id: str, shop_domain: str, signals: ProfileSignals) -> UserProfile:
        _require(user_id, "user_id", "profile")
        _require(shop_domain, "shop_domain", "profile")
        return await self.profiles.touch(user_id, shop_domain, signals, history_size=self.profile_history_size)

    async def get_user_profile(self, user_id: str, shop_domain: str) -> UserProfile:
        profile = await self.profiles.get(user_id, shop_domain)
        if profile is None:
            raise NotFoundError(f"no profile for user {user_id}", {"user_id": user_id, "shop_domain": shop_domain})
        return profile
