# api/v1/schemas/events.py
"""
Inbound payloads. Field-name variants seen from storefront emitters
(camelCase, snake_case, `shop` vs `shopDomain`, `clientId` as session id)
are all accepted here so the services only ever see one shape.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from reco_engine.domain.models.events import CartEvent, CartEventType, Order, OrderItem, ProductView, utcnow
from reco_engine.domain.models.product import ProductAttrs
from reco_engine.domain.models.profile import ProfileSignals

_PRODUCT_ID = AliasChoices("product_id", "productId", "id")
_VARIANT_ID = AliasChoices("variant_id", "variantId")
_SHOP = AliasChoices("shop_domain", "shopDomain", "shop")
_SESSION = AliasChoices("session_id", "sessionId", "clientId", "client_id")
_USER = AliasChoices("user_id", "userId", "customerId", "customer_id")
_TIMESTAMP = AliasChoices("timestamp", "viewed_at", "viewedAt", "completed_at", "completedAt")


class _In(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class ProductIn(_In):
    product_id: str = Field(min_length=1, validation_alias=_PRODUCT_ID)
    shop_domain: str = Field(min_length=1, validation_alias=_SHOP)
    title: Optional[str] = None
    type: Optional[str] = Field(default=None, validation_alias=AliasChoices("type", "productType", "product_type"))
    vendor: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    tags: Optional[List[str]] = None
    collections: Optional[List[str]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, v):
        # storefronts often send "a, b, c"
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v

    def to_attrs(self) -> ProductAttrs:
        return ProductAttrs(
            product_id=self.product_id,
            title=self.title,
            type=self.type,
            vendor=self.vendor,
            price=self.price,
            tags=self.tags,
            collections=self.collections,
        )


class _ProductRef(_In):
    """Optional product attributes riding along with an event."""
    title: Optional[str] = None
    type: Optional[str] = Field(default=None, validation_alias=AliasChoices("type", "productType", "product_type"))
    vendor: Optional[str] = None
    tags: Optional[List[str]] = None
    collections: Optional[List[str]] = None


class ViewIn(_In):
    product_id: str = Field(min_length=1, validation_alias=_PRODUCT_ID)
    variant_id: Optional[str] = Field(default=None, validation_alias=_VARIANT_ID)
    shop_domain: str = Field(min_length=1, validation_alias=_SHOP)
    session_id: str = Field(min_length=1, validation_alias=_SESSION)
    user_id: Optional[str] = Field(default=None, validation_alias=_USER)
    timestamp: datetime = Field(default_factory=utcnow, validation_alias=_TIMESTAMP)
    product: Optional[_ProductRef] = None

    def to_domain(self) -> ProductView:
        return ProductView(
            product_id=self.product_id,
            variant_id=self.variant_id,
            shop_domain=self.shop_domain,
            session_id=self.session_id,
            user_id=self.user_id or None,
            viewed_at=self.timestamp,
        )

    def product_attrs(self) -> Optional[ProductAttrs]:
        if self.product is None:
            return None
        return ProductAttrs(product_id=self.product_id, **self.product.model_dump())


class CartIn(_In):
    product_id: str = Field(min_length=1, validation_alias=_PRODUCT_ID)
    variant_id: Optional[str] = Field(default=None, validation_alias=_VARIANT_ID)
    quantity: int = Field(default=1, ge=1)
    price: float = Field(default=0.0, ge=0)
    shop_domain: str = Field(min_length=1, validation_alias=_SHOP)
    session_id: str = Field(min_length=1, validation_alias=_SESSION)
    user_id: Optional[str] = Field(default=None, validation_alias=_USER)
    event_type: CartEventType = Field(default=CartEventType.ADD, validation_alias=AliasChoices("event_type", "eventType", "type"))
    timestamp: datetime = Field(default_factory=utcnow, validation_alias=_TIMESTAMP)
    product: Optional[_ProductRef] = None

    @field_validator("event_type", mode="before")
    @classmethod
    def _event_type(cls, v):
        if isinstance(v, str):
            s = v.strip().upper()
            # product_added_to_cart / product_removed_from_cart style names
            if "REMOVE" in s:
                return "REMOVE"
            if "ADD" in s:
                return "ADD"
            return s
        return v

    def to_domain(self) -> CartEvent:
        return CartEvent(
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            price=self.price,
            shop_domain=self.shop_domain,
            session_id=self.session_id,
            user_id=self.user_id or None,
            event_type=self.event_type,
            timestamp=self.timestamp,
        )

    def product_attrs(self) -> Optional[ProductAttrs]:
        if self.product is None:
            return None
        return ProductAttrs(product_id=self.product_id, price=self.price or None, **self.product.model_dump())


class OrderItemIn(_In):
    product_id: str = Field(min_length=1, validation_alias=_PRODUCT_ID)
    variant_id: Optional[str] = Field(default=None, validation_alias=_VARIANT_ID)
    quantity: int = Field(default=1, ge=1)
    price: float = Field(default=0.0, ge=0)
    title: Optional[str] = None


class OrderIn(_In):
    order_id: str = Field(min_length=1, validation_alias=AliasChoices("order_id", "orderId", "id"))
    shop_domain: str = Field(min_length=1, validation_alias=_SHOP)
    user_id: Optional[str] = Field(default=None, validation_alias=_USER)
    session_id: str = Field(min_length=1, validation_alias=_SESSION)
    total_price: float = Field(default=0.0, ge=0, validation_alias=AliasChoices("total_price", "totalPrice"))
    timestamp: datetime = Field(default_factory=utcnow, validation_alias=_TIMESTAMP)
    items: List[OrderItemIn] = Field(min_length=1, validation_alias=AliasChoices("items", "lineItems", "line_items"))

    def to_domain(self) -> tuple[Order, List[OrderItem], List[ProductAttrs]]:
        order = Order(
            order_id=self.order_id,
            shop_domain=self.shop_domain,
            user_id=self.user_id or None,
            session_id=self.session_id,
            total_price=self.total_price,
            completed_at=self.timestamp,
        )
        items = [
            OrderItem(
                order_id=self.order_id,
                shop_domain=self.shop_domain,
                product_id=i.product_id,
                variant_id=i.variant_id,
                quantity=i.quantity,
                price=i.price,
            )
            for i in self.items
        ]
        attrs = [ProductAttrs(product_id=i.product_id, title=i.title, price=i.price or None) for i in self.items]
        return order, items, attrs


class ProfileTouchIn(_In):
    shop_domain: str = Field(min_length=1, validation_alias=_SHOP)
    viewed_product: Optional[str] = Field(default=None, validation_alias=AliasChoices("viewed_product", "viewedProduct"))
    category: Optional[str] = None
    brand: Optional[str] = None

    def to_signals(self) -> ProfileSignals:
        return ProfileSignals(viewed_product=self.viewed_product, category=self.category, brand=self.brand)
