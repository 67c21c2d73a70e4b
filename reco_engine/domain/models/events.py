from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CartEventType(str, Enum):
    ADD = "ADD"
    REMOVE = "REMOVE"


# Interaction log records are append-only: frozen once built.

class ProductView(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    shop_domain: str
    session_id: str
    user_id: Optional[str] = None
    viewed_at: datetime = Field(default_factory=utcnow)
    model_config = {"frozen": True}


class CartEvent(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    price: float = Field(default=0.0, ge=0)
    shop_domain: str
    session_id: str
    user_id: Optional[str] = None
    event_type: CartEventType = CartEventType.ADD
    timestamp: datetime = Field(default_factory=utcnow)
    model_config = {"frozen": True}


class OrderItem(BaseModel):
    order_id: str
    shop_domain: str
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    price: float = Field(default=0.0, ge=0)
    model_config = {"frozen": True}


class Order(BaseModel):
    order_id: str
    shop_domain: str
    user_id: Optional[str] = None
    session_id: str
    total_price: float = Field(default=0.0, ge=0)
    completed_at: datetime = Field(default_factory=utcnow)
    model_config = {"frozen": True}
