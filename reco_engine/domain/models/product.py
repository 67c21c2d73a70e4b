from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

UNKNOWN_TITLE = "Unknown Product"


def _dedupe(values) -> List[str]:
    seen, out = set(), []
    for v in values or []:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


class Product(BaseModel):
    product_id: str
    shop_domain: str
    title: str = UNKNOWN_TITLE
    type: Optional[str] = None
    vendor: Optional[str] = None
    price: float = Field(default=0.0, ge=0)
    tags: List[str] = []
    collections: List[str] = []
    popularity: float = Field(default=0.0, ge=0, le=1)
    created_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @field_validator("tags", "collections", mode="before")
    @classmethod
    def _as_set(cls, v):
        return _dedupe(v)

    def has_attributes(self) -> bool:
        """False for placeholders: nothing to compare against other products."""
        return bool(self.type or self.vendor or self.tags or self.collections or self.price > 0)


class ProductAttrs(BaseModel):
    """
    Partial product attributes as carried by ingestion paths.
    Only fields that are present and non-empty overwrite stored values.
    """
    product_id: str
    title: Optional[str] = None
    type: Optional[str] = None
    vendor: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    tags: Optional[List[str]] = None
    collections: Optional[List[str]] = None

    @field_validator("tags", "collections", mode="before")
    @classmethod
    def _as_set(cls, v):
        return None if v is None else _dedupe(v)

    def present_fields(self) -> dict:
        """Attributes worth writing: not None, not empty string/list. A price of 0 is a real price."""
        out = {}
        for name in ("title", "type", "vendor", "price", "tags", "collections"):
            value = getattr(self, name)
            if value is None or value == "" or value == []:
                continue
            out[name] = value
        return out
