from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RecommendationType(str, Enum):
    FREQUENTLY_BOUGHT_TOGETHER = "FREQUENTLY_BOUGHT_TOGETHER"
    SIMILAR_PRODUCTS = "SIMILAR_PRODUCTS"
    ALSO_VIEWED = "ALSO_VIEWED"

    @property
    def label(self) -> str:
        return TYPE_LABELS[self]


TYPE_LABELS = {
    RecommendationType.FREQUENTLY_BOUGHT_TOGETHER: "Frequently bought together",
    RecommendationType.SIMILAR_PRODUCTS: "Similar products",
    RecommendationType.ALSO_VIEWED: "Customers also viewed",
}


class Candidate(BaseModel):
    """A scored candidate from one of the precompute signals, before merge."""
    product_id: str
    score: float = Field(ge=0, le=1)
    model_config = {"frozen": True}


class RecommendationEdge(BaseModel):
    shop_domain: str
    source_product_id: str
    recommended_product_id: str
    recommendation_type: RecommendationType
    score: float = Field(ge=0, le=1)
    last_calculated: datetime
    model_config = {"frozen": True}


class ScoredProduct(BaseModel):
    id: str
    title: str
    price: float
    type: Optional[str] = None
    vendor: Optional[str] = None
    reason: str
    score: float = Field(ge=0, le=1)
    model_config = {"frozen": True}


class RecommendationRequest(BaseModel):
    """Analytics record of one recommend() call."""
    shop_domain: str
    product_id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    tier: str
    recommendation_count: int
    requested_at: datetime
