# api/v1/schemas/reco.py
from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional

from reco_engine.domain.models.recommendation import ScoredProduct


class RecoMetadataOut(BaseModel):
    requested_product: str
    shop: str
    recommendation_count: int
    timestamp: datetime


class RecommendationsOut(BaseModel):
    success: bool = True
    recommendations: List[ScoredProduct]
    metadata: RecoMetadataOut


class AckOut(BaseModel):
    success: bool = True
    message: str
    shop: str
    job: str


class IngestOut(BaseModel):
    success: bool = True
    product_id: Optional[str] = None
    items: Optional[int] = None
