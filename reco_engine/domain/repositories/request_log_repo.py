from motor.motor_asyncio import AsyncIOMotorDatabase
from reco_engine.core.errors import translate_store_errors
from reco_engine.domain.models.recommendation import RecommendationRequest


class RequestLogRepo:
    """Analytics sink for recommend() calls ('recommendation_requests')."""

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "recommendation_requests"):
        self.col = db[collection_name]

    @translate_store_errors
    async def insert(self, record: RecommendationRequest) -> None:
        await self.col.insert_one(record.model_dump())
