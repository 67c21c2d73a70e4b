# reco_engine/domain/services/wiring.py
"""Build services from a Motor database, an optional Redis client and settings."""
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

from reco_engine.core.config import Settings
from reco_engine.domain.repositories.edge_repo import EdgeRepo
from reco_engine.domain.repositories.interaction_repo import InteractionRepo
from reco_engine.domain.repositories.popular_cache_repo import PopularProductsCacheRepo
from reco_engine.domain.repositories.product_repo import ProductRepo
from reco_engine.domain.repositories.profile_repo import ProfileRepo
from reco_engine.domain.repositories.request_log_repo import RequestLogRepo
from reco_engine.domain.services.ingest_svc import IngestionService
from reco_engine.domain.services.popularity_svc import PopularityCalculator
from reco_engine.domain.services.precompute_svc import RecommendationPrecomputer
from reco_engine.domain.services.recommend_svc import RecommendationService
from reco_engine.utils.locks import KeyedLocks

# one lock table per process, shared by the scheduler and admin triggers
_local_locks = KeyedLocks()


def build_recommendation_service(db: AsyncIOMotorDatabase, redis: Optional[Redis], settings: Settings) -> RecommendationService:
    return RecommendationService(
        ProductRepo(db),
        ProfileRepo(db),
        InteractionRepo(db, use_transactions=settings.MONGO_TRANSACTIONS),
        EdgeRepo(db, use_transactions=settings.MONGO_TRANSACTIONS),
        request_log=RequestLogRepo(db),
        popular_cache=PopularProductsCacheRepo(redis) if redis is not None else None,
        popular_cache_ttl=settings.popular_cache_ttl,
    )


def build_precomputer(db: AsyncIOMotorDatabase, redis: Optional[Redis], settings: Settings) -> RecommendationPrecomputer:
    locks = KeyedLocks(redis, ttl=settings.recompute_lock_ttl) if redis is not None else _local_locks
    return RecommendationPrecomputer(
        ProductRepo(db),
        InteractionRepo(db, use_transactions=settings.MONGO_TRANSACTIONS),
        EdgeRepo(db, use_transactions=settings.MONGO_TRANSACTIONS),
        locks=locks,
        concurrency=settings.recompute_concurrency,
    )


def build_popularity_calculator(db: AsyncIOMotorDatabase, redis: Optional[Redis], settings: Settings) -> PopularityCalculator:
    return PopularityCalculator(
        ProductRepo(db),
        InteractionRepo(db, use_transactions=settings.MONGO_TRANSACTIONS),
        cache=PopularProductsCacheRepo(redis) if redis is not None else None,
    )


def build_ingestion_service(db: AsyncIOMotorDatabase, redis: Optional[Redis], settings: Settings) -> IngestionService:
    return IngestionService(
        ProductRepo(db),
        InteractionRepo(db, use_transactions=settings.MONGO_TRANSACTIONS),
        ProfileRepo(db),
        profile_history_size=settings.profile_history_size,
    )
