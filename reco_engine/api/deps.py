# reco_engine/api/deps.py
from fastapi import Depends
from reco_engine.core.config import Settings, get_settings
from reco_engine.db.mongo import get_db
from reco_engine.db.redis import get_redis
from reco_engine.domain.services import wiring

# Dependency for injecting the MongoDB database into endpoints/services
async def mongo_db(db = Depends(get_db)):
    return db

# Dependency for injecting the Redis client (None when not configured)
def redis_dep():
    return get_redis()


def recommendation_svc(db = Depends(mongo_db), redis = Depends(redis_dep), settings: Settings = Depends(get_settings)):
    return wiring.build_recommendation_service(db, redis, settings)


def ingestion_svc(db = Depends(mongo_db), redis = Depends(redis_dep), settings: Settings = Depends(get_settings)):
    return wiring.build_ingestion_service(db, redis, settings)


def precompute_svc(db = Depends(mongo_db), redis = Depends(redis_dep), settings: Settings = Depends(get_settings)):
    return wiring.build_precomputer(db, redis, settings)


def popularity_svc(db = Depends(mongo_db), redis = Depends(redis_dep), settings: Settings = Depends(get_settings)):
    return wiring.build_popularity_calculator(db, redis, settings)
