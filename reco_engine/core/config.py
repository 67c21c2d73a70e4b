from functools import lru_cache
from typing import Literal
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "RecommendationEngine"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "reco_engine"
    MONGO_TLS: bool = False           # Atlas / managed clusters: set True
    MONGO_TRANSACTIONS: bool = True   # requires a replica set

    # Redis (optional: popular list cache + recompute locks)
    REDIS_URL: str = ""

    # Batch jobs
    recompute_interval_s: int = 0             # 0 disables the periodic scheduler
    recompute_concurrency: int = 1            # products recomputed in parallel per shop
    recompute_lock_ttl: int = 60              # seconds; per-product lock
    popularity_window_days: int = 30

    # Cache config
    popular_cache_ttl: int = 5 * 60           # 5 minutes

    # Profiles
    profile_history_size: int = 50

    # Query
    default_limit: int = 5
    max_limit: int = 50
    create_placeholder_products: bool = True


    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
