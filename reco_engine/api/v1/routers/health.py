# reco_engine/api/v1/routers/health.py
import subprocess
import time

from fastapi import APIRouter, Response

from reco_engine.core.config import get_settings
from reco_engine.db import mongo
from reco_engine.db.redis import get_redis

router = APIRouter(tags=["health"])
START_TIME = time.time()


def _git_sha() -> str:
    try:
        return subprocess.check_output(["git", "rev-parse", "--short", "HEAD"], stderr=subprocess.DEVNULL).decode().strip()
    except Exception:
        return "unknown"


async def _mongo_status() -> str:
    try:
        await mongo.get_db().command("ping")
    except Exception as e:
        return f"error: {e}"
    return "ok"


async def _redis_status() -> str:
    r = get_redis()
    if r is None:
        return "skipped"
    try:
        await r.ping()
    except Exception as e:
        return f"error: {e}"
    return "ok"


@router.get("/health")
async def health(response: Response):
    """
    Mongo must answer a ping. Redis is optional: 'skipped' when not configured,
    and an unreachable Redis only degrades caching and locks.
    """
    settings = get_settings()
    checks = {
        "mongodb": await _mongo_status(),
        "redis": await _redis_status(),
    }
    degraded = checks["redis"].startswith("error")
    if checks["mongodb"] != "ok":
        status = "error"
        response.status_code = 503
    else:
        status = "degraded" if degraded else "ok"

    return {
        "status": status,
        "checks": checks,
        "app_name": settings.APP_NAME,
        "env": settings.APP_ENV,
        "version": settings.GIT_SHA if settings.GIT_SHA != "unknown" else _git_sha(),
        "uptime_seconds": int(time.time() - START_TIME),
        "scheduler_interval_s": settings.recompute_interval_s,
        "locks": "redis" if checks["redis"] == "ok" else "local",
        "transactions": settings.MONGO_TRANSACTIONS,
        "timestamp": int(time.time()),
    }
