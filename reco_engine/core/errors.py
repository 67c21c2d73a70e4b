# reco_engine/core/errors.py
from __future__ import annotations
import functools
import logging
from typing import Any, Dict, Optional

from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class RecoEngineError(Exception):
    """Base error for the recommendation engine."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(RecoEngineError):
    """Source product or user profile is absent. Never surfaced by recommend()."""

    status_code = 404


class ValidationError(RecoEngineError):
    """Malformed interaction event, rejected at the ingestion boundary."""

    status_code = 422


class StoreError(RecoEngineError):
    """The persistent store is unreachable or a read/write failed."""

    status_code = 503


def translate_store_errors(fn):
    """
    Wrap an async repository method so driver failures surface as StoreError.
    Anything that already is a StoreError passes through untouched.
    """
    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except PyMongoError as e:
            logger.warning("store error in %s: %s", fn.__qualname__, e)
            raise StoreError(f"{fn.__qualname__} failed: {e}", {"op": fn.__qualname__}) from e
    return wrapper
