"""Periodic batch pass over every shop."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from reco_engine.core import scheduler
from reco_engine.core.errors import StoreError

from conftest import SHOP


@pytest.fixture
def batch(monkeypatch, products):
    popularity, precomputer = AsyncMock(), AsyncMock()
    monkeypatch.setattr(scheduler.mongo, "get_db", lambda: MagicMock())
    monkeypatch.setattr(scheduler, "get_redis", lambda: None)
    monkeypatch.setattr(scheduler, "ProductRepo", lambda db: products)
    monkeypatch.setattr(scheduler.wiring, "build_popularity_calculator", lambda db, redis, settings: popularity)
    monkeypatch.setattr(scheduler.wiring, "build_precomputer", lambda db, redis, settings: precomputer)
    return popularity, precomputer


@pytest.mark.asyncio
async def test_every_shop_gets_popularity_then_edges(batch, products):
    popularity, precomputer = batch
    products.add("a")
    products.add("b", shop_domain="other.myshopify.com")

    await scheduler.run_batch_once()

    assert [c.args[0] for c in popularity.recompute.await_args_list] == [SHOP, "other.myshopify.com"]
    assert [c.args[0] for c in precomputer.recompute_shop.await_args_list] == [SHOP, "other.myshopify.com"]


@pytest.mark.asyncio
async def test_failing_shop_does_not_stop_the_pass(batch, products):
    popularity, precomputer = batch
    products.add("a")
    products.add("b", shop_domain="other.myshopify.com")
    popularity.recompute.side_effect = [StoreError("down"), 3]

    await scheduler.run_batch_once()

    precomputer.recompute_shop.assert_awaited_once_with("other.myshopify.com")


@pytest.mark.asyncio
async def test_disabled_scheduler_starts_nothing():
    sched = scheduler.BatchScheduler(0)
    sched.start()
    assert sched._task is None
    await sched.stop()


@pytest.mark.asyncio
async def test_scheduler_stop_cancels_loop(batch):
    sched = scheduler.BatchScheduler(3600)
    sched.start()
    assert sched._task is not None
    await sched.stop()
    assert sched._task is None
