"""Tests for the precomputation engine: candidate sets, merge and atomic replace."""

import asyncio

import pytest

from reco_engine.core.errors import StoreError
from reco_engine.domain.models.recommendation import RecommendationType
from reco_engine.domain.services.precompute_svc import RecommendationPrecomputer
from reco_engine.utils.locks import KeyedLocks

from conftest import SHOP

FBT = RecommendationType.FREQUENTLY_BOUGHT_TOGETHER
SIMILAR = RecommendationType.SIMILAR_PRODUCTS
ALSO_VIEWED = RecommendationType.ALSO_VIEWED


def _by_type(edges, kind):
    return [(e.recommended_product_id, round(e.score, 6)) for e in edges if e.recommendation_type == kind]


@pytest.mark.asyncio
async def test_frequently_bought_together_example(products, interactions, precomputer):
    for pid in ("X", "Y", "Z"):
        products.add(pid)
    for n in range(3):
        interactions.order(f"o{n}", "X", "Y")
    interactions.order("o3", "X", "Z")

    edges = await precomputer.recompute_product("X", SHOP)

    assert _by_type(edges, FBT) == [("Y", 1.0), ("Z", 0.55)]


@pytest.mark.asyncio
async def test_fbt_counts_orders_not_lines(products, interactions, precomputer):
    products.add("X")
    products.add("Y")
    interactions.order("o1", "X", "Y", "Y")
    interactions.order("o2", "X")

    candidates = await precomputer.frequently_bought_together("X", SHOP)

    assert [(c.product_id, c.score) for c in candidates] == [("Y", 0.5)]


@pytest.mark.asyncio
async def test_fbt_keeps_top_ten(products, interactions, precomputer):
    products.add("X")
    for n in range(12):
        interactions.order(f"o{n}", "X", f"p{n:02d}")
    candidates = await precomputer.frequently_bought_together("X", SHOP)
    assert len(candidates) == 10


@pytest.mark.asyncio
async def test_similar_edges_unboosted(products, precomputer):
    products.add("A", tags=["shoes", "running"], price=50)
    products.add("B", tags=["shoes", "running"], price=55)

    edges = await precomputer.recompute_product("A", SHOP)

    assert _by_type(edges, SIMILAR) == [("B", round(0.3 + 0.1 * (1 - 5 / 55), 6))]


@pytest.mark.asyncio
async def test_similar_keeps_top_twenty(products, precomputer):
    products.add("A", tags=["t"], price=10)
    for n in range(25):
        products.add(f"p{n:02d}", tags=["t"], price=10)
    edges = await precomputer.recompute_product("A", SHOP)
    assert len(_by_type(edges, SIMILAR)) == 20


@pytest.mark.asyncio
async def test_also_viewed_scores_capped_and_boosted(products, interactions, precomputer):
    for pid in ("A", "B", "C"):
        products.add(pid)
    # two viewers of A; both also viewed B, one viewed C
    interactions.view("A", "s1")
    interactions.view("A", "s2")
    interactions.view("B", "s1")
    interactions.view("B", "s2")
    interactions.view("C", "s2")

    viewed = await precomputer.also_viewed("A", SHOP)
    assert [(c.product_id, c.score) for c in viewed] == [("B", 0.8), ("C", 0.5)]

    edges = await precomputer.recompute_product("A", SHOP)
    assert _by_type(edges, ALSO_VIEWED) == [("B", 0.9), ("C", 0.6)]


@pytest.mark.asyncio
async def test_also_viewed_matches_users_across_sessions(products, interactions, precomputer):
    products.add("A")
    products.add("B")
    interactions.view("A", "s1", user_id="u1")
    interactions.view("B", "s9", user_id="u1")

    viewed = await precomputer.also_viewed("A", SHOP)

    assert [c.product_id for c in viewed] == ["B"]


@pytest.mark.asyncio
async def test_recompute_twice_is_identical(products, interactions, precomputer, edges):
    products.add("A", tags=["t"], price=10)
    products.add("B", tags=["t"], price=12)
    products.add("C", type="Hat", price=5)
    interactions.order("o1", "A", "B")
    interactions.view("A", "s1")
    interactions.view("C", "s1")

    await precomputer.recompute_product("A", SHOP)
    first = [(e.recommended_product_id, e.recommendation_type, e.score) for e in edges.rows[(SHOP, "A")]]
    await precomputer.recompute_product("A", SHOP)
    second = [(e.recommended_product_id, e.recommendation_type, e.score) for e in edges.rows[(SHOP, "A")]]

    assert first == second
    assert len(second) == len(set(second))


@pytest.mark.asyncio
async def test_recompute_replaces_stale_edges(products, interactions, precomputer, edges):
    products.add("A")
    products.add("B")
    interactions.order("o1", "A", "B")
    await precomputer.recompute_product("A", SHOP)
    assert _by_type(edges.rows[(SHOP, "A")], FBT)

    interactions.items.clear()
    await precomputer.recompute_product("A", SHOP)

    assert _by_type(edges.rows[(SHOP, "A")], FBT) == []


@pytest.mark.asyncio
async def test_unknown_product_leaves_edges_untouched(precomputer, edges):
    assert await precomputer.recompute_product("nope", SHOP) == []
    assert edges.calls["replace_for_source"] == 0


@pytest.mark.asyncio
async def test_every_score_in_bounds(products, interactions, precomputer):
    products.add("A", tags=["t"], collections=["c"], type="T", vendor="V", price=1)
    products.add("B", tags=["t"], collections=["c"], type="T", vendor="V", price=1)
    interactions.order("o1", "A", "B")
    interactions.view("A", "s1")
    interactions.view("B", "s1")

    edges = await precomputer.recompute_product("A", SHOP)

    assert edges
    assert all(0.0 <= e.score <= 1.0 for e in edges)


@pytest.mark.asyncio
async def test_shop_pass_skips_failing_product(products, interactions, edges):
    products.add("A", tags=["t"], price=10)
    products.add("B", tags=["t"], price=10)
    products.add("C", tags=["t"], price=10)

    class Flaky:
        def __init__(self, inner):
            self.inner = inner

        async def replace_for_source(self, shop_domain, source_product_id, new_edges):
            if source_product_id == "B":
                raise StoreError("write failed")
            return await self.inner.replace_for_source(shop_domain, source_product_id, new_edges)

    precomputer = RecommendationPrecomputer(products, interactions, Flaky(edges))
    summary = await precomputer.recompute_shop(SHOP)

    assert summary.products == 3
    assert summary.succeeded == 2
    assert summary.failed == 1
    assert set(edges.rows) == {(SHOP, "A"), (SHOP, "C")}


@pytest.mark.asyncio
async def test_parallel_shop_pass_serializes_same_key(products, interactions, edges):
    for n in range(6):
        products.add(f"p{n}", tags=["t"], price=10)

    active, overlaps = set(), []

    class Tracking:
        async def replace_for_source(self, shop_domain, source_product_id, new_edges):
            if source_product_id in active:
                overlaps.append(source_product_id)
            active.add(source_product_id)
            await asyncio.sleep(0)
            active.discard(source_product_id)
            return await edges.replace_for_source(shop_domain, source_product_id, new_edges)

    precomputer = RecommendationPrecomputer(products, interactions, Tracking(), locks=KeyedLocks(), concurrency=3)
    await asyncio.gather(precomputer.recompute_shop(SHOP), precomputer.recompute_shop(SHOP))

    assert overlaps == []
    assert len(edges.rows) == 6
