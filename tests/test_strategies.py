"""Tests for the individual recommendation strategies."""

import asyncio

import pytest
from conftest import make_order

from crmrec.recommender.cooccurrence import CoOccurrenceCache
from crmrec.recommender.models import Customer, OrderStatus, Segment
from crmrec.recommender.stores import InMemoryOrderStore
from crmrec.recommender.strategies import (
    REASON_BOUGHT_TOGETHER,
    REASON_POPULAR,
    REASON_POPULAR_FALLBACK,
    RecommendationEngine,
    category_reason,
    segment_reason,
)


def ids(entries):
    return [entry.product_id for entry in entries]


def test_item_based_ranks_by_copurchase_count(engine):
    results = asyncio.run(engine.item_based("P1"))

    assert ids(results) == ["P2", "P3"]
    assert [r.score for r in results] == [2, 1]
    assert all(r.reason == REASON_BOUGHT_TOGETHER for r in results)


def test_item_based_respects_limit(engine):
    results = asyncio.run(engine.item_based("P2", limit=1))

    # P1 and P3 are tied at 2, the lower id wins
    assert ids(results) == ["P1"]


def test_item_based_without_history_is_empty(engine):
    assert asyncio.run(engine.item_based("P4")) == []
    assert asyncio.run(engine.item_based("unknown")) == []


def test_item_based_skips_deleted_products(engine, product_store):
    """A deleted product never appears and no error is raised."""
    product_store.remove("P1")

    results = asyncio.run(engine.item_based("P2", limit=2))

    assert ids(results) == ["P3"]


def test_invalid_limit_raises(engine):
    with pytest.raises(ValueError):
        asyncio.run(engine.item_based("P1", limit=0))
    with pytest.raises(ValueError):
        asyncio.run(engine.popular(-1))


def test_popular_ranks_by_quantity_then_id(engine):
    results = asyncio.run(engine.popular(10))

    assert ids(results) == ["P4", "P1", "P2", "P3"]
    top = results[0]
    assert top.total_quantity == 4
    assert top.total_orders == 1
    assert top.reason == REASON_POPULAR
    assert results[2].total_orders == 3


def test_popular_ignores_cancelled_orders(engine):
    results = asyncio.run(engine.popular(10))
    by_id = {r.product_id: r for r in results}

    # O4 would have added 5 units of P1 and P4
    assert by_id["P1"].total_quantity == 3
    assert by_id["P4"].total_quantity == 4


def test_popular_skips_deleted_products(engine, product_store):
    product_store.remove("P4")

    assert ids(asyncio.run(engine.popular(2))) == ["P1"]


def test_popular_with_no_orders_is_empty(product_store, customer_store):
    engine = RecommendationEngine(InMemoryOrderStore(), product_store, customer_store)

    assert asyncio.run(engine.popular(5)) == []


def test_by_category_returns_newest_in_stock(engine):
    results = asyncio.run(engine.by_category("Proteína"))

    assert ids(results) == ["P7", "P1"]
    assert results[0].reason == category_reason("Proteína")


def test_by_category_excludes_out_of_stock(engine):
    assert asyncio.run(engine.by_category("Vitaminas")) == []


def test_segment_based_merges_preferred_categories(engine):
    # C5 is Nuevo: Proteína then Vitaminas (P6 is out of stock)
    results = asyncio.run(engine.segment_based("U5", limit=5))

    assert ids(results) == ["P7", "P1"]
    assert all(r.reason == segment_reason(Segment.NUEVO) for r in results)


def test_segment_based_stops_at_limit(engine, customer_store):
    asyncio.run(customer_store.save(Customer(id="C9", user_id="U9", segment=Segment.VIP)))

    results = asyncio.run(engine.segment_based("U9", limit=3))

    # VIP: Proteína (P7, P1) then Pre-Entreno (P5)
    assert ids(results) == ["P7", "P1", "P5"]


def test_segment_based_without_customer_falls_back_to_popular(engine):
    results = asyncio.run(engine.segment_based("nobody", limit=3))

    assert results == asyncio.run(engine.popular(3))


def test_segment_based_with_empty_categories_falls_back_to_popular(engine, customer_store):
    # Inactivo maps to Quemadores and Vitaminas, none of them in stock
    asyncio.run(customer_store.save(Customer(id="C8", user_id="U8", segment=Segment.INACTIVO)))

    results = asyncio.run(engine.segment_based("U8", limit=2))

    assert ids(results) == ["P4", "P1"]


def test_user_based_aggregates_scores_and_excludes_owned(engine):
    # U1 owns P1 and P2; P3 is recommended by both
    results = asyncio.run(engine.user_based("U1"))

    assert ids(results) == ["P3"]
    assert results[0].score == 3
    assert results[0].reasons == [REASON_BOUGHT_TOGETHER, REASON_BOUGHT_TOGETHER]


def test_user_based_cold_start_is_exactly_popular(engine):
    """A user without orders gets the popular list unchanged."""
    assert asyncio.run(engine.user_based("nobody", 3)) == asyncio.run(engine.popular(3))


def test_user_based_only_cancelled_orders_is_cold_start(engine, order_store):
    order_store.add(make_order("O9", "U7", [("P1", 1)], status=OrderStatus.CANCELLED))

    assert asyncio.run(engine.user_based("U7", 2)) == asyncio.run(engine.popular(2))


def test_user_based_without_candidates_marks_fallback(engine):
    # U2 already owns every product P1, P2 and P3 point to
    results = asyncio.run(engine.user_based("U2", 2))

    assert ids(results) == ["P4", "P1"]
    assert all(r.reason == REASON_POPULAR_FALLBACK for r in results)
    assert all(r.reasons == [REASON_POPULAR] for r in results)


def test_user_based_never_recommends_deleted_products(engine, product_store):
    product_store.remove("P3")

    results = asyncio.run(engine.user_based("U1"))

    assert "P3" not in ids(results)


def test_engine_reuses_cached_matrix(order_store, product_store, customer_store):
    cache = CoOccurrenceCache()
    engine = RecommendationEngine(order_store, product_store, customer_store, matrix_cache=cache)

    asyncio.run(engine.item_based("P1"))
    asyncio.run(engine.item_based("P2"))

    assert cache.misses == 1
    assert cache.hits == 1


def test_cached_matrix_sees_new_orders(order_store, product_store, customer_store):
    engine = RecommendationEngine(
        order_store, product_store, customer_store, matrix_cache=CoOccurrenceCache()
    )
    assert asyncio.run(engine.item_based("P4")) == []

    order_store.add(make_order("O6", "U6", [("P4", 1), ("P5", 1)]))

    assert ids(asyncio.run(engine.item_based("P4"))) == ["P5"]


def test_recommendation_stats_reuses_cached_matrix(order_store, product_store, customer_store):
    cache = CoOccurrenceCache()
    engine = RecommendationEngine(order_store, product_store, customer_store, matrix_cache=cache)

    asyncio.run(engine.item_based("P1"))
    stats = asyncio.run(engine.recommendation_stats())

    assert stats.matrix_size == 4
    assert cache.misses == 1
    assert cache.hits == 1


def test_recommendation_stats(engine):
    stats = asyncio.run(engine.recommendation_stats())

    assert stats.total_products == 7
    assert stats.total_orders == 4
    assert stats.total_users == 4
    assert stats.avg_items_per_order == 2.0
    assert stats.matrix_size == 4
    assert stats.avg_cooccurrences == 1.5
