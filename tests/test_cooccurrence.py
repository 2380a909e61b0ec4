"""Tests for the product co-occurrence matrix and its cache."""

from conftest import make_order

from crmrec.recommender.cooccurrence import (
    CoOccurrenceCache,
    build_cooccurrence_matrix,
    order_snapshot_key,
)
from crmrec.recommender.models import OrderStatus


def test_two_orders_with_same_pair_count_twice_in_both_directions():
    """Two orders holding {A, B} give A-B = B-A = 2."""
    orders = [
        make_order("O1", "U1", [("A", 1), ("B", 1)]),
        make_order("O2", "U2", [("A", 3), ("B", 1)]),
    ]
    matrix = build_cooccurrence_matrix(orders)

    assert matrix.count("A", "B") == 2
    assert matrix.count("B", "A") == 2


def test_products_never_bought_together_have_no_entry():
    orders = [
        make_order("O1", "U1", [("A", 1), ("B", 1)]),
        make_order("O2", "U2", [("C", 1)]),
    ]
    matrix = build_cooccurrence_matrix(orders)

    assert matrix.count("A", "C") == 0
    assert "C" in matrix
    assert matrix.partners("C") == {}


def test_diagonal_is_empty():
    matrix = build_cooccurrence_matrix([make_order("O1", "U1", [("A", 2), ("B", 1)])])

    assert matrix.count("A", "A") == 0
    assert "A" not in matrix.partners("A")


def test_repeated_lines_count_once_per_order():
    orders = [make_order("O1", "U1", [("A", 1), ("B", 1), ("A", 4)])]
    matrix = build_cooccurrence_matrix(orders)

    assert matrix.count("A", "B") == 1


def test_cancelled_orders_are_ignored(orders):
    matrix = build_cooccurrence_matrix(orders)

    # O4 is the only order pairing P1 with P4 and it is cancelled
    assert matrix.count("P1", "P4") == 0
    assert matrix.count("P1", "P2") == 2
    assert matrix.count("P2", "P3") == 2
    assert matrix.count("P1", "P3") == 1


def test_ranked_partners_break_ties_by_product_id(orders):
    matrix = build_cooccurrence_matrix(orders)

    assert matrix.ranked_partners("P2") == [("P1", 2), ("P3", 2)]
    assert matrix.ranked_partners("P3", limit=1) == [("P2", 2)]


def test_unknown_product_has_no_partners(orders):
    matrix = build_cooccurrence_matrix(orders)

    assert matrix.partners("missing") == {}
    assert matrix.ranked_partners("missing") == []


def test_empty_history_gives_empty_matrix():
    cancelled = make_order("O1", "U1", [("A", 1), ("B", 1)], status=OrderStatus.CANCELLED)
    matrix = build_cooccurrence_matrix([cancelled])

    assert matrix.size == 0
    assert matrix.nnz == 0
    assert matrix.average_partners == 0.0
    assert matrix.count("A", "B") == 0


def test_matrix_size_and_average_partners(orders):
    matrix = build_cooccurrence_matrix(orders)

    # P1, P2, P3 and P4 (from the pending order O5)
    assert matrix.size == 4
    # Six stored cells: P1<->P2, P1<->P3, P2<->P3
    assert matrix.nnz == 6
    assert matrix.average_partners == 1.5


def test_snapshot_key_ignores_order_of_orders(orders):
    assert order_snapshot_key(orders) == order_snapshot_key(list(reversed(orders)))


def test_snapshot_key_changes_when_status_changes(orders):
    before = order_snapshot_key(orders)
    orders[0] = orders[0].model_copy(update={"status": OrderStatus.CANCELLED})

    assert order_snapshot_key(orders) != before


def test_cache_reuses_matrix_for_unchanged_snapshot(orders):
    cache = CoOccurrenceCache()

    first = cache.get_or_build(orders)
    second = cache.get_or_build(list(orders))

    assert first is second
    assert cache.hits == 1
    assert cache.misses == 1


def test_cache_rebuilds_when_new_order_arrives(orders):
    cache = CoOccurrenceCache()
    first = cache.get_or_build(orders)

    orders.append(make_order("O6", "U5", [("P1", 1), ("P4", 1)]))
    second = cache.get_or_build(orders)

    assert second is not first
    assert second.count("P1", "P4") == 1
    assert cache.misses == 2


def test_cache_invalidate_forces_rebuild(orders):
    cache = CoOccurrenceCache()
    first = cache.get_or_build(orders)

    cache.invalidate()

    assert cache.get_or_build(orders) is not first
