"""Product co-occurrence graph built from order history.

Counts how many orders contain each pair of distinct products. The matrix is
built from a binary order x product incidence matrix ``B`` as ``B.T @ B`` with
the diagonal removed: cell ``(a, b)`` is the number of orders holding both
``a`` and ``b``. This is the same as incrementing ``matrix[a][b]`` and
``matrix[b][a]`` once per order for every ordered pair of distinct products,
so both directions are stored.
"""

import hashlib
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.sparse import csr_matrix

from crmrec.recommender.models import Order

# Configure module logger
logger = logging.getLogger(__name__)


class CoOccurrenceMatrix:
    """Sparse product-to-product co-purchase counts."""

    def __init__(self, matrix: Optional[csr_matrix], product_ids: Sequence[str]):
        self.matrix = matrix
        self.product_ids = list(product_ids)
        self.product_id_to_idx = {pid: idx for idx, pid in enumerate(self.product_ids)}

    @classmethod
    def empty(cls) -> "CoOccurrenceMatrix":
        return cls(None, [])

    def __contains__(self, product_id: str) -> bool:
        return product_id in self.product_id_to_idx

    @property
    def size(self) -> int:
        """Number of products seen in at least one qualifying order."""
        return len(self.product_ids)

    @property
    def nnz(self) -> int:
        return 0 if self.matrix is None else int(self.matrix.nnz)

    @property
    def average_partners(self) -> float:
        if self.size == 0:
            return 0.0
        return self.nnz / self.size

    def count(self, product_a: str, product_b: str) -> int:
        """Number of orders containing both products."""
        if self.matrix is None or product_a == product_b:
            return 0
        idx_a = self.product_id_to_idx.get(product_a)
        idx_b = self.product_id_to_idx.get(product_b)
        if idx_a is None or idx_b is None:
            return 0
        return int(self.matrix[idx_a, idx_b])

    def partners(self, product_id: str) -> Dict[str, int]:
        """Co-purchase partners of ``product_id`` with their counts."""
        idx = self.product_id_to_idx.get(product_id)
        if self.matrix is None or idx is None:
            return {}

        start, end = self.matrix.indptr[idx], self.matrix.indptr[idx + 1]
        columns = self.matrix.indices[start:end]
        counts = self.matrix.data[start:end]
        return {
            self.product_ids[int(col)]: int(count)
            for col, count in zip(columns, counts)
        }

    def ranked_partners(self, product_id: str, limit: Optional[int] = None) -> List[Tuple[str, int]]:
        """Partners sorted by count descending, ties by product id ascending."""
        ranked = sorted(self.partners(product_id).items(), key=lambda x: (-x[1], x[0]))
        if limit is not None:
            ranked = ranked[:limit]
        return ranked


def build_cooccurrence_matrix(orders: Iterable[Order]) -> CoOccurrenceMatrix:
    """Build the co-occurrence matrix for a snapshot of orders.

    Cancelled orders are skipped. Repeated lines of the same product inside
    one order count once.

    Args:
        orders: Order snapshot, typically every non-cancelled order.

    Returns:
        CoOccurrenceMatrix over every product appearing in a qualifying order.
    """
    baskets = [order.distinct_product_ids() for order in orders if order.is_active]
    product_ids = sorted({pid for basket in baskets for pid in basket})

    if not product_ids:
        logger.info("No qualifying orders, co-occurrence matrix is empty")
        return CoOccurrenceMatrix.empty()

    product_id_to_idx = {pid: idx for idx, pid in enumerate(product_ids)}

    row_indices = []
    col_indices = []
    for row, basket in enumerate(baskets):
        for pid in basket:
            row_indices.append(row)
            col_indices.append(product_id_to_idx[pid])

    data = np.ones(len(row_indices), dtype=np.int64)
    basket_matrix = csr_matrix(
        (data, (row_indices, col_indices)),
        shape=(len(baskets), len(product_ids)),
        dtype=np.int64,
    )

    cooccurrence = (basket_matrix.T @ basket_matrix).tocsr()
    # Every product sits in at least one basket, so the diagonal is already
    # stored and zeroing it keeps the sparsity structure
    cooccurrence.setdiag(0)
    cooccurrence.eliminate_zeros()
    cooccurrence.sort_indices()

    logger.info(
        "Built co-occurrence matrix",
        extra={
            "num_orders": len(baskets),
            "num_products": len(product_ids),
            "non_zero_entries": int(cooccurrence.nnz),
        },
    )

    return CoOccurrenceMatrix(cooccurrence, product_ids)


def order_snapshot_key(orders: Iterable[Order]) -> str:
    """Fingerprint of the parts of an order snapshot the matrix depends on."""
    digest = hashlib.sha1()
    for order in sorted(orders, key=lambda o: o.id):
        line = f"{order.id}|{order.status.value}|{','.join(order.distinct_product_ids())}\n"
        digest.update(line.encode("utf-8"))
    return digest.hexdigest()


class CoOccurrenceCache:
    """Keeps the last built matrix while the order snapshot is unchanged.

    The cache key is :func:`order_snapshot_key` of the orders passed in, so a
    new, cancelled or edited order yields a fresh build.
    """

    def __init__(self):
        self._key: Optional[str] = None
        self._matrix: Optional[CoOccurrenceMatrix] = None
        self.hits = 0
        self.misses = 0

    def get_or_build(self, orders: Sequence[Order]) -> CoOccurrenceMatrix:
        key = order_snapshot_key(orders)
        if self._matrix is not None and key == self._key:
            self.hits += 1
            logger.debug("Co-occurrence cache hit", extra={"snapshot_key": key})
            return self._matrix

        self.misses += 1
        self._matrix = build_cooccurrence_matrix(orders)
        self._key = key
        return self._matrix

    def invalidate(self) -> None:
        self._key = None
        self._matrix = None
