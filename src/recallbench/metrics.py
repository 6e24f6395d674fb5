from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray

from .types import RecallReport


_DISTANCE_OPERATORS = {
    "euclidean": "<->",
    "angular": "<=>",
    "dot": "<#>",
}
_OPERATOR_CLASSES = {
    "euclidean": "vector_l2_ops",
    "angular": "vector_cosine_ops",
    "dot": "vector_ip_ops",
}


def canonical_metric(metric: str) -> str:
    normalized = metric.lower().strip()
    aliases = {
        "l2": "euclidean",
        "cosine": "angular",
        "ip": "dot",
        "inner_product": "dot",
    }
    return aliases.get(normalized, normalized)


def distance_operator(metric: str) -> str:
    name = canonical_metric(metric)
    if name not in _DISTANCE_OPERATORS:
        raise ValueError(f"Unsupported metric: {metric}")
    return _DISTANCE_OPERATORS[name]


def operator_class(metric: str) -> str:
    name = canonical_metric(metric)
    if name not in _OPERATOR_CLASSES:
        raise ValueError(f"Unsupported metric: {metric}")
    return _OPERATOR_CLASSES[name]


def metric_for_operator(op: str) -> str:
    for name, symbol in _DISTANCE_OPERATORS.items():
        if symbol == op:
            return name
    raise ValueError(f"Unknown distance operator: {op}")


class RecallMetric:
    """Counts how often the true nearest neighbor shows up in the top 1/10/100.

    Only the first ground-truth id (the nearest neighbor) is scored, and only
    its first occurrence in the result list counts.
    """

    def __init__(self) -> None:
        self.hits_at_1 = 0
        self.hits_at_10 = 0
        self.hits_at_100 = 0
        self.total_queries = 0

    def record(self, result_ids: Iterable[int], ground_truth: Sequence[int] | NDArray[np.integer]) -> None:
        if len(ground_truth) == 0:
            raise ValueError("ground truth row is empty")
        target = int(ground_truth[0])
        self.total_queries += 1
        for rank, item in enumerate(result_ids):
            if int(item) != target:
                continue
            if rank < 1:
                self.hits_at_1 += 1
            if rank < 10:
                self.hits_at_10 += 1
            if rank < 100:
                self.hits_at_100 += 1
            break

    def report(self) -> RecallReport:
        n = self.total_queries
        if n == 0:
            return RecallReport(recall_at_1=0.0, recall_at_10=0.0, recall_at_100=0.0, total_queries=0)
        return RecallReport(
            recall_at_1=self.hits_at_1 / n,
            recall_at_10=self.hits_at_10 / n,
            recall_at_100=self.hits_at_100 / n,
            total_queries=n,
        )


def _normalize_rows(x: NDArray[np.float32]) -> NDArray[np.float32]:
    norms = np.linalg.norm(x, axis=1, keepdims=True)
    # Keep zero vectors unchanged.
    np.divide(x, norms, out=x, where=norms > 0)
    return x


def compute_ground_truth(
    train: NDArray[np.float32],
    queries: NDArray[np.float32],
    k: int,
    metric: str,
    batch_size: int = 64,
) -> NDArray[np.int32]:
    if k <= 0:
        raise ValueError("k must be positive")
    if train.ndim != 2 or queries.ndim != 2:
        raise ValueError("train and queries must be 2-D arrays")
    if train.shape[1] != queries.shape[1]:
        raise ValueError("train and queries must share dimensionality")

    metric = canonical_metric(metric)
    if metric not in _DISTANCE_OPERATORS:
        raise ValueError(f"Unsupported metric for exact search: {metric}")

    k = min(k, train.shape[0])
    train_f = np.asarray(train, dtype=np.float32)
    queries_f = np.asarray(queries, dtype=np.float32)

    if metric == "angular":
        train_work = _normalize_rows(train_f.copy())
        train_sq = None
    else:
        train_work = train_f
        train_sq = np.sum(train_work * train_work, axis=1)

    output = np.empty((queries_f.shape[0], k), dtype=np.int32)
    for start in range(0, queries_f.shape[0], batch_size):
        end = min(start + batch_size, queries_f.shape[0])
        q = queries_f[start:end]

        if metric == "euclidean":
            # Squared Euclidean distance.
            q_sq = np.sum(q * q, axis=1, keepdims=True)
            costs = q_sq + train_sq[None, :] - (2.0 * (q @ train_work.T))
        else:
            if metric == "angular":
                q = _normalize_rows(q.copy())
            costs = -(q @ train_work.T)

        partial = np.argpartition(costs, kth=k - 1, axis=1)[:, :k]
        rows = np.arange(partial.shape[0])[:, None]
        ranking = np.argsort(costs[rows, partial], axis=1, kind="stable")
        output[start:end] = partial[rows, ranking]

    return output


__all__ = [
    "RecallMetric",
    "canonical_metric",
    "compute_ground_truth",
    "distance_operator",
    "metric_for_operator",
    "operator_class",
]
