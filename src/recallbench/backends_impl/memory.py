from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray

from .base import CommandBackend
from ..commands import CreateIndex, CreateTable, format_vector
from ..types import ResultRow


class MemoryBackend(CommandBackend):
    """Exact brute-force scan over everything inserted so far.

    The index command is accepted and recorded but does not change search
    results.
    """

    name = "memory"

    def __init__(self, options: dict[str, Any] | None = None):
        super().__init__(options)
        self.return_vectors = bool(self.options.get("return_vectors", True))
        self._pending: list[NDArray[np.float32]] = []
        self._pending_ids: list[int] = []
        self._vectors = np.empty((0, 0), dtype=np.float32)
        self._ids = np.empty((0,), dtype=np.int64)

    def __len__(self) -> int:
        return int(self._ids.shape[0]) + len(self._pending_ids)

    def _create_table(self, cmd: CreateTable) -> None:
        self._vectors = np.empty((0, cmd.dimension), dtype=np.float32)

    def _create_index(self, cmd: CreateIndex, dimension: int, metric: str) -> None:
        del cmd, dimension, metric

    def _insert(self, vector: NDArray[np.float32], row_id: int) -> None:
        self._pending.append(vector)
        self._pending_ids.append(int(row_id))

    def _flush(self) -> None:
        if not self._pending:
            return
        self._vectors = np.concatenate([self._vectors, np.stack(self._pending)], axis=0)
        self._ids = np.concatenate([self._ids, np.asarray(self._pending_ids, dtype=np.int64)])
        self._pending.clear()
        self._pending_ids.clear()

    def _search(self, vector: NDArray[np.float32], metric: str, limit: int) -> list[ResultRow]:
        self._flush()
        if self._ids.shape[0] == 0:
            return []

        if metric == "euclidean":
            diff = self._vectors - vector[None, :]
            costs = np.sum(diff * diff, axis=1)
        elif metric == "angular":
            norms = np.linalg.norm(self._vectors, axis=1) * float(np.linalg.norm(vector))
            dots = self._vectors @ vector
            cosine = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
            costs = 1.0 - cosine
        else:
            costs = -(self._vectors @ vector)

        order = np.argsort(costs, kind="stable")[:limit]
        if not self.return_vectors:
            return [(str(int(self._ids[i])),) for i in order]
        return [(str(int(self._ids[i])), format_vector(self._vectors[i])) for i in order]


__all__ = ["MemoryBackend"]
