from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray

from .base import CommandBackend
from ..commands import CreateIndex
from ..types import ResultRow


class FaissHNSWBackend(CommandBackend):
    """``faiss.IndexHNSWFlat`` behind an ``IndexIDMap`` so row ids survive.

    Angular search normalizes vectors and uses inner product.
    """

    name = "faiss-hnsw"
    module_name = "faiss"

    def __init__(self, options: dict[str, Any] | None = None):
        super().__init__(options)
        self._base: Any = None
        self._index: Any = None
        self._buffered: list[tuple[NDArray[np.float32], int]] = []

    def __len__(self) -> int:
        if self._index is None:
            return len(self._buffered)
        return int(self._index.ntotal)

    def _prepare(self, vectors: NDArray[np.float32]) -> NDArray[np.float32]:
        x = np.ascontiguousarray(vectors, dtype=np.float32)
        if self.index_metric == "angular":
            norms = np.linalg.norm(x, axis=1, keepdims=True)
            x = np.divide(x, norms, out=np.zeros_like(x), where=norms > 0)
        return x

    def _create_index(self, cmd: CreateIndex, dimension: int, metric: str) -> None:
        import faiss

        faiss.omp_set_num_threads(1)
        faiss_metric = faiss.METRIC_L2 if metric == "euclidean" else faiss.METRIC_INNER_PRODUCT
        base = faiss.IndexHNSWFlat(dimension, cmd.int_param("m", 16), faiss_metric)
        base.hnsw.efConstruction = cmd.int_param("ef_construction", 40)
        base.hnsw.efSearch = cmd.int_param("ef_search", 16)
        self._base = base
        self._index = faiss.IndexIDMap(base)

        if self._buffered:
            vectors = np.stack([vec for vec, _ in self._buffered])
            ids = np.asarray([row_id for _, row_id in self._buffered], dtype=np.int64)
            self._index.add_with_ids(self._prepare(vectors), ids)
            self._buffered.clear()

    def _insert(self, vector: NDArray[np.float32], row_id: int) -> None:
        if self._index is None:
            self._buffered.append((vector, int(row_id)))
            return
        self._index.add_with_ids(self._prepare(vector.reshape(1, -1)), np.asarray([row_id], dtype=np.int64))

    def _search(self, vector: NDArray[np.float32], metric: str, limit: int) -> list[ResultRow]:
        if self._index is None:
            raise ValueError("faiss-hnsw backend needs CREATE INDEX before queries")
        if metric != self.index_metric:
            raise ValueError(f"index was built for {self.index_metric}, query asks for {metric}")
        k = min(limit, int(self._index.ntotal))
        if k == 0:
            return []
        _, labels = self._index.search(self._prepare(vector.reshape(1, -1)), k)
        return [(str(int(label)),) for label in labels[0] if int(label) != -1]


__all__ = ["FaissHNSWBackend"]
