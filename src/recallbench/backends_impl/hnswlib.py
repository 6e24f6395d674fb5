from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray

from .base import CommandBackend
from ..commands import CreateIndex
from ..types import ResultRow


HNSWLIB_SPACES = {"euclidean": "l2", "angular": "cosine", "dot": "ip"}


class HnswlibBackend(CommandBackend):
    """hnswlib graph index configured from the ``CREATE INDEX`` parameters.

    Recognized parameters: ``m``, ``ef_construction``, ``ef_search``. Rows
    inserted before the index exists are buffered and added when it is built.
    """

    name = "hnswlib"
    module_name = "hnswlib"

    def __init__(self, options: dict[str, Any] | None = None):
        super().__init__(options)
        self.initial_capacity = max(1, int(self.options.get("initial_capacity", 1024)))
        self._index: Any = None
        self._buffered: list[tuple[NDArray[np.float32], int]] = []

    def __len__(self) -> int:
        if self._index is None:
            return len(self._buffered)
        return int(self._index.get_current_count())

    def _create_index(self, cmd: CreateIndex, dimension: int, metric: str) -> None:
        import hnswlib

        index = hnswlib.Index(space=HNSWLIB_SPACES[metric], dim=dimension)
        index.init_index(
            max_elements=max(self.initial_capacity, len(self._buffered)),
            ef_construction=cmd.int_param("ef_construction", 200),
            M=cmd.int_param("m", 16),
        )
        index.set_num_threads(1)
        index.set_ef(cmd.int_param("ef_search", 10))
        self._index = index

        if self._buffered:
            vectors = np.stack([vec for vec, _ in self._buffered])
            ids = np.asarray([row_id for _, row_id in self._buffered], dtype=np.int64)
            index.add_items(vectors, ids)
            self._buffered.clear()

    def _insert(self, vector: NDArray[np.float32], row_id: int) -> None:
        if self._index is None:
            self._buffered.append((vector, int(row_id)))
            return
        capacity = int(self._index.get_max_elements())
        if int(self._index.get_current_count()) >= capacity:
            self._index.resize_index(capacity * 2)
        self._index.add_items(vector.reshape(1, -1), np.asarray([row_id], dtype=np.int64))

    def _search(self, vector: NDArray[np.float32], metric: str, limit: int) -> list[ResultRow]:
        if self._index is None:
            raise ValueError("hnswlib backend needs CREATE INDEX before queries")
        if metric != self.index_metric:
            raise ValueError(f"index was built for {self.index_metric}, query asks for {metric}")
        k = min(limit, int(self._index.get_current_count()))
        if k == 0:
            return []
        labels, _ = self._index.knn_query(vector.reshape(1, -1), k=k)
        return [(str(int(label)),) for label in labels[0]]


__all__ = ["HnswlibBackend"]
