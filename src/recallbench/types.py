from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray


ResultRow = tuple[str, ...]


@dataclass(slots=True, frozen=True)
class VectorSet:
    """Fixed-dimension vectors stored row-major in insertion order."""

    data: NDArray[Any]

    @property
    def dimension(self) -> int:
        return int(self.data.shape[1])

    @property
    def count(self) -> int:
        return int(self.data.shape[0])

    def __len__(self) -> int:
        return self.count

    def __getitem__(self, row: int) -> NDArray[Any]:
        return self.data[row]


@dataclass(slots=True, frozen=True)
class GroundTruth:
    neighbors: NDArray[np.int32]

    @property
    def k(self) -> int:
        return int(self.neighbors.shape[1])

    @property
    def query_count(self) -> int:
        return int(self.neighbors.shape[0])

    def row(self, query: int) -> NDArray[np.int32]:
        return self.neighbors[query]


@dataclass(slots=True)
class CommandResult:
    ok: bool
    rows: list[ResultRow] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True)
class RecallReport:
    recall_at_1: float
    recall_at_10: float
    recall_at_100: float
    total_queries: int


@dataclass(slots=True)
class BenchmarkResult:
    backend: str
    recall: RecallReport
    base_count: int
    query_count: int
    dimension: int
    inserted_rows: int
    insert_failures: int
    query_failures: int
    index_time_s: float
    load_time_s: float
    mean_query_ms: float
    p95_query_ms: float
    elapsed_s: float
