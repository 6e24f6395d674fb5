from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import numpy as np
from numpy.typing import NDArray

from . import commands
from .backends_impl.base import BackendClient
from .dataset import iter_fvecs_chunks, peek_vecs_shape, read_fvecs, read_ground_truth
from .errors import DimensionMismatchError, RecallBenchError, RowError, SchemaError
from .metrics import RecallMetric, distance_operator, operator_class
from .timer import Timer
from .tracking import NullTrackingSink, TrackingSink
from .types import BenchmarkResult, CommandResult, GroundTruth, VectorSet


# recall@100 needs at least 100 rows back per query.
QUERY_LIMIT = 100

T = TypeVar("T")


def _default_index_params() -> dict[str, Any]:
    return {"m": 16, "ef_construction": 64, "ef_search": 100}


@dataclass(slots=True)
class BenchmarkConfig:
    base_path: str | Path
    query_path: str | Path
    groundtruth_path: str | Path
    dimension: int = 128
    table: str = "t1"
    vector_column: str = "v1"
    id_column: str = "v2"
    index_name: str = "t1v1hnsw"
    index_method: str = "hnsw"
    metric: str = "euclidean"
    index_params: dict[str, Any] = field(default_factory=_default_index_params)
    progress_every: int = 1000
    stream_chunk_rows: int | None = None

    def __post_init__(self) -> None:
        if self.dimension <= 0:
            raise ValueError("dimension must be positive")
        if self.progress_every <= 0:
            raise ValueError("progress_every must be positive")
        if self.stream_chunk_rows is not None and self.stream_chunk_rows <= 0:
            raise ValueError("stream_chunk_rows must be positive when set")
        # Fail on unknown metrics before anything touches the backend.
        distance_operator(self.metric)


class WorkloadDriver:
    """Runs one benchmark end to end against a single backend.

    Stages run strictly in order: validate inputs, create table, create index,
    insert base vectors, load queries and ground truth, query, report. Schema,
    format and dimension problems abort the run; individual insert or query
    failures are counted and reported at the end.
    """

    def __init__(
        self,
        backend: BackendClient,
        config: BenchmarkConfig,
        *,
        timer: Timer | None = None,
        tracking_sink: TrackingSink | None = None,
    ):
        self.backend = backend
        self.config = config
        self.timer = timer or Timer()
        self.tracking_sink = tracking_sink or NullTrackingSink()
        self.metric = RecallMetric()
        self.inserted_rows = 0
        self.insert_failures = 0
        self.query_failures = 0
        self._operator = distance_operator(config.metric)

    def _log(self, message: str) -> None:
        print(f"{self.timer.stamp()} {message}", flush=True)

    def _progress(self, stage: str, label: str, done: int, total: int) -> None:
        if done % self.config.progress_every != 0:
            return
        self._log(f"{label}, #{done}  #{total}")
        self.tracking_sink.log_progress(stage=stage, done=done, total=total, elapsed_s=self.timer.elapsed())

    def _staged(self, stage: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except RecallBenchError as exc:
            if exc.stage is None:
                exc.stage = stage
            raise

    def _check_dimension(self, stage: str, what: str, dimension: int) -> None:
        if dimension != self.config.dimension:
            raise DimensionMismatchError(
                f"{what} dimension is {dimension}, expected {self.config.dimension}",
                stage=stage,
            )

    def _check_pairing(self, stage: str, query_count: int, groundtruth_count: int) -> None:
        if groundtruth_count != query_count:
            raise DimensionMismatchError(
                f"ground truth has {groundtruth_count} entries for {query_count} queries",
                stage=stage,
            )

    def validate_inputs(self) -> tuple[int, int]:
        """Check file layouts and pairings before the backend is touched."""
        cfg = self.config
        stage = "validate inputs"
        base_count, base_dim = self._staged(stage, lambda: peek_vecs_shape(cfg.base_path))
        self._check_dimension(stage, "base vector", base_dim)
        query_count, query_dim = self._staged(stage, lambda: peek_vecs_shape(cfg.query_path))
        self._check_dimension(stage, "query vector", query_dim)
        gt_count, _ = self._staged(stage, lambda: peek_vecs_shape(cfg.groundtruth_path))
        self._check_pairing(stage, query_count, gt_count)
        return base_count, query_count

    def _execute_schema(self, stage: str, command: str) -> None:
        result = self.backend.execute(command)
        if not result.ok:
            raise SchemaError(f"backend rejected command: {result.error or 'no reason given'}", stage=stage)

    def create_collection(self) -> None:
        cfg = self.config
        self._log("Creating table")
        self._execute_schema(
            "create collection",
            commands.create_table(cfg.table, cfg.vector_column, cfg.dimension, cfg.id_column),
        )

    def create_index(self) -> None:
        cfg = self.config
        self._log("Creating vector index...")
        self._execute_schema(
            "create index",
            commands.create_index(
                cfg.index_name,
                cfg.table,
                cfg.index_method,
                cfg.vector_column,
                operator_class(cfg.metric),
                cfg.index_params,
            ),
        )

    def _base_rows(self) -> Iterator[tuple[int, NDArray[np.float32]]]:
        cfg = self.config
        stage = "load base vectors"
        if cfg.stream_chunk_rows:
            chunks = iter_fvecs_chunks(cfg.base_path, cfg.stream_chunk_rows)
            while True:
                item = self._staged(stage, lambda: next(chunks, None))
                if item is None:
                    return
                start, block = item
                for offset, vector in enumerate(block):
                    yield start + offset, vector
            return

        base = self._staged(stage, lambda: read_fvecs(cfg.base_path))
        self._check_dimension(stage, "base vector", base.dimension)
        self._log(f"Loading database, size {base.count}*{base.dimension}")
        for row in range(base.count):
            yield row, base[row]

    def insert_rows(self, total: int) -> None:
        cfg = self.config
        self._log("Loading database")
        for row, vector in self._base_rows():
            self._progress("insert", "Loading database", row, total)
            try:
                result = self.backend.execute(commands.insert_row(cfg.table, vector, row))
            except Exception as exc:
                result = CommandResult(ok=False, error=f"{type(exc).__name__}: {exc}")
            if result.ok:
                self.inserted_rows += 1
                continue
            self.insert_failures += 1
            print(f"Insert data failed: index = {row}", file=sys.stderr, flush=True)
            self.tracking_sink.log_failure(stage="insert", row=row, error=result.error or "rejected")

    def load_queries(self) -> tuple[VectorSet, GroundTruth]:
        cfg = self.config
        self._log("Loading queries")
        queries = self._staged("load queries", lambda: read_fvecs(cfg.query_path))
        self._check_dimension("load queries", "query vector", queries.dimension)

        self._log(f"Loading ground truth for {queries.count} queries")
        groundtruth = self._staged("load ground truth", lambda: read_ground_truth(cfg.groundtruth_path))
        self._check_pairing("load ground truth", queries.count, groundtruth.query_count)
        return queries, groundtruth

    def query_ids(self, row: int, vector: NDArray[np.float32]) -> list[int]:
        cfg = self.config
        command = commands.similarity_query(
            cfg.table, cfg.id_column, cfg.vector_column, vector, self._operator, QUERY_LIMIT
        )
        try:
            result = self.backend.execute(command)
        except Exception as exc:
            raise RowError(f"query {row} failed: {type(exc).__name__}: {exc}", stage="query") from exc
        if not result.ok:
            raise RowError(f"query {row} rejected: {result.error or 'no reason given'}", stage="query")
        ids: list[int] = []
        for fields in result.rows:
            try:
                ids.append(int(fields[0]))
            except (IndexError, ValueError) as exc:
                raise RowError(f"query {row} returned an unparsable row {fields!r}", stage="query") from exc
        return ids

    def run_queries(self, queries: VectorSet, groundtruth: GroundTruth) -> list[float]:
        latencies: list[float] = []
        for row in range(queries.count):
            self._progress("query", "Doing query", row, queries.count)
            start = self.timer.elapsed()
            try:
                ids = self.query_ids(row, queries[row])
            except RowError as exc:
                self.query_failures += 1
                print(f"Query failed: {exc}", file=sys.stderr, flush=True)
                self.tracking_sink.log_failure(stage="query", row=row, error=str(exc))
                continue
            latencies.append((self.timer.elapsed() - start) * 1000.0)
            self.metric.record(ids, groundtruth.row(row))
        return latencies

    def show(self) -> None:
        report = self.metric.report()
        print(f"R@1 = {report.recall_at_1:.4f}")
        print(f"R@10 = {report.recall_at_10:.4f}")
        print(f"R@100 = {report.recall_at_100:.4f}")
        if self.insert_failures or self.query_failures:
            print(f"failures: insert={self.insert_failures}, query={self.query_failures}")

    def run(self) -> BenchmarkResult:
        base_count, query_count = self.validate_inputs()
        self.create_collection()

        index_start = self.timer.elapsed()
        self.create_index()
        index_time = self.timer.elapsed() - index_start

        load_start = self.timer.elapsed()
        self.insert_rows(base_count)
        load_time = self.timer.elapsed() - load_start

        queries, groundtruth = self.load_queries()
        latencies = self.run_queries(queries, groundtruth)
        del queries, groundtruth

        self._log("Compute recalls")
        self.show()

        lat = np.asarray(latencies, dtype=np.float64)
        return BenchmarkResult(
            backend=getattr(self.backend, "name", type(self.backend).__name__),
            recall=self.metric.report(),
            base_count=base_count,
            query_count=query_count,
            dimension=self.config.dimension,
            inserted_rows=self.inserted_rows,
            insert_failures=self.insert_failures,
            query_failures=self.query_failures,
            index_time_s=float(index_time),
            load_time_s=float(load_time),
            mean_query_ms=float(np.mean(lat)) if lat.size else 0.0,
            p95_query_ms=float(np.percentile(lat, 95)) if lat.size else 0.0,
            elapsed_s=float(self.timer.elapsed()),
        )


__all__ = ["BenchmarkConfig", "QUERY_LIMIT", "WorkloadDriver"]
