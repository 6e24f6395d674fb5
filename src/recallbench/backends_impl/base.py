from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..commands import CreateIndex, CreateTable, InsertRow, SimilarityQuery, parse_command
from ..metrics import metric_for_operator
from ..types import CommandResult, ResultRow


OPCLASS_METRICS = {
    "vector_l2_ops": "euclidean",
    "vector_cosine_ops": "angular",
    "vector_ip_ops": "dot",
}


class BackendClient(ABC):
    """Anything that can take a command string and answer with ordered rows."""

    name: str
    module_name: str | None = None

    def __init__(self, options: dict[str, Any] | None = None):
        self.options = dict(options or {})

    @classmethod
    def availability(cls) -> tuple[bool, str | None]:
        if cls.module_name is None:
            return True, None
        try:
            importlib.import_module(cls.module_name)
            return True, None
        except Exception as exc:  # pragma: no cover - depends on environment
            return False, f"{cls.module_name} import failed: {exc}"

    @abstractmethod
    def execute(self, command: str) -> CommandResult:
        raise NotImplementedError

    def close(self) -> None:
        return


class CommandBackend(BackendClient):
    """Single-table backend driven by the harness's own command grammar.

    Subclasses provide storage and search; schema bookkeeping and argument
    checks happen here. Rejected commands come back as ``ok=False``.
    """

    def __init__(self, options: dict[str, Any] | None = None):
        super().__init__(options)
        self.table: CreateTable | None = None
        self.index: CreateIndex | None = None
        self.index_metric: str | None = None

    def execute(self, command: str) -> CommandResult:
        try:
            parsed = parse_command(command)
            if isinstance(parsed, InsertRow):
                self._handle_insert(parsed)
                return CommandResult(ok=True)
            if isinstance(parsed, SimilarityQuery):
                return CommandResult(ok=True, rows=self._handle_query(parsed))
            if isinstance(parsed, CreateTable):
                self._handle_create_table(parsed)
                return CommandResult(ok=True)
            self._handle_create_index(parsed)
            return CommandResult(ok=True)
        except (ValueError, RuntimeError) as exc:
            return CommandResult(ok=False, error=str(exc))

    def _require_table(self, name: str) -> CreateTable:
        if self.table is None or self.table.table != name:
            raise ValueError(f"no such table: {name}")
        return self.table

    def _handle_create_table(self, cmd: CreateTable) -> None:
        if self.table is not None:
            raise ValueError(f"table already exists: {self.table.table}")
        if cmd.dimension <= 0:
            raise ValueError("vector dimension must be positive")
        self.table = cmd
        self._create_table(cmd)

    def _handle_create_index(self, cmd: CreateIndex) -> None:
        table = self._require_table(cmd.table)
        if cmd.column != table.vector_column:
            raise ValueError(f"cannot index non-vector column: {cmd.column}")
        if self.index is not None:
            raise ValueError(f"index already exists: {self.index.name}")
        metric = OPCLASS_METRICS.get(cmd.opclass)
        if metric is None:
            raise ValueError(f"unsupported operator class: {cmd.opclass}")
        self.index_metric = metric
        try:
            self._create_index(cmd, table.dimension, metric)
        except Exception:
            self.index_metric = None
            raise
        self.index = cmd

    def _handle_insert(self, cmd: InsertRow) -> None:
        table = self._require_table(cmd.table)
        if cmd.vector.shape[0] != table.dimension:
            raise ValueError(f"expected {table.dimension} components, got {cmd.vector.shape[0]}")
        self._insert(cmd.vector, cmd.row_id)

    def _handle_query(self, cmd: SimilarityQuery) -> list[ResultRow]:
        table = self._require_table(cmd.table)
        if cmd.vector_column != table.vector_column or cmd.id_column != table.id_column:
            raise ValueError("query must select the id and vector columns")
        if cmd.vector.shape[0] != table.dimension:
            raise ValueError(f"expected {table.dimension} components, got {cmd.vector.shape[0]}")
        if cmd.limit <= 0:
            return []
        return self._search(cmd.vector, metric_for_operator(cmd.operator), cmd.limit)

    def _create_table(self, cmd: CreateTable) -> None:
        del cmd

    @abstractmethod
    def _create_index(self, cmd: CreateIndex, dimension: int, metric: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def _insert(self, vector: NDArray[np.float32], row_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def _search(self, vector: NDArray[np.float32], metric: str, limit: int) -> list[ResultRow]:
        raise NotImplementedError


__all__ = ["BackendClient", "CommandBackend", "OPCLASS_METRICS"]
