"""Textual command protocol spoken between the driver and a backend.

The driver only builds commands; the bundled reference backends use
``parse_command`` to understand the same grammar::

    CREATE TABLE t1(v1 VECTOR(128), v2 integer);
    CREATE INDEX t1v1hnsw ON t1 USING hnsw (v1 vector_l2_ops) WITH (m = 16, ef_construction = 64, ef_search = 100);
    INSERT INTO t1 VALUES (ARRAY [0.000000, ...] , 0);
    SELECT v2, v1 FROM t1 ORDER BY ARRAY [0.000000, ...] <-> v1 LIMIT 100;
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray


def format_vector(values: Iterable[float]) -> str:
    """Render a vector literal with six decimal places per component.

    Components with absolute value below 5e-7 print as ``0.000000``, so
    datasets with very small magnitudes should be rescaled before loading.
    """
    return "[" + ", ".join(f"{float(x):.6f}" for x in values) + "]"


def create_table(table: str, vector_column: str, dimension: int, id_column: str) -> str:
    return f"CREATE TABLE {table}({vector_column} VECTOR({int(dimension)}), {id_column} integer);"


def create_index(
    name: str,
    table: str,
    method: str,
    column: str,
    opclass: str,
    params: Mapping[str, Any] | None = None,
) -> str:
    command = f"CREATE INDEX {name} ON {table} USING {method} ({column} {opclass})"
    if params:
        command += " WITH (" + ", ".join(f"{key} = {value}" for key, value in params.items()) + ")"
    return command + ";"


def insert_row(table: str, vector: Iterable[float], row_id: int) -> str:
    return f"INSERT INTO {table} VALUES (ARRAY {format_vector(vector)} , {int(row_id)});"


def similarity_query(
    table: str,
    id_column: str,
    vector_column: str,
    vector: Iterable[float],
    operator: str,
    limit: int,
) -> str:
    return (
        f"SELECT {id_column}, {vector_column} FROM {table} "
        f"ORDER BY ARRAY {format_vector(vector)} {operator} {vector_column} LIMIT {int(limit)};"
    )


@dataclass(slots=True)
class CreateTable:
    table: str
    vector_column: str
    dimension: int
    id_column: str


@dataclass(slots=True)
class CreateIndex:
    name: str
    table: str
    method: str
    column: str
    opclass: str
    params: dict[str, str] = field(default_factory=dict)

    def int_param(self, key: str, default: int) -> int:
        value = self.params.get(key)
        return default if value is None else int(value)


@dataclass(slots=True)
class InsertRow:
    table: str
    vector: NDArray[np.float32]
    row_id: int


@dataclass(slots=True)
class SimilarityQuery:
    table: str
    id_column: str
    vector_column: str
    vector: NDArray[np.float32]
    operator: str
    limit: int


Command = CreateTable | CreateIndex | InsertRow | SimilarityQuery

_FLAGS = re.IGNORECASE | re.DOTALL
_CREATE_TABLE = re.compile(
    r"^\s*CREATE\s+TABLE\s+(\w+)\s*\(\s*(\w+)\s+VECTOR\s*\(\s*(\d+)\s*\)\s*,\s*(\w+)\s+integer\s*\)\s*;?\s*$",
    _FLAGS,
)
_CREATE_INDEX = re.compile(
    r"^\s*CREATE\s+INDEX\s+(\w+)\s+ON\s+(\w+)\s+USING\s+(\w+)\s*\(\s*(\w+)\s+(\w+)\s*\)"
    r"(?:\s+WITH\s*\((.*)\))?\s*;?\s*$",
    _FLAGS,
)
_INSERT = re.compile(
    r"^\s*INSERT\s+INTO\s+(\w+)\s+VALUES\s*\(\s*ARRAY\s*(\[[^\]]*\])\s*,\s*(-?\d+)\s*\)\s*;?\s*$",
    _FLAGS,
)
_SELECT = re.compile(
    r"^\s*SELECT\s+(\w+)\s*,\s*(\w+)\s+FROM\s+(\w+)\s+ORDER\s+BY\s+ARRAY\s*(\[[^\]]*\])\s*"
    r"(<->|<=>|<#>)\s*(\w+)\s+LIMIT\s+(\d+)\s*;?\s*$",
    _FLAGS,
)


def parse_vector(literal: str) -> NDArray[np.float32]:
    body = literal.strip()
    if not (body.startswith("[") and body.endswith("]")):
        raise ValueError(f"not a vector literal: {literal[:40]!r}")
    parts = [p for p in body[1:-1].split(",") if p.strip()]
    if not parts:
        raise ValueError("empty vector literal")
    return np.asarray([float(p) for p in parts], dtype=np.float32)


def _parse_params(raw: str | None) -> dict[str, str]:
    params: dict[str, str] = {}
    if not raw or not raw.strip():
        return params
    for item in raw.split(","):
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"malformed index parameter: {item.strip()!r}")
        params[key.strip().lower()] = value.strip()
    return params


def parse_command(text: str) -> Command:
    m = _INSERT.match(text)
    if m:
        return InsertRow(table=m.group(1), vector=parse_vector(m.group(2)), row_id=int(m.group(3)))
    m = _SELECT.match(text)
    if m:
        return SimilarityQuery(
            id_column=m.group(1),
            vector_column=m.group(2),
            table=m.group(3),
            vector=parse_vector(m.group(4)),
            operator=m.group(5),
            limit=int(m.group(7)),
        )
    m = _CREATE_TABLE.match(text)
    if m:
        return CreateTable(
            table=m.group(1),
            vector_column=m.group(2),
            dimension=int(m.group(3)),
            id_column=m.group(4),
        )
    m = _CREATE_INDEX.match(text)
    if m:
        return CreateIndex(
            name=m.group(1),
            table=m.group(2),
            method=m.group(3).lower(),
            column=m.group(4),
            opclass=m.group(5).lower(),
            params=_parse_params(m.group(6)),
        )
    raise ValueError(f"unrecognized command: {text[:60]!r}")


__all__ = [
    "Command",
    "CreateIndex",
    "CreateTable",
    "InsertRow",
    "SimilarityQuery",
    "create_index",
    "create_table",
    "format_vector",
    "insert_row",
    "parse_command",
    "parse_vector",
    "similarity_query",
]
