from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from .driver import BenchmarkConfig


DEFAULT_RUNTIME: dict[str, Any] = {
    "base": None,
    "queries": None,
    "groundtruth": None,
    "dimension": 128,
    "stream_chunk_rows": None,
    "backend": "memory",
    "backend_options": {},
    "table": "t1",
    "vector_column": "v1",
    "id_column": "v2",
    "index_name": "t1v1hnsw",
    "index_method": "hnsw",
    "metric": "euclidean",
    "index_params": {"m": 16, "ef_construction": 64, "ef_search": 100},
    "progress_every": 1000,
    "output": "benchmark.json",
    "wandb": {
        "enabled": False,
        "project": None,
        "entity": None,
        "run_name": None,
        "group": None,
        "job_type": None,
        "tags": [],
        "mode": None,
    },
}


def default_runtime() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_RUNTIME)


def _as_dict(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"scenario: '{name}' must be a mapping")
    return dict(value)


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def _normalize_wandb(raw: dict[str, Any]) -> dict[str, Any]:
    cfg = {
        "enabled": bool(raw.get("enabled", False)),
        "project": raw.get("project"),
        "entity": raw.get("entity"),
        "run_name": raw.get("run_name"),
        "group": raw.get("group"),
        "job_type": raw.get("job_type"),
        "mode": raw.get("mode"),
    }
    tags = raw.get("tags")
    if tags is None:
        cfg["tags"] = []
    elif isinstance(tags, list):
        cfg["tags"] = [str(x) for x in tags]
    else:
        raise ValueError("scenario: 'wandb.tags' must be a list")
    return cfg


def parse_index_param(text: str) -> tuple[str, Any]:
    key, sep, value = text.partition("=")
    if not sep or not key.strip() or not value.strip():
        raise ValueError(f"index parameter must look like key=value, got {text!r}")
    raw = value.strip()
    try:
        parsed: Any = int(raw)
    except ValueError:
        try:
            parsed = float(raw)
        except ValueError:
            parsed = raw
    return key.strip(), parsed


def load_scenario(path: str | Path) -> dict[str, Any]:
    scenario_path = Path(path)
    raw_loaded = yaml.safe_load(scenario_path.read_text(encoding="utf-8"))
    raw = _as_dict(raw_loaded, name="root")

    dataset = _as_dict(raw.get("dataset"), name="dataset")
    for key in ("base", "queries", "groundtruth"):
        if key not in dataset:
            raise ValueError(f"scenario: dataset.{key} is required")

    backend = _as_dict(raw.get("backend"), name="backend")
    collection = _as_dict(raw.get("collection"), name="collection")
    index = _as_dict(raw.get("index"), name="index")
    run = _as_dict(raw.get("run"), name="run")
    output = _as_dict(raw.get("output"), name="output")
    wandb = _as_dict(raw.get("wandb"), name="wandb")
    index_params = _as_dict(index.get("params"), name="index.params")
    backend_options = _as_dict(backend.get("options"), name="backend.options")

    cfg = default_runtime()
    cfg.update(
        {
            "base": str(dataset["base"]),
            "queries": str(dataset["queries"]),
            "groundtruth": str(dataset["groundtruth"]),
            "dimension": int(dataset.get("dimension", cfg["dimension"])),
            "stream_chunk_rows": _optional_int(dataset.get("stream_chunk_rows", cfg["stream_chunk_rows"])),
            "backend": str(backend.get("name", cfg["backend"])),
            "backend_options": backend_options,
            "table": str(collection.get("table", cfg["table"])),
            "vector_column": str(collection.get("vector_column", cfg["vector_column"])),
            "id_column": str(collection.get("id_column", cfg["id_column"])),
            "index_name": str(index.get("name", cfg["index_name"])),
            "index_method": str(index.get("method", cfg["index_method"])),
            "metric": str(index.get("metric", cfg["metric"])),
            "index_params": index_params if index_params else cfg["index_params"],
            "progress_every": int(run.get("progress_every", cfg["progress_every"])),
            "output": str(output.get("path", cfg["output"])),
            "wandb": _normalize_wandb(wandb),
            "scenario_path": str(scenario_path.resolve()),
            "scenario_name": str(raw.get("name", scenario_path.stem)),
            "scenario_version": int(raw.get("version", 1)),
        }
    )
    return cfg


def build_benchmark_config(runtime: dict[str, Any]) -> BenchmarkConfig:
    for key in ("base", "queries", "groundtruth"):
        if not runtime.get(key):
            raise ValueError(f"{key} is required. Set --{key} or dataset.{key} in --scenario.")
    return BenchmarkConfig(
        base_path=runtime["base"],
        query_path=runtime["queries"],
        groundtruth_path=runtime["groundtruth"],
        dimension=int(runtime["dimension"]),
        table=runtime["table"],
        vector_column=runtime["vector_column"],
        id_column=runtime["id_column"],
        index_name=runtime["index_name"],
        index_method=runtime["index_method"],
        metric=runtime["metric"],
        index_params=dict(runtime["index_params"]),
        progress_every=int(runtime["progress_every"]),
        stream_chunk_rows=_optional_int(runtime.get("stream_chunk_rows")),
    )
