from pathlib import Path

import pytest

from recallbench.scenario import DEFAULT_RUNTIME, build_benchmark_config, load_scenario, parse_index_param


def test_load_scenario_parses_sections(tmp_path: Path):
    scenario_file = tmp_path / "scenario.yaml"
    scenario_file.write_text(
        """
version: 2
name: sift1m
dataset:
  base: /data/sift_base.fvecs
  queries: /data/sift_query.fvecs
  groundtruth: /data/sift_groundtruth.ivecs
  dimension: 128
  stream_chunk_rows: 50000
backend:
  name: hnswlib
  options:
    initial_capacity: 1000000
collection:
  table: items
  vector_column: embedding
  id_column: item_id
index:
  name: items_hnsw
  method: hnsw
  metric: cosine
  params:
    m: 32
    ef_construction: 200
    ef_search: 128
run:
  progress_every: 5000
output:
  path: /tmp/out.json
wandb:
  enabled: true
  project: recallbench
  run_name: sift-run
  tags: [sift, hnsw]
""".strip(),
        encoding="utf-8",
    )

    cfg = load_scenario(scenario_file)
    assert cfg["base"] == "/data/sift_base.fvecs"
    assert cfg["queries"] == "/data/sift_query.fvecs"
    assert cfg["groundtruth"] == "/data/sift_groundtruth.ivecs"
    assert cfg["dimension"] == 128
    assert cfg["stream_chunk_rows"] == 50000
    assert cfg["backend"] == "hnswlib"
    assert cfg["backend_options"] == {"initial_capacity": 1000000}
    assert cfg["table"] == "items"
    assert cfg["vector_column"] == "embedding"
    assert cfg["id_column"] == "item_id"
    assert cfg["index_name"] == "items_hnsw"
    assert cfg["metric"] == "cosine"
    assert list(cfg["index_params"].items()) == [("m", 32), ("ef_construction", 200), ("ef_search", 128)]
    assert cfg["progress_every"] == 5000
    assert cfg["output"] == "/tmp/out.json"
    assert cfg["wandb"]["enabled"] is True
    assert cfg["wandb"]["tags"] == ["sift", "hnsw"]
    assert cfg["scenario_name"] == "sift1m"
    assert cfg["scenario_version"] == 2

    config = build_benchmark_config(cfg)
    assert config.table == "items"
    assert config.stream_chunk_rows == 50000
    assert config.index_params["m"] == 32


def test_minimal_scenario_keeps_defaults(tmp_path: Path):
    scenario_file = tmp_path / "small.yaml"
    scenario_file.write_text(
        "dataset:\n  base: b.fvecs\n  queries: q.fvecs\n  groundtruth: g.ivecs\n",
        encoding="utf-8",
    )
    cfg = load_scenario(scenario_file)
    assert cfg["backend"] == "memory"
    assert cfg["index_params"] == {"m": 16, "ef_construction": 64, "ef_search": 100}
    assert cfg["progress_every"] == 1000
    assert cfg["scenario_name"] == "small"

    cfg["index_params"]["m"] = 99
    assert DEFAULT_RUNTIME["index_params"]["m"] == 16


def test_scenario_requires_dataset_paths(tmp_path: Path):
    scenario_file = tmp_path / "broken.yaml"
    scenario_file.write_text("dataset:\n  base: b.fvecs\n", encoding="utf-8")
    with pytest.raises(ValueError, match="dataset.queries"):
        load_scenario(scenario_file)

    scenario_file.write_text("dataset: [1, 2]\n", encoding="utf-8")
    with pytest.raises(ValueError, match="must be a mapping"):
        load_scenario(scenario_file)


def test_parse_index_param():
    assert parse_index_param("m=16") == ("m", 16)
    assert parse_index_param(" probes = 0.5 ") == ("probes", 0.5)
    assert parse_index_param("quantizer=pq") == ("quantizer", "pq")
    with pytest.raises(ValueError):
        parse_index_param("m")
