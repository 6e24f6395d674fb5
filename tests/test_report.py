from pathlib import Path

from recallbench.report import serialize_result_payload, write_markdown_report
from recallbench.types import BenchmarkResult, RecallReport


def _result() -> BenchmarkResult:
    return BenchmarkResult(
        backend="hnswlib",
        recall=RecallReport(recall_at_1=0.91, recall_at_10=0.985, recall_at_100=1.0, total_queries=10000),
        base_count=1_000_000,
        query_count=10000,
        dimension=128,
        inserted_rows=999_999,
        insert_failures=1,
        query_failures=0,
        index_time_s=0.01,
        load_time_s=812.5,
        mean_query_ms=0.42,
        p95_query_ms=0.9,
        elapsed_s=830.0,
    )


def test_serialize_result_payload():
    payload = serialize_result_payload(_result(), {"metric": "euclidean"})
    assert payload["metadata"]["metric"] == "euclidean"
    assert payload["result"]["backend"] == "hnswlib"
    assert payload["result"]["recall"]["recall_at_10"] == 0.985
    assert payload["result"]["insert_failures"] == 1


def test_write_markdown_report(tmp_path: Path):
    output_json = tmp_path / "bench.json"
    output_json.write_text("{}", encoding="utf-8")

    md_path = write_markdown_report(
        output_json_path=output_json,
        result=_result(),
        metadata={
            "generated_at": "2026-10-19T00:00:00+00:00",
            "base": "/data/sift_base.fvecs",
            "metric": "euclidean",
            "index_method": "hnsw",
            "index_params": {"m": 16},
        },
    )
    assert md_path == tmp_path / "bench.md"
    md = md_path.read_text(encoding="utf-8")
    assert "- backend: hnswlib" in md
    assert "| 0.9100 | 0.9850 | 1.0000 | 10000 |" in md
    assert "| 1000000 | 999999 | 1 | 0 |" in md
    assert "- queries: -" in md
