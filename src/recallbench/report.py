from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any

from .types import BenchmarkResult


def _is_finite_number(value: Any) -> bool:
    try:
        x = float(value)
    except (TypeError, ValueError):
        return False
    return x == x and x not in (float("inf"), float("-inf"))


def _fmt_number(value: Any, decimals: int = 4) -> str:
    if not _is_finite_number(value):
        return "-"
    return f"{float(value):.{decimals}f}"


def serialize_result_payload(result: BenchmarkResult, metadata: dict[str, Any]) -> dict[str, Any]:
    return {
        "metadata": metadata,
        "result": asdict(result),
    }


def _markdown_lines(result: BenchmarkResult, metadata: dict[str, Any]) -> list[str]:
    recall = result.recall
    lines = [
        "# recallbench report",
        "",
        f"- generated_at: {metadata.get('generated_at', '-')}",
        f"- backend: {result.backend}",
        f"- base: {metadata.get('base', '-')}",
        f"- queries: {metadata.get('queries', '-')}",
        f"- groundtruth: {metadata.get('groundtruth', '-')}",
        f"- metric: {metadata.get('metric', '-')}",
        f"- index: {metadata.get('index_method', '-')} {metadata.get('index_params', {})}",
        "",
        "## recall",
        "",
        "| R@1 | R@10 | R@100 | queries scored |",
        "| ---: | ---: | ---: | ---: |",
        f"| {_fmt_number(recall.recall_at_1)} | {_fmt_number(recall.recall_at_10)} | "
        f"{_fmt_number(recall.recall_at_100)} | {recall.total_queries} |",
        "",
        "## run",
        "",
        "| base rows | inserted | insert failures | query failures | index s | load s | mean ms | p95 ms | total s |",
        "| ---: | ---: | ---: | ---: | ---: | ---: | ---: | ---: | ---: |",
        f"| {result.base_count} | {result.inserted_rows} | {result.insert_failures} | {result.query_failures} | "
        f"{_fmt_number(result.index_time_s, 3)} | {_fmt_number(result.load_time_s, 3)} | "
        f"{_fmt_number(result.mean_query_ms, 3)} | {_fmt_number(result.p95_query_ms, 3)} | "
        f"{_fmt_number(result.elapsed_s, 3)} |",
        "",
    ]
    return lines


def write_markdown_report(
    *,
    output_json_path: Path,
    result: BenchmarkResult,
    metadata: dict[str, Any],
) -> Path:
    md_path = output_json_path.with_suffix(".md")
    md_path.write_text("\n".join(_markdown_lines(result, metadata)), encoding="utf-8")
    return md_path


__all__ = ["serialize_result_payload", "write_markdown_report"]
