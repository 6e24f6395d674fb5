from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .backends_impl import BACKENDS, BackendClient, available_backends, resolve_backend
from .dataset import read_fvecs, write_ivecs
from .driver import WorkloadDriver
from .errors import RecallBenchError
from .metrics import compute_ground_truth
from .report import serialize_result_payload, write_markdown_report
from .scenario import build_benchmark_config, default_runtime, load_scenario, parse_index_param
from .timer import Timer
from .tracking import build_tracking_sink


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="recallbench",
        description="Drive an .fvecs/.ivecs ANN workload through a vector backend and report recall@1/10/100",
    )
    parser.add_argument("--scenario", default=None, help="Scenario YAML file path")
    parser.add_argument("--base", default=None, help="Base vectors (.fvecs)")
    parser.add_argument("--queries", default=None, help="Query vectors (.fvecs)")
    parser.add_argument("--groundtruth", default=None, help="Ground-truth neighbor ids (.ivecs)")
    parser.add_argument("--dimension", type=int, default=None, help="Expected vector dimension")
    parser.add_argument("--backend", default=None, choices=sorted(BACKENDS), help="Backend to benchmark")
    parser.add_argument(
        "--metric",
        default=None,
        choices=["euclidean", "angular", "cosine", "dot", "l2", "ip", "inner_product"],
        help="Distance used for the index operator class and the query ordering",
    )
    parser.add_argument("--index-method", default=None, help="Index method named in CREATE INDEX (e.g. hnsw)")
    parser.add_argument(
        "--index-param",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Index parameter passed through to CREATE INDEX; repeatable. Replaces the defaults.",
    )
    parser.add_argument("--progress-every", type=int, default=None, help="Print progress every N rows")
    parser.add_argument(
        "--stream-chunk-rows",
        type=int,
        default=None,
        help="Stream base vectors in chunks of N rows instead of loading the whole file",
    )
    parser.add_argument("--output", default=None, help="Output JSON file path")
    parser.add_argument("--list-backends", action="store_true", help="Print backend availability and exit")
    parser.add_argument("--wandb", action="store_true", help="Enable Weights & Biases tracking")
    parser.add_argument("--wandb-project", default=None, help="WandB project name")
    parser.add_argument("--wandb-entity", default=None, help="WandB entity/team")
    parser.add_argument("--wandb-run-name", default=None, help="WandB run name")
    parser.add_argument("--wandb-mode", default=None, help="WandB mode (online/offline/disabled)")
    parser.add_argument("--wandb-tags", nargs="+", default=None, help="WandB tags")
    return parser.parse_args(argv)


def _build_runtime_config(args: argparse.Namespace) -> dict[str, Any]:
    if args.scenario:
        runtime = load_scenario(args.scenario)
    else:
        runtime = default_runtime()

    if args.base is not None:
        runtime["base"] = args.base
    if args.queries is not None:
        runtime["queries"] = args.queries
    if args.groundtruth is not None:
        runtime["groundtruth"] = args.groundtruth
    if args.dimension is not None:
        runtime["dimension"] = int(args.dimension)
    if args.backend is not None:
        runtime["backend"] = args.backend
    if args.metric is not None:
        runtime["metric"] = args.metric
    if args.index_method is not None:
        runtime["index_method"] = args.index_method
    if args.index_param:
        runtime["index_params"] = dict(parse_index_param(item) for item in args.index_param)
    if args.progress_every is not None:
        runtime["progress_every"] = int(args.progress_every)
    if args.stream_chunk_rows is not None:
        runtime["stream_chunk_rows"] = int(args.stream_chunk_rows)
    if args.output is not None:
        runtime["output"] = str(args.output)

    wandb_cfg = dict(runtime.get("wandb", {}))
    if args.wandb:
        wandb_cfg["enabled"] = True
    if args.wandb_project is not None:
        wandb_cfg["project"] = args.wandb_project
    if args.wandb_entity is not None:
        wandb_cfg["entity"] = args.wandb_entity
    if args.wandb_run_name is not None:
        wandb_cfg["run_name"] = args.wandb_run_name
    if args.wandb_mode is not None:
        wandb_cfg["mode"] = args.wandb_mode
    if args.wandb_tags is not None:
        wandb_cfg["tags"] = [str(x) for x in args.wandb_tags]
    runtime["wandb"] = wandb_cfg
    return runtime


def _print_backends() -> None:
    for name, reason in available_backends().items():
        print(f"{name}: {'available' if reason is None else reason}")


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.list_backends:
        _print_backends()
        return 0

    runtime = _build_runtime_config(args)
    config = build_benchmark_config(runtime)
    metadata = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "base": str(Path(runtime["base"]).resolve()),
        "queries": str(Path(runtime["queries"]).resolve()),
        "groundtruth": str(Path(runtime["groundtruth"]).resolve()),
        "dimension": int(runtime["dimension"]),
        "backend": runtime["backend"],
        "backend_options": runtime.get("backend_options", {}),
        "metric": runtime["metric"],
        "index_method": runtime["index_method"],
        "index_params": runtime["index_params"],
        "scenario_path": runtime.get("scenario_path"),
        "scenario_name": runtime.get("scenario_name"),
        "scenario_version": runtime.get("scenario_version"),
    }

    timer = Timer()
    tracking_sink = build_tracking_sink(runtime=runtime, dataset_meta=metadata)
    backend: BackendClient | None = None
    try:
        backend = resolve_backend(runtime["backend"], runtime.get("backend_options"))
        driver = WorkloadDriver(backend, config, timer=timer, tracking_sink=tracking_sink)
        try:
            result = driver.run()
        except RecallBenchError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1

        payload = serialize_result_payload(result, metadata)
        output = Path(runtime["output"])
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        report_md = write_markdown_report(output_json_path=output, result=result, metadata=metadata)

        print(f"\nresults written: {output.resolve()}")
        print(f"report (markdown): {report_md.resolve()}")
        tracking_sink.log_result(result=asdict(result))
        tracking_sink.log_run_summary(metadata=metadata)
    finally:
        tracking_sink.finish()
        if backend is not None:
            backend.close()
    return 0


def main() -> None:
    sys.exit(run())


def parse_groundtruth_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="recallbench-groundtruth",
        description="Compute exact nearest neighbors for an .fvecs query set and write them as .ivecs",
    )
    parser.add_argument("--base", required=True, help="Base vectors (.fvecs)")
    parser.add_argument("--queries", required=True, help="Query vectors (.fvecs)")
    parser.add_argument("--output", required=True, help="Output ground truth (.ivecs)")
    parser.add_argument("--k", type=int, default=100, help="Neighbors per query")
    parser.add_argument(
        "--metric",
        default="euclidean",
        choices=["euclidean", "angular", "cosine", "dot", "l2", "ip", "inner_product"],
        help="Distance metric",
    )
    parser.add_argument("--batch-size", type=int, default=64, help="Queries per brute-force batch")
    return parser.parse_args(argv)


def groundtruth_run(argv: list[str] | None = None) -> int:
    args = parse_groundtruth_args(argv)
    timer = Timer()
    try:
        base = read_fvecs(args.base)
        queries = read_fvecs(args.queries)
    except RecallBenchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(f"{timer.stamp()} loaded base={base.count}x{base.dimension}, queries={queries.count}x{queries.dimension}")

    neighbors = compute_ground_truth(
        train=base.data,
        queries=queries.data,
        k=args.k,
        metric=args.metric,
        batch_size=args.batch_size,
    )
    output = write_ivecs(args.output, neighbors)
    print(f"{timer.stamp()} ground truth written: {output.resolve()} shape={neighbors.shape}")
    return 0


def groundtruth_main() -> None:
    sys.exit(groundtruth_run())


if __name__ == "__main__":
    main()
