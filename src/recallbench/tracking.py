from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


def _flatten_dict(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    flattened: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flattened.update(_flatten_dict(value, prefix=full_key))
        else:
            flattened[full_key] = value
    return flattened


class TrackingSink:
    def log_progress(self, *, stage: str, done: int, total: int, elapsed_s: float) -> None:
        del stage, done, total, elapsed_s

    def log_failure(self, *, stage: str, row: int, error: str) -> None:
        del stage, row, error

    def log_result(self, *, result: dict[str, Any]) -> None:
        del result

    def log_run_summary(self, *, metadata: dict[str, Any]) -> None:
        del metadata

    def finish(self) -> None:
        return


class NullTrackingSink(TrackingSink):
    pass


@dataclass(slots=True)
class WandbConfig:
    enabled: bool = False
    project: str | None = None
    entity: str | None = None
    run_name: str | None = None
    group: str | None = None
    job_type: str | None = None
    tags: list[str] | None = None
    mode: str | None = None


class WandbTrackingSink(TrackingSink):
    def __init__(
        self,
        *,
        config: WandbConfig,
        runtime: dict[str, Any],
        dataset_meta: dict[str, Any],
    ):
        try:
            import wandb
        except Exception as exc:  # pragma: no cover - depends on env
            raise RuntimeError(
                "WandB is enabled but 'wandb' is not installed. "
                "Install with: pip install -e '.[wandb]'"
            ) from exc

        if not config.project:
            raise ValueError("WandB is enabled but project is missing")

        self._wandb = wandb
        self._failures: dict[str, int] = {}
        self._run = wandb.init(
            project=config.project,
            entity=config.entity,
            name=config.run_name,
            group=config.group,
            job_type=config.job_type,
            tags=config.tags,
            mode=config.mode,
            config={"runtime": runtime, "dataset": dataset_meta},
        )

    def log_progress(self, *, stage: str, done: int, total: int, elapsed_s: float) -> None:
        self._wandb.log(
            {
                f"{stage}/done": done,
                f"{stage}/total": total,
                f"{stage}/elapsed_s": elapsed_s,
            }
        )

    def log_failure(self, *, stage: str, row: int, error: str) -> None:
        count = self._failures.get(stage, 0) + 1
        self._failures[stage] = count
        self._wandb.log({f"{stage}/failures": count, f"{stage}/last_failed_row": row})
        self._run.summary[f"{stage}_last_error"] = error

    def log_result(self, *, result: dict[str, Any]) -> None:
        flat = _flatten_dict(result, prefix="result")
        numeric = {k: v for k, v in flat.items() if isinstance(v, (int, float)) and not isinstance(v, bool)}
        self._wandb.log(numeric)
        for key, value in numeric.items():
            self._run.summary[key] = value

    def log_run_summary(self, *, metadata: dict[str, Any]) -> None:
        for key, value in metadata.items():
            if isinstance(value, (str, int, float, bool)) or value is None:
                self._run.summary[f"run_{key}"] = value
            else:
                self._run.summary[f"run_{key}_json"] = json.dumps(value, ensure_ascii=False)

    def finish(self) -> None:
        self._run.finish()


def build_tracking_sink(
    *,
    runtime: dict[str, Any],
    dataset_meta: dict[str, Any],
) -> TrackingSink:
    wandb_cfg_raw = dict(runtime.get("wandb", {}))
    config = WandbConfig(
        enabled=bool(wandb_cfg_raw.get("enabled", False)),
        project=wandb_cfg_raw.get("project"),
        entity=wandb_cfg_raw.get("entity"),
        run_name=wandb_cfg_raw.get("run_name"),
        group=wandb_cfg_raw.get("group"),
        job_type=wandb_cfg_raw.get("job_type"),
        tags=list(wandb_cfg_raw.get("tags", [])) if wandb_cfg_raw.get("tags") else None,
        mode=wandb_cfg_raw.get("mode"),
    )
    if not config.enabled:
        return NullTrackingSink()
    return WandbTrackingSink(config=config, runtime=runtime, dataset_meta=dataset_meta)
