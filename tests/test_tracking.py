from recallbench.tracking import NullTrackingSink, _flatten_dict, build_tracking_sink


def test_build_tracking_sink_returns_null_when_disabled():
    sink = build_tracking_sink(
        runtime={"wandb": {"enabled": False}},
        dataset_meta={"base": "/tmp/base.fvecs"},
    )
    assert isinstance(sink, NullTrackingSink)
    sink.log_progress(stage="insert", done=1000, total=2000, elapsed_s=1.5)
    sink.log_failure(stage="insert", row=7, error="rejected")
    sink.log_result(result={"recall": {"recall_at_1": 0.9}})
    sink.log_run_summary(metadata={"x": 1})
    sink.finish()


def test_flatten_dict():
    assert _flatten_dict({"recall": {"recall_at_1": 0.5}, "backend": "memory"}, prefix="result") == {
        "result.recall.recall_at_1": 0.5,
        "result.backend": "memory",
    }
