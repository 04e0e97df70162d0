# tests/test_metrics_exporter_smoke.py
import io
import json
import time
import logging
import os
import pytest

from blackboard.core import log
from blackboard.core import metrics
from blackboard.core.board import BlackBoard
from blackboard.core.config import BoardConfig


@pytest.mark.smoke
def test_metrics_exporter_emits_logs(caplog):
    """conftest runs the exporter every 1s; publishing must show up in its output."""
    caplog.set_level(logging.INFO, logger="metrics")

    board = BlackBoard(BoardConfig(name="smoke"))
    board.subscribe(lambda v: None, str)
    board.publish("ping")
    board.close()

    time.sleep(float(os.getenv("METRICS_WAIT_SMOKE", "1.8")))

    records = [r for r in caplog.records if r.name == "metrics"]
    assert records, "expected at least one metrics log line"
    text = " ".join(r.getMessage() for r in records)
    assert "board_publish_total" in text


def test_timer_and_snapshot():
    with metrics.Timer("test_timer_ms", case="snapshot"):
        time.sleep(0.01)
    metrics.gauge_set("test_gauge", 3, case="snapshot")

    snap = metrics.snapshot()
    hist = next(h for h in snap["hists"] if h["name"] == "test_timer_ms")
    assert hist["labels"] == {"case": "snapshot"}
    assert hist["count"] == 1 and hist["min"] >= 5.0
    assert metrics.gauge_value("test_gauge", case="snapshot") == 3.0
    assert metrics.gauge_value("test_gauge", case="never") is None


def test_emit_json_mode(caplog):
    caplog.set_level(logging.INFO, logger="metrics.json")
    metrics.inc("test_json_total", 2, case="emit")

    metrics.emit(logging.getLogger("metrics.json"), json_mode=True)

    rows = [r.msg for r in caplog.records if r.name == "metrics.json"]
    assert {"type": "counter", "name": "test_json_total", "labels": {"case": "emit"}, "value": 2.0} in rows


def test_json_log_handler():
    buf = io.StringIO()
    handler = log.JsonHandler(stream=buf)
    lg = logging.getLogger("blackboard.jsontest")
    lg.addHandler(handler)
    lg.propagate = False
    try:
        lg.warning("hello %s", "board")
    finally:
        lg.removeHandler(handler)
        lg.propagate = True

    obj = json.loads(buf.getvalue())
    assert obj["msg"] == "hello board"
    assert obj["lvl"] == "WARNING"
    assert obj["name"] == "blackboard.jsontest"
