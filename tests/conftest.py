# tests/conftest.py
import os
import logging
import pytest

from blackboard.core import log
from blackboard.core.board import BlackBoard
from blackboard.core.config import BoardConfig
from blackboard.core.metrics import start_exporter, stop_exporter


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_logging_and_metrics():
    # reads LOG_LEVEL / LOG_JSON / .env if available
    log.setup()

    interval = float(os.getenv("METRICS_INTERVAL_TEST", "1.0"))
    json_mode = (os.getenv("LOG_JSON", "0") == "1")
    start_exporter(interval_sec=interval, json_mode=json_mode,
                   logger=logging.getLogger("metrics"))
    yield
    stop_exporter()


@pytest.fixture
def board(request):
    # one board name per test keeps metric labels apart
    b = BlackBoard(BoardConfig(name=request.node.name, max_workers=4, queue_capacity=64))
    yield b
    b.close()
