from __future__ import annotations

import json
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

_configured = False
_env_loaded = False

PLAIN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s | %(message)s"


def load_env() -> None:
    """Load a .env file from the working directory once per process."""
    global _env_loaded
    if _env_loaded:
        return
    load_dotenv()
    _env_loaded = True


def _level_from(name: Optional[str], default: int = logging.INFO) -> int:
    lvl = logging.getLevelName((name or "").upper())
    return lvl if isinstance(lvl, int) else default


class JsonHandler(logging.StreamHandler):
    """One JSON object per line on stdout."""

    def __init__(self, stream=None):
        super().__init__(stream=stream or sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            obj = {
                "ts": record.created,
                "lvl": record.levelname,
                "name": record.name,
                "thread": record.threadName,
                "msg": record.getMessage(),
            }
            if record.exc_info:
                obj["exc"] = logging.Formatter().formatException(record.exc_info)
            self.stream.write(json.dumps(obj, ensure_ascii=False, default=str) + "\n")
            self.flush()
        except Exception:  # pragma: no cover
            self.handleError(record)


def setup(level: Optional[str] = None, json_mode: Optional[bool] = None, *, force: bool = False) -> None:
    """Configure the root logger.

    - LOG_LEVEL / LOG_JSON are read from the environment (and .env) when args are None
    - a second call is a no-op unless force=True
    """
    global _configured
    if _configured and not force:
        return

    load_env()

    py_level = _level_from(level or os.getenv("LOG_LEVEL", "INFO"))
    json_flag = json_mode if json_mode is not None else (os.getenv("LOG_JSON", "0") == "1")

    root = logging.getLogger()
    # drop handlers from earlier setups (pytest re-runs etc.)
    root.handlers.clear()
    root.setLevel(py_level)

    if json_flag:
        handler: logging.Handler = JsonHandler()
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=PLAIN_FORMAT))
    root.addHandler(handler)

    _configured = True


def get(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_level(level: str) -> None:
    """Adjust the root level at runtime (e.g. inside a test)."""
    logging.getLogger().setLevel(_level_from(level))
