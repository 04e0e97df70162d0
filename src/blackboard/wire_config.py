# src/blackboard/wire_config.py
from __future__ import annotations
import importlib
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from blackboard.core.board import BlackBoard
from blackboard.core.config import BoardConfig
from blackboard.core.errors import ConfigError


def _imp(module: str, attr: str) -> Any:
    obj: Any = importlib.import_module(module)
    for part in attr.split("."):
        obj = getattr(obj, part)
    return obj


def resolve_ref(ref: str) -> Any:
    """'pkg.mod:Outer.Inner' or 'pkg.mod.Name' -> the object it names."""
    if ":" in ref:
        module, _, attr = ref.partition(":")
    else:
        module, _, attr = ref.rpartition(".")
    if not module or not attr:
        raise ConfigError(f"cannot resolve {ref!r}; use 'module:Name'")
    try:
        return _imp(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"cannot resolve {ref!r}: {e}") from e


def _build_subscriber(entry: Dict[str, Any]) -> Tuple[Any, Any]:
    try:
        cls = resolve_ref(f"{entry['module']}:{entry['class']}")
    except KeyError as e:
        raise ConfigError(f"subscriber entry needs 'module' and 'class': {entry!r}") from e
    args = entry.get("args") or {}
    sub = cls(**args)
    tp = resolve_ref(entry["type"]) if entry.get("type") else None
    return sub, tp


def build_from_yaml(yaml_path: str) -> Tuple[BlackBoard, List[Any]]:
    """
    Read a wiring file and return a ready board plus its subscribers.

    Board options come from the `board:` section, then BLACKBOARD_* env vars.
    Subscribers without `type` have their interest type inferred.
    """
    data = yaml.safe_load(Path(yaml_path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{yaml_path}: top level must be a mapping, got {type(data).__name__}")
    board_section = data.get("board") or {}
    if not isinstance(board_section, dict):
        raise ConfigError(f"{yaml_path}: 'board' must be a mapping")
    entries = data.get("subscribers") or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise ConfigError(f"{yaml_path}: 'subscribers' must be a list of mappings")

    cfg = BoardConfig.from_mapping(board_section)
    board = BlackBoard(BoardConfig.from_env(base=cfg))

    subs = []
    for entry in entries:
        sub, tp = _build_subscriber(entry)
        subs.append(board.subscribe(sub, tp))
    return board, subs
