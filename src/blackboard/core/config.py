# src/blackboard/core/config.py
from __future__ import annotations
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional

from blackboard.core import log
from blackboard.core.errors import ConfigError

OVERFLOW_POLICIES = ("block", "reject", "drop_oldest")
ENV_PREFIX = "BLACKBOARD_"


def _default_workers() -> int:
    # same ceiling concurrent.futures uses for I/O bound pools
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass(frozen=True)
class BoardConfig:
    name: str = "blackboard"
    max_workers: int = field(default_factory=_default_workers)
    queue_capacity: int = 1024   # 0 = unbounded
    overflow: str = "block"
    keepalive_sec: float = 60.0
    daemon: bool = True

    def __post_init__(self):
        # direct construction gets the same coercion as YAML / env values
        for f in fields(self):
            object.__setattr__(self, f.name, _coerce(f.name, getattr(self, f.name), f.type))
        if not self.name:
            raise ConfigError("name must not be empty")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1 (got {self.max_workers})")
        if self.queue_capacity < 0:
            raise ConfigError(f"queue_capacity must be >= 0 (got {self.queue_capacity})")
        if self.overflow not in OVERFLOW_POLICIES:
            raise ConfigError(f"overflow must be one of {OVERFLOW_POLICIES} (got {self.overflow!r})")
        if self.keepalive_sec <= 0:
            raise ConfigError(f"keepalive_sec must be > 0 (got {self.keepalive_sec})")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]], base: Optional["BoardConfig"] = None) -> "BoardConfig":
        """Overlay known keys from `data` (e.g. a YAML `board:` section) onto `base`."""
        base = base or cls()
        data = dict(data or {})
        unknown = sorted(set(data) - {f.name for f in fields(cls)})
        if unknown:
            raise ConfigError(f"unknown board option(s): {', '.join(unknown)}")
        return replace(base, **data)

    @classmethod
    def from_env(cls, base: Optional["BoardConfig"] = None, environ: Optional[Mapping[str, str]] = None) -> "BoardConfig":
        """Overlay BLACKBOARD_* variables (a .env file is honoured) onto `base`."""
        if environ is None:
            log.load_env()
            environ = os.environ
        data: Dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is not None and raw != "":
                data[f.name] = raw
        return cls.from_mapping(data, base=base)


def _coerce(key: str, value: Any, annotation: Any) -> Any:
    # annotations are strings under `from __future__ import annotations`
    kind = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", str(annotation))
    try:
        if kind == "int":
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if kind == "float":
            return float(value)
        if kind == "bool":
            if isinstance(value, bool):
                return value
            s = str(value).strip().lower()
            if s in ("1", "true", "yes", "on"):
                return True
            if s in ("0", "false", "no", "off"):
                return False
            raise ValueError(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value for {key}: {value!r}") from e
