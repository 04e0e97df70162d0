# src/blackboard/core/errors.py
from __future__ import annotations
from typing import Any

__all__ = [
    "BlackBoardError",
    "NoSubscriberError",
    "AmbiguousSubscriberType",
    "BoardFullError",
    "PoolClosedError",
    "ConfigError",
]


class BlackBoardError(Exception):
    """Base class for everything the board raises itself."""


class NoSubscriberError(BlackBoardError, LookupError):
    """Nothing registered for the published value's type (or any of its bases)."""

    def __init__(self, lookup_type: type):
        self.lookup_type = lookup_type
        super().__init__(f"No subscribers for {lookup_type}")


class AmbiguousSubscriberType(BlackBoardError, TypeError):
    """Interest type of a subscriber could not be recovered; pass it explicitly."""

    def __init__(self, subscriber: Any):
        self.subscriber = subscriber
        super().__init__(
            "Could not determine subscriber interest type. "
            f"Use explicit type declaration instead. Subscriber: {subscriber!r}"
        )


class BoardFullError(BlackBoardError):
    """Worker queue is at capacity and the overflow policy is 'reject'."""


class PoolClosedError(BlackBoardError, RuntimeError):
    """Work submitted after the pool was shut down."""


class ConfigError(BlackBoardError, ValueError):
    pass
