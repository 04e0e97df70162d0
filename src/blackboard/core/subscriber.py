# src/blackboard/core/subscriber.py
from __future__ import annotations
import inspect
import threading
from typing import Any, Callable, Generic, List, Optional, TypeVar, get_args, get_origin, get_type_hints

from blackboard.core.errors import AmbiguousSubscriberType

T = TypeVar("T")

__all__ = [
    "Subscriber",
    "FunctionSubscriber",
    "CollectingSubscriber",
    "as_subscriber",
    "interest_type_of",
]


class Subscriber(Generic[T]):
    """
    Something that wants values of type T published to a board.

    Parameterize the base (``class Audit(Subscriber[Order])``) so the board can
    work out the interest type by itself, or pass the type to subscribe().
    """

    def receive(self, value: T) -> None:
        """Called once per published value that resolves to this subscriber."""
        raise NotImplementedError


class FunctionSubscriber(Subscriber[Any]):
    """Wraps a plain callable; its first parameter annotation is the interest type."""

    def __init__(self, fn: Callable[[Any], Any]):
        self.fn = fn

    def receive(self, value: Any) -> None:
        self.fn(value)

    def __repr__(self) -> str:
        return f"FunctionSubscriber({getattr(self.fn, '__qualname__', self.fn)!r})"


class CollectingSubscriber(Subscriber[T]):
    """Appends every received value to `items`; handy for tests and demos."""

    def __init__(self, items: Optional[List[T]] = None):
        self.items: List[T] = items if items is not None else []
        self._cv = threading.Condition()

    def receive(self, value: T) -> None:
        with self._cv:
            self.items.append(value)
            self._cv.notify_all()

    def wait_for(self, count: int, timeout: Optional[float] = None) -> bool:
        """Block until at least `count` values arrived; False on timeout."""
        with self._cv:
            return self._cv.wait_for(lambda: len(self.items) >= count, timeout=timeout)


def as_subscriber(obj: Any) -> Any:
    """Objects with receive() pass through, bare callables get wrapped."""
    if callable(getattr(obj, "receive", None)):
        return obj
    if callable(obj):
        return FunctionSubscriber(obj)
    raise TypeError(f"subscriber must have a receive() method or be callable: {obj!r}")


# -------------------- interest type inference --------------------

def _concrete(tp: Any) -> bool:
    # list[int], Any, unions and TypeVars cannot key an isinstance() lookup
    return tp is not Any and isinstance(tp, type) and get_origin(tp) is None


def _from_orig_class(sub: Any) -> Optional[type]:
    # set by typing on instances created as CollectingSubscriber[str]()
    args = get_args(getattr(sub, "__orig_class__", None))
    if args and _concrete(args[0]):
        return args[0]
    return None


def _from_bases(cls: type) -> Optional[type]:
    for klass in cls.__mro__:
        for base in klass.__dict__.get("__orig_bases__", ()):
            origin = get_origin(base)
            if not (isinstance(origin, type) and issubclass(origin, Subscriber)):
                continue
            args = get_args(base)
            if args and _concrete(args[0]):
                return args[0]
    return None


def _from_annotation(fn: Any) -> Optional[type]:
    if not (inspect.isfunction(fn) or inspect.ismethod(fn)):
        fn = getattr(fn, "__call__", None)
        if fn is None:
            return None
    try:
        params = [
            p for p in inspect.signature(fn).parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        hints = get_type_hints(fn)
    except (TypeError, ValueError, NameError):
        # builtins without signatures, unresolvable forward references
        return None
    if not params:
        return None
    tp = hints.get(params[0].name)
    return tp if _concrete(tp) else None


def interest_type_of(subscriber: Any) -> type:
    """
    Best-effort recovery of the type a subscriber declared interest in.

    Looks at the instance's own parameterization, then the Subscriber[X] bases
    of its class, then the annotation of receive()'s first parameter. Raises
    AmbiguousSubscriberType when none of them names a concrete class.
    """
    if isinstance(subscriber, FunctionSubscriber):
        tp = _from_annotation(subscriber.fn)
    else:
        tp = (
            _from_orig_class(subscriber)
            or _from_bases(type(subscriber))
            or _from_annotation(getattr(subscriber, "receive", None))
        )
    if tp is None:
        raise AmbiguousSubscriberType(subscriber)
    return tp
