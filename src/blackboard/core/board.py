# src/blackboard/core/board.py
from __future__ import annotations
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from blackboard.core import log
from blackboard.core.config import BoardConfig
from blackboard.core.errors import NoSubscriberError
from blackboard.core.metrics import gauge_set, inc, observe_hist
from blackboard.core.pool import WorkerPool
from blackboard.core.subscriber import as_subscriber, interest_type_of

Registry = Dict[type, Tuple[Any, ...]]
ErrorHook = Callable[[Any, Any, BaseException], None]


def _name(sub: Any) -> str:
    # FunctionSubscriber: show the wrapped function
    return getattr(getattr(sub, "fn", None), "__qualname__", None) or type(sub).__qualname__


def _label(tp: type) -> str:
    """Metric/log label for a type: module-qualified so same-named classes stay apart."""
    return f"{tp.__module__}.{tp.__qualname__}"


class BlackBoard:
    """
    Routes a published value to every subscriber registered for its type.

    Lookup takes the exact runtime type first; failing that, the first key
    (in registration order) the value is an instance of. There is no
    most-specific match and no unsubscribe.

    The registry is copy-on-write: subscribe() swaps in a new mapping under a
    lock, publishers read whichever mapping is current without locking.
    """

    def __init__(
        self,
        config: Optional[BoardConfig] = None,
        *,
        executor: Any = None,
        on_error: Optional[ErrorHook] = None,
    ):
        self.config = config or BoardConfig.from_env()
        self.name = self.config.name
        self.l = log.get(f"blackboard.{self.name}")
        self.on_error = on_error
        self._lock = threading.Lock()
        self._registry: Registry = {}
        self._owns_executor = executor is None
        self.executor = executor if executor is not None else WorkerPool.from_config(self.config)

    # -------------------- registration --------------------
    def subscribe(self, subscriber: Any, interest_type: Optional[type] = None) -> Any:
        """
        Register `subscriber` for values of `interest_type`.

        Without `interest_type` the type is inferred (see interest_type_of);
        lambdas and other unannotated callables need it spelled out.
        Returns the registered subscriber (callables come back wrapped).
        """
        sub = as_subscriber(subscriber)
        if interest_type is None:
            interest_type = interest_type_of(sub)
        self._register([(sub, interest_type)])
        return sub

    def set_subscribers(self, subscribers: Iterable[Any]) -> List[Any]:
        """
        Register every subscriber with an inferred type, in order.

        All-or-nothing: types are inferred for the whole list first, so one
        AmbiguousSubscriberType leaves the board as it was. Earlier
        registrations are kept.
        """
        entries = []
        for s in subscribers:
            sub = as_subscriber(s)
            entries.append((sub, interest_type_of(sub)))
        self._register(entries)
        return [sub for sub, _ in entries]

    def _register(self, entries: List[Tuple[Any, type]]) -> None:
        for _, tp in entries:
            if not isinstance(tp, type):
                raise TypeError(f"interest type must be a class, got {tp!r}")
        with self._lock:
            registry = dict(self._registry)
            for sub, tp in entries:
                registry[tp] = registry.get(tp, ()) + (sub,)
            self._registry = registry
        for sub, tp in entries:
            self.l.info("subscribed type=%s sub=%s", _label(tp), _name(sub))
            gauge_set("board_subscribers", float(len(registry[tp])), board=self.name, type=_label(tp))

    # -------------------- lookup --------------------
    def subscribers_for(self, value: Any) -> Tuple[Any, ...]:
        """Subscribers `value` would be delivered to; NoSubscriberError if none."""
        registry = self._registry
        lookup = type(value)
        subs = registry.get(lookup)
        if subs is not None:
            return subs
        for klass, subs in registry.items():
            if isinstance(value, klass):
                return subs
        inc("board_no_subscriber_total", 1, board=self.name, type=_label(lookup))
        raise NoSubscriberError(lookup)

    def interest_types(self) -> List[type]:
        """Registered keys in lookup order."""
        return list(self._registry)

    # -------------------- publication --------------------
    def publish(self, value: Any) -> None:
        """
        Deliver `value` to its subscribers on the calling thread, in
        registration order. The first subscriber exception propagates and the
        remaining subscribers are skipped.
        """
        self.l.debug("published %r", value)
        subs = self.subscribers_for(value)
        label = _label(type(value))
        inc("board_publish_total", 1, board=self.name, type=label, mode="sync")
        for sub in subs:
            self._deliver(sub, value, label)

    def async_publish(self, value: Any) -> None:
        """
        Resolve on the calling thread, then hand one delivery per subscriber to
        the executor and return without waiting for any of them.

        With an executor that has submit_all (WorkerPool) the deliveries are
        queued as one batch, so a BoardFullError means no subscriber got the
        value. Plain submit() executors are fed one delivery at a time.
        """
        self.l.debug("published async %r", value)
        subs = self.subscribers_for(value)
        label = _label(type(value))
        calls = [(self._deliver_async, (sub, value, label)) for sub in subs]
        submit_all = getattr(self.executor, "submit_all", None)
        if submit_all is not None:
            submit_all(calls)
        else:
            for fn, args in calls:
                self.executor.submit(fn, *args)
        inc("board_publish_total", 1, board=self.name, type=label, mode="async")

    def _deliver(self, sub: Any, value: Any, label: str) -> None:
        t0 = time.perf_counter()
        try:
            sub.receive(value)
        except Exception:
            inc("board_deliver_errors_total", 1, board=self.name, type=label)
            raise
        observe_hist("board_deliver_ms", (time.perf_counter() - t0) * 1000.0, board=self.name, type=label)
        inc("board_deliver_total", 1, board=self.name, type=label)

    def _deliver_async(self, sub: Any, value: Any, label: str) -> None:
        # runs on a worker: nobody upstream will see the exception, so report it here
        try:
            self._deliver(sub, value, label)
        except Exception as e:
            self.l.error("deliver error type=%s sub=%s err=%s", label, _name(sub), e, exc_info=True)
            if self.on_error is not None:
                self.on_error(sub, value, e)

    # -------------------- lifecycle --------------------
    def close(self, wait: bool = True) -> None:
        """Stop the board's own worker pool; an injected executor is left alone."""
        if self._owns_executor and not self.executor.closed:
            self.executor.shutdown(wait=wait)

    def __enter__(self) -> "BlackBoard":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
