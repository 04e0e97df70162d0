# src/blackboard/core/pool.py
from __future__ import annotations
import itertools
import threading
from collections import deque
from concurrent.futures import Future
from typing import Any, Callable, Deque, Iterable, List, Optional, Tuple

from blackboard.core import log
from blackboard.core.config import BoardConfig, OVERFLOW_POLICIES
from blackboard.core.errors import BoardFullError, PoolClosedError
from blackboard.core.metrics import gauge_set, inc

Task = Tuple[Future, Callable[..., Any], Tuple[Any, ...]]
ErrorHook = Callable[[BaseException], None]


class WorkerPool:
    """
    On-demand thread pool with a bounded pending queue.

    - a worker is started when pending work outnumbers idle workers, up to max_workers
    - an idle worker retires after keepalive_sec
    - queue_capacity=0 means unbounded; otherwise `overflow` decides what a full
      queue does to submit(): "block", "reject" (BoardFullError) or "drop_oldest"
    - a worker submitting to its own full pool under "block" runs the work inline
    """

    def __init__(
        self,
        name: str = "blackboard.async",
        *,
        max_workers: int = 8,
        queue_capacity: int = 0,
        overflow: str = "block",
        keepalive_sec: float = 60.0,
        daemon: bool = True,
        on_error: Optional[ErrorHook] = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if overflow not in OVERFLOW_POLICIES:
            raise ValueError(f"overflow must be one of {OVERFLOW_POLICIES}")
        self.name = name
        self.max_workers = int(max_workers)
        self.capacity = int(queue_capacity)
        self.overflow = overflow
        self.keepalive = float(keepalive_sec)
        self.daemon = daemon
        self.on_error = on_error
        self.l = log.get(name)

        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._tasks: Deque[Task] = deque()
        self._workers: List[threading.Thread] = []
        self._idle = 0
        self._running = True
        self._seq = itertools.count(1)

    @classmethod
    def from_config(cls, cfg: BoardConfig, on_error: Optional[ErrorHook] = None) -> "WorkerPool":
        return cls(
            f"{cfg.name}.async",
            max_workers=cfg.max_workers,
            queue_capacity=cfg.queue_capacity,
            overflow=cfg.overflow,
            keepalive_sec=cfg.keepalive_sec,
            daemon=cfg.daemon,
            on_error=on_error,
        )

    # -------------------- submission --------------------
    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        return self.submit_all([(fn, args)])[0]

    def submit_all(self, calls: Iterable[Tuple[Callable[..., Any], Tuple[Any, ...]]]) -> List[Future]:
        """
        Queue a batch of (fn, args) calls as one unit: either all of them find
        room or none is queued.

        A worker of this pool that would have to wait for room runs the batch
        itself instead, since it may be the only thread able to drain the queue.
        """
        batch: List[Task] = [(Future(), fn, tuple(args)) for fn, args in calls]
        with self._lock:
            if not self._running:
                raise PoolClosedError(f"pool {self.name} is shut down")
            inline = False
            if self.capacity and len(self._tasks) + len(batch) > self.capacity:
                inline = self._make_room(len(batch))
            if not inline:
                for task in batch:
                    self._tasks.append(task)
                    if len(self._tasks) > self._idle and len(self._workers) < self.max_workers:
                        self._spawn()
                    self._not_empty.notify()
                gauge_set("pool_pending", float(len(self._tasks)), pool=self.name)
        if inline:
            for task in batch:
                self._run(task)
        return [fut for fut, _, _ in batch]

    def _make_room(self, n: int) -> bool:
        """Free room for `n` tasks; True means the caller should run them inline."""
        # caller holds self._lock
        if self.overflow == "block" and threading.current_thread() in self._workers:
            inc("pool_caller_runs_total", 1, pool=self.name)
            return True
        if self.overflow == "reject" or n > self.capacity:
            inc("pool_rejected_total", 1, pool=self.name)
            raise BoardFullError(f"pool {self.name} has no room for {n} task(s) (capacity={self.capacity})")
        if self.overflow == "drop_oldest":
            while len(self._tasks) + n > self.capacity:
                fut, fn, _ = self._tasks.popleft()
                fut.cancel()
                inc("pool_dropped_total", 1, pool=self.name)
                self.l.warning("queue full, dropped oldest task fn=%s", getattr(fn, "__name__", fn))
            return False
        while self._running and len(self._tasks) + n > self.capacity:
            self._not_full.wait()
        if not self._running:
            raise PoolClosedError(f"pool {self.name} shut down while waiting for room")
        return False

    def _spawn(self) -> None:
        th = threading.Thread(target=self._loop, name=f"{self.name}-{next(self._seq)}", daemon=self.daemon)
        self._workers.append(th)
        gauge_set("pool_workers", float(len(self._workers)), pool=self.name)
        th.start()

    # -------------------- workers --------------------
    def _next_task(self) -> Optional[Task]:
        with self._lock:
            while not self._tasks and self._running:
                self._idle += 1
                woke = self._not_empty.wait(timeout=self.keepalive)
                self._idle -= 1
                if not woke and not self._tasks:
                    break
            if not self._tasks:
                self._workers.remove(threading.current_thread())
                gauge_set("pool_workers", float(len(self._workers)), pool=self.name)
                return None
            task = self._tasks.popleft()
            self._not_full.notify_all()
            gauge_set("pool_pending", float(len(self._tasks)), pool=self.name)
            return task

    def _loop(self) -> None:
        while True:
            task = self._next_task()
            if task is None:
                return
            self._run(task)

    def _run(self, task: Task) -> None:
        fut, fn, args = task
        if not fut.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args)
        except BaseException as e:
            fut.set_exception(e)
            self._report(fn, e)
        else:
            fut.set_result(result)

    def _report(self, fn: Callable[..., Any], exc: BaseException) -> None:
        if self.on_error is None:
            self.l.error("task error fn=%s err=%s", getattr(fn, "__name__", fn), exc, exc_info=exc)
            return
        try:
            self.on_error(exc)
        except Exception:
            self.l.exception("error hook failed for fn=%s", getattr(fn, "__name__", fn))

    # -------------------- lifecycle --------------------
    def shutdown(self, wait: bool = True, cancel_pending: bool = False, timeout: Optional[float] = None) -> None:
        """Refuse new work; queued tasks still run unless cancel_pending."""
        with self._lock:
            if not self._running and not wait:
                return
            self._running = False
            if cancel_pending:
                while self._tasks:
                    self._tasks.popleft()[0].cancel()
            self._not_empty.notify_all()
            self._not_full.notify_all()
            workers = list(self._workers)
        if wait:
            me = threading.current_thread()
            for th in workers:
                if th is not me:
                    th.join(timeout=timeout)
        self.l.info("pool stop (workers=%d)", len(workers))

    @property
    def closed(self) -> bool:
        return not self._running

    def pending(self) -> int:
        with self._lock:
            return len(self._tasks)

    def worker_count(self) -> int:
        with self._lock:
            return len(self._workers)
