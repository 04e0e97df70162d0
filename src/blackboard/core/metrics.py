from __future__ import annotations

import logging
import threading
import time
from collections import deque
from statistics import mean
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple

LabelKey = Tuple[Tuple[str, str], ...]  # sorted (k, v) pairs
MetricKey = Tuple[str, LabelKey]


def _labels_key(labels: Dict[str, Any] | None) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _pct(sorted_vals: List[float], q: float) -> float:
    if not sorted_vals:
        return 0.0
    idx = max(0, min(len(sorted_vals) - 1, int(round((len(sorted_vals) - 1) * q))))
    return sorted_vals[idx]


# ---------------- Metric types ----------------

class _Metric:
    def __init__(self, name: str, labels: LabelKey):
        self.name = name
        self.labels = labels
        self._lock = threading.Lock()


class Counter(_Metric):
    def __init__(self, name: str, labels: LabelKey):
        super().__init__(name, labels)
        self._value = 0.0

    def inc(self, n: float = 1.0) -> None:
        with self._lock:
            self._value += n

    def value(self) -> float:
        with self._lock:
            return self._value


class Gauge(_Metric):
    def __init__(self, name: str, labels: LabelKey):
        super().__init__(name, labels)
        self._value = 0.0

    def set(self, v: float) -> None:
        with self._lock:
            self._value = float(v)

    def value(self) -> float:
        with self._lock:
            return self._value


class Histogram(_Metric):
    """Keeps the last `maxlen` observations; percentiles are computed on read."""
    def __init__(self, name: str, labels: LabelKey, maxlen: int = 2048):
        super().__init__(name, labels)
        self._values: Deque[float] = deque(maxlen=maxlen)

    def observe(self, v: float) -> None:
        with self._lock:
            self._values.append(float(v))

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            vals = sorted(self._values)
        if not vals:
            return {"count": 0.0, "min": 0.0, "max": 0.0, "mean": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
        return {
            "count": float(len(vals)),
            "min": vals[0],
            "max": vals[-1],
            "mean": mean(vals),
            "p50": _pct(vals, 0.50),
            "p90": _pct(vals, 0.90),
            "p99": _pct(vals, 0.99),
        }


# ---------------- Registry ----------------

class _Registry:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._stores: Dict[str, Dict[MetricKey, _Metric]] = {"counter": {}, "gauge": {}, "hist": {}}

    def _get(self, kind: str, factory: Callable[[str, LabelKey], _Metric], name: str, labels: Dict[str, Any] | None):
        key = (name, _labels_key(labels))
        with self._lock:
            store = self._stores[kind]
            m = store.get(key)
            if m is None:
                m = store[key] = factory(name, key[1])
            return m

    def counter(self, name: str, labels: Dict[str, Any] | None) -> Counter:
        return self._get("counter", Counter, name, labels)

    def gauge(self, name: str, labels: Dict[str, Any] | None) -> Gauge:
        return self._get("gauge", Gauge, name, labels)

    def hist(self, name: str, labels: Dict[str, Any] | None) -> Histogram:
        return self._get("hist", Histogram, name, labels)

    def find(self, kind: str, name: str, labels: Dict[str, Any] | None) -> Optional[_Metric]:
        with self._lock:
            return self._stores[kind].get((name, _labels_key(labels)))

    def items(self, kind: str) -> List[_Metric]:
        with self._lock:
            return list(self._stores[kind].values())


_REG = _Registry()


# ---------------- Public API ----------------

def inc(name: str, n: float = 1.0, **labels: Any) -> None:
    _REG.counter(name, labels).inc(n)


def gauge_set(name: str, v: float, **labels: Any) -> None:
    _REG.gauge(name, labels).set(v)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    _REG.hist(name, labels).observe(v)


def counter_value(name: str, **labels: Any) -> float:
    """Current counter value, 0.0 if it was never incremented."""
    m = _REG.find("counter", name, labels)
    return m.value() if m is not None else 0.0


def gauge_value(name: str, **labels: Any) -> Optional[float]:
    m = _REG.find("gauge", name, labels)
    return m.value() if m is not None else None


class Timer:
    """Context manager reporting elapsed milliseconds into a histogram."""

    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self._t0 = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        observe_hist(self.hist_name, (time.perf_counter() - self._t0) * 1000.0, **self.labels)
        return False


def snapshot() -> dict:
    out: Dict[str, List[dict]] = {"counters": [], "gauges": [], "hists": []}
    for m in _REG.items("counter"):
        out["counters"].append({"name": m.name, "labels": dict(m.labels), "value": m.value()})
    for m in _REG.items("gauge"):
        out["gauges"].append({"name": m.name, "labels": dict(m.labels), "value": m.value()})
    for m in _REG.items("hist"):
        out["hists"].append({"name": m.name, "labels": dict(m.labels), **m.snapshot()})
    return out


# ---------------- Exporter (log every N seconds) ----------------

def _plain_lines(snap: dict) -> Iterable[str]:
    for c in snap["counters"]:
        yield f"[ctr] {c['name']} {c['labels']} value={c['value']:.0f}"
    for g in snap["gauges"]:
        yield f"[gauge] {g['name']} {g['labels']} value={g['value']:.3f}"
    for h in snap["hists"]:
        yield (
            f"[hist] {h['name']} {h['labels']} n={int(h['count'])} min={h['min']:.3f} "
            f"p50={h['p50']:.3f} p90={h['p90']:.3f} p99={h['p99']:.3f} max={h['max']:.3f}"
        )


def emit(logger: Optional[logging.Logger] = None, json_mode: bool = False) -> None:
    """Log the current snapshot right away."""
    lg = logger or logging.getLogger("metrics")
    snap = snapshot()
    if json_mode:
        for kind, rows in (("counter", snap["counters"]), ("gauge", snap["gauges"]), ("hist", snap["hists"])):
            for row in rows:
                lg.info({"type": kind, **row})
    else:
        for line in _plain_lines(snap):
            lg.info(line)


class _Exporter(threading.Thread):
    def __init__(self, interval_sec: float = 5.0, json_mode: bool = False, logger: Optional[logging.Logger] = None):
        super().__init__(name="metrics-exporter", daemon=True)
        self.interval = float(interval_sec)
        self.json_mode = bool(json_mode)
        self.log = logger or logging.getLogger("metrics")
        self._stop_evt = threading.Event()

    def run(self) -> None:
        while not self._stop_evt.is_set():
            t0 = time.time()
            emit(self.log, self.json_mode)
            self._stop_evt.wait(max(0.5, self.interval - (time.time() - t0)))

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_evt.set()
        self.join(timeout=timeout)


_EXPORTER: Optional[_Exporter] = None


def start_exporter(interval_sec: float = 5.0, json_mode: bool = False, logger: Optional[logging.Logger] = None) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        return
    _EXPORTER = _Exporter(interval_sec=interval_sec, json_mode=json_mode, logger=logger)
    _EXPORTER.start()


def stop_exporter(timeout: float = 1.0) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        _EXPORTER.stop(timeout=timeout)
        _EXPORTER = None
