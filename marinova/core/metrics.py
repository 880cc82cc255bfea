"""Lightweight in-memory counters rendered in Prometheus text format."""

from __future__ import annotations

import re
import threading
from typing import Dict, Iterable, List, Optional, Tuple


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\"", "\\\"")


class Counter:
    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None):
        self.name = name
        self.label_names = list(label_names or [])
        self._values: Dict[Tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> Tuple[str, ...]:
        labels = labels or {}
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + float(amount)

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        with self._lock:
            return self._values.get(self._key(labels), 0.0)

    def export(self) -> List[str]:
        lines = [f"# TYPE {self.name} counter"]
        with self._lock:
            for key, value in sorted(self._values.items()):
                if self.label_names:
                    rendered = ",".join(f'{n}="{_escape(v)}"' for n, v in zip(self.label_names, key))
                    lines.append(f"{self.name}{{{rendered}}} {value}")
                else:
                    lines.append(f"{self.name} {value}")
        return lines

    def reset(self) -> None:
        with self._lock:
            self._values.clear()


class MetricsRegistry:
    def __init__(self):
        self.counters: Dict[str, Counter] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, label_names: Optional[Iterable[str]] = None) -> Counter:
        with self._lock:
            if name not in self.counters:
                self.counters[name] = Counter(name, label_names)
            return self.counters[name]

    def export_prometheus(self) -> str:
        lines: List[str] = []
        for counter in list(self.counters.values()):
            lines.extend(counter.export())
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        for counter in self.counters.values():
            counter.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter("http_requests_total", ["method", "path", "status"])
credit_charges_total = METRICS.counter("credit_charges_total", ["feature", "plan"])
credit_rejections_total = METRICS.counter("credit_rejections_total", ["feature", "plan", "reason"])
credit_rollovers_total = METRICS.counter("credit_rollovers_total", ["plan"])
generation_failures_total = METRICS.counter("generation_failures_total", ["feature", "kind"])
plan_changes_total = METRICS.counter("plan_changes_total", ["from_plan", "to_plan"])


_ID_SEGMENT_RE = re.compile(r"^[0-9a-fA-F-]{8,}$")


def normalize_path(path: str) -> str:
    """Reduce cardinality by replacing id-like segments with :id."""
    parts = []
    for segment in path.split("/"):
        if not segment:
            continue
        if segment.isdigit() or _ID_SEGMENT_RE.match(segment):
            parts.append(":id")
        else:
            parts.append(segment)
    return "/" + "/".join(parts)
