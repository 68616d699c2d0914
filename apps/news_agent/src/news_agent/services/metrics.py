"""Metrics registry and Prometheus rendering."""

from __future__ import annotations

from threading import Lock

LabelKey = tuple[tuple[str, str], ...]
MetricKey = tuple[str, LabelKey]


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._values: dict[str, dict[MetricKey, float]] = {"counter": {}, "gauge": {}}

    def inc_counter(
        self, name: str, value: float = 1.0, *, labels: dict[str, str] | None = None
    ) -> None:
        key = _key(name, labels)
        with self._lock:
            counters = self._values["counter"]
            counters[key] = counters.get(key, 0.0) + value

    def set_gauge(
        self, name: str, value: float, *, labels: dict[str, str] | None = None
    ) -> None:
        with self._lock:
            self._values["gauge"][_key(name, labels)] = float(value)

    def value(self, name: str, *, labels: dict[str, str] | None = None) -> float:
        key = _key(name, labels)
        with self._lock:
            for values in self._values.values():
                if key in values:
                    return values[key]
        return 0.0

    def reset(self) -> None:
        with self._lock:
            for values in self._values.values():
                values.clear()

    def render(self) -> str:
        with self._lock:
            snapshot = {kind: dict(values) for kind, values in self._values.items()}

        lines: list[str] = []
        for kind, values in snapshot.items():
            grouped: dict[str, list[tuple[LabelKey, float]]] = {}
            for (name, labels), value in values.items():
                grouped.setdefault(name, []).append((labels, value))
            for name in sorted(grouped):
                lines.append(f"# TYPE {name} {kind}")
                for labels, value in sorted(grouped[name]):
                    lines.append(f"{name}{_format_labels(labels)} {value}")
        return "\n".join(lines) + "\n"


def _key(name: str, labels: dict[str, str] | None) -> MetricKey:
    if not labels:
        return name, tuple()
    return name, tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _format_labels(labels: LabelKey) -> str:
    if not labels:
        return ""
    parts = []
    for key, value in labels:
        safe_value = value.replace("\\", "\\\\").replace('"', '\\"')
        parts.append(f"{key}=\"{safe_value}\"")
    return "{" + ",".join(parts) + "}"


metrics = MetricsRegistry()
