"""Hub metrics collectors."""

from __future__ import annotations

import threading
from typing import Any


def _format_value(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, help: str) -> None:
        self.name = name
        self.help = help
        self._value = 0.0
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        """The current value."""
        with self._lock:
            return self._value

    def _add(self, delta: float) -> None:
        with self._lock:
            self._value += delta

    def render(self) -> str:
        return (
            f"# HELP {self.name} {self.help}\n"
            f"# TYPE {self.name} {self.kind}\n"
            f"{self.name} {_format_value(self.value)}\n"
        )


class Counter(_Metric):
    """A monotonically increasing value."""

    kind = "counter"

    def inc(self) -> None:
        """Increase the counter by one."""
        self._add(1.0)


class Gauge(_Metric):
    """A value that can go up and down."""

    kind = "gauge"

    def inc(self) -> None:
        """Increase the gauge by one."""
        self._add(1.0)

    def dec(self) -> None:
        """Decrease the gauge by one."""
        self._add(-1.0)


class NopMetrics:
    """Metrics collector that records nothing.

    Each method reports whether the event was recorded, which is never.
    """

    recording = False

    def subscriber_connected(self, subscriber: Any) -> bool:
        """Ignore a subscriber connection; return False."""
        return self.recording

    def subscriber_disconnected(self, subscriber: Any) -> bool:
        """Ignore a subscriber disconnection; return False."""
        return self.recording

    def update_published(self, update: Any) -> bool:
        """Ignore an update publication; return False."""
        return self.recording


class PrometheusMetrics:
    """Collects hub metrics and renders them in the Prometheus text format."""

    def __init__(self) -> None:
        self.subscribers = Gauge(
            "mercure_subscribers_connected", "The current number of running subscribers"
        )
        self.subscribers_total = Counter(
            "mercure_subscribers_total", "Total number of handled subscribers"
        )
        self.updates_total = Counter("mercure_updates_total", "Total number of handled updates")

    def subscriber_connected(self, subscriber: Any) -> bool:
        """Record a subscriber connection."""
        self.subscribers_total.inc()
        self.subscribers.inc()
        return True

    def subscriber_disconnected(self, subscriber: Any) -> bool:
        """Record a subscriber disconnection."""
        self.subscribers.dec()
        return True

    def update_published(self, update: Any) -> bool:
        """Record an update publication."""
        self.updates_total.inc()
        return True

    def render(self) -> str:
        """Return every metric in the Prometheus text exposition format."""
        return "".join(
            metric.render()
            for metric in (self.subscribers, self.subscribers_total, self.updates_total)
        )