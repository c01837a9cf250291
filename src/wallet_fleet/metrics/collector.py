"""Metrics collector — Prometheus counters, gauges, histograms.

Fleet-wide counterparts of the per-wallet table:
- ``wallet_fleet_requests_total`` counter-vec by outcome
  (success, parse_error, unauthorized, failed)
- ``wallet_fleet_refresh_total`` counter-vec by result (refreshed, failed)
- ``wallet_fleet_server_time_total`` counter of server-reported elapsed time
- ``wallet_fleet_action_duration_seconds`` histogram of request round trips
- ``wallet_fleet_active_loops`` gauge
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "wallet_fleet"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`FleetMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class FleetMetrics:
    """High-level metrics fed by the poll loops."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._requests = self._collector.counter(
            f"{_PREFIX}_requests",
            "Action requests by outcome",
            ("outcome",),
        )
        self._refreshes = self._collector.counter(
            f"{_PREFIX}_refresh",
            "Credential refresh attempts by result",
            ("result",),
        )
        self._server_time = self._collector.counter(
            f"{_PREFIX}_server_time",
            "Accumulated server-reported elapsed time",
        )
        self._action_duration = self._collector.histogram(
            f"{_PREFIX}_action_duration_seconds",
            "Round-trip duration of action requests",
        )
        self._active_loops = self._collector.gauge(
            f"{_PREFIX}_active_loops",
            "Number of running wallet poll loops",
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def record_request(self, outcome: str) -> None:
        """Count one action request with its outcome label."""
        self._requests.labels(outcome=outcome).inc()

    def record_refresh(self, result: str) -> None:
        """Count one credential refresh attempt."""
        self._refreshes.labels(result=result).inc()

    def add_server_time(self, value: float) -> None:
        """Add server-reported elapsed time; negative values are ignored."""
        if value > 0:
            self._server_time.inc(value)

    def set_active_loops(self, count: int) -> None:
        """Set the number of running poll loops."""
        self._active_loops.set(count)

    @contextmanager
    def track_action(self) -> Iterator[None]:
        """Track the duration of one action request."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._action_duration.observe(time.monotonic() - start)

    def serve(self, port: int) -> None:
        """Expose the registry on ``http://0.0.0.0:<port>/metrics``."""
        start_http_server(port, registry=self.registry)
