"""Metrics — Prometheus metrics collection and exposure."""

from __future__ import annotations

from wallet_fleet.metrics.collector import FleetMetrics, MetricsCollector

__all__ = ["FleetMetrics", "MetricsCollector"]
