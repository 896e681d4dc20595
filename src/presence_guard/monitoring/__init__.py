"""Operational metrics and anti-cheat statistics."""

from presence_guard.monitoring.cheat_stats import CheatStatsReporter
from presence_guard.monitoring.metrics import MetricPoint, MetricsCollector, MetricType

__all__ = ["CheatStatsReporter", "MetricPoint", "MetricsCollector", "MetricType"]
