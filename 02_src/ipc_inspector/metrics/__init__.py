"""Metrics module."""

from .metrics import MetricsRow, compute_metrics, percentile

__all__ = ["MetricsRow", "compute_metrics", "percentile"]
