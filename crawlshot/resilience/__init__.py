"""Retry helpers for transient browser and network failures."""

from crawlshot.resilience.retry import RetryPolicy

__all__ = ["RetryPolicy"]
