"""Counters and gauges for the suggestion pipeline, exported as Opik traces."""
from __future__ import annotations

from typing import Any, Dict, Optional

from planner.observability.tracing import trace


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Record ``value`` under ``metric:<name>``; a no-op when Opik is disabled."""
    payload: Dict[str, Any] = {"value": value, **(metadata or {})}
    with trace(f"metric:{name}", metadata=payload):
        pass
