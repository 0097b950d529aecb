"""Context manager that records a timed Opik trace around a block."""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from planner.core.context import get_request_id, get_user_id
from planner.observability.client import get_opik_client

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from opik.api_objects.trace.trace_client import Trace

logger = logging.getLogger(__name__)


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Iterator[Optional["Trace"]]:
    """Yield an Opik trace, or ``None`` when Opik is off.

    Request and user ids default to the current request context. The elapsed
    time is attached as ``duration_s`` and errors are recorded before being
    re-raised.
    """
    client = get_opik_client()
    trace_metadata: Dict[str, Any] = dict(metadata or {})
    opik_trace: Optional["Trace"] = None

    if client:
        trace_metadata.setdefault("user_id", user_id or get_user_id())
        trace_metadata.setdefault("request_id", request_id or get_request_id())
        try:
            opik_trace = client.trace(name=name, metadata=trace_metadata)
        except Exception as exc:
            logger.debug("Unable to start Opik trace %s: %s", name, exc)

    started = time.perf_counter()
    try:
        yield opik_trace
    except Exception as exc:
        if opik_trace:
            try:
                opik_trace.update(error_info={"exception_type": type(exc).__name__, "message": str(exc)})
            except Exception:
                logger.debug("Failed to attach error info to Opik trace %s", name, exc_info=True)
        raise
    finally:
        if opik_trace:
            try:
                opik_trace.update(metadata={**trace_metadata, "duration_s": round(time.perf_counter() - started, 4)})
                opik_trace.end()
            except Exception:
                logger.debug("Failed to close Opik trace %s cleanly", name, exc_info=True)
