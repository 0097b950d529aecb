"""Process-wide Opik client used by tracing and metrics."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Optional

from opik import Opik

from planner.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[Opik] = None
_client_lock = Lock()
_init_attempted = False


def init_opik() -> Optional[Opik]:
    """Build the client on first use; later calls return the same result."""
    global _client, _init_attempted

    with _client_lock:
        if _init_attempted:
            return _client
        _init_attempted = True

        if not settings.opik_enabled:
            logger.debug("Opik disabled; suggestion traces will not be exported.")
            return None
        if not settings.opik_api_key:
            logger.warning("OPIK_ENABLED is true but OPIK_API_KEY is missing; skipping Opik init.")
            return None

        try:
            _client = Opik(project_name=settings.opik_project, api_key=settings.opik_api_key)
        except Exception as exc:
            logger.warning("Failed to initialize Opik, tracing will be disabled: %s", exc)
            return None

    logger.info("Opik enabled (project=%s).", settings.opik_project)
    return _client


def get_opik_client() -> Optional[Opik]:
    if _init_attempted:
        return _client
    return init_opik()


def shutdown_opik() -> None:
    """Flush pending traces and forget the client so the next use re-reads settings."""
    global _client, _init_attempted

    with _client_lock:
        client, _client, _init_attempted = _client, None, False
    if client is None:
        return
    try:
        client.flush()
    except Exception as exc:
        logger.warning("Failed to flush Opik traces on shutdown: %s", exc)
