"""FastAPI application for the monthly planner suggestion service."""
from fastapi import FastAPI, Request

from planner.api.routes.suggestions import router as suggestions_router
from planner.core.config import settings
from planner.core.logging import configure_logging
from planner.core.middleware import RequestIDMiddleware
from planner.observability.client import init_opik, shutdown_opik
from planner.observability.tracing import trace
from planner.worker.maintenance import start_maintenance_scheduler, stop_maintenance_scheduler

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(suggestions_router)


@app.on_event("startup")
async def startup() -> None:
    """Initialize observability and the maintenance jobs once the event loop runs."""
    init_opik()
    start_maintenance_scheduler()


@app.on_event("shutdown")
async def shutdown() -> None:
    stop_maintenance_scheduler()
    shutdown_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
