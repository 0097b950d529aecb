"""AI suggestion generation, application and lifecycle routes."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from planner.api.schemas.suggestion_content import SuggestionKind
from planner.api.schemas.suggestions import (
    ApplyOptionsPayload,
    ApplyRequest,
    ApplyResponse,
    ApplyResultPayload,
    BatchApplyItem,
    BatchApplyRequest,
    BatchApplyResponse,
    BriefingGenerateRequest,
    CleanupResponse,
    GenerationResponse,
    PlanRequest,
    RescheduleGenerateRequest,
    SuggestionActionRequest,
    SuggestionActionResponse,
    SuggestionStatsResponse,
    SuggestionSummary,
    UsageResponse,
)
from planner.core.errors import (
    AuthenticationError,
    RateLimitExceeded,
    SuggestionAccessDenied,
    SuggestionGenerationError,
    SuggestionNotFound,
    UnknownSuggestionKind,
)
from planner.db.deps import get_db, get_store
from planner.db.store import SqlAlchemyStore
from planner.observability.tracing import trace
from planner.services import suggestion_actions
from planner.services.llm_client import ModelProvider, get_model_provider
from planner.services.rate_limiter import rate_limiter
from planner.services.suggestion_applicator import ApplyOptions, ApplyResult, SuggestionApplicator
from planner.services.suggestion_context import build_briefing_request, build_reschedule_request
from planner.services.suggestion_generator import GenerationResult, SuggestionGenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


def get_generator(
    store: SqlAlchemyStore = Depends(get_store),
    provider: Optional[ModelProvider] = Depends(get_model_provider),
) -> SuggestionGenerator:
    return SuggestionGenerator(store, provider)


def get_applicator(store: SqlAlchemyStore = Depends(get_store)) -> SuggestionApplicator:
    return SuggestionApplicator(store)


@contextmanager
def _http_errors(db: Session) -> Iterator[None]:
    try:
        yield
    except HTTPException:
        raise
    except RateLimitExceeded as exc:
        retry_after = max(0, int((exc.reset_time - datetime.now(exc.reset_time.tzinfo)).total_seconds()))
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": str(exc),
                "reset_time": exc.reset_time.isoformat(),
                "remaining": exc.remaining,
                "limit": exc.limit,
            },
            headers={"Retry-After": str(retry_after)},
        ) from exc
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"AI provider rejected the configured credentials: {exc}",
        ) from exc
    except SuggestionNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SuggestionAccessDenied as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied") from exc
    except UnknownSuggestionKind as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except SuggestionGenerationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except Exception as exc:
        db.rollback()
        logger.exception("Unhandled error in suggestion route")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error") from exc


def _generation_response(result: GenerationResult, request_id: str) -> GenerationResponse:
    return GenerationResponse(
        suggestion_id=result.suggestion_id,
        kind=result.kind,
        content=result.content,
        cached=result.cached,
        fallback_used=result.fallback_used,
        message=result.message,
        request_id=request_id,
    )


def _result_payload(result: Optional[ApplyResult]) -> Optional[ApplyResultPayload]:
    if result is None:
        return None
    return ApplyResultPayload(**asdict(result), partial_failure=result.partial_failure)


def _apply_options(payload: ApplyOptionsPayload) -> ApplyOptions:
    return ApplyOptions(apply_all=payload.apply_all, selected_items=payload.selected_items, dry_run=payload.dry_run)


@router.post("/plan", response_model=GenerationResponse)
async def generate_plan(
    payload: PlanRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    generator: SuggestionGenerator = Depends(get_generator),
) -> GenerationResponse:
    """Generate a monthly plan from free-text goals."""
    request_id = getattr(http_request.state, "request_id", "")
    with _http_errors(db):
        result = await generator.generate_plan(payload)
    return _generation_response(result, request_id)


@router.post("/briefing", response_model=GenerationResponse)
async def generate_briefing(
    payload: BriefingGenerateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
    generator: SuggestionGenerator = Depends(get_generator),
) -> GenerationResponse:
    """Generate today's briefing from the user's tasks, deadlines and habits."""
    request_id = getattr(http_request.state, "request_id", "")
    target_date = payload.target_date or date.today()
    with _http_errors(db):
        briefing_request = await build_briefing_request(
            store,
            payload.user_id,
            target_date,
            include_yesterday_progress=payload.include_yesterday_progress,
        )
        result = await generator.generate_briefing(briefing_request)
    return _generation_response(result, request_id)


@router.post("/reschedule", response_model=GenerationResponse)
async def generate_reschedule(
    payload: RescheduleGenerateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
    generator: SuggestionGenerator = Depends(get_generator),
) -> GenerationResponse:
    """Suggest new dates for overdue tasks."""
    request_id = getattr(http_request.state, "request_id", "")
    with _http_errors(db):
        reschedule_request = await build_reschedule_request(store, payload.user_id, date.today())
        if reschedule_request is None:
            return GenerationResponse(
                suggestion_id=None,
                kind=SuggestionKind.RESCHEDULE,
                content=None,
                message="No overdue tasks to reschedule",
                request_id=request_id,
            )
        result = await generator.generate_reschedule(reschedule_request)
    return _generation_response(result, request_id)


@router.get("/suggestions", response_model=List[SuggestionSummary])
async def list_suggestions(
    user_id: UUID = Query(..., description="User owning the suggestions"),
    kind: Optional[SuggestionKind] = Query(default=None),
    applied: Optional[bool] = Query(default=None),
    archived: Optional[bool] = Query(default=False),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
) -> List[SuggestionSummary]:
    with _http_errors(db):
        suggestions = await suggestion_actions.list_suggestions(
            store,
            user_id,
            kind=kind.value if kind else None,
            applied=applied,
            archived=archived,
            limit=limit,
            offset=offset,
        )
    return [SuggestionSummary.model_validate(suggestion) for suggestion in suggestions]


@router.post("/suggestions/batch-apply", response_model=BatchApplyResponse)
async def batch_apply(
    payload: BatchApplyRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
    applicator: SuggestionApplicator = Depends(get_applicator),
) -> BatchApplyResponse:
    request_id = getattr(http_request.state, "request_id", "")
    with trace(
        "suggestions.batch_apply",
        metadata={"count": len(payload.suggestion_ids), "dry_run": payload.options.dry_run},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        with _http_errors(db):
            outcome = await suggestion_actions.batch_apply(
                store, applicator, payload.user_id, payload.suggestion_ids, _apply_options(payload.options)
            )

    return BatchApplyResponse(
        message=outcome.message,
        results=[
            BatchApplyItem(
                suggestion_id=item.suggestion_id,
                success=item.success,
                result=_result_payload(item.result),
                error=item.error,
            )
            for item in outcome.results
        ],
        total=outcome.total,
        successful=outcome.successful,
        failed=outcome.failed,
        request_id=request_id,
    )


@router.delete("/suggestions/old", response_model=CleanupResponse)
async def cleanup_old_suggestions(
    http_request: Request,
    user_id: UUID = Query(...),
    days_old: int = Query(default=30, ge=1, le=365),
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
) -> CleanupResponse:
    request_id = getattr(http_request.state, "request_id", "")
    with _http_errors(db):
        deleted = await suggestion_actions.cleanup_suggestions(store, user_id, days_old=days_old)
    return CleanupResponse(
        message=f"Deleted {deleted} suggestions older than {days_old} days",
        deleted=deleted,
        request_id=request_id,
    )


@router.post("/suggestions/{suggestion_id}/apply", response_model=ApplyResponse)
async def apply_suggestion(
    suggestion_id: UUID,
    payload: ApplyRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
    applicator: SuggestionApplicator = Depends(get_applicator),
) -> ApplyResponse:
    request_id = getattr(http_request.state, "request_id", "")
    metadata: Dict[str, Any] = {"suggestion_id": str(suggestion_id), "dry_run": payload.options.dry_run}
    with trace("suggestions.apply", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        with _http_errors(db):
            outcome = await suggestion_actions.apply_suggestion(
                store, applicator, payload.user_id, suggestion_id, _apply_options(payload.options)
            )
    return ApplyResponse(
        message=outcome.message,
        suggestion=SuggestionSummary.model_validate(outcome.suggestion),
        result=_result_payload(outcome.result),
        request_id=request_id,
    )


@router.post("/suggestions/{suggestion_id}/preview", response_model=ApplyResponse)
async def preview_suggestion(
    suggestion_id: UUID,
    payload: ApplyRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
    applicator: SuggestionApplicator = Depends(get_applicator),
) -> ApplyResponse:
    """Report what applying would change without writing anything."""
    request_id = getattr(http_request.state, "request_id", "")
    with _http_errors(db):
        outcome = await suggestion_actions.preview_suggestion(
            store, applicator, payload.user_id, suggestion_id, _apply_options(payload.options)
        )
    return ApplyResponse(
        message=outcome.message,
        suggestion=SuggestionSummary.model_validate(outcome.suggestion),
        result=_result_payload(outcome.result),
        request_id=request_id,
    )


@router.post("/suggestions/{suggestion_id}/archive", response_model=SuggestionActionResponse)
async def archive_suggestion(
    suggestion_id: UUID,
    payload: SuggestionActionRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
) -> SuggestionActionResponse:
    request_id = getattr(http_request.state, "request_id", "")
    with _http_errors(db):
        suggestion = await suggestion_actions.archive_suggestion(store, payload.user_id, suggestion_id)
    return SuggestionActionResponse(
        message="Suggestion archived",
        suggestion=SuggestionSummary.model_validate(suggestion),
        request_id=request_id,
    )


@router.post("/suggestions/{suggestion_id}/restore", response_model=SuggestionActionResponse)
async def restore_suggestion(
    suggestion_id: UUID,
    payload: SuggestionActionRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
) -> SuggestionActionResponse:
    request_id = getattr(http_request.state, "request_id", "")
    with _http_errors(db):
        suggestion = await suggestion_actions.restore_suggestion(store, payload.user_id, suggestion_id)
    return SuggestionActionResponse(
        message="Suggestion restored",
        suggestion=SuggestionSummary.model_validate(suggestion),
        request_id=request_id,
    )


@router.post(
    "/suggestions/{suggestion_id}/duplicate",
    response_model=SuggestionActionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_suggestion(
    suggestion_id: UUID,
    payload: SuggestionActionRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
) -> SuggestionActionResponse:
    request_id = getattr(http_request.state, "request_id", "")
    with _http_errors(db):
        suggestion = await suggestion_actions.duplicate_suggestion(store, payload.user_id, suggestion_id)
    return SuggestionActionResponse(
        message="Suggestion duplicated",
        suggestion=SuggestionSummary.model_validate(suggestion),
        request_id=request_id,
    )


@router.get("/stats", response_model=SuggestionStatsResponse)
async def suggestion_stats(
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
    store: SqlAlchemyStore = Depends(get_store),
) -> SuggestionStatsResponse:
    with _http_errors(db):
        stats = await suggestion_actions.suggestion_stats(store, user_id)
    return SuggestionStatsResponse(**stats)


@router.get("/usage", response_model=UsageResponse)
async def usage(user_id: UUID = Query(...)) -> UsageResponse:
    """Current rate-limit usage for a user."""
    return UsageResponse(**rate_limiter.user_stats(user_id))
