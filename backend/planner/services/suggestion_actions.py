"""Ownership-checked lifecycle operations on stored suggestions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from planner.core.errors import PlannerError, SuggestionAccessDenied, SuggestionNotFound
from planner.db.models.suggestion import Suggestion
from planner.db.store import PlannerStore
from planner.services.suggestion_applicator import ApplyOptions, ApplyResult, SuggestionApplicator

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 10


@dataclass
class ApplyOutcome:
    message: str
    suggestion: Suggestion
    result: Optional[ApplyResult]


@dataclass
class BatchItemOutcome:
    suggestion_id: Any
    success: bool
    result: Optional[ApplyResult] = None
    error: Optional[str] = None


@dataclass
class BatchOutcome:
    results: List[BatchItemOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return len([item for item in self.results if item.success])

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def message(self) -> str:
        return f"Applied {self.successful}/{self.total} suggestions"


async def load_owned_suggestion(store: PlannerStore, user_id: UUID, suggestion_id: Any) -> Suggestion:
    suggestion = await store.get_suggestion(suggestion_id)
    if suggestion is None:
        raise SuggestionNotFound(f"Suggestion {suggestion_id} not found")
    if suggestion.user_id != user_id:
        raise SuggestionAccessDenied(f"Suggestion {suggestion_id} belongs to another user")
    return suggestion


async def apply_suggestion(
    store: PlannerStore,
    applicator: SuggestionApplicator,
    user_id: UUID,
    suggestion_id: Any,
    options: Optional[ApplyOptions] = None,
) -> ApplyOutcome:
    options = options or ApplyOptions()
    suggestion = await load_owned_suggestion(store, user_id, suggestion_id)
    if suggestion.applied and not options.dry_run:
        return ApplyOutcome(message="Suggestion already applied", suggestion=suggestion, result=None)

    result = await applicator.apply(suggestion, options)
    if result.success and not options.dry_run:
        await store.mark_applied(suggestion.id)
        suggestion = await store.get_suggestion(suggestion.id) or suggestion
    logger.info(
        "Applied suggestion %s (kind=%s, success=%s, dry_run=%s)",
        suggestion.id,
        suggestion.kind,
        result.success,
        options.dry_run,
    )
    return ApplyOutcome(message=result.message, suggestion=suggestion, result=result)


async def preview_suggestion(
    store: PlannerStore,
    applicator: SuggestionApplicator,
    user_id: UUID,
    suggestion_id: Any,
    options: Optional[ApplyOptions] = None,
) -> ApplyOutcome:
    suggestion = await load_owned_suggestion(store, user_id, suggestion_id)
    result = await applicator.preview(suggestion, options)
    return ApplyOutcome(message=result.message, suggestion=suggestion, result=result)


async def batch_apply(
    store: PlannerStore,
    applicator: SuggestionApplicator,
    user_id: UUID,
    suggestion_ids: Sequence[Any],
    options: Optional[ApplyOptions] = None,
) -> BatchOutcome:
    """Apply each suggestion independently; one failure never stops the rest."""
    if not 1 <= len(suggestion_ids) <= MAX_BATCH_SIZE:
        raise ValueError(f"Batch apply accepts between 1 and {MAX_BATCH_SIZE} suggestions")

    outcome = BatchOutcome()
    for suggestion_id in suggestion_ids:
        try:
            applied = await apply_suggestion(store, applicator, user_id, suggestion_id, options)
        except (PlannerError, ValueError) as exc:
            outcome.results.append(BatchItemOutcome(suggestion_id=suggestion_id, success=False, error=str(exc)))
            continue
        success = applied.result.success if applied.result is not None else False
        outcome.results.append(
            BatchItemOutcome(
                suggestion_id=suggestion_id,
                success=success,
                result=applied.result,
                error=None if success else applied.message,
            )
        )
    return outcome


async def archive_suggestion(store: PlannerStore, user_id: UUID, suggestion_id: Any) -> Suggestion:
    suggestion = await load_owned_suggestion(store, user_id, suggestion_id)
    return await store.set_archived(suggestion.id, True)


async def restore_suggestion(store: PlannerStore, user_id: UUID, suggestion_id: Any) -> Suggestion:
    suggestion = await load_owned_suggestion(store, user_id, suggestion_id)
    return await store.set_archived(suggestion.id, False)


async def duplicate_suggestion(store: PlannerStore, user_id: UUID, suggestion_id: Any) -> Suggestion:
    """Copy the content into a fresh, unapplied suggestion so it can be applied again."""
    suggestion = await load_owned_suggestion(store, user_id, suggestion_id)
    return await store.create_suggestion(user_id, suggestion.kind, dict(suggestion.content))


async def list_suggestions(
    store: PlannerStore,
    user_id: UUID,
    kind: Optional[str] = None,
    applied: Optional[bool] = None,
    archived: Optional[bool] = False,
    limit: int = 20,
    offset: int = 0,
) -> List[Suggestion]:
    return await store.list_suggestions(
        user_id, kind=kind, applied=applied, archived=archived, limit=limit, offset=offset
    )


async def cleanup_suggestions(
    store: PlannerStore,
    user_id: UUID,
    days_old: int = 30,
    now: Optional[datetime] = None,
) -> int:
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days_old)
    return await store.delete_old_suggestions(user_id, cutoff)


async def suggestion_stats(store: PlannerStore, user_id: UUID) -> Dict[str, Any]:
    return await store.suggestion_counts(user_id)
