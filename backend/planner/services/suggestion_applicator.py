"""Turn a stored suggestion into goal, task and calendar changes."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from planner.api.schemas.suggestion_content import (
    BriefingContent,
    PlanContent,
    RescheduleContent,
    SuggestionKind,
    coerce_kind,
    parse_content,
)
from planner.db.store import PlannerStore
from planner.observability.metrics import log_metric

logger = logging.getLogger(__name__)


@dataclass
class ApplyOptions:
    apply_all: bool = True
    selected_items: Optional[Sequence[str]] = None
    dry_run: bool = False

    def selects(self, *candidates: str) -> bool:
        if self.apply_all or not self.selected_items:
            return True
        return any(candidate and candidate in self.selected_items for candidate in candidates)


@dataclass
class ApplyResult:
    success: bool
    message: str
    applied_items: List[str] = field(default_factory=list)
    skipped_items: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    created_goals: int = 0
    created_tasks: int = 0
    updated_tasks: int = 0
    updated_events: int = 0

    @property
    def partial_failure(self) -> bool:
        return bool(self.errors) and bool(self.applied_items)


class _Tally:
    def __init__(self) -> None:
        self.applied: List[str] = []
        self.skipped: List[str] = []
        self.errors: List[str] = []
        self.created_goals = 0
        self.created_tasks = 0
        self.updated_tasks = 0
        self.updated_events = 0

    def result(self, message: str, label: str) -> ApplyResult:
        if self.errors:
            message = f"{label} applied with {len(self.errors)} errors"
        return ApplyResult(
            success=not self.errors,
            message=message,
            applied_items=self.applied,
            skipped_items=self.skipped,
            errors=self.errors,
            created_goals=self.created_goals,
            created_tasks=self.created_tasks,
            updated_tasks=self.updated_tasks,
            updated_events=self.updated_events,
        )


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value[:10])


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class SuggestionApplicator:
    """Applies suggestions item by item.

    Writes are not transactional: a failure on one item is recorded and the
    remaining items are still applied. ``dry_run`` touches nothing.
    """

    def __init__(self, store: PlannerStore):
        self.store = store

    async def apply(self, suggestion: Any, options: Optional[ApplyOptions] = None) -> ApplyResult:
        options = options or ApplyOptions()
        kind = coerce_kind(suggestion.kind)
        content = parse_content(kind, suggestion.content)
        user_id: UUID = suggestion.user_id

        if kind is SuggestionKind.PLAN:
            result = await self._apply_plan(user_id, content, options)
        elif kind is SuggestionKind.BRIEFING:
            result = await self._apply_briefing(user_id, content, options)
        else:
            result = await self._apply_reschedule(user_id, content, options)

        log_metric(
            "suggestions.applied",
            1 if result.success else 0,
            {"kind": kind.value, "dry_run": options.dry_run, "errors": len(result.errors)},
        )
        return result

    async def preview(self, suggestion: Any, options: Optional[ApplyOptions] = None) -> ApplyResult:
        options = options or ApplyOptions()
        return await self.apply(
            suggestion,
            ApplyOptions(apply_all=options.apply_all, selected_items=options.selected_items, dry_run=True),
        )

    async def _apply_plan(self, user_id: UUID, content: PlanContent, options: ApplyOptions) -> ApplyResult:
        tally = _Tally()
        created_goal_ids: List[UUID] = []

        for goal in content.goals:
            if not options.selects(goal.title):
                tally.skipped.append(goal.title)
                continue
            if options.dry_run:
                tally.created_goals += 1
                tally.created_tasks += len(goal.tasks)
                tally.applied.append(goal.title)
                continue
            try:
                created = await self.store.create_goal(
                    user_id, goal.title, description=goal.description, category=goal.category
                )
                tally.created_goals += 1
                created_goal_ids.append(created.id)
                for task in goal.tasks:
                    await self.store.create_task(
                        user_id,
                        task.title,
                        goal_id=created.id,
                        priority=task.priority,
                        due_date=_parse_date(task.due_date),
                    )
                    tally.created_tasks += 1
                tally.applied.append(goal.title)
            except Exception as exc:
                logger.warning("Failed to apply goal %r: %s", goal.title, exc)
                tally.errors.append(f"Failed to create goal '{goal.title}': {exc}")
                tally.skipped.append(goal.title)

        for goal_id in created_goal_ids:
            try:
                await self.store.recompute_goal_progress(goal_id)
            except Exception as exc:
                logger.warning("Failed to update progress for goal %s: %s", goal_id, exc)

        if options.dry_run:
            message = f"Would create {tally.created_goals} goals and {tally.created_tasks} tasks"
        else:
            message = f"Created {tally.created_goals} goals and {tally.created_tasks} tasks"
        return tally.result(message, "Plan")

    async def _apply_briefing(self, user_id: UUID, content: BriefingContent, options: ApplyOptions) -> ApplyResult:
        tally = _Tally()
        ids_by_title: Optional[Dict[str, str]] = None

        for task in content.todays_tasks:
            if not options.selects(task.task_id, task.title):
                tally.skipped.append(task.title)
                continue

            task_id = task.task_id
            if not task_id:
                if ids_by_title is None:
                    ids_by_title = {} if options.dry_run else await self._task_ids_by_title(user_id)
                task_id = ids_by_title.get(task.title, "")
                if not task_id and not options.dry_run:
                    tally.skipped.append(f"Task not found: {task.title}")
                    continue

            if options.dry_run:
                tally.updated_tasks += 1
                tally.applied.append(task.title)
                continue
            try:
                await self.store.update_task_priority(task_id, task.priority, user_id=user_id)
                tally.updated_tasks += 1
                tally.applied.append(task.title)
            except Exception as exc:
                logger.warning("Failed to update priority for %r: %s", task.title, exc)
                tally.errors.append(f"Failed to update task '{task.title}': {exc}")
                tally.skipped.append(task.title)

        verb = "Would update" if options.dry_run else "Updated"
        return tally.result(f"{verb} priorities for {tally.updated_tasks} tasks", "Briefing")

    async def _task_ids_by_title(self, user_id: UUID) -> Dict[str, str]:
        tasks = await self.store.find_tasks_by_user(user_id)
        return {task.title: str(task.id) for task in tasks}

    async def _apply_reschedule(self, user_id: UUID, content: RescheduleContent, options: ApplyOptions) -> ApplyResult:
        tally = _Tally()

        for move in content.affected_tasks:
            if not options.selects(move.task_id):
                tally.skipped.append(move.task_id)
                continue
            if not move.task_id:
                tally.skipped.append("Unknown task")
                continue
            if options.dry_run:
                tally.updated_tasks += 1
                tally.applied.append(move.task_id)
                continue
            try:
                await self.store.update_task_due_date(
                    move.task_id, _parse_date(move.suggested_due_date), user_id=user_id
                )
                tally.updated_tasks += 1
                tally.applied.append(move.task_id)
            except Exception as exc:
                logger.warning("Failed to reschedule task %s: %s", move.task_id, exc)
                tally.errors.append(f"Failed to reschedule task {move.task_id}: {exc}")
                tally.skipped.append(move.task_id)

        for move in content.affected_events:
            if not options.selects(move.event_id):
                tally.skipped.append(move.event_id)
                continue
            if not move.event_id:
                tally.skipped.append("Unknown event")
                continue
            if options.dry_run:
                tally.updated_events += 1
                tally.applied.append(move.event_id)
                continue
            try:
                await self.store.update_event_times(
                    move.event_id,
                    start_time=_parse_datetime(move.suggested_start_time),
                    end_time=_parse_datetime(move.suggested_end_time),
                    user_id=user_id,
                )
                tally.updated_events += 1
                tally.applied.append(move.event_id)
            except Exception as exc:
                logger.warning("Failed to reschedule event %s: %s", move.event_id, exc)
                tally.errors.append(f"Failed to reschedule event {move.event_id}: {exc}")
                tally.skipped.append(move.event_id)

        verb = "Would reschedule" if options.dry_run else "Rescheduled"
        return tally.result(f"{verb} {tally.updated_tasks} tasks and {tally.updated_events} events", "Reschedule")
