"""Store interface consumed by the suggestion pipeline and its SQLAlchemy implementation."""
from __future__ import annotations

import functools
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar
from uuid import UUID

from sqlalchemy import asc, desc, func, nulls_last
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from planner.core.errors import RecordNotFound
from planner.db.models.calendar_event import CalendarEvent
from planner.db.models.goal import Goal
from planner.db.models.habit import Habit
from planner.db.models.suggestion import Suggestion
from planner.db.models.task import Task

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlannerStore(Protocol):
    """Read/write capability the suggestion pipeline needs from persistence."""

    async def create_goal(
        self,
        user_id: UUID,
        title: str,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Goal: ...

    async def create_task(
        self,
        user_id: UUID,
        title: str,
        goal_id: Optional[UUID] = None,
        priority: str = "medium",
        due_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> Task: ...

    async def update_task_priority(self, task_id: Any, priority: str, user_id: Optional[UUID] = None) -> Task: ...

    async def update_task_due_date(self, task_id: Any, due_date: Optional[date], user_id: Optional[UUID] = None) -> Task: ...

    async def update_event_times(
        self,
        event_id: Any,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        user_id: Optional[UUID] = None,
    ) -> CalendarEvent: ...

    async def find_tasks_by_user(
        self,
        user_id: UUID,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        goal_id: Optional[UUID] = None,
    ) -> List[Task]: ...

    async def find_tasks_in_range(self, user_id: UUID, start: date, end: date) -> List[Task]: ...

    async def find_goals_by_user(self, user_id: UUID) -> List[Goal]: ...

    async def find_habits_by_user(self, user_id: UUID) -> List[Habit]: ...

    async def find_events_in_range(self, user_id: UUID, start: datetime, end: datetime) -> List[CalendarEvent]: ...

    async def recompute_goal_progress(self, goal_id: Any) -> Optional[int]: ...

    async def create_suggestion(self, user_id: UUID, kind: str, content: Dict[str, Any]) -> Suggestion: ...

    async def mark_applied(self, suggestion_id: Any) -> None: ...

    async def get_suggestion(self, suggestion_id: Any) -> Optional[Suggestion]: ...

    async def list_suggestions(
        self,
        user_id: UUID,
        kind: Optional[str] = None,
        applied: Optional[bool] = None,
        archived: Optional[bool] = False,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Suggestion]: ...

    async def set_archived(self, suggestion_id: Any, archived: bool) -> Suggestion: ...

    async def delete_old_suggestions(self, user_id: UUID, older_than: datetime) -> int: ...

    async def suggestion_counts(self, user_id: UUID) -> Dict[str, Any]: ...


def as_uuid(value: Any) -> UUID:
    """Coerce an identifier from suggestion content into a UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise RecordNotFound(f"Invalid identifier: {value!r}") from exc


def _threaded(fn: Callable[..., T]) -> Callable[..., Awaitable[T]]:
    """Run a blocking session method in the threadpool so the event loop keeps serving."""

    @functools.wraps(fn)
    async def wrapper(self, *args, **kwargs):
        return await run_in_threadpool(fn, self, *args, **kwargs)

    return wrapper


class SqlAlchemyStore:
    """PlannerStore backed by a SQLAlchemy session.

    Every write commits on its own; callers that need several writes to land
    together must not rely on this class for atomicity.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, *instances: Any) -> None:
        try:
            for instance in instances:
                self.db.add(instance)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        for instance in instances:
            self.db.refresh(instance)

    def _owned(self, model: type[T], record_id: Any, user_id: Optional[UUID]) -> T:
        record = self.db.get(model, as_uuid(record_id))
        if record is None or (user_id is not None and record.user_id != user_id):
            raise RecordNotFound(f"{model.__name__} {record_id} not found")
        return record

    @_threaded
    def create_goal(
        self,
        user_id: UUID,
        title: str,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Goal:
        goal = Goal(
            user_id=user_id,
            title=title,
            description=description,
            category=category,
            status="active",
            progress=0,
        )
        self._commit(goal)
        return goal

    @_threaded
    def create_task(
        self,
        user_id: UUID,
        title: str,
        goal_id: Optional[UUID] = None,
        priority: str = "medium",
        due_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> Task:
        task = Task(
            user_id=user_id,
            goal_id=goal_id,
            title=title,
            description=description,
            priority=priority,
            status="pending",
            due_date=due_date,
        )
        self._commit(task)
        return task

    @_threaded
    def update_task_priority(self, task_id: Any, priority: str, user_id: Optional[UUID] = None) -> Task:
        task = self._owned(Task, task_id, user_id)
        task.priority = priority
        self._commit(task)
        return task

    @_threaded
    def update_task_due_date(self, task_id: Any, due_date: Optional[date], user_id: Optional[UUID] = None) -> Task:
        task = self._owned(Task, task_id, user_id)
        task.due_date = due_date
        self._commit(task)
        return task

    @_threaded
    def update_event_times(
        self,
        event_id: Any,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        user_id: Optional[UUID] = None,
    ) -> CalendarEvent:
        event = self._owned(CalendarEvent, event_id, user_id)
        if start_time is not None:
            event.start_time = start_time
        if end_time is not None:
            event.end_time = end_time
        self._commit(event)
        return event

    @_threaded
    def find_tasks_by_user(
        self,
        user_id: UUID,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        goal_id: Optional[UUID] = None,
    ) -> List[Task]:
        query = self.db.query(Task).filter(Task.user_id == user_id)
        if status:
            query = query.filter(Task.status == status)
        if priority:
            query = query.filter(Task.priority == priority)
        if goal_id:
            query = query.filter(Task.goal_id == goal_id)
        return query.order_by(nulls_last(asc(Task.due_date)), asc(Task.created_at)).all()

    @_threaded
    def find_tasks_in_range(self, user_id: UUID, start: date, end: date) -> List[Task]:
        """Tasks due in ``[start, end)``."""
        return (
            self.db.query(Task)
            .filter(Task.user_id == user_id, Task.due_date >= start, Task.due_date < end)
            .order_by(asc(Task.due_date), asc(Task.created_at))
            .all()
        )

    @_threaded
    def find_goals_by_user(self, user_id: UUID) -> List[Goal]:
        return self.db.query(Goal).filter(Goal.user_id == user_id).order_by(desc(Goal.created_at)).all()

    @_threaded
    def find_habits_by_user(self, user_id: UUID) -> List[Habit]:
        return self.db.query(Habit).filter(Habit.user_id == user_id).order_by(asc(Habit.created_at)).all()

    @_threaded
    def find_events_in_range(self, user_id: UUID, start: datetime, end: datetime) -> List[CalendarEvent]:
        return (
            self.db.query(CalendarEvent)
            .filter(
                CalendarEvent.user_id == user_id,
                CalendarEvent.start_time >= start,
                CalendarEvent.start_time < end,
            )
            .order_by(asc(CalendarEvent.start_time))
            .all()
        )

    @_threaded
    def recompute_goal_progress(self, goal_id: Any) -> Optional[int]:
        goal = self._owned(Goal, goal_id, None)
        tasks = self.db.query(Task).filter(Task.goal_id == goal.id).all()
        if not tasks:
            return None
        completed = len([task for task in tasks if task.status == "completed"])
        goal.progress = round(completed / len(tasks) * 100)
        self._commit(goal)
        return goal.progress

    @_threaded
    def create_suggestion(self, user_id: UUID, kind: str, content: Dict[str, Any]) -> Suggestion:
        suggestion = Suggestion(user_id=user_id, kind=kind, content=content, applied=False, archived=False)
        self._commit(suggestion)
        return suggestion

    @_threaded
    def mark_applied(self, suggestion_id: Any) -> None:
        suggestion = self._owned(Suggestion, suggestion_id, None)
        suggestion.applied = True
        self._commit(suggestion)

    @_threaded
    def get_suggestion(self, suggestion_id: Any) -> Optional[Suggestion]:
        try:
            return self.db.get(Suggestion, as_uuid(suggestion_id))
        except RecordNotFound:
            return None

    @_threaded
    def list_suggestions(
        self,
        user_id: UUID,
        kind: Optional[str] = None,
        applied: Optional[bool] = None,
        archived: Optional[bool] = False,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Suggestion]:
        query = self.db.query(Suggestion).filter(Suggestion.user_id == user_id)
        if kind:
            query = query.filter(Suggestion.kind == kind)
        if applied is not None:
            query = query.filter(Suggestion.applied.is_(applied))
        if archived is not None:
            query = query.filter(Suggestion.archived.is_(archived))
        return query.order_by(desc(Suggestion.created_at)).offset(offset).limit(limit).all()

    @_threaded
    def set_archived(self, suggestion_id: Any, archived: bool) -> Suggestion:
        suggestion = self._owned(Suggestion, suggestion_id, None)
        suggestion.archived = archived
        self._commit(suggestion)
        return suggestion

    @_threaded
    def delete_old_suggestions(self, user_id: UUID, older_than: datetime) -> int:
        try:
            deleted = (
                self.db.query(Suggestion)
                .filter(Suggestion.user_id == user_id, Suggestion.created_at < older_than)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Deleted %s suggestion(s) older than %s for user %s", deleted, older_than.isoformat(), user_id)
        return deleted

    @_threaded
    def suggestion_counts(self, user_id: UUID) -> Dict[str, Any]:
        rows = (
            self.db.query(Suggestion.kind, Suggestion.applied, func.count(Suggestion.id))
            .filter(Suggestion.user_id == user_id)
            .group_by(Suggestion.kind, Suggestion.applied)
            .all()
        )
        by_kind: Dict[str, int] = {}
        applied_total = 0
        total = 0
        for kind, applied, count in rows:
            by_kind[kind] = by_kind.get(kind, 0) + count
            total += count
            if applied:
                applied_total += count
        return {
            "total": total,
            "applied": applied_total,
            "by_kind": by_kind,
            "application_rate": round(applied_total / total, 3) if total else 0.0,
        }
