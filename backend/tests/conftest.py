from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from planner.db import Base
from planner.db.models.user import User


class FakeStore:
    """In-memory PlannerStore that records calls and can fail selected ones."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.fail_on: Dict[str, Callable[[Dict[str, Any]], bool]] = {}
        self.goals: Dict[UUID, SimpleNamespace] = {}
        self.tasks: Dict[UUID, SimpleNamespace] = {}
        self.events: Dict[UUID, SimpleNamespace] = {}
        self.habits: List[SimpleNamespace] = []
        self.suggestions: Dict[UUID, SimpleNamespace] = {}

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append((method, kwargs))
        predicate = self.fail_on.get(method)
        if predicate is not None and predicate(kwargs):
            raise RuntimeError(f"{method} failed")

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def add_task(self, user_id: UUID, title: str, due_date: Optional[date] = None, **fields: Any) -> SimpleNamespace:
        task = SimpleNamespace(
            id=uuid4(),
            user_id=user_id,
            goal_id=fields.get("goal_id"),
            title=title,
            priority=fields.get("priority", "medium"),
            status=fields.get("status", "pending"),
            due_date=due_date,
        )
        self.tasks[task.id] = task
        return task

    def add_event(self, user_id: UUID, title: str, start_time: datetime, end_time: datetime) -> SimpleNamespace:
        calendar_event = SimpleNamespace(id=uuid4(), user_id=user_id, title=title, start_time=start_time, end_time=end_time)
        self.events[calendar_event.id] = calendar_event
        return calendar_event

    def add_suggestion(self, user_id: UUID, kind: str, content: Dict[str, Any], applied: bool = False) -> SimpleNamespace:
        now = datetime(2026, 10, 1, 9, 0)
        suggestion = SimpleNamespace(
            id=uuid4(),
            user_id=user_id,
            kind=kind,
            content=content,
            applied=applied,
            archived=False,
            created_at=now,
            updated_at=now,
        )
        self.suggestions[suggestion.id] = suggestion
        return suggestion

    def _owned(self, records: Dict[UUID, SimpleNamespace], record_id: Any, user_id: Optional[UUID]) -> SimpleNamespace:
        record = records.get(UUID(str(record_id)))
        if record is None or (user_id is not None and record.user_id != user_id):
            raise LookupError(f"{record_id} not found")
        return record

    async def create_goal(self, user_id, title, description=None, category=None):
        self._record("create_goal", user_id=user_id, title=title)
        goal = SimpleNamespace(id=uuid4(), user_id=user_id, title=title, description=description, category=category, progress=0)
        self.goals[goal.id] = goal
        return goal

    async def create_task(self, user_id, title, goal_id=None, priority="medium", due_date=None, description=None):
        self._record("create_task", user_id=user_id, title=title, goal_id=goal_id)
        return self.add_task(user_id, title, due_date, goal_id=goal_id, priority=priority)

    async def update_task_priority(self, task_id, priority, user_id=None):
        self._record("update_task_priority", task_id=task_id, priority=priority)
        task = self._owned(self.tasks, task_id, user_id)
        task.priority = priority
        return task

    async def update_task_due_date(self, task_id, due_date, user_id=None):
        self._record("update_task_due_date", task_id=task_id, due_date=due_date)
        task = self._owned(self.tasks, task_id, user_id)
        task.due_date = due_date
        return task

    async def update_event_times(self, event_id, start_time=None, end_time=None, user_id=None):
        self._record("update_event_times", event_id=event_id)
        calendar_event = self._owned(self.events, event_id, user_id)
        if start_time is not None:
            calendar_event.start_time = start_time
        if end_time is not None:
            calendar_event.end_time = end_time
        return calendar_event

    async def find_tasks_by_user(self, user_id, status=None, priority=None, goal_id=None):
        self._record("find_tasks_by_user", user_id=user_id, status=status)
        return [
            task
            for task in self.tasks.values()
            if task.user_id == user_id
            and (status is None or task.status == status)
            and (priority is None or task.priority == priority)
            and (goal_id is None or task.goal_id == goal_id)
        ]

    async def find_tasks_in_range(self, user_id, start, end):
        self._record("find_tasks_in_range", user_id=user_id, start=start, end=end)
        return [
            task
            for task in self.tasks.values()
            if task.user_id == user_id and task.due_date is not None and start <= task.due_date < end
        ]

    async def find_goals_by_user(self, user_id):
        return [goal for goal in self.goals.values() if goal.user_id == user_id]

    async def find_habits_by_user(self, user_id):
        return [habit for habit in self.habits if habit.user_id == user_id]

    async def find_events_in_range(self, user_id, start, end):
        return [
            item for item in self.events.values() if item.user_id == user_id and start <= item.start_time < end
        ]

    async def recompute_goal_progress(self, goal_id):
        self._record("recompute_goal_progress", goal_id=goal_id)
        tasks = [task for task in self.tasks.values() if task.goal_id == goal_id]
        if not tasks:
            return None
        done = len([task for task in tasks if task.status == "completed"])
        self.goals[goal_id].progress = round(done / len(tasks) * 100)
        return self.goals[goal_id].progress

    async def create_suggestion(self, user_id, kind, content):
        self._record("create_suggestion", user_id=user_id, kind=kind)
        return self.add_suggestion(user_id, kind, content)

    async def mark_applied(self, suggestion_id):
        self._record("mark_applied", suggestion_id=suggestion_id)
        self.suggestions[UUID(str(suggestion_id))].applied = True

    async def get_suggestion(self, suggestion_id):
        try:
            return self.suggestions.get(UUID(str(suggestion_id)))
        except ValueError:
            return None

    async def list_suggestions(self, user_id, kind=None, applied=None, archived=False, limit=20, offset=0):
        rows = [
            item
            for item in self.suggestions.values()
            if item.user_id == user_id
            and (kind is None or item.kind == kind)
            and (applied is None or item.applied == applied)
            and (archived is None or item.archived == archived)
        ]
        return rows[offset : offset + limit]

    async def set_archived(self, suggestion_id, archived):
        self._record("set_archived", suggestion_id=suggestion_id, archived=archived)
        suggestion = self.suggestions[UUID(str(suggestion_id))]
        suggestion.archived = archived
        return suggestion

    async def delete_old_suggestions(self, user_id, older_than):
        doomed = [
            key
            for key, item in self.suggestions.items()
            if item.user_id == user_id and item.created_at < older_than.replace(tzinfo=None)
        ]
        for key in doomed:
            del self.suggestions[key]
        return len(doomed)

    async def suggestion_counts(self, user_id):
        rows = [item for item in self.suggestions.values() if item.user_id == user_id]
        applied = len([item for item in rows if item.applied])
        by_kind: Dict[str, int] = {}
        for item in rows:
            by_kind[item.kind] = by_kind.get(item.kind, 0) + 1
        return {
            "total": len(rows),
            "applied": applied,
            "by_kind": by_kind,
            "application_rate": round(applied / len(rows), 3) if rows else 0.0,
        }


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield TestingSessionLocal
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def make_user(session_factory) -> Callable[[], UUID]:
    def _make_user() -> UUID:
        db = session_factory()
        try:
            user = User(id=uuid4())
            db.add(user)
            db.commit()
            return user.id
        finally:
            db.close()

    return _make_user
