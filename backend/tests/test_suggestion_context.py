"""Tests for building briefing and reschedule requests from stored data."""
from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace
from uuid import uuid4

import pytest

from planner.services.suggestion_context import build_briefing_request, build_reschedule_request

TODAY = date(2026, 10, 18)


@pytest.mark.asyncio
async def test_briefing_request_collects_today_deadlines_and_habits(fake_store) -> None:
    user_id = uuid4()
    fake_store.add_task(user_id, "Today's task", due_date=TODAY, priority="high")
    fake_store.add_task(user_id, "Done today", due_date=TODAY, status="completed")
    fake_store.add_task(user_id, "Due soon", due_date=date(2026, 10, 21))
    fake_store.add_task(user_id, "Too far", due_date=date(2026, 11, 30))
    fake_store.add_task(user_id, "Yesterday done", due_date=date(2026, 10, 17), status="completed")
    fake_store.add_task(user_id, "Yesterday open", due_date=date(2026, 10, 17))
    fake_store.habits.append(
        SimpleNamespace(id=uuid4(), user_id=user_id, title="Meditate", target_value=1, current_streak=6)
    )

    request = await build_briefing_request(fake_store, user_id, TODAY)

    assert [task.title for task in request.todays_tasks] == ["Today's task"]
    assert request.todays_tasks[0].priority == "high"
    assert [item.title for item in request.near_deadlines] == ["Due soon"]
    assert request.yesterday_progress == "Completed 1 of 2 tasks"
    assert request.habit_streaks[0].streak == 6


@pytest.mark.asyncio
async def test_reschedule_request_is_none_without_backlog(fake_store) -> None:
    user_id = uuid4()
    fake_store.add_task(user_id, "Future", due_date=date(2026, 10, 25))

    assert await build_reschedule_request(fake_store, user_id, TODAY) is None


@pytest.mark.asyncio
async def test_reschedule_request_gathers_backlog_and_pressure(fake_store) -> None:
    user_id = uuid4()
    fake_store.add_task(user_id, "Late B", due_date=date(2026, 10, 15))
    fake_store.add_task(user_id, "Late A", due_date=date(2026, 10, 12), priority="high")
    fake_store.add_task(user_id, "Finished", due_date=date(2026, 10, 15), status="completed")
    fake_store.add_task(user_id, "Due in two days", due_date=date(2026, 10, 20))
    fake_store.add_event(user_id, "Dentist", datetime(2026, 10, 18, 14, 0), datetime(2026, 10, 18, 15, 0))

    request = await build_reschedule_request(fake_store, user_id, TODAY)

    assert [task.title for task in request.backlog_tasks] == ["Late A", "Late B"]
    assert request.current_week == "2026-10-12 to 2026-10-18"
    assert [(day.day, day.completed, day.total) for day in request.completion_history] == [
        ("2026-10-12", 0, 1),
        ("2026-10-15", 1, 2),
    ]
    assert [(item.title, item.days_until) for item in request.deadline_pressure] == [("Due in two days", 2)]
    assert request.fixed_commitments == ["Dentist 14:00-15:00"]
