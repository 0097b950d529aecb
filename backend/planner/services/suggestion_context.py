"""Assemble briefing and reschedule requests from what the store knows about a user."""
from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional
from uuid import UUID

from planner.api.schemas.suggestions import (
    BacklogTask,
    BriefingRequest,
    BriefingTaskInput,
    CompletionDay,
    DeadlineInput,
    DeadlinePressure,
    HabitStreakInput,
    RescheduleRequest,
)
from planner.db.store import PlannerStore

UPCOMING_WINDOW_DAYS = 7
HISTORY_WINDOW_DAYS = 7
PRESSURE_WINDOW_DAYS = 3


async def build_briefing_request(
    store: PlannerStore,
    user_id: UUID,
    target_date: date,
    include_yesterday_progress: bool = True,
) -> BriefingRequest:
    todays = await store.find_tasks_in_range(user_id, target_date, target_date + timedelta(days=1))
    upcoming = await store.find_tasks_in_range(
        user_id,
        target_date + timedelta(days=1),
        target_date + timedelta(days=UPCOMING_WINDOW_DAYS + 1),
    )
    habits = await store.find_habits_by_user(user_id)

    yesterday_progress: Optional[str] = None
    if include_yesterday_progress:
        yesterday = await store.find_tasks_in_range(user_id, target_date - timedelta(days=1), target_date)
        if yesterday:
            completed = len([task for task in yesterday if task.status == "completed"])
            yesterday_progress = f"Completed {completed} of {len(yesterday)} tasks"

    return BriefingRequest(
        user_id=user_id,
        current_date=target_date,
        todays_tasks=[
            BriefingTaskInput(task_id=str(task.id), title=task.title, priority=task.priority)
            for task in todays
            if task.status != "completed"
        ],
        yesterday_progress=yesterday_progress,
        habit_streaks=[
            HabitStreakInput(
                habit_id=str(habit.id),
                title=habit.title,
                target_value=habit.target_value,
                streak=habit.current_streak,
            )
            for habit in habits
        ],
        near_deadlines=[
            DeadlineInput(task_id=str(task.id), title=task.title, due_date=task.due_date.isoformat())
            for task in upcoming
            if task.status == "pending"
        ],
    )


async def build_reschedule_request(store: PlannerStore, user_id: UUID, today: date) -> Optional[RescheduleRequest]:
    """Return ``None`` when the user has no overdue pending tasks."""
    pending = await store.find_tasks_by_user(user_id, status="pending")
    backlog = [task for task in pending if task.due_date is not None and task.due_date < today]
    if not backlog:
        return None

    history_tasks = await store.find_tasks_in_range(user_id, today - timedelta(days=HISTORY_WINDOW_DAYS), today)
    per_day: Dict[date, List[int]] = defaultdict(lambda: [0, 0])
    for task in history_tasks:
        counts = per_day[task.due_date]
        counts[1] += 1
        if task.status == "completed":
            counts[0] += 1

    pressure_end = today + timedelta(days=PRESSURE_WINDOW_DAYS)
    pressure = [
        DeadlinePressure(title=task.title, days_until=(task.due_date - today).days)
        for task in pending
        if task.due_date is not None and today <= task.due_date <= pressure_end
    ]

    day_start = datetime.combine(today, time.min)
    events = await store.find_events_in_range(user_id, day_start, day_start + timedelta(days=1))
    week_start = today - timedelta(days=today.weekday())

    return RescheduleRequest(
        user_id=user_id,
        current_week=f"{week_start.isoformat()} to {(week_start + timedelta(days=6)).isoformat()}",
        backlog_tasks=[
            BacklogTask(task_id=str(task.id), title=task.title, priority=task.priority, due_date=task.due_date.isoformat())
            for task in sorted(backlog, key=lambda task: task.due_date)
        ],
        completion_history=[
            CompletionDay(day=day.isoformat(), completed=counts[0], total=counts[1])
            for day, counts in sorted(per_day.items())
        ],
        deadline_pressure=pressure,
        fixed_commitments=[
            f"{event.title} {event.start_time:%H:%M}-{event.end_time:%H:%M}" for event in events
        ],
    )
