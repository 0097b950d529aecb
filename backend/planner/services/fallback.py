"""Template-based substitutes used when the model cannot answer.

Every generator here is deterministic for a given ``today`` and never raises:
a failure inside the template logic comes back as ``success=False``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Generic, List, Optional, Sequence, TypeVar

from planner.api.schemas.suggestion_content import (
    BriefingContent,
    BriefingTask,
    PlanContent,
    PlanGoal,
    PlanTask,
    RescheduleContent,
    TaskMove,
)
from planner.api.schemas.suggestions import BacklogTask, BriefingTaskInput
from planner.services.retry import classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_GOALS = 5
GENERIC_GOAL = "Complete my monthly objectives"
GOAL_TASK_TEMPLATES = (
    ("Research and plan {goal}", "high"),
    ("Start working on {goal}", "medium"),
    ("Complete {goal} milestone", "low"),
)
PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}

_BULLET_PREFIX = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


@dataclass
class FallbackResult(Generic[T]):
    success: bool
    message: str
    data: Optional[T] = None
    fallback_used: bool = True


def generate_plan_fallback(user_goals: str, today: Optional[date] = None) -> FallbackResult[PlanContent]:
    today = today or date.today()
    try:
        goals = extract_goals(user_goals)
        plan = PlanContent(
            goals=[
                PlanGoal(
                    title=goal,
                    description=f"Goal based on your input: {goal}",
                    category="personal",
                    tasks=_tasks_for_goal(goal, week=index + 1, today=today),
                )
                for index, goal in enumerate(goals)
            ]
        )
    except Exception as exc:
        return FallbackResult(success=False, message=f"Failed to generate fallback plan: {exc}")
    return FallbackResult(
        success=True,
        data=plan,
        message="AI service unavailable - Generated template plan based on your goals",
    )


def generate_briefing_fallback(
    current_date: date | str,
    todays_tasks: Sequence[BriefingTaskInput],
) -> FallbackResult[BriefingContent]:
    try:
        tasks = [BriefingTaskInput.model_validate(task) for task in todays_tasks]
        high = [task for task in tasks if task.priority == "high"]
        medium = [task for task in tasks if task.priority == "medium"]
        day_label = current_date.isoformat() if isinstance(current_date, date) else str(current_date)
        briefing = BriefingContent(
            summary=f"Daily briefing for {day_label} - {len(tasks)} tasks scheduled",
            todays_tasks=[
                BriefingTask(task_id=task.task_id, title=task.title, priority=task.priority) for task in tasks
            ],
            # Deadlines and habits need store access the fallback does not have.
            upcoming_deadlines=[],
            habit_reminders=[],
        )
    except Exception as exc:
        return FallbackResult(success=False, message=f"Failed to generate fallback briefing: {exc}")

    if high:
        emphasis = f"Focus on {len(high)} high-priority task(s)"
    elif medium:
        emphasis = f"You have {len(medium)} medium-priority task(s) to work on"
    else:
        emphasis = "No high-priority tasks - great job staying ahead!"
    return FallbackResult(success=True, data=briefing, message=f"AI service unavailable - {emphasis}")


def generate_reschedule_fallback(
    backlog_tasks: Sequence[BacklogTask],
    today: Optional[date] = None,
) -> FallbackResult[RescheduleContent]:
    today = today or date.today()
    try:
        tasks = [BacklogTask.model_validate(task) for task in backlog_tasks]
        ordered = sorted(
            tasks,
            key=lambda task: (-PRIORITY_RANK.get(task.priority, 2), date.fromisoformat(task.due_date[:10])),
        )
        moves = [
            TaskMove(
                task_id=task.task_id,
                current_due_date=task.due_date,
                suggested_due_date=(today + timedelta(days=index + 1)).isoformat(),
            )
            for index, task in enumerate(ordered)
        ]
        reschedule = RescheduleContent(
            reason=f"Rescheduling {len(tasks)} overdue tasks using priority-based scheduling",
            affected_tasks=moves,
            affected_events=[],
        )
    except Exception as exc:
        return FallbackResult(success=False, message=f"Failed to generate fallback reschedule: {exc}")
    return FallbackResult(
        success=True,
        data=reschedule,
        message=f"AI service unavailable - Rescheduled {len(tasks)} tasks based on priority",
    )


def extract_goals(user_goals: str) -> List[str]:
    """Split free text into goal titles: bullet lines, then sentences, then a generic goal."""
    lines = [line.strip() for line in re.split(r"[\r\n]+", user_goals or "") if line.strip()]
    goals: List[str] = []
    if len(lines) > 1:
        goals = [_BULLET_PREFIX.sub("", line).strip() for line in lines]
        goals = [goal for goal in goals if goal]
    if not goals:
        sentences = [part.strip() for part in re.split(r"[.!?]+", user_goals or "") if part.strip()]
        goals = sentences[:MAX_GOALS]
    if not goals:
        goals = [GENERIC_GOAL]
    return goals[:MAX_GOALS]


def _tasks_for_goal(goal: str, week: int, today: date) -> List[PlanTask]:
    lowered = goal.lower()
    return [
        PlanTask(
            title=template.format(goal=lowered),
            priority=priority,
            due_date=(today + timedelta(days=(week - 1) * 7 + index * 2)).isoformat(),
        )
        for index, (template, priority) in enumerate(GOAL_TASK_TEMPLATES)
    ]


def handle_ai_error(error: BaseException, kind: str, payload: Any, today: Optional[date] = None) -> FallbackResult[Any]:
    """Log a provider failure and produce the fallback for ``kind``."""
    logger.warning("AI service error (%s, %s): %s", kind, classify_error(error), error)
    if kind == "plan":
        return generate_plan_fallback(payload.user_goals, today=today)
    if kind == "briefing":
        return generate_briefing_fallback(payload.current_date, payload.todays_tasks)
    if kind == "reschedule":
        return generate_reschedule_fallback(payload.backlog_tasks, today=today)
    return FallbackResult(success=False, message=f"Unknown request type: {kind}")


def user_friendly_message(error_class: str) -> str:
    if error_class == "network":
        return "Having trouble connecting to AI service. Please check your internet connection and try again."
    if error_class == "rate-limit":
        return "You've reached the request limit. Please wait a bit and try again."
    if error_class == "ai-service":
        return "AI service is temporarily unavailable. Using fallback responses."
    return "Something went wrong. Please try again in a moment."
