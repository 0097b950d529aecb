"""Prompt text for the three suggestion kinds."""
from __future__ import annotations

import json
from dataclasses import dataclass

from planner.api.schemas.suggestions import BriefingRequest, PlanRequest, RescheduleRequest


@dataclass(frozen=True)
class ChatPrompt:
    system: str
    user: str
    temperature: float
    max_tokens: int


PLAN_SYSTEM_PROMPT = (
    "You are a monthly planning assistant. Turn the user's goals into a structured, "
    "achievable monthly plan. Respond with valid JSON only."
)
BRIEFING_SYSTEM_PROMPT = (
    "You are a daily productivity coach. Write a short briefing for today from the user's "
    "tasks and recent progress. Respond with valid JSON only."
)
RESCHEDULE_SYSTEM_PROMPT = (
    "You are a schedule optimizer. Move overdue tasks onto realistic dates based on the "
    "user's recent completion pattern. Respond with valid JSON only."
)

PLAN_OUTPUT_SCHEMA = {
    "monthly_summary": "Short overview",
    "weekly_breakdown": [
        {
            "week": 1,
            "focus": "Theme for the week",
            "goals": ["Weekly goal"],
            "daily_tasks": {"Monday": ["Task"], "Wednesday": ["Task"]},
        }
    ],
}
BRIEFING_OUTPUT_SCHEMA = {
    "greeting": "Personal morning message",
    "today_focus": "Main priority",
    "task_priorities": [{"task": "Exact task title", "priority": "high|medium|low"}],
}
RESCHEDULE_OUTPUT_SCHEMA = {
    "rescheduling_strategy": "Overall approach",
    "task_movements": [{"task": "Exact task title", "original_date": "YYYY-MM-DD", "new_date": "YYYY-MM-DD"}],
}


def _or_unspecified(value: str | None) -> str:
    return value or "Not specified"


def plan_prompt(payload: PlanRequest, current_date: str) -> ChatPrompt:
    commitments = ", ".join(payload.existing_commitments) or "None"
    user_prompt = (
        f"Goals:\n{payload.user_goals}\n\n"
        f"Current date: {current_date}\n"
        f"Known commitments: {commitments}\n"
        f"Work hours: {_or_unspecified(payload.work_hours)}; "
        f"energy patterns: {_or_unspecified(payload.energy_patterns)}; "
        f"preferred times: {_or_unspecified(payload.preferred_times)}\n\n"
        "Break the goals into weekly milestones with at most 3-4 tasks per day and leave buffer time.\n"
        f"Return JSON shaped like:\n{json.dumps(PLAN_OUTPUT_SCHEMA, indent=2)}"
    )
    return ChatPrompt(system=PLAN_SYSTEM_PROMPT, user=user_prompt, temperature=0.7, max_tokens=4000)


def briefing_prompt(payload: BriefingRequest) -> ChatPrompt:
    tasks = ", ".join(f"{task.title} ({task.priority})" for task in payload.todays_tasks) or "None"
    deadlines = ", ".join(f"{item.title} ({item.due_date})" for item in payload.near_deadlines) or "None"
    streaks = ", ".join(f"{habit.title}: {habit.streak} day(s)" for habit in payload.habit_streaks) or "None"
    user_prompt = (
        f"Today: {payload.current_date.isoformat()}\n"
        f"Planned tasks: {tasks}\n"
        f"Yesterday: {_or_unspecified(payload.yesterday_progress)}\n"
        f"Habit streaks: {streaks}\n"
        f"Upcoming deadlines: {deadlines}\n"
        f"Energy levels: {_or_unspecified(payload.energy_levels)}\n\n"
        "Order today's tasks by importance and reuse their exact titles.\n"
        f"Return JSON shaped like:\n{json.dumps(BRIEFING_OUTPUT_SCHEMA, indent=2)}"
    )
    return ChatPrompt(system=BRIEFING_SYSTEM_PROMPT, user=user_prompt, temperature=0.6, max_tokens=2000)


def reschedule_prompt(payload: RescheduleRequest) -> ChatPrompt:
    backlog = ", ".join(f"{task.title} ({task.priority}, due {task.due_date})" for task in payload.backlog_tasks)
    history = json.dumps([day.model_dump() for day in payload.completion_history])
    pressure = ", ".join(f"{item.title} ({item.days_until} days)" for item in payload.deadline_pressure) or "None"
    user_prompt = (
        f"Current week: {payload.current_week}\n"
        f"Incomplete tasks: {backlog or 'None'}\n"
        f"Recent completion: {history}\n"
        f"Upcoming deadlines: {pressure}\n"
        f"Stress level: {_or_unspecified(payload.stress_level)}; "
        f"energy trends: {_or_unspecified(payload.energy_trends)}\n"
        f"Fixed commitments: {', '.join(payload.fixed_commitments) or 'None'}\n\n"
        "Keep hard deadlines, spread the load across the coming days and reuse exact task titles.\n"
        f"Return JSON shaped like:\n{json.dumps(RESCHEDULE_OUTPUT_SCHEMA, indent=2)}"
    )
    return ChatPrompt(system=RESCHEDULE_SYSTEM_PROMPT, user=user_prompt, temperature=0.5, max_tokens=3000)
