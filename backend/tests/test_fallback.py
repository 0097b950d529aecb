"""Tests for the template fallback generators."""
from __future__ import annotations

from datetime import date

from planner.api.schemas.suggestions import BacklogTask, BriefingTaskInput, PlanRequest
from planner.core.errors import TransientProviderError
from planner.services.fallback import (
    GENERIC_GOAL,
    extract_goals,
    generate_briefing_fallback,
    generate_plan_fallback,
    generate_reschedule_fallback,
    handle_ai_error,
    user_friendly_message,
)

TODAY = date(2026, 10, 18)


def test_plan_fallback_builds_three_tasks_per_goal() -> None:
    result = generate_plan_fallback("- Learn Spanish\n- Run a 10k", today=TODAY)

    assert result.success is True
    assert result.fallback_used is True
    goals = result.data.goals
    assert [goal.title for goal in goals] == ["Learn Spanish", "Run a 10k"]
    assert goals[0].description == "Goal based on your input: Learn Spanish"
    assert goals[0].category == "personal"
    assert [task.title for task in goals[0].tasks] == [
        "Research and plan learn spanish",
        "Start working on learn spanish",
        "Complete learn spanish milestone",
    ]
    assert [task.priority for task in goals[0].tasks] == ["high", "medium", "low"]
    assert [task.due_date for task in goals[0].tasks] == ["2026-10-18", "2026-10-20", "2026-10-22"]
    assert [task.due_date for task in goals[1].tasks] == ["2026-10-25", "2026-10-27", "2026-10-29"]


def test_plan_fallback_is_deterministic() -> None:
    first = generate_plan_fallback("Read more books. Sleep earlier.", today=TODAY)
    second = generate_plan_fallback("Read more books. Sleep earlier.", today=TODAY)

    assert first.data == second.data


def test_extract_goals_prefers_lines_then_sentences() -> None:
    assert extract_goals("1. Ship the app\n2) Write docs\n\n* Hire") == ["Ship the app", "Write docs", "Hire"]
    assert extract_goals("Read more. Cook at home! Stretch?") == ["Read more", "Cook at home", "Stretch"]
    assert extract_goals("   ") == [GENERIC_GOAL]


def test_extract_goals_caps_at_five() -> None:
    text = "\n".join(f"Goal {index}" for index in range(8))
    assert len(extract_goals(text)) == 5


def test_briefing_fallback_emphasises_high_priority() -> None:
    tasks = [
        BriefingTaskInput(task_id="t1", title="Ship release", priority="high"),
        BriefingTaskInput(task_id="t2", title="Email", priority="low"),
    ]

    result = generate_briefing_fallback(TODAY, tasks)

    assert result.success is True
    assert result.data.summary == "Daily briefing for 2026-10-18 - 2 tasks scheduled"
    assert [task.task_id for task in result.data.todays_tasks] == ["t1", "t2"]
    assert result.data.upcoming_deadlines == []
    assert result.message == "AI service unavailable - Focus on 1 high-priority task(s)"


def test_briefing_fallback_without_urgent_work() -> None:
    result = generate_briefing_fallback("2026-10-18", [])

    assert result.message.endswith("No high-priority tasks - great job staying ahead!")


def test_reschedule_fallback_orders_by_priority_then_due_date() -> None:
    backlog = [
        BacklogTask(task_id="a", title="Low old", priority="low", due_date="2026-10-01"),
        BacklogTask(task_id="b", title="High new", priority="high", due_date="2026-10-15"),
        BacklogTask(task_id="c", title="High old", priority="high", due_date="2026-10-10"),
    ]

    result = generate_reschedule_fallback(backlog, today=TODAY)

    moves = result.data.affected_tasks
    assert [move.task_id for move in moves] == ["c", "b", "a"]
    assert [move.suggested_due_date for move in moves] == ["2026-10-19", "2026-10-20", "2026-10-21"]
    assert moves[0].current_due_date == "2026-10-10"


def test_reschedule_fallback_reports_failure_instead_of_raising() -> None:
    result = generate_reschedule_fallback([{"title": "Broken", "due_date": "not-a-date"}], today=TODAY)

    assert result.success is False
    assert result.data is None
    assert result.message.startswith("Failed to generate fallback reschedule")


def test_handle_ai_error_dispatches_by_kind() -> None:
    payload = PlanRequest(user_goals="Learn to play guitar")

    result = handle_ai_error(TransientProviderError("network timeout"), "plan", payload, today=TODAY)

    assert result.success is True
    assert result.data.goals[0].title == "Learn to play guitar"
    assert handle_ai_error(RuntimeError("x"), "summary", payload).success is False


def test_user_friendly_messages() -> None:
    assert "internet connection" in user_friendly_message("network")
    assert "request limit" in user_friendly_message("rate-limit")
    assert "fallback" in user_friendly_message("ai-service")
    assert user_friendly_message("unknown").startswith("Something went wrong")
