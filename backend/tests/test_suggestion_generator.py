"""Tests for suggestion generation through cache, quota, retry and fallback."""
from __future__ import annotations

import json
from datetime import date, datetime
from typing import List, Union
from uuid import uuid4

import pytest

from planner.api.schemas.suggestion_content import SuggestionKind
from planner.api.schemas.suggestions import (
    BacklogTask,
    BriefingRequest,
    BriefingTaskInput,
    HabitStreakInput,
    PlanRequest,
    RescheduleRequest,
)
from planner.core.errors import (
    AuthenticationError,
    RateLimitExceeded,
    SuggestionGenerationError,
    TransientProviderError,
)
from planner.services.cache import ResultCache
from planner.services.rate_limiter import RateLimiter, UsageLimits
from planner.services.retry import RetryEngine
from planner.services.suggestion_generator import SuggestionGenerator, due_date_for_day

TODAY = date(2026, 10, 18)

PLAN_RESPONSE = json.dumps(
    {
        "monthly_summary": "Build a running habit",
        "weekly_breakdown": [
            {
                "week": 1,
                "focus": "Base mileage",
                "goals": ["Run three times", "Buy shoes"],
                "daily_tasks": {"Monday": ["Easy 3k"], "Sunday": ["Long walk"]},
            },
            {"week": 2, "goals": [], "daily_tasks": {"Wednesday": ["Intervals"]}},
        ],
    }
)


class ScriptedProvider:
    def __init__(self, responses: List[Union[str, Exception]]):
        self.responses = list(responses)
        self.calls = 0

    async def complete(self, system_prompt, user_prompt, temperature, max_tokens) -> str:
        self.calls += 1
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


async def _no_sleep(delay: float) -> None:
    return None


def _generator(store, provider, limiter=None, cache=None) -> SuggestionGenerator:
    return SuggestionGenerator(
        store,
        provider,
        cache=cache or ResultCache(),
        limiter=limiter or RateLimiter(clock=lambda: datetime(2026, 10, 18, 9, 0)),
        retry=RetryEngine(sleep=_no_sleep),
        today=lambda: TODAY,
    )


def _plan_request(user_id=None) -> PlanRequest:
    return PlanRequest(user_id=user_id or uuid4(), user_goals="Run a half marathon this month", current_date=TODAY)


@pytest.mark.asyncio
async def test_identical_plan_requests_call_the_model_once(fake_store) -> None:
    provider = ScriptedProvider([PLAN_RESPONSE])
    limiter = RateLimiter(clock=lambda: datetime(2026, 10, 18, 9, 0))
    generator = _generator(fake_store, provider, limiter=limiter)
    user_id = uuid4()

    first = await generator.generate_plan(_plan_request(user_id))
    second = await generator.generate_plan(
        PlanRequest(user_id=user_id, user_goals="  run a HALF   marathon this month ", current_date=TODAY)
    )

    assert provider.calls == 1
    assert first.cached is False
    assert second.cached is True
    assert second.content == first.content
    assert second.suggestion_id == first.suggestion_id
    assert limiter.user_stats(user_id)["daily"] == {"plan": 1}
    assert fake_store.call_names().count("create_suggestion") == 1


@pytest.mark.asyncio
async def test_plan_response_is_mapped_to_goals(fake_store) -> None:
    generator = _generator(fake_store, ScriptedProvider([PLAN_RESPONSE]))

    result = await generator.generate_plan(_plan_request())

    goals = result.content["goals"]
    assert result.kind is SuggestionKind.PLAN
    assert [goal["title"] for goal in goals] == ["Base mileage", "Week 2 Goals"]
    assert goals[0]["description"] == "Run three times, Buy shoes"
    assert goals[0]["tasks"] == [
        {"title": "Easy 3k", "priority": "medium", "due_date": "2026-10-19"},
        {"title": "Long walk", "priority": "medium", "due_date": "2026-10-18"},
    ]
    assert goals[1]["tasks"][0]["due_date"] == "2026-10-28"


def test_due_date_for_unknown_day_defaults_to_monday_offset() -> None:
    assert due_date_for_day("Someday", 1, TODAY) == date(2026, 10, 19)
    assert due_date_for_day("saturday", 3, TODAY) == date(2026, 11, 7)


@pytest.mark.asyncio
async def test_rate_limited_request_raises_with_reset_time(fake_store) -> None:
    limiter = RateLimiter(UsageLimits(plan=1), clock=lambda: datetime(2026, 10, 18, 9, 0))
    provider = ScriptedProvider([PLAN_RESPONSE])
    generator = _generator(fake_store, provider, limiter=limiter)
    user_id = uuid4()
    await generator.generate_plan(_plan_request(user_id))

    with pytest.raises(RateLimitExceeded) as excinfo:
        await generator.generate_plan(
            PlanRequest(user_id=user_id, user_goals="Something entirely different", current_date=TODAY)
        )

    assert excinfo.value.reset_time == datetime(2026, 10, 19)
    assert excinfo.value.remaining == 0
    assert provider.calls == 1


@pytest.mark.asyncio
async def test_exhausted_retries_fall_back_without_using_quota(fake_store) -> None:
    limiter = RateLimiter(clock=lambda: datetime(2026, 10, 18, 9, 0))
    cache = ResultCache()
    provider = ScriptedProvider([TransientProviderError("network timeout calling model provider")])
    generator = _generator(fake_store, provider, limiter=limiter, cache=cache)
    user_id = uuid4()

    result = await generator.generate_plan(_plan_request(user_id))

    assert provider.calls == 3
    assert result.fallback_used is True
    assert result.suggestion_id is not None
    assert result.content["goals"][0]["tasks"][0]["title"].startswith("Research and plan")
    assert limiter.user_stats(user_id)["daily_total"] == 0
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_malformed_response_falls_back_without_retry(fake_store) -> None:
    provider = ScriptedProvider(["Sure! Here is your plan."])
    generator = _generator(fake_store, provider)

    result = await generator.generate_plan(_plan_request())

    assert provider.calls == 1
    assert result.fallback_used is True


@pytest.mark.asyncio
async def test_empty_plan_is_treated_as_malformed(fake_store) -> None:
    generator = _generator(fake_store, ScriptedProvider([json.dumps({"weekly_breakdown": []})]))

    result = await generator.generate_plan(_plan_request())

    assert result.fallback_used is True


@pytest.mark.asyncio
async def test_authentication_error_propagates(fake_store) -> None:
    provider = ScriptedProvider([AuthenticationError("authentication failed: 401")])
    generator = _generator(fake_store, provider)

    with pytest.raises(AuthenticationError):
        await generator.generate_plan(_plan_request())

    assert provider.calls == 1
    assert "create_suggestion" not in fake_store.call_names()


@pytest.mark.asyncio
async def test_failure_without_user_raises_generation_error(fake_store) -> None:
    generator = _generator(fake_store, ScriptedProvider([TransientProviderError("AI model overloaded")]))

    with pytest.raises(SuggestionGenerationError):
        await generator.generate_plan(PlanRequest(user_goals="Plan a garden this month", current_date=TODAY))


@pytest.mark.asyncio
async def test_missing_provider_uses_fallback(fake_store) -> None:
    generator = _generator(fake_store, None)

    result = await generator.generate_plan(_plan_request())

    assert result.fallback_used is True
    assert result.message.startswith("AI service unavailable")


@pytest.mark.asyncio
async def test_briefing_resolves_task_ids_by_title(fake_store) -> None:
    response = json.dumps(
        {
            "greeting": "Good morning!",
            "task_priorities": [
                {"task": "write report", "priority": "HIGH"},
                {"task": "Something new", "priority": "urgent"},
            ],
        }
    )
    generator = _generator(fake_store, ScriptedProvider([response]))
    payload = BriefingRequest(
        user_id=uuid4(),
        current_date=TODAY,
        todays_tasks=[BriefingTaskInput(task_id="t-1", title="Write report", priority="medium")],
        habit_streaks=[HabitStreakInput(habit_id="h-1", title="Meditate", streak=4)],
    )

    result = await generator.generate_briefing(payload)

    assert result.content["summary"] == "Good morning!"
    assert result.content["todays_tasks"] == [
        {"task_id": "t-1", "title": "write report", "priority": "high"},
        {"task_id": "", "title": "Something new", "priority": "medium"},
    ]
    assert result.content["habit_reminders"][0]["current_value"] == 4


@pytest.mark.asyncio
async def test_reschedule_maps_movements_to_backlog(fake_store) -> None:
    response = json.dumps(
        {
            "rescheduling_strategy": "Spread the backlog",
            "task_movements": [
                {"task": "File taxes", "original_date": "2026-10-10", "new_date": "2026-10-20"},
                {"task": "Unknown", "new_date": "next week"},
            ],
        }
    )
    generator = _generator(fake_store, ScriptedProvider([response]))
    payload = RescheduleRequest(
        user_id=uuid4(),
        current_week="2026-10-12 to 2026-10-18",
        backlog_tasks=[BacklogTask(task_id="t-9", title="File taxes", priority="high", due_date="2026-10-10")],
    )

    result = await generator.generate_reschedule(payload)

    assert result.content["reason"] == "Spread the backlog"
    assert result.content["affected_tasks"] == [
        {"task_id": "t-9", "current_due_date": "2026-10-10", "suggested_due_date": "2026-10-20"}
    ]


@pytest.mark.asyncio
async def test_failed_fallback_is_returned_without_content(fake_store) -> None:
    generator = _generator(fake_store, None)
    payload = RescheduleRequest(
        user_id=uuid4(),
        current_week="2026-10-12 to 2026-10-18",
        backlog_tasks=[BacklogTask(task_id="t-3", title="Renew passport", priority="high", due_date="soon")],
    )

    result = await generator.generate_reschedule(payload)

    assert result.fallback_used is True
    assert result.content is None
    assert result.suggestion_id is None
    assert result.message.startswith("Failed to generate fallback reschedule")
    assert "create_suggestion" not in fake_store.call_names()
