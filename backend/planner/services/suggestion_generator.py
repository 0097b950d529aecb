"""Generate plan, briefing and reschedule suggestions through the resilience layer."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from pydantic import ValidationError

from planner.api.schemas.suggestion_content import (
    BriefingContent,
    BriefingTask,
    HabitReminder,
    PlanContent,
    PlanGoal,
    PlanTask,
    RescheduleContent,
    SuggestionContent,
    SuggestionKind,
    TaskMove,
    UpcomingDeadline,
)
from planner.api.schemas.suggestions import BriefingRequest, PlanRequest, RescheduleRequest
from planner.core.context import get_request_id
from planner.core.errors import (
    AuthenticationError,
    MalformedResponse,
    RateLimitExceeded,
    SuggestionGenerationError,
    TransientProviderError,
)
from planner.db.store import PlannerStore
from planner.observability.metrics import log_metric
from planner.observability.tracing import trace
from planner.services.cache import CacheTTL, ResultCache, generate_key, hash_key, result_cache
from planner.services.fallback import handle_ai_error
from planner.services.llm_client import ModelProvider
from planner.services.prompts import ChatPrompt, briefing_prompt, plan_prompt, reschedule_prompt
from planner.services.rate_limiter import RateLimiter, rate_limiter
from planner.services.retry import DEFAULT_OPTIONS, RetryEngine, RetryOptions

logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"
WEEKDAY_OFFSETS = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}
PRIORITIES = ("low", "medium", "high")


@dataclass
class GenerationResult:
    kind: SuggestionKind
    content: Optional[Dict[str, Any]]
    suggestion_id: Optional[UUID] = None
    cached: bool = False
    fallback_used: bool = False
    message: str = ""


def normalize_text(value: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (value or "").strip().lower())


def due_date_for_day(day: str, week: int, today: date) -> date:
    """Weekday name within 1-based ``week`` relative to ``today``; unknown names count as Monday."""
    offset = WEEKDAY_OFFSETS.get(normalize_text(day), 1)
    return today + timedelta(days=(max(week, 1) - 1) * 7 + offset)


def _load_json(raw: str) -> Dict[str, Any]:
    text = raw.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*|\s*```$", "", text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"Model returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponse("Model response is not a JSON object")
    return data


def _priority(value: Any) -> str:
    normalized = normalize_text(str(value)) if value is not None else ""
    return normalized if normalized in PRIORITIES else "medium"


def _as_list(value: Any, field_name: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResponse(f"Expected a list for {field_name}")
    return value


def parse_plan_response(raw: str, today: date) -> PlanContent:
    data = _load_json(raw)
    goals: List[PlanGoal] = []
    try:
        for index, week in enumerate(_as_list(data.get("weekly_breakdown"), "weekly_breakdown"), start=1):
            if not isinstance(week, dict):
                raise MalformedResponse("weekly_breakdown entries must be objects")
            week_number = week["week"] if isinstance(week.get("week"), int) else index
            daily_tasks = week.get("daily_tasks") or {}
            if not isinstance(daily_tasks, dict):
                raise MalformedResponse("daily_tasks must map weekday names to task lists")

            tasks: List[PlanTask] = []
            for day, titles in daily_tasks.items():
                if isinstance(titles, str):
                    titles = [titles]
                for title in _as_list(titles, f"daily_tasks.{day}"):
                    title = str(title).strip()
                    if title:
                        tasks.append(
                            PlanTask(
                                title=title,
                                priority="medium",
                                due_date=due_date_for_day(str(day), week_number, today).isoformat(),
                            )
                        )

            goals.append(
                PlanGoal(
                    title=str(week.get("focus") or f"Week {week_number} Goals"),
                    description=", ".join(str(goal) for goal in _as_list(week.get("goals"), "goals")),
                    category="monthly",
                    tasks=tasks,
                )
            )
    except ValidationError as exc:
        raise MalformedResponse(f"Plan response failed validation: {exc}") from exc

    if not goals:
        raise MalformedResponse("Plan response contained no goals")
    return PlanContent(goals=goals)


def parse_briefing_response(raw: str, payload: BriefingRequest) -> BriefingContent:
    data = _load_json(raw)
    ids_by_title = {normalize_text(task.title): task.task_id for task in payload.todays_tasks}
    try:
        priorities = _as_list(data.get("task_priorities"), "task_priorities")
        if priorities:
            todays_tasks = []
            for item in priorities:
                if not isinstance(item, dict) or not str(item.get("task") or "").strip():
                    continue
                title = str(item["task"]).strip()
                todays_tasks.append(
                    BriefingTask(
                        task_id=ids_by_title.get(normalize_text(title), ""),
                        title=title,
                        priority=_priority(item.get("priority")),
                    )
                )
        else:
            todays_tasks = [
                BriefingTask(task_id=task.task_id, title=task.title, priority=task.priority)
                for task in payload.todays_tasks
            ]

        return BriefingContent(
            summary=str(data.get("greeting") or "Daily briefing ready"),
            todays_tasks=todays_tasks,
            upcoming_deadlines=[
                UpcomingDeadline(task_id=item.task_id, title=item.title, due_date=item.due_date)
                for item in payload.near_deadlines
            ],
            habit_reminders=[
                HabitReminder(
                    habit_id=habit.habit_id,
                    title=habit.title,
                    target_value=habit.target_value,
                    current_value=habit.streak,
                )
                for habit in payload.habit_streaks
            ],
        )
    except ValidationError as exc:
        raise MalformedResponse(f"Briefing response failed validation: {exc}") from exc


def _iso_date(value: Any) -> Optional[str]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10]).isoformat()
    except ValueError:
        return None


def parse_reschedule_response(raw: str, payload: RescheduleRequest) -> RescheduleContent:
    data = _load_json(raw)
    backlog_by_title = {normalize_text(task.title): task for task in payload.backlog_tasks}
    moves: List[TaskMove] = []
    for item in _as_list(data.get("task_movements"), "task_movements"):
        if not isinstance(item, dict):
            continue
        new_date = _iso_date(item.get("new_date"))
        if new_date is None:
            logger.info("Ignoring task movement without a usable new_date: %s", item)
            continue
        match = backlog_by_title.get(normalize_text(str(item.get("task") or "")))
        moves.append(
            TaskMove(
                task_id=match.task_id if match else "",
                current_due_date=_iso_date(item.get("original_date")) or (match.due_date if match else None),
                suggested_due_date=new_date,
            )
        )
    return RescheduleContent(
        reason=str(data.get("rescheduling_strategy") or "Optimizing schedule based on progress"),
        affected_tasks=moves,
        affected_events=[],
    )


class SuggestionGenerator:
    """Cache, quota, retry, parse and persist, falling back to templates when the model fails.

    Concurrent identical requests are not coalesced: both may miss the cache
    and both are charged against the user's quota.
    """

    def __init__(
        self,
        store: PlannerStore,
        provider: Optional[ModelProvider],
        cache: ResultCache = result_cache,
        limiter: RateLimiter = rate_limiter,
        retry: Optional[RetryEngine] = None,
        retry_options: RetryOptions = DEFAULT_OPTIONS,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.provider = provider
        self.cache = cache
        self.limiter = limiter
        self.retry = retry or RetryEngine()
        self.retry_options = retry_options
        self._today = today

    async def generate_plan(self, payload: PlanRequest) -> GenerationResult:
        today = payload.current_date or self._today()
        key = generate_key(
            "plan",
            {
                "user": payload.user_id,
                "date": today.isoformat(),
                "goals": hash_key(normalize_text(payload.user_goals)),
                "prefs": hash_key(
                    "|".join(
                        normalize_text(value)
                        for value in (payload.work_hours, payload.energy_patterns, payload.preferred_times)
                    )
                    + "|"
                    + "|".join(sorted(normalize_text(item) for item in payload.existing_commitments))
                ),
            },
        )
        return await self._generate(
            SuggestionKind.PLAN,
            payload,
            key,
            CacheTTL.PLAN_GENERATION,
            plan_prompt(payload, today.isoformat()),
            lambda raw: parse_plan_response(raw, today),
            today,
        )

    async def generate_briefing(self, payload: BriefingRequest) -> GenerationResult:
        task_fingerprint = "|".join(
            sorted(f"{task.task_id}:{normalize_text(task.title)}:{task.priority}" for task in payload.todays_tasks)
        )
        key = generate_key(
            "briefing",
            {
                "user": payload.user_id,
                "date": payload.current_date.isoformat(),
                "tasks": hash_key(task_fingerprint),
                "yesterday": hash_key(normalize_text(payload.yesterday_progress)),
            },
        )
        return await self._generate(
            SuggestionKind.BRIEFING,
            payload,
            key,
            CacheTTL.BRIEFING_GENERATION,
            briefing_prompt(payload),
            lambda raw: parse_briefing_response(raw, payload),
            payload.current_date,
        )

    async def generate_reschedule(self, payload: RescheduleRequest) -> GenerationResult:
        backlog_fingerprint = "|".join(
            sorted(f"{task.task_id}:{normalize_text(task.title)}:{task.due_date}" for task in payload.backlog_tasks)
        )
        key = generate_key(
            "reschedule",
            {
                "user": payload.user_id,
                "week": normalize_text(payload.current_week),
                "backlog": hash_key(backlog_fingerprint),
            },
        )
        return await self._generate(
            SuggestionKind.RESCHEDULE,
            payload,
            key,
            CacheTTL.RESCHEDULE_GENERATION,
            reschedule_prompt(payload),
            lambda raw: parse_reschedule_response(raw, payload),
            self._today(),
        )

    async def _generate(
        self,
        kind: SuggestionKind,
        payload: Any,
        key: str,
        ttl: float,
        prompt: ChatPrompt,
        parse: Callable[[str], SuggestionContent],
        today: date,
    ) -> GenerationResult:
        user_id: Optional[UUID] = payload.user_id
        metric_meta = {"kind": kind.value}

        cached = self.cache.get(key)
        if cached is not None:
            log_metric("suggestions.cache_hit", 1, metric_meta)
            return replace(cached, cached=True)

        quota_key = user_id or ANONYMOUS_USER
        status = self.limiter.check_limit(quota_key, kind.value)
        if not status.allowed:
            log_metric("suggestions.rate_limited", 1, metric_meta)
            raise RateLimitExceeded(kind.value, status.reset_time, status.remaining, status.limit)

        if self.provider is None:
            return await self._fallback(
                kind, payload, TransientProviderError("AI model provider is not configured"), today
            )

        provider = self.provider
        with trace(
            f"suggestions.{kind.value}.generate",
            metadata={**metric_meta, "cache_key": key},
            user_id=str(user_id) if user_id else None,
            request_id=get_request_id(),
        ):
            outcome = await self.retry.execute_with_strategy(
                lambda: provider.complete(prompt.system, prompt.user, prompt.temperature, prompt.max_tokens),
                "ai-service",
                self.retry_options,
            )
        log_metric("suggestions.attempts", outcome.attempts, metric_meta)

        if not outcome.success:
            if isinstance(outcome.error, AuthenticationError):
                raise outcome.error
            return await self._fallback(kind, payload, outcome.error, today)

        try:
            content = parse(outcome.value)
        except MalformedResponse as exc:
            return await self._fallback(kind, payload, exc, today)

        content_dict = content.model_dump()
        suggestion_id = None
        if user_id is not None:
            suggestion = await self.store.create_suggestion(user_id, kind.value, content_dict)
            suggestion_id = suggestion.id

        result = GenerationResult(
            kind=kind,
            content=content_dict,
            suggestion_id=suggestion_id,
            message=f"{kind.value.capitalize()} suggestion generated",
        )
        self.cache.set(key, result, ttl)
        self.limiter.record_usage(quota_key, kind.value)
        log_metric("suggestions.generated", 1, metric_meta)
        return result

    async def _fallback(
        self,
        kind: SuggestionKind,
        payload: Any,
        error: Optional[BaseException],
        today: date,
    ) -> GenerationResult:
        error = error or TransientProviderError("AI model call failed")
        user_id: Optional[UUID] = payload.user_id
        if user_id is None:
            raise SuggestionGenerationError(kind.value, str(error)) from error

        fallback = handle_ai_error(error, kind.value, payload, today=today)
        log_metric("suggestions.fallback_used", 1, {"kind": kind.value})
        if not fallback.success or fallback.data is None:
            logger.warning("Fallback %s generation failed: %s", kind.value, fallback.message)
            return GenerationResult(kind=kind, content=None, fallback_used=True, message=fallback.message)

        content_dict = fallback.data.model_dump()
        suggestion = await self.store.create_suggestion(user_id, kind.value, content_dict)
        return GenerationResult(
            kind=kind,
            content=content_dict,
            suggestion_id=suggestion.id,
            fallback_used=True,
            message=fallback.message,
        )
