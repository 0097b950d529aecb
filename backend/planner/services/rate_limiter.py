"""Per-user quota enforcement for AI suggestion requests."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Dict, List, Tuple
from zoneinfo import ZoneInfo

from planner.core.config import settings

logger = logging.getLogger(__name__)

RATE_LIMITED_KINDS = ("plan", "briefing", "reschedule")


@dataclass(frozen=True)
class UsageLimits:
    daily: int = 20
    monthly: int = 300
    plan: int = 5
    briefing: int = 10
    reschedule: int = 5

    def for_kind(self, kind: str) -> int:
        if kind not in RATE_LIMITED_KINDS:
            raise ValueError(f"No rate limit defined for {kind!r}")
        return getattr(self, kind)


DEFAULT_LIMITS = UsageLimits(
    daily=settings.rate_limit_daily,
    monthly=settings.rate_limit_monthly,
    plan=settings.rate_limit_plan,
    briefing=settings.rate_limit_briefing,
    reschedule=settings.rate_limit_reschedule,
)


@dataclass
class RateLimitStatus:
    allowed: bool
    remaining: int
    reset_time: datetime
    limit: int
    current_usage: int


@dataclass
class _UsageWindow:
    day: date
    month: Tuple[int, int]
    daily_by_kind: Dict[str, int] = field(default_factory=dict)
    monthly_total: int = 0

    @property
    def daily_total(self) -> int:
        return sum(self.daily_by_kind.values())


def quota_now() -> datetime:
    """Current time in the zone the scheduled resets fire in."""
    return datetime.now(ZoneInfo(settings.scheduler_timezone))


def _next_midnight(now: datetime) -> datetime:
    return datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)


def _first_of_next_month(now: datetime) -> datetime:
    year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
    return datetime(year, month, 1, tzinfo=now.tzinfo)


class RateLimiter:
    """Daily total, monthly total and per-kind daily caps, applied together.

    Usage windows remember the day and month they were opened in and roll over
    on the first access after a boundary, so correctness does not depend on
    the scheduled resets firing. State lives in process memory only.
    """

    def __init__(self, default_limits: UsageLimits = DEFAULT_LIMITS, clock: Callable[[], datetime] = quota_now):
        self.default_limits = default_limits
        self._clock = clock
        self._user_limits: Dict[str, UsageLimits] = {}
        self._windows: Dict[str, _UsageWindow] = {}

    def limits_for(self, user_id: Any) -> UsageLimits:
        return self._user_limits.get(str(user_id), self.default_limits)

    def set_user_limits(self, user_id: Any, **overrides: int) -> UsageLimits:
        """Override selected limits for one user; other users keep the defaults."""
        limits = replace(self.limits_for(user_id), **overrides)
        self._user_limits[str(user_id)] = limits
        return limits

    def _window(self, user_id: Any, now: datetime) -> _UsageWindow:
        key = str(user_id)
        month = (now.year, now.month)
        window = self._windows.get(key)
        if window is None:
            window = _UsageWindow(day=now.date(), month=month)
            self._windows[key] = window
            return window
        if window.month != month:
            window.month = month
            window.monthly_total = 0
        if window.day != now.date():
            window.day = now.date()
            window.daily_by_kind.clear()
        return window

    def check_limit(self, user_id: Any, kind: str) -> RateLimitStatus:
        now = self._clock()
        limits = self.limits_for(user_id)
        window = self._window(user_id, now)

        kind_limit = limits.for_kind(kind)
        kind_usage = window.daily_by_kind.get(kind, 0)
        daily_exceeded = window.daily_total >= limits.daily
        monthly_exceeded = window.monthly_total >= limits.monthly
        kind_exceeded = kind_usage >= kind_limit

        remaining = min(
            limits.daily - window.daily_total,
            limits.monthly - window.monthly_total,
            kind_limit - kind_usage,
        )
        reset_time = _next_midnight(now) if (daily_exceeded or kind_exceeded) else _first_of_next_month(now)

        return RateLimitStatus(
            allowed=not (daily_exceeded or monthly_exceeded or kind_exceeded),
            remaining=max(0, remaining),
            reset_time=reset_time,
            limit=kind_limit,
            current_usage=kind_usage,
        )

    def record_usage(self, user_id: Any, kind: str) -> None:
        limits = self.limits_for(user_id)
        window = self._window(user_id, self._clock())
        window.daily_by_kind[kind] = window.daily_by_kind.get(kind, 0) + 1
        window.monthly_total += 1
        logger.info(
            "Usage recorded: %s - %s - daily %s/%s",
            user_id,
            kind,
            window.daily_by_kind[kind],
            limits.for_kind(kind),
        )

    def reset_daily_usage(self) -> None:
        logger.info("Resetting daily usage for %s users", len(self._windows))
        today = self._clock().date()
        for window in self._windows.values():
            window.daily_by_kind.clear()
            window.day = today

    def reset_monthly_usage(self) -> None:
        logger.info("Resetting monthly usage for %s users", len(self._windows))
        now = self._clock()
        for window in self._windows.values():
            window.monthly_total = 0
            window.month = (now.year, now.month)

    def user_stats(self, user_id: Any) -> Dict[str, Any]:
        window = self._window(user_id, self._clock())
        return {
            "daily": dict(window.daily_by_kind),
            "daily_total": window.daily_total,
            "monthly": window.monthly_total,
            "limits": asdict(self.limits_for(user_id)),
        }

    def all_stats(self) -> List[Dict[str, Any]]:
        user_ids = set(self._windows) | set(self._user_limits)
        return [{"user_id": uid, **self.user_stats(uid)} for uid in sorted(user_ids)]


rate_limiter = RateLimiter()
