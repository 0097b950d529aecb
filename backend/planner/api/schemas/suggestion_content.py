"""Structured content carried by each suggestion kind."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from planner.core.errors import UnknownSuggestionKind

Priority = Literal["low", "medium", "high"]


class SuggestionKind(str, Enum):
    PLAN = "plan"
    BRIEFING = "briefing"
    RESCHEDULE = "reschedule"


class PlanTask(BaseModel):
    title: str
    priority: Priority = "medium"
    due_date: Optional[str] = Field(default=None, description="ISO date (YYYY-MM-DD).")


class PlanGoal(BaseModel):
    title: str
    description: str = ""
    category: str = "personal"
    tasks: List[PlanTask] = Field(default_factory=list)


class PlanContent(BaseModel):
    goals: List[PlanGoal] = Field(default_factory=list)


class BriefingTask(BaseModel):
    task_id: str = ""
    title: str
    priority: Priority = "medium"


class UpcomingDeadline(BaseModel):
    goal_id: Optional[str] = None
    task_id: Optional[str] = None
    title: str
    due_date: str


class HabitReminder(BaseModel):
    habit_id: str
    title: str
    target_value: int = 1
    current_value: int = 0


class BriefingContent(BaseModel):
    summary: str
    todays_tasks: List[BriefingTask] = Field(default_factory=list)
    upcoming_deadlines: List[UpcomingDeadline] = Field(default_factory=list)
    habit_reminders: List[HabitReminder] = Field(default_factory=list)


class TaskMove(BaseModel):
    task_id: str = ""
    current_due_date: Optional[str] = None
    suggested_due_date: Optional[str] = None


class EventMove(BaseModel):
    event_id: str = ""
    current_start_time: Optional[str] = None
    suggested_start_time: Optional[str] = None
    suggested_end_time: Optional[str] = None


class RescheduleContent(BaseModel):
    reason: str
    affected_tasks: List[TaskMove] = Field(default_factory=list)
    affected_events: List[EventMove] = Field(default_factory=list)


SuggestionContent = Union[PlanContent, BriefingContent, RescheduleContent]

CONTENT_MODELS: Dict[SuggestionKind, type[BaseModel]] = {
    SuggestionKind.PLAN: PlanContent,
    SuggestionKind.BRIEFING: BriefingContent,
    SuggestionKind.RESCHEDULE: RescheduleContent,
}


def coerce_kind(raw: Any) -> SuggestionKind:
    try:
        return SuggestionKind(raw)
    except ValueError as exc:
        raise UnknownSuggestionKind(raw) from exc


def parse_content(kind: Any, raw: Any) -> SuggestionContent:
    """Validate stored JSON against the model for ``kind``."""
    model = CONTENT_MODELS[coerce_kind(kind)]
    if isinstance(raw, model):
        return raw
    return model.model_validate(raw)
