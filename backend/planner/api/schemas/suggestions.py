"""Schemas for AI suggestion generation and application endpoints."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from planner.api.schemas.suggestion_content import Priority, SuggestionKind


class PlanRequest(BaseModel):
    user_id: Optional[UUID] = None
    user_goals: str = Field(..., min_length=10, description="Free-text goals for the month.")
    work_hours: Optional[str] = None
    energy_patterns: Optional[str] = None
    preferred_times: Optional[str] = None
    current_date: Optional[date] = None
    existing_commitments: List[str] = Field(default_factory=list)


class BriefingTaskInput(BaseModel):
    task_id: str = ""
    title: str
    priority: Priority = "medium"


class DeadlineInput(BaseModel):
    task_id: Optional[str] = None
    title: str
    due_date: str


class HabitStreakInput(BaseModel):
    habit_id: str
    title: str
    target_value: int = 1
    streak: int = 0


class BriefingRequest(BaseModel):
    user_id: Optional[UUID] = None
    current_date: date
    todays_tasks: List[BriefingTaskInput] = Field(default_factory=list)
    yesterday_progress: Optional[str] = None
    habit_streaks: List[HabitStreakInput] = Field(default_factory=list)
    near_deadlines: List[DeadlineInput] = Field(default_factory=list)
    energy_levels: Optional[str] = None


class BacklogTask(BaseModel):
    task_id: str = ""
    title: str
    priority: Priority = "medium"
    due_date: str


class CompletionDay(BaseModel):
    day: str
    completed: int
    total: int


class DeadlinePressure(BaseModel):
    title: str
    days_until: int


class RescheduleRequest(BaseModel):
    user_id: Optional[UUID] = None
    current_week: str
    backlog_tasks: List[BacklogTask] = Field(default_factory=list)
    completion_history: List[CompletionDay] = Field(default_factory=list)
    deadline_pressure: List[DeadlinePressure] = Field(default_factory=list)
    stress_level: Optional[Literal["low", "medium", "high"]] = None
    energy_trends: Optional[str] = None
    fixed_commitments: List[str] = Field(default_factory=list)


class BriefingGenerateRequest(BaseModel):
    user_id: UUID
    target_date: Optional[date] = None
    include_yesterday_progress: bool = True


class RescheduleGenerateRequest(BaseModel):
    user_id: UUID


class GenerationResponse(BaseModel):
    suggestion_id: Optional[UUID]
    kind: SuggestionKind
    content: Optional[Dict[str, Any]]
    cached: bool = False
    fallback_used: bool = False
    message: str
    request_id: str


class ApplyOptionsPayload(BaseModel):
    apply_all: bool = True
    selected_items: Optional[List[str]] = None
    dry_run: bool = False


class ApplyRequest(BaseModel):
    user_id: UUID
    options: ApplyOptionsPayload = Field(default_factory=ApplyOptionsPayload)


class BatchApplyRequest(BaseModel):
    user_id: UUID
    suggestion_ids: List[UUID] = Field(..., min_length=1, max_length=10)
    options: ApplyOptionsPayload = Field(default_factory=ApplyOptionsPayload)


class ApplyResultPayload(BaseModel):
    success: bool
    message: str
    applied_items: List[str]
    skipped_items: List[str]
    errors: List[str]
    created_goals: int = 0
    created_tasks: int = 0
    updated_tasks: int = 0
    updated_events: int = 0
    partial_failure: bool = False


class SuggestionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    kind: SuggestionKind
    content: Dict[str, Any]
    applied: bool
    archived: bool
    created_at: datetime
    updated_at: datetime


class ApplyResponse(BaseModel):
    message: str
    suggestion: SuggestionSummary
    result: Optional[ApplyResultPayload]
    request_id: str


class BatchApplyItem(BaseModel):
    suggestion_id: UUID
    success: bool
    result: Optional[ApplyResultPayload] = None
    error: Optional[str] = None


class BatchApplyResponse(BaseModel):
    message: str
    results: List[BatchApplyItem]
    total: int
    successful: int
    failed: int
    request_id: str


class SuggestionActionRequest(BaseModel):
    user_id: UUID


class SuggestionActionResponse(BaseModel):
    message: str
    suggestion: SuggestionSummary
    request_id: str


class CleanupResponse(BaseModel):
    message: str
    deleted: int
    request_id: str


class SuggestionStatsResponse(BaseModel):
    total: int
    applied: int
    by_kind: Dict[str, int]
    application_rate: float


class UsageResponse(BaseModel):
    daily: Dict[str, int]
    daily_total: int
    monthly: int
    limits: Dict[str, int]
