"""ORM models exposed for metadata discovery."""
from planner.db.models.calendar_event import CalendarEvent
from planner.db.models.goal import Goal
from planner.db.models.habit import Habit
from planner.db.models.suggestion import Suggestion
from planner.db.models.task import Task
from planner.db.models.user import User

__all__ = [
    "CalendarEvent",
    "Goal",
    "Habit",
    "Suggestion",
    "Task",
    "User",
]
