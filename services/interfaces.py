"""
Collaborator service interfaces.

The orchestration and scheduling layers only depend on these; any backing
store (Supabase, in-memory fakes in tests) implements them.
"""
from abc import ABC, abstractmethod
from datetime import date

from scheduling.models import EmailSummary, Task, TimeBlock, UserPreferences


class ScheduleService(ABC):
    @abstractmethod
    def get_schedule_for_date(self, user_id: str, day: date, timezone: str) -> list[TimeBlock]:
        """Blocks starting on the given local date, any order"""


class TaskService(ABC):
    @abstractmethod
    def get_task_backlog(self, user_id: str) -> list[Task]:
        """All incomplete tasks"""

    @abstractmethod
    def get_unassigned_tasks(self, user_id: str) -> list[Task]:
        """Backlog tasks not linked to any block"""


class PreferenceService(ABC):
    @abstractmethod
    def get_user_preferences(self, user_id: str) -> UserPreferences:
        """Working-day preferences, defaults when the user has none stored"""


class EmailService(ABC):
    @abstractmethod
    def list_recent(self, user_id: str, query: str = "", max_results: int = 50) -> list[EmailSummary]:
        """
        Recent emails matching a Gmail-style query.
        Only "is:unread" and "is:starred" need to be understood.
        """
