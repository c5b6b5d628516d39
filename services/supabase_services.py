"""
Supabase-backed collaborator services
Thin adapters from table rows to scheduling models. No retries; failures
propagate so the caller can degrade.
"""
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from scheduling.models import EmailSummary, Task, TimeBlock, UserPreferences
from utils import supabase_client
from .interfaces import EmailService, PreferenceService, ScheduleService, TaskService


class SupabaseScheduleService(ScheduleService):
    def get_schedule_for_date(self, user_id: str, day: date, timezone: str) -> list[TimeBlock]:
        tz = ZoneInfo(timezone)
        start = datetime.combine(day, time.min, tzinfo=tz)
        end = start + timedelta(days=1)
        rows = supabase_client.get_time_blocks(user_id, start.isoformat(), end.isoformat())
        blocks = [TimeBlock.from_dict(row) for row in rows]
        for block in blocks:
            block.start_time = block.start_time.astimezone(tz)
            block.end_time = block.end_time.astimezone(tz)
        return blocks


class SupabaseTaskService(TaskService):
    def get_task_backlog(self, user_id: str) -> list[Task]:
        return [Task.from_dict(row) for row in supabase_client.get_task_backlog(user_id)]

    def get_unassigned_tasks(self, user_id: str) -> list[Task]:
        return [Task.from_dict(row) for row in supabase_client.get_unassigned_tasks(user_id)]


class SupabasePreferenceService(PreferenceService):
    def get_user_preferences(self, user_id: str) -> UserPreferences:
        return UserPreferences.from_dict(supabase_client.get_user_preferences(user_id))


class SupabaseEmailService(EmailService):
    def list_recent(self, user_id: str, query: str = "", max_results: int = 50) -> list[EmailSummary]:
        terms = set(query.lower().split())
        unread_only = "is:unread" in terms and "is:starred" not in terms
        rows = supabase_client.get_recent_emails(user_id, unread_only=unread_only, limit=max_results)
        emails = [EmailSummary.from_dict(row) for row in rows]
        if "is:unread" in terms and "is:starred" in terms:
            emails = [e for e in emails if e.is_unread or e.is_starred]
        elif "is:starred" in terms:
            emails = [e for e in emails if e.is_starred]
        return emails
