"""
Services module - collaborator interfaces and their Supabase implementations
"""
from .interfaces import EmailService, PreferenceService, ScheduleService, TaskService
from .supabase_services import (
    SupabaseEmailService,
    SupabasePreferenceService,
    SupabaseScheduleService,
    SupabaseTaskService,
)

__all__ = [
    "ScheduleService",
    "TaskService",
    "PreferenceService",
    "EmailService",
    "SupabaseScheduleService",
    "SupabaseTaskService",
    "SupabasePreferenceService",
    "SupabaseEmailService",
]
