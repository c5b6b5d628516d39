"""
Context Builder
Gathers the user's schedule, backlog and preferences into one immutable
snapshot for classification and routing.

Fetches run concurrently. build() never raises: if any core fetch fails the
caller gets a degraded context (zero counts, no blocks) and routing carries on.
"""
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from config import settings
from scheduling.helpers import score_task, sort_blocks
from scheduling.models import Gap, Task, TimeBlock, UserPreferences
from services.interfaces import EmailService, PreferenceService, ScheduleService, TaskService
from utils import get_logger
from .types import (
    EmailState,
    OrchestrationContext,
    RejectedAction,
    ScheduleState,
    TaskState,
    UserPatterns,
    ViewingContext,
)

logger = get_logger(__name__)

WORKDAY_MINUTES = 8 * 60
CONTEXT_GAP_MINUTES = 15
TOP_TASK_COUNT = 5
URGENCY_THRESHOLD = 70
OVERDUE_DAYS = 7

TaskScorer = Callable[[Task], float]


def _now(tz: ZoneInfo) -> datetime:
    return datetime.now(tz)


class ContextBuilder:
    """Builds an OrchestrationContext per request from injected services"""

    def __init__(
        self,
        schedule_service: ScheduleService,
        task_service: TaskService,
        preference_service: PreferenceService,
        email_service: EmailService | None = None,
        fetch_timeout: float | None = None,
        now: Callable[[ZoneInfo], datetime] = _now,
    ):
        self.schedule_service = schedule_service
        self.task_service = task_service
        self.preference_service = preference_service
        self.email_service = email_service
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        self.now = now

    def build(
        self,
        user_id: str,
        timezone: str | None = None,
        viewing_date: date | None = None,
        rejected_actions: Iterable[RejectedAction] = (),
        task_scorer: TaskScorer | None = None,
    ) -> OrchestrationContext:
        timezone = timezone or settings.DEFAULT_TIMEZONE
        rejected = tuple(rejected_actions)
        try:
            tz = ZoneInfo(timezone)
        except Exception:
            logger.warning(f"Unknown timezone {timezone!r}, falling back to UTC")
            timezone, tz = "UTC", ZoneInfo("UTC")
        now = self.now(tz)

        started = time.monotonic()
        try:
            context = self._build(user_id, timezone, now, viewing_date, rejected, task_scorer or score_task)
        except Exception as e:
            logger.warning(f"Context build failed for {user_id}, using degraded context: {e}")
            return self._degraded(user_id, timezone, now, viewing_date, rejected)

        logger.info(f"Built context for {user_id} in {(time.monotonic() - started) * 1000:.0f}ms")
        return context

    def _build(
        self,
        user_id: str,
        timezone: str,
        now: datetime,
        viewing_date: Optional[date],
        rejected: tuple[RejectedAction, ...],
        scorer: TaskScorer,
    ) -> OrchestrationContext:
        today = now.date()
        viewing_other_day = viewing_date is not None and viewing_date != today

        fetches = {
            "schedule": lambda: self.schedule_service.get_schedule_for_date(user_id, today, timezone),
            "tasks": lambda: self.task_service.get_task_backlog(user_id),
            "preferences": lambda: self.preference_service.get_user_preferences(user_id),
        }
        optional = {}
        if viewing_other_day:
            optional["view_schedule"] = lambda: self.schedule_service.get_schedule_for_date(
                user_id, viewing_date, timezone
            )
        if self.email_service is not None:
            optional["emails"] = lambda: self.email_service.list_recent(user_id, "is:unread", 50)

        executor = ThreadPoolExecutor(max_workers=len(fetches) + len(optional))
        try:
            core = {name: executor.submit(fn) for name, fn in fetches.items()}
            extra = {name: executor.submit(fn) for name, fn in optional.items()}
            results = {name: f.result(timeout=self.fetch_timeout) for name, f in core.items()}
            for name, future in extra.items():
                try:
                    results[name] = future.result(timeout=self.fetch_timeout)
                except Exception as e:
                    logger.warning(f"Optional context fetch {name} failed for {user_id}: {e}")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        blocks = sort_blocks(results["schedule"] or [])
        tasks: list[Task] = list(results["tasks"] or [])
        prefs: UserPreferences = results["preferences"] or UserPreferences()

        if viewing_other_day:
            view_blocks = tuple(sort_blocks(results.get("view_schedule") or []))
        else:
            view_blocks = tuple(blocks)

        return OrchestrationContext(
            user_id=user_id,
            current_time=now,
            timezone=timezone,
            schedule_state=self._schedule_state(blocks, now),
            task_state=self._task_state(tasks, scorer),
            email_state=self._email_state(results.get("emails") or []),
            user_patterns=UserPatterns(
                typical_start_time=prefs.typical_start_time or prefs.work_start_time,
                preferred_block_duration=prefs.preferred_block_duration,
                rejected_actions=rejected,
            ),
            viewing_context=ViewingContext(
                is_viewing_today=not viewing_other_day,
                schedule_date=viewing_date if viewing_other_day else today,
                view_date_schedule=view_blocks,
            ),
        )

    @staticmethod
    def _schedule_state(blocks: list[TimeBlock], now: datetime) -> ScheduleState:
        total = sum(b.duration_minutes for b in blocks)
        utilization = min(100, round(total / WORKDAY_MINUTES * 100))
        next_block = next((b for b in blocks if b.start_time >= now), None)

        gaps = []
        for previous, current in zip(blocks, blocks[1:]):
            minutes = int((current.start_time - previous.end_time).total_seconds() // 60)
            if minutes > CONTEXT_GAP_MINUTES:
                gaps.append(Gap(start_time=previous.end_time, end_time=current.start_time, duration=minutes))

        return ScheduleState(
            has_blocks_today=bool(blocks),
            next_block=next_block,
            utilization=utilization,
            gaps=tuple(gaps),
        )

    @staticmethod
    def _task_state(tasks: list[Task], scorer: TaskScorer) -> TaskState:
        urgent = sum(1 for t in tasks if t.priority == "high" or t.urgency > URGENCY_THRESHOLD)
        overdue = sum(1 for t in tasks if t.days_in_backlog > OVERDUE_DAYS)

        # Scored copies; the service's Task objects stay untouched
        titled = [replace(t, score=scorer(t)) for t in tasks if t.title and t.title.strip()]
        top = sorted(titled, key=lambda t: t.score, reverse=True)[:TOP_TASK_COUNT]

        return TaskState(
            pending_count=len(tasks),
            urgent_count=urgent,
            overdue_count=overdue,
            top_tasks=tuple(top),
        )

    @staticmethod
    def _email_state(emails: list) -> EmailState:
        return EmailState(
            unread_count=sum(1 for e in emails if e.is_unread),
            urgent_count=sum(1 for e in emails if e.urgency == "urgent"),
            important_count=sum(1 for e in emails if e.importance == "important"),
        )

    @staticmethod
    def _degraded(
        user_id: str,
        timezone: str,
        now: datetime,
        viewing_date: Optional[date],
        rejected: tuple[RejectedAction, ...],
    ) -> OrchestrationContext:
        today = now.date()
        return OrchestrationContext(
            user_id=user_id,
            current_time=now,
            timezone=timezone,
            user_patterns=UserPatterns(rejected_actions=rejected) if rejected else None,
            viewing_context=ViewingContext(
                is_viewing_today=viewing_date is None or viewing_date == today,
                schedule_date=viewing_date or today,
            ),
            degraded=True,
        )
