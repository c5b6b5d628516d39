"""
Router
Maps a classified Intent to a concrete handler reference.

Beyond passing the suggested handler through, the router:
- canonicalizes tool names through the shared alias table
- defaults the date to the schedule the user is looking at
- resolves "this block" style references for the fill-block workflows,
  or leaves a morning/afternoon/evening hint when it can't

Pure in-memory lookup against the context; never calls a service.
"""
import re
from dataclasses import replace
from datetime import date, timedelta
from typing import Optional

from registry import FILL_EMAIL_BLOCK, FILL_WORK_BLOCK, VIEW_SCHEDULE, canonical_tool_name
from scheduling.helpers import parse_flexible_time
from scheduling.models import TimeBlock
from utils import get_logger
from .entity_extractor import extract_entities
from .types import DirectRef, HandlerRef, Intent, OrchestrationContext, ToolRef, WorkflowRef

logger = get_logger(__name__)

# Phrases the schedule view produces, e.g. Work on "Deep Work" from 09:00 to 11:00
BLOCK_PHRASE = re.compile(
    r'(work on|meeting|email block|break|blocked time)\s+"([^"]+)"\s+from\s+'
    r'(\d{1,2}:\d{2}(?:\s*[ap]m)?)\s+to\s+(\d{1,2}:\d{2}(?:\s*[ap]m)?)',
    re.IGNORECASE,
)
HOUR_WITH_SUFFIX = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE)
HOUR_AFTER_AT = re.compile(r"\bat\s+(\d{1,2})(?::(\d{2}))?\b", re.IGNORECASE)
DAY_PART = re.compile(r"\b(morning|afternoon|evening|tonight|night)\b", re.IGNORECASE)

BLOCK_TYPE_FOR_WORKFLOW = {
    FILL_WORK_BLOCK: "work",
    FILL_EMAIL_BLOCK: "email",
}

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def resolve_date_reference(reference: str, today: date) -> Optional[date]:
    """Turn an extracted date word into a calendar date"""
    ref = reference.strip().lower()
    if ref in ("today", "tonight"):
        return today
    if ref == "tomorrow":
        return today + timedelta(days=1)
    if ref == "yesterday":
        return today - timedelta(days=1)
    if ref in WEEKDAYS:
        return today + timedelta(days=(WEEKDAYS.index(ref) - today.weekday()) % 7)
    try:
        if re.fullmatch(r"\d{4}-\d{2}-\d{2}", ref):
            return date.fromisoformat(ref)
        if re.fullmatch(r"\d{1,2}/\d{1,2}", ref):
            month, day = (int(x) for x in ref.split("/"))
            return date(today.year, month, day)
    except ValueError:
        return None
    return None


def day_part(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def mentioned_hour(message: str) -> Optional[int]:
    """
    Hour of day mentioned as "2pm", "10:30 am" or "at 3".
    A bare 1-6 after "at" means afternoon.
    """
    match = HOUR_WITH_SUFFIX.search(message)
    if match:
        normalized = parse_flexible_time(match.group(0))
        return int(normalized[:2]) if normalized else None

    match = HOUR_AFTER_AT.search(message)
    if match:
        hour = int(match.group(1))
        if 1 <= hour <= 6:
            hour += 12
        return hour if hour <= 23 else None
    return None


class Router:
    """Turns an Intent into a HandlerRef. Stateless."""

    def route(self, intent: Intent, context: OrchestrationContext, raw_message: str) -> HandlerRef:
        handler = intent.suggested_handler
        if isinstance(handler, DirectRef):
            return handler

        handler = replace(handler, name=canonical_tool_name(handler.name))
        handler = replace(handler, params=replace(handler.params, extra=dict(handler.params.extra)))
        params = handler.params

        if params.date is not None:
            resolved = resolve_date_reference(str(params.date), context.current_time.date())
            if resolved is None:
                logger.warning(f"Dropping unparseable date '{params.date}' for {handler.name}")
            params.date = resolved.isoformat() if resolved else None
        if params.date is None:
            params.date = self._default_date(handler, intent, context, raw_message)

        expected_type = BLOCK_TYPE_FOR_WORKFLOW.get(handler.name)
        if isinstance(handler, WorkflowRef) and expected_type and params.block_id is None:
            self._resolve_block(handler, expected_type, context, raw_message)

        logger.info(f"Routed to {handler.type}:{handler.name} with {params.to_dict()}")
        return handler

    # ========================
    # Date defaulting
    # ========================

    def _default_date(
        self,
        handler: WorkflowRef | ToolRef,
        intent: Intent,
        context: OrchestrationContext,
        raw_message: str,
    ) -> Optional[str]:
        today = context.current_time.date()
        references = intent.entities.dates or extract_entities(raw_message).dates
        for reference in references:
            resolved = resolve_date_reference(reference, today)
            if resolved is not None:
                return resolved.isoformat()

        viewing = context.viewing_context
        if viewing and not viewing.is_viewing_today:
            return viewing.schedule_date_str
        if handler.name == VIEW_SCHEDULE:
            return viewing.schedule_date_str if viewing else today.isoformat()
        return None

    # ========================
    # Block reference resolution
    # ========================

    def _view_schedule(self, handler: WorkflowRef, context: OrchestrationContext) -> tuple[TimeBlock, ...]:
        viewing = context.viewing_context
        if viewing is None:
            return ()
        # The snapshot only holds blocks for the viewed date
        if handler.params.date and handler.params.date != viewing.schedule_date_str:
            return ()
        return viewing.view_date_schedule

    def _resolve_block(
        self,
        handler: WorkflowRef,
        expected_type: str,
        context: OrchestrationContext,
        raw_message: str,
    ) -> None:
        blocks = self._view_schedule(handler, context)
        params = handler.params

        match = BLOCK_PHRASE.search(raw_message)
        if match:
            title = match.group(2)
            start = parse_flexible_time(match.group(3))
            end = parse_flexible_time(match.group(4))
            for block in blocks:
                if (
                    block.title == title
                    and block.start_time.strftime("%H:%M") == start
                    and block.end_time.strftime("%H:%M") == end
                ):
                    params.block_id = block.id
                    logger.info(f"Resolved block reference to {block.id} ({block.title})")
                    return
            # An explicit phrase that matches nothing is not retried by hour
            hour = int(start[:2]) if start else None
        else:
            hour = mentioned_hour(raw_message)

        if hour is not None and not match:
            candidates = [b for b in blocks if b.type == expected_type and b.start_time.hour == hour]
            if len(candidates) == 1:
                params.block_id = candidates[0].id
                logger.info(f"Resolved {hour}:00 to block {candidates[0].id} ({candidates[0].title})")
                return

        params.block_time = self._block_time_hint(raw_message, hour, context)
        logger.info(f"Could not resolve a {expected_type} block, passing hint '{params.block_time}'")

    @staticmethod
    def _block_time_hint(raw_message: str, hour: Optional[int], context: OrchestrationContext) -> str:
        if hour is not None:
            return day_part(hour)
        match = DAY_PART.search(raw_message)
        if match:
            word = match.group(1).lower()
            return "evening" if word in ("tonight", "night") else word
        return day_part(context.current_time.hour)
