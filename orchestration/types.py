"""
Orchestration types
The per-request context snapshot, classified intents and the handler
references the router produces.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from scheduling.models import Gap, Proposal, Task, TimeBlock


class IntentCategory(Enum):
    WORKFLOW = "workflow"
    TOOL = "tool"
    CONVERSATION = "conversation"


class IntentSource(Enum):
    """Where an intent came from (diagnostic only)"""
    LLM = "llm"
    CACHE = "cache"
    REJECTION = "rejection"
    FALLBACK = "fallback"


# ========================
# Context snapshot
# ========================

@dataclass(frozen=True)
class ScheduleState:
    has_blocks_today: bool = False
    next_block: Optional[TimeBlock] = None
    utilization: int = 0
    gaps: tuple[Gap, ...] = ()


@dataclass(frozen=True)
class TaskState:
    pending_count: int = 0
    urgent_count: int = 0
    overdue_count: int = 0
    top_tasks: tuple[Task, ...] = ()


@dataclass(frozen=True)
class EmailState:
    unread_count: int = 0
    urgent_count: int = 0
    important_count: int = 0


@dataclass(frozen=True)
class RejectedAction:
    """A proposal the user turned down; message is stored normalized"""
    message: str
    reason: str
    rejected_at: datetime


@dataclass(frozen=True)
class UserPatterns:
    typical_start_time: Optional[str] = None
    preferred_block_duration: int = 60
    common_requests: tuple[str, ...] = ()
    rejected_actions: tuple[RejectedAction, ...] = ()


@dataclass(frozen=True)
class ViewingContext:
    is_viewing_today: bool
    schedule_date: date
    view_date_schedule: tuple[TimeBlock, ...] = ()

    @property
    def schedule_date_str(self) -> str:
        return self.schedule_date.isoformat()


@dataclass(frozen=True)
class OrchestrationContext:
    """Immutable snapshot of a user's state, built fresh per request"""
    user_id: str
    current_time: datetime
    timezone: str
    schedule_state: ScheduleState = field(default_factory=ScheduleState)
    task_state: TaskState = field(default_factory=TaskState)
    email_state: EmailState = field(default_factory=EmailState)
    user_patterns: Optional[UserPatterns] = None
    viewing_context: Optional[ViewingContext] = None
    degraded: bool = False

    @property
    def has_schedule(self) -> bool:
        return self.schedule_state.has_blocks_today

    @property
    def task_pressure(self) -> bool:
        return self.task_state.urgent_count > 0

    @property
    def email_pressure(self) -> bool:
        return self.email_state.urgent_count > 0

    def to_summary(self) -> str:
        """Render the snapshot as prompt text"""
        lines = [f"Current time: {self.current_time:%A %Y-%m-%d %H:%M} ({self.timezone})"]

        s = self.schedule_state
        if s.has_blocks_today:
            lines.append(f"Schedule today: {s.utilization}% utilized, {len(s.gaps)} gaps")
            if s.next_block:
                lines.append(
                    f"Next block: {s.next_block.title} ({s.next_block.type}) at {s.next_block.start_time:%H:%M}"
                )
        else:
            lines.append("Schedule today: no blocks")

        t = self.task_state
        lines.append(f"Tasks: {t.pending_count} pending, {t.urgent_count} urgent, {t.overdue_count} overdue")
        for task in t.top_tasks:
            lines.append(f"- {task.title} ({task.priority})")

        e = self.email_state
        lines.append(f"Emails: {e.unread_count} unread, {e.urgent_count} urgent, {e.important_count} important")

        v = self.viewing_context
        if v and not v.is_viewing_today:
            lines.append(f"User is viewing the schedule for {v.schedule_date_str}")
            for block in v.view_date_schedule:
                lines.append(f"- {block.title} ({block.type}) {block.start_time:%H:%M}-{block.end_time:%H:%M}")

        if self.user_patterns and self.user_patterns.rejected_actions:
            lines.append("Recently rejected:")
            for rejected in self.user_patterns.rejected_actions[-5:]:
                lines.append(f"- \"{rejected.message}\" ({rejected.reason})")

        return "\n".join(lines)


# ========================
# Intents and handler references
# ========================

@dataclass
class IntentEntities:
    dates: list[str] = field(default_factory=list)
    times: list[str] = field(default_factory=list)
    people: list[str] = field(default_factory=list)
    tasks: list[str] = field(default_factory=list)
    duration: Optional[int] = None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {
            "dates": list(self.dates),
            "times": list(self.times),
            "people": list(self.people),
            "tasks": list(self.tasks),
        }
        if self.duration is not None:
            result["duration"] = self.duration
        return result


@dataclass
class WorkflowParams:
    date: Optional[str] = None
    block_id: Optional[str] = None
    block_time: Optional[str] = None    # morning | afternoon | evening
    duration: Optional[int] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        result = {k: v for k, v in (
            ("date", self.date),
            ("blockId", self.block_id),
            ("blockTime", self.block_time),
            ("duration", self.duration),
        ) if v is not None}
        result.update(self.extra)
        return result


@dataclass
class ToolParams:
    date: Optional[str] = None
    block_id: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[int] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        result = {k: v for k, v in (
            ("date", self.date),
            ("blockId", self.block_id),
            ("time", self.time),
            ("duration", self.duration),
        ) if v is not None}
        result.update(self.extra)
        return result


@dataclass
class WorkflowRef:
    name: str
    params: WorkflowParams = field(default_factory=WorkflowParams)
    type: str = field(default="workflow", init=False)

    def to_dict(self) -> dict:
        return {"type": self.type, "name": self.name, "params": self.params.to_dict()}


@dataclass
class ToolRef:
    name: str
    params: ToolParams = field(default_factory=ToolParams)
    type: str = field(default="tool", init=False)

    def to_dict(self) -> dict:
        return {"type": self.type, "name": self.name, "params": self.params.to_dict()}


@dataclass
class DirectRef:
    reason: str = ""
    type: str = field(default="direct", init=False)

    def to_dict(self) -> dict:
        return {"type": self.type, "params": {"reason": self.reason} if self.reason else {}}


HandlerRef = Union[WorkflowRef, ToolRef, DirectRef]


@dataclass
class Intent:
    """Classifier output, consumed immediately by the router"""
    category: IntentCategory
    confidence: float
    suggested_handler: HandlerRef
    reasoning: str
    entities: IntentEntities = field(default_factory=IntentEntities)
    subcategory: Optional[str] = None
    source: IntentSource = IntentSource.LLM

    def to_dict(self) -> dict:
        result = {
            "category": self.category.value,
            "confidence": self.confidence,
            "entities": self.entities.to_dict(),
            "suggestedHandler": self.suggested_handler.to_dict(),
            "reasoning": self.reasoning,
        }
        if self.subcategory:
            result["subcategory"] = self.subcategory
        return result


@dataclass
class IntentCacheEntry:
    intent: Intent
    timestamp: float
    context_hash: str


@dataclass
class OrchestrationResult:
    """What the request-handling layer gets back for one message"""
    intent: Intent
    handler: HandlerRef
    processing_time: float
    context: Optional[OrchestrationContext] = None
    proposal: Optional[Proposal] = None
    awaiting_approval: bool = False
    message: Optional[str] = None

    @property
    def cached(self) -> bool:
        return self.intent.source == IntentSource.CACHE

    def to_dict(self) -> dict:
        return {
            "intent": self.intent.to_dict(),
            "handler": self.handler.to_dict(),
            "cached": self.cached,
            "processingTime": self.processing_time,
            "proposal": self.proposal.to_dict() if self.proposal else None,
            "awaitingApproval": self.awaiting_approval,
            "message": self.message,
        }
