"""
Scheduling domain models
Time blocks, tasks, email digest entries and the working state of the
adaptive scheduling pipeline.
"""
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

BLOCK_TYPES = ("work", "meeting", "email", "break", "blocked")


class Strategy(Enum):
    """High-level approach chosen for one scheduling run"""
    FULL = "full"               # Empty day, build a skeleton
    OPTIMIZE = "optimize"       # Fragmented day, consolidate
    PARTIAL = "partial"         # Large gaps, fill them
    TASK_ONLY = "task_only"     # Keep blocks, assign tasks


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class TimeBlock:
    """A scheduled interval of a specific type"""
    id: str
    type: str
    title: str
    start_time: datetime
    end_time: datetime
    task_ids: list[str] = field(default_factory=list)
    description: Optional[str] = None
    is_preview: bool = False

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    @classmethod
    def from_dict(cls, data: dict) -> "TimeBlock":
        return cls(
            id=str(data["id"]),
            type=data.get("type", "work"),
            title=data.get("title") or "",
            start_time=_parse_datetime(data["start_time"]),
            end_time=_parse_datetime(data["end_time"]),
            task_ids=list(data.get("task_ids") or []),
            description=data.get("description"),
        )

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "taskIds": list(self.task_ids),
        }
        if self.description:
            result["description"] = self.description
        if self.is_preview:
            result["isPreview"] = True
        return result


@dataclass
class Task:
    """A backlog task"""
    id: str
    title: Optional[str]
    priority: str = "medium"        # high | medium | low
    urgency: int = 50               # 0-100
    days_in_backlog: int = 0
    estimated_minutes: Optional[int] = None
    status: str = "backlog"
    score: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(
            id=str(data["id"]),
            title=data.get("title"),
            priority=data.get("priority") or "medium",
            urgency=int(data.get("urgency") if data.get("urgency") is not None else 50),
            days_in_backlog=int(data.get("days_in_backlog") or 0),
            estimated_minutes=data.get("estimated_minutes"),
            status=data.get("status") or "backlog",
            score=float(data.get("score") or 0.0),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "priority": self.priority,
            "urgency": self.urgency,
            "daysInBacklog": self.days_in_backlog,
            "estimatedMinutes": self.estimated_minutes,
            "status": self.status,
            "score": self.score,
        }


@dataclass
class EmailSummary:
    """Digest entry for one email; importance/urgency are classified upstream"""
    id: str
    sender: str = "Unknown"
    subject: str = "No subject"
    received_at: Optional[datetime] = None
    importance: str = "not_important"   # important | not_important
    urgency: str = "can_wait"           # urgent | can_wait
    is_unread: bool = True
    is_starred: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "EmailSummary":
        received = data.get("received_at")
        return cls(
            id=str(data["id"]),
            sender=data.get("sender") or data.get("from") or "Unknown",
            subject=data.get("subject") or "No subject",
            received_at=_parse_datetime(received) if received else None,
            importance=data.get("importance") or "not_important",
            urgency=data.get("urgency") or "can_wait",
            is_unread=bool(data.get("is_unread", True)),
            is_starred=bool(data.get("is_starred", False)),
        )


@dataclass
class UserPreferences:
    """Working-day preferences, times are HH:MM in the user's timezone"""
    work_start_time: str = "09:00"
    work_end_time: str = "17:00"
    lunch_start_time: Optional[str] = None
    lunch_duration_minutes: int = 60
    typical_start_time: Optional[str] = None
    preferred_block_duration: int = 60

    @classmethod
    def from_dict(cls, data: dict | None) -> "UserPreferences":
        if not data:
            return cls()
        return cls(
            work_start_time=data.get("work_start_time") or "09:00",
            work_end_time=data.get("work_end_time") or "17:00",
            lunch_start_time=data.get("lunch_start_time"),
            lunch_duration_minutes=int(data.get("lunch_duration_minutes") or 60),
            typical_start_time=data.get("typical_start_time") or data.get("work_start_time"),
            preferred_block_duration=int(data.get("preferred_block_duration") or 60),
        )


@dataclass
class Gap:
    """Contiguous unscheduled interval"""
    start_time: datetime
    end_time: datetime
    duration: int

    def to_dict(self) -> dict:
        return {
            "startTime": self.start_time.strftime("%H:%M"),
            "endTime": self.end_time.strftime("%H:%M"),
            "duration": self.duration,
        }


@dataclass
class Inefficiency:
    type: str           # gap | fragmentation | poor_timing
    description: str
    severity: str       # low | medium | high
    affected_blocks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "description": self.description,
            "severity": self.severity,
            "affectedBlocks": list(self.affected_blocks),
        }


@dataclass
class Change:
    """
    A proposed, unapplied mutation.

    data = {"operation": <tool operation>, "params": {...}} where time
    params are HH:MM strings on the scheduling date.
    """
    type: str           # create | move | delete | assign | consolidate
    entity: str         # block | task
    data: dict
    reason: str
    impact: dict = field(default_factory=dict)
    confidence: float = 1.0
    conflicts: list[str] = field(default_factory=list)
    protected: bool = False

    @property
    def params(self) -> dict:
        return self.data.get("params", {})

    def to_dict(self) -> dict:
        result = {
            "type": self.type,
            "entity": self.entity,
            "data": self.data,
            "reason": self.reason,
            "impact": self.impact,
            "confidence": self.confidence,
        }
        if self.conflicts:
            result["conflicts"] = list(self.conflicts)
        if self.protected:
            result["protected"] = True
        return result


@dataclass
class Insight:
    type: str           # observation | warning | recommendation
    content: str
    confidence: float
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Optional[dict] = None

    def to_dict(self) -> dict:
        result = {
            "type": self.type,
            "content": self.content,
            "confidence": self.confidence,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.metadata:
            result["metadata"] = self.metadata
        return result


@dataclass
class RagContext:
    """Historical patterns available to strategy selection"""
    patterns: list[dict] = field(default_factory=list)
    recent_decisions: list[dict] = field(default_factory=list)
    similar_days: list[dict] = field(default_factory=list)


@dataclass
class SchedulingData:
    date: date
    timezone: str = "UTC"
    strategy: Optional[Strategy] = None
    current_schedule: list[TimeBlock] = field(default_factory=list)
    available_tasks: list[Task] = field(default_factory=list)
    email_backlog: list[EmailSummary] = field(default_factory=list)
    gaps: list[Gap] = field(default_factory=list)
    inefficiencies: list[Inefficiency] = field(default_factory=list)
    preferences: UserPreferences = field(default_factory=UserPreferences)


@dataclass
class ScheduleMetrics:
    total_blocks: int
    focus_time: int
    fragmentation_score: float
    tasks_assigned: int
    efficiency_gain: int
    energy_alignment: float

    def to_dict(self) -> dict:
        return {
            "totalBlocks": self.total_blocks,
            "focusTime": self.focus_time,
            "fragmentationScore": self.fragmentation_score,
            "tasksAssigned": self.tasks_assigned,
            "efficiencyGain": self.efficiency_gain,
            "energyAlignment": self.energy_alignment,
        }


@dataclass
class Proposal:
    """Final output of a scheduling run. Nothing in it has been applied."""
    date: date
    strategy: Optional[Strategy]
    current_schedule: list[TimeBlock]
    optimized_schedule: list[TimeBlock]
    metrics: ScheduleMetrics
    summary: str
    proposed_changes: list[Change] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)
    execution_time: float = 0.0

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "strategy": self.strategy.value if self.strategy else None,
            "blocks": [b.to_dict() for b in self.optimized_schedule],
            "changes": [c.to_dict() for c in self.proposed_changes],
            "metrics": self.metrics.to_dict(),
            "summary": self.summary,
            "insights": [i.to_dict() for i in self.insights],
            "nextSteps": list(self.next_steps),
            "currentSchedule": [b.to_dict() for b in self.current_schedule],
            "executionTime": self.execution_time,
        }


@dataclass
class SchedulingState:
    """Working memory shared by every pipeline stage"""
    user_id: str
    data: SchedulingData
    intent: Any = None
    rag_context: Optional[RagContext] = None
    proposed_changes: list[Change] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    start_time: float = field(default_factory=time.monotonic)
    result: Optional[Proposal] = None

    def add_insight(
        self,
        type: str,
        content: str,
        confidence: float,
        metadata: dict | None = None,
    ) -> None:
        self.insights.append(Insight(type=type, content=content, confidence=confidence, metadata=metadata))
