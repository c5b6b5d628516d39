"""
Scheduling Module - Adaptive Scheduling

- AdaptiveSchedulingWorkflow: 8-stage pipeline producing a Proposal
- models: TimeBlock, Task, Change, Proposal and the pipeline state
- helpers: gaps, inefficiencies, task scoring, summaries
"""
from .models import (
    BLOCK_TYPES,
    Change,
    EmailSummary,
    Gap,
    Inefficiency,
    Insight,
    Proposal,
    ScheduleMetrics,
    SchedulingState,
    Strategy,
    Task,
    TimeBlock,
    UserPreferences,
)
from .helpers import OverlappingBlocksError, find_gaps, score_task

__all__ = [
    "BLOCK_TYPES",
    "Change",
    "EmailSummary",
    "Gap",
    "Inefficiency",
    "Insight",
    "Proposal",
    "ScheduleMetrics",
    "SchedulingState",
    "Strategy",
    "Task",
    "TimeBlock",
    "UserPreferences",
    "OverlappingBlocksError",
    "find_gaps",
    "score_task",
]
