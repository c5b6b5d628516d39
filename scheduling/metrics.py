"""
Proposal metrics, schedule preview and next steps.
All functions are pure over a SchedulingState.
"""
from datetime import datetime
from zoneinfo import ZoneInfo

from .helpers import is_morning, minutes_between, parse_hhmm
from .models import ScheduleMetrics, SchedulingState, TimeBlock


def total_focus_time(state: SchedulingState) -> int:
    """Existing work minutes plus work minutes of proposed new blocks"""
    existing = sum(b.duration_minutes for b in state.data.current_schedule if b.type == "work")
    added = sum(
        minutes_between(c.params["start_time"], c.params["end_time"])
        for c in state.proposed_changes
        if c.type == "create" and c.entity == "block" and c.params.get("type") == "work"
    )
    return existing + added


def fragmentation_score(state: SchedulingState) -> float:
    """Lower is better"""
    work_blocks = sum(1 for b in state.data.current_schedule if b.type == "work")
    consolidations = sum(1 for c in state.proposed_changes if c.type == "consolidate")
    base = 0.7 if work_blocks > 3 else 0.4 if work_blocks > 1 else 0.1
    return round(max(0.1, base - consolidations * 0.2), 2)


def efficiency_gain(state: SchedulingState) -> int:
    changes = state.proposed_changes
    gain = (
        10 * sum(1 for c in changes if c.type == "move")
        + 5 * sum(1 for c in changes if c.type == "create")
        + 8 * sum(1 for c in changes if c.type == "assign")
    )
    return min(gain, 50)


def energy_alignment(state: SchedulingState) -> float:
    """Share of existing work blocks that start in the 9-12 window, as a percentage"""
    work_blocks = [b for b in state.data.current_schedule if b.type == "work"]
    if not work_blocks:
        return 0.0
    morning = sum(1 for b in work_blocks if is_morning(b))
    return round(morning / len(work_blocks) * 100, 1)


def calculate_metrics(state: SchedulingState) -> ScheduleMetrics:
    return ScheduleMetrics(
        total_blocks=len(state.data.current_schedule)
        + sum(1 for c in state.proposed_changes if c.type == "create"),
        focus_time=total_focus_time(state),
        fragmentation_score=fragmentation_score(state),
        tasks_assigned=sum(1 for c in state.proposed_changes if c.type == "assign"),
        efficiency_gain=efficiency_gain(state),
        energy_alignment=energy_alignment(state),
    )


def apply_changes_to_schedule(state: SchedulingState) -> list[TimeBlock]:
    """
    Preview of the day with every proposed change applied.
    The current schedule is copied, never modified.
    """
    data = state.data
    tz = ZoneInfo(data.timezone)

    def at(value: str) -> datetime:
        return datetime.combine(data.date, parse_hhmm(value), tzinfo=tz)

    preview = {
        b.id: TimeBlock(
            id=b.id,
            type=b.type,
            title=b.title,
            start_time=b.start_time,
            end_time=b.end_time,
            task_ids=list(b.task_ids),
            description=b.description,
        )
        for b in data.current_schedule
    }

    for index, change in enumerate(state.proposed_changes):
        params = change.params
        if change.type == "create" and change.entity == "block":
            block_id = f"preview-{index}"
            preview[block_id] = TimeBlock(
                id=block_id,
                type=params.get("type", "work"),
                title=params.get("title", ""),
                start_time=at(params["start_time"]),
                end_time=at(params["end_time"]),
                description=params.get("description"),
                is_preview=True,
            )
        elif change.type == "move" and params.get("block_id") in preview:
            block = preview[params["block_id"]]
            block.start_time = at(params["start_time"])
            block.end_time = at(params["end_time"])
            block.is_preview = True
        elif change.type == "delete" and params.get("block_id") in preview:
            del preview[params["block_id"]]
        elif change.type == "assign" and params.get("block_id") in preview:
            preview[params["block_id"]].task_ids.append(params["task_id"])

    return sorted(preview.values(), key=lambda b: b.start_time)


def generate_next_steps(state: SchedulingState) -> list[str]:
    data = state.data
    steps = []

    if state.proposed_changes:
        steps.append("Review and confirm the proposed changes")
        steps.append("Execute the schedule optimization")
    if any(e.urgency == "urgent" for e in data.email_backlog):
        steps.append("Process urgent emails during scheduled email blocks")
    if sum(1 for t in data.available_tasks if t.priority == "high") > 3:
        steps.append("Prioritize high-impact tasks in morning blocks")
    if not any(b.type == "break" for b in data.current_schedule):
        steps.append("Ensure breaks are protected throughout the day")

    return steps


def empty_metrics() -> ScheduleMetrics:
    return ScheduleMetrics(
        total_blocks=0,
        focus_time=0,
        fragmentation_score=0.1,
        tasks_assigned=0,
        efficiency_gain=0,
        energy_alignment=0.0,
    )


def elapsed_ms(start: float, now: float) -> float:
    return round((now - start) * 1000, 1)
