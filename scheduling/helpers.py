"""
Schedule helpers
Gap finding, inefficiency detection, task scoring and the small text
utilities shared by the scheduling pipeline and the orchestration layer.
"""
import re
from collections import Counter
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Optional

from .models import Change, Gap, Inefficiency, Task, TimeBlock

MIN_GAP_MINUTES = 15
LUNCH_WINDOW = (time(11, 30), time(13, 30))
MORNING_WINDOW = (9, 12)

PRIORITY_WEIGHT = {"high": 100, "medium": 60, "low": 30}


class OverlappingBlocksError(ValueError):
    """Raised when a block list contains overlapping intervals"""
    pass


def parse_hhmm(value: str) -> time:
    """Parse a strict HH:MM string"""
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def minutes_between(start: str, end: str) -> int:
    """Minutes from one HH:MM to another on the same day (negative if reversed)"""
    s, e = parse_hhmm(start), parse_hhmm(end)
    return (e.hour * 60 + e.minute) - (s.hour * 60 + s.minute)


def add_minutes(value: str, minutes: int) -> str:
    base = datetime.combine(date(2000, 1, 1), parse_hhmm(value)) + timedelta(minutes=minutes)
    return base.strftime("%H:%M")


def parse_flexible_time(text: str) -> Optional[str]:
    """
    Normalize loose time input to HH:MM.
    Handles "9am", "9 am", "9:00", "3:30pm", "15:30". Returns None when
    nothing parseable is found.
    """
    if not text:
        return None
    normalized = text.strip().lower()

    match = re.search(r"(\d{1,2}):(\d{2})\s*(am|pm)?", normalized)
    if match:
        hour, minute, suffix = int(match.group(1)), int(match.group(2)), match.group(3)
    else:
        match = re.search(r"(\d{1,2})\s*(am|pm)?", normalized)
        if not match:
            return None
        hour, minute, suffix = int(match.group(1)), 0, match.group(2)

    if hour > 23 or minute > 59:
        return None
    if suffix == "pm" and hour != 12:
        hour += 12
    elif suffix == "am" and hour == 12:
        hour = 0
    if hour > 23:
        return None
    return f"{hour:02d}:{minute:02d}"


def sort_blocks(blocks: Iterable[TimeBlock]) -> list[TimeBlock]:
    """Sort blocks by start time; overlapping input is a caller error"""
    ordered = sorted(blocks, key=lambda b: b.start_time)
    for previous, current in zip(ordered, ordered[1:]):
        if current.start_time < previous.end_time:
            raise OverlappingBlocksError(
                f"Block {current.id} starts at {current.start_time:%H:%M} "
                f"before block {previous.id} ends at {previous.end_time:%H:%M}"
            )
    return ordered


def find_gaps(
    blocks: list[TimeBlock],
    day: date,
    work_start: str = "09:00",
    work_end: str = "17:00",
    tz: Optional[tzinfo] = None,
    min_minutes: int = MIN_GAP_MINUTES,
) -> list[Gap]:
    """Unscheduled intervals of at least min_minutes inside the work day"""
    ordered = sort_blocks(blocks)
    if tz is None and ordered:
        tz = ordered[0].start_time.tzinfo
    day_start = datetime.combine(day, parse_hhmm(work_start), tzinfo=tz)
    day_end = datetime.combine(day, parse_hhmm(work_end), tzinfo=tz)

    gaps: list[Gap] = []
    cursor = day_start
    for block in ordered:
        gap_end = min(block.start_time, day_end)
        if gap_end > cursor:
            duration = int((gap_end - cursor).total_seconds() // 60)
            if duration >= min_minutes:
                gaps.append(Gap(start_time=cursor, end_time=gap_end, duration=duration))
        cursor = max(cursor, block.end_time)

    if day_end > cursor:
        duration = int((day_end - cursor).total_seconds() // 60)
        if duration >= min_minutes:
            gaps.append(Gap(start_time=cursor, end_time=day_end, duration=duration))
    return gaps


def detect_inefficiencies(blocks: list[TimeBlock], gaps: list[Gap]) -> list[Inefficiency]:
    """Short gaps, fragmented focus time and late deep work"""
    inefficiencies = []

    for gap in gaps:
        if MIN_GAP_MINUTES <= gap.duration < 30:
            inefficiencies.append(Inefficiency(
                type="gap",
                description=f"{gap.duration}-minute gap is too short for productive work",
                severity="medium",
            ))

    work_blocks = [b for b in blocks if b.type == "work"]
    if len(work_blocks) > 3:
        inefficiencies.append(Inefficiency(
            type="fragmentation",
            description="Focus time is fragmented across too many blocks",
            severity="high",
            affected_blocks=[b.id for b in work_blocks],
        ))

    for block in work_blocks:
        if block.start_time.hour >= 16:
            inefficiencies.append(Inefficiency(
                type="poor_timing",
                description="Deep work scheduled too late in the day",
                severity="medium",
                affected_blocks=[block.id],
            ))

    return inefficiencies


def is_lunch_time(block: TimeBlock) -> bool:
    """A break starting between 11:30 and 13:30"""
    start = block.start_time.time()
    return block.type == "break" and LUNCH_WINDOW[0] <= start <= LUNCH_WINDOW[1]


def is_morning(block: TimeBlock) -> bool:
    return MORNING_WINDOW[0] <= block.start_time.hour < MORNING_WINDOW[1]


def calculate_energy_match(task: Task, energy: str = "medium") -> int:
    """How well a task's weight fits the user's current energy level (0-100)"""
    complexity = task.priority if task.priority in ("high", "low") else "medium"
    if energy == complexity:
        return 100
    if energy == "high" and complexity == "low":
        return 50
    if energy == "low" and complexity == "high":
        return 25
    return 75


def score_task(task: Task, energy: str = "medium") -> float:
    """
    Composite backlog score.
    Energy level is an external signal; callers without one get "medium".
    """
    priority = PRIORITY_WEIGHT.get(task.priority, 60)
    urgency = max(0, min(100, task.urgency))
    age = min(task.days_in_backlog * 2, 20)
    energy_match = calculate_energy_match(task, energy)
    return round(priority * 0.4 + urgency * 0.3 + energy_match * 0.1 + age, 2)


def generate_natural_summary(changes: list[Change]) -> str:
    """Group proposed changes by type into one readable sentence"""
    counts = Counter(c.type for c in changes)
    parts = []

    block_creates = sum(1 for c in changes if c.type == "create" and c.entity == "block")
    task_creates = sum(1 for c in changes if c.type == "create" and c.entity == "task")
    if block_creates:
        parts.append(f"Creating {block_creates} new time blocks")
    if task_creates:
        parts.append(f"Creating {task_creates} new tasks")
    if counts["move"]:
        parts.append(f"Moving {counts['move']} items to better times")
    if counts["delete"]:
        parts.append(f"Removing {counts['delete']} items")
    if counts["assign"]:
        parts.append(f"Assigning {counts['assign']} tasks to time blocks")
    if counts["consolidate"]:
        parts.append("Consolidating schedule for better efficiency")

    if not parts:
        return "No changes needed - your schedule looks good!"
    return ", ".join(parts) + "."


def format_time_range(start: str, end: str) -> str:
    """09:00, 10:30 -> 9:00 AM - 10:30 AM"""
    def fmt(value: str) -> str:
        t = parse_hhmm(value)
        return datetime.combine(date(2000, 1, 1), t).strftime("%I:%M %p").lstrip("0")
    return f"{fmt(start)} - {fmt(end)}"
