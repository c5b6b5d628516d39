"""
Scheduling strategies
Strategy selection table plus one change generator per strategy. Generators
append insights to the state and return the changes they propose.
"""
from datetime import datetime, timedelta

from .helpers import (
    add_minutes,
    find_gaps,
    is_lunch_time,
    is_morning,
    minutes_between,
    parse_hhmm,
)
from .models import Change, Gap, RagContext, SchedulingData, SchedulingState, Strategy, Task, TimeBlock

# Used for capacity matching when a task carries no estimate
DEFAULT_TASK_MINUTES = 30


def determine_strategy(data: SchedulingData, rag_context: RagContext | None = None) -> Strategy:
    """
    Decision table, first match wins:
    empty day, heavy inefficiency, tasks plus a usable gap, a large gap,
    then the historical preference (if any).
    """
    if not data.current_schedule:
        return Strategy.FULL
    if len(data.inefficiencies) >= 3 and any(i.severity == "high" for i in data.inefficiencies):
        return Strategy.OPTIMIZE
    if data.available_tasks and any(g.duration >= 30 for g in data.gaps):
        return Strategy.TASK_ONLY
    if any(g.duration >= 60 for g in data.gaps):
        return Strategy.PARTIAL

    patterns = rag_context.patterns if rag_context else []
    prefers_optimize = any(
        p.get("type") == "preference" and "scheduling strategy" in p.get("content", "")
        for p in patterns
    )
    return Strategy.OPTIMIZE if prefers_optimize else Strategy.TASK_ONLY


def _create_block(data: SchedulingData, block_type: str, title: str, start: str, end: str, description: str) -> dict:
    return {
        "operation": "createTimeBlock",
        "params": {
            "date": data.date.isoformat(),
            "type": block_type,
            "title": title,
            "start_time": start,
            "end_time": end,
            "description": description,
        },
    }


def _urgent_email_count(data: SchedulingData) -> int:
    return sum(1 for e in data.email_backlog if e.urgency == "urgent")


def _hhmm(gap: Gap, attr: str) -> str:
    return getattr(gap, attr).strftime("%H:%M")


def plan_full_day(state: SchedulingState) -> list[Change]:
    data = state.data
    prefs = data.preferences
    changes = []
    urgent = _urgent_email_count(data)

    lunch_start = prefs.lunch_start_time or "12:00"
    lunch_end = add_minutes(lunch_start, prefs.lunch_duration_minutes)

    changes.append(Change(
        type="create",
        entity="block",
        data=_create_block(data, "work", "Morning Deep Work", "09:00", "11:00",
                           "High-energy focus time for complex tasks"),
        reason="Peak cognitive hours are best for deep work",
        impact={"focusTime": "+120min", "energyAlignment": "high"},
        confidence=0.9,
    ))

    if data.email_backlog:
        email_end = "12:00" if urgent > 5 else "11:30"
        # Don't run the triage block into lunch
        if 0 < minutes_between("11:00", lunch_start) < minutes_between("11:00", email_end):
            email_end = lunch_start
        changes.append(Change(
            type="create",
            entity="block",
            data=_create_block(data, "email", "Email Triage & Response", "11:00", email_end,
                               f"Process {len(data.email_backlog)} emails ({urgent} urgent)"),
            reason=f"{len(data.email_backlog)} emails waiting, {urgent} urgent",
            impact={"emailsProcessed": len(data.email_backlog)},
            confidence=0.85,
        ))

    changes.append(Change(
        type="create",
        entity="block",
        data=_create_block(data, "break", "Lunch Break", lunch_start, lunch_end,
                           "Protected time for meal and recharge"),
        reason="Regular breaks sustain afternoon energy",
        impact={"wellbeing": "high"},
        confidence=1.0,
        protected=True,
    ))

    afternoon_start = "13:30" if minutes_between(lunch_end, "13:30") >= 0 else lunch_end
    changes.append(Change(
        type="create",
        entity="block",
        data=_create_block(data, "work", "Afternoon Tasks", afternoon_start, add_minutes(afternoon_start, 120),
                           "Medium-priority tasks and administrative work"),
        reason="Lower-energy hours suit routine work",
        impact={"focusTime": "+120min", "energyAlignment": "medium"},
        confidence=0.8,
    ))

    state.add_insight(
        "recommendation",
        f"Created full-day schedule optimized for energy levels with {len(data.email_backlog)} emails to process",
        0.9,
    )
    return changes


def plan_optimize(state: SchedulingState) -> list[Change]:
    """Consolidate fragmented work blocks into the earliest span that fits them"""
    data = state.data
    prefs = data.preferences
    work_blocks = sorted((b for b in data.current_schedule if b.type == "work"), key=lambda b: b.start_time)
    if len(work_blocks) <= 2:
        state.add_insight("observation", "Found 0 optimization opportunities to reduce fragmentation", 0.85)
        return []

    total = sum(b.duration_minutes for b in work_blocks)
    obstacles = [b for b in data.current_schedule if b.type != "work"]

    # Keep the preferred lunch hour out of the consolidated span
    if prefs.lunch_start_time and not any(is_lunch_time(b) for b in obstacles):
        tz = work_blocks[0].start_time.tzinfo
        lunch_start = datetime.combine(data.date, parse_hhmm(prefs.lunch_start_time), tzinfo=tz)
        lunch = TimeBlock(
            id="lunch",
            type="break",
            title="Lunch",
            start_time=lunch_start,
            end_time=lunch_start + timedelta(minutes=prefs.lunch_duration_minutes),
        )
        if not any(b.start_time < lunch.end_time and lunch.start_time < b.end_time for b in obstacles):
            obstacles.append(lunch)

    spans = find_gaps(obstacles, data.date, prefs.work_start_time, prefs.work_end_time, min_minutes=total)
    if not spans:
        state.add_insight(
            "warning",
            f"Work blocks total {total} minutes but no free span is long enough to consolidate them",
            0.8,
        )
        return []

    span_start = _hhmm(spans[0], "start_time")
    span_end = add_minutes(span_start, total)
    changes = [Change(
        type="consolidate",
        entity="block",
        data={
            "operation": "consolidateWorkBlocks",
            "params": {
                "date": data.date.isoformat(),
                "block_ids": [b.id for b in work_blocks],
                "start_time": span_start,
                "end_time": span_end,
            },
        },
        reason="Consolidate fragmented focus time",
        impact={"focusImprovement": "+25%", "contextSwitching": "-50%"},
        confidence=0.75,
    )]

    cursor = span_start
    for block in work_blocks:
        new_end = add_minutes(cursor, block.duration_minutes)
        if block.start_time.strftime("%H:%M") != cursor:
            changes.append(Change(
                type="move",
                entity="block",
                data={
                    "operation": "moveTimeBlock",
                    "params": {
                        "date": data.date.isoformat(),
                        "block_id": block.id,
                        "start_time": cursor,
                        "end_time": new_end,
                    },
                },
                reason=f"Move \"{block.title}\" into one contiguous focus span",
                impact={"contextSwitching": "-1"},
                confidence=0.75,
            ))
        cursor = new_end

    state.add_insight(
        "observation",
        f"Found 1 optimization opportunity to reduce fragmentation ({len(work_blocks)} work blocks)",
        0.85,
    )
    return changes


def plan_partial(state: SchedulingState) -> list[Change]:
    data = state.data
    urgent = _urgent_email_count(data)
    has_high_priority = any(t.priority == "high" for t in data.available_tasks)
    changes = []

    for gap in data.gaps:
        if gap.duration < 60:
            continue
        start, end = _hhmm(gap, "start_time"), _hhmm(gap, "end_time")
        high_energy = 9 <= gap.start_time.hour < 11

        if high_energy and has_high_priority:
            changes.append(Change(
                type="create",
                entity="block",
                data=_create_block(data, "work", "Focus Block - High Priority", start, end,
                                   "Deep work on high-priority tasks"),
                reason=f"Utilizing {gap.duration}-minute gap during peak hours",
                impact={"focusTime": f"+{gap.duration}min", "energyAlignment": "high"},
                confidence=0.9,
            ))
        elif urgent > 3:
            changes.append(Change(
                type="create",
                entity="block",
                data=_create_block(data, "email", "Email Processing", start, end,
                                   "Handle urgent email backlog"),
                reason=f"{urgent} urgent emails pending",
                impact={"emailsProcessed": gap.duration // 5},
                confidence=0.8,
            ))
        else:
            changes.append(Change(
                type="create",
                entity="block",
                data=_create_block(data, "work", "Task Block", start, end, "General task work"),
                reason=f"Filling {gap.duration}-minute gap productively",
                impact={"focusTime": f"+{gap.duration}min"},
                confidence=0.7,
            ))

    state.add_insight("recommendation", f"Filled {len(changes)} gaps to maximize productive time", 0.8)
    return changes


def match_tasks_to_blocks(tasks: list[Task], data: SchedulingData) -> list[tuple[Task, str]]:
    """
    Greedy, capacity-aware: high-priority tasks in score order go to the
    earliest morning work block with enough remaining minutes.
    """
    candidates = sorted((t for t in tasks if t.priority == "high"), key=lambda t: -t.score)
    blocks = sorted(
        (b for b in data.current_schedule if b.type == "work" and is_morning(b)),
        key=lambda b: b.start_time,
    )
    remaining = {b.id: b.duration_minutes for b in blocks}

    pairs = []
    for task in candidates:
        needed = task.estimated_minutes or DEFAULT_TASK_MINUTES
        for block in blocks:
            if remaining[block.id] >= needed:
                remaining[block.id] -= needed
                pairs.append((task, block.id))
                break
    return pairs


def plan_task_only(state: SchedulingState) -> list[Change]:
    data = state.data
    changes = []

    for task, block_id in match_tasks_to_blocks(data.available_tasks, data):
        changes.append(Change(
            type="assign",
            entity="task",
            data={
                "operation": "assignTaskToBlock",
                "params": {"task_id": task.id, "block_id": block_id},
            },
            reason="High-priority task matched to peak energy time",
            impact={"productivity": 90},
            confidence=0.85,
        ))

    urgent = _urgent_email_count(data)
    if urgent > 5 and not any(b.type == "email" for b in data.current_schedule):
        state.add_insight(
            "warning",
            f"{urgent} urgent emails but no email blocks scheduled",
            0.9,
            metadata={"suggestion": "Consider adding email processing time"},
        )

    state.add_insight(
        "observation",
        f"Assigned {len(changes)} tasks based on priority and energy matching",
        0.85,
    )
    return changes


STRATEGY_PLANNERS = {
    Strategy.FULL: plan_full_day,
    Strategy.OPTIMIZE: plan_optimize,
    Strategy.PARTIAL: plan_partial,
    Strategy.TASK_ONLY: plan_task_only,
}
