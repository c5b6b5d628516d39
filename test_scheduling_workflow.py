"""
Tests for the adaptive scheduling workflow: strategy selection, the
change each strategy proposes, lunch protection, metrics and how the
pipeline degrades when a stage fails
"""
from conftest import (
    DAY,
    FakeClock,
    FakeEmailService,
    FakePreferenceService,
    FakeScheduleService,
    FakeTaskService,
    emails,
    make_block,
)
from scheduling.helpers import find_gaps
from scheduling.metrics import calculate_metrics
from scheduling.models import (
    Gap,
    RagContext,
    SchedulingData,
    SchedulingState,
    Strategy,
    Task,
    UserPreferences,
)
from scheduling.strategies import determine_strategy, match_tasks_to_blocks
from scheduling.workflow import AdaptiveSchedulingWorkflow


def _workflow(blocks=(), tasks=(), preferences=None, email=None, **kwargs):
    return AdaptiveSchedulingWorkflow(
        FakeScheduleService({DAY: list(blocks)}),
        FakeTaskService(unassigned=list(tasks)),
        FakePreferenceService(preferences),
        email,
        fetch_timeout=2,
        **kwargs,
    )


def _run(workflow, **kwargs):
    return workflow.run("u1", DAY, timezone="America/New_York", **kwargs)


def _times(change):
    return change.params["start_time"], change.params["end_time"]


def _fragmented_day():
    return [
        make_block("w1", "work", "09:00", "10:00"),
        make_block("w2", "work", "10:20", "11:00"),
        make_block("w3", "work", "13:00", "14:00"),
        make_block("w4", "work", "16:00", "17:00"),
    ]


# ========================
# Full day
# ========================

def test_empty_day_gets_full_skeleton():
    proposal = _run(_workflow())

    assert proposal.strategy == Strategy.FULL
    titles = [c.params["title"] for c in proposal.proposed_changes]
    assert titles == ["Morning Deep Work", "Lunch Break", "Afternoon Tasks"]
    assert [_times(c) for c in proposal.proposed_changes] == [
        ("09:00", "11:00"),
        ("12:00", "13:00"),
        ("13:30", "15:30"),
    ]
    lunch = proposal.proposed_changes[1]
    assert lunch.protected
    assert lunch.confidence == 1.0


def test_full_day_email_block_grows_with_urgent_backlog():
    proposal = _run(_workflow(email=FakeEmailService(emails(urgent=6))))
    email_block = next(c for c in proposal.proposed_changes if c.params.get("type") == "email")
    assert _times(email_block) == ("11:00", "12:00")

    proposal = _run(_workflow(email=FakeEmailService(emails(urgent=1, other=2))))
    email_block = next(c for c in proposal.proposed_changes if c.params.get("type") == "email")
    assert _times(email_block) == ("11:00", "11:30")


def test_full_day_email_block_stops_at_early_lunch():
    prefs = UserPreferences(lunch_start_time="11:15")
    proposal = _run(_workflow(preferences=prefs, email=FakeEmailService(emails(other=3))))
    by_type = {c.params["type"]: c for c in proposal.proposed_changes if c.params.get("type") != "work"}

    assert _times(by_type["email"]) == ("11:00", "11:15")
    assert _times(by_type["break"]) == ("11:15", "12:15")
    assert proposal.metrics.total_blocks == 4


def test_full_day_preview_contains_new_blocks():
    proposal = _run(_workflow())

    assert len(proposal.optimized_schedule) == 3
    assert all(b.is_preview for b in proposal.optimized_schedule)
    assert proposal.optimized_schedule[0].start_time.hour == 9
    assert proposal.metrics.focus_time == 240


# ========================
# Optimize
# ========================

def test_fragmented_day_is_consolidated_around_lunch():
    prefs = UserPreferences(lunch_start_time="12:00")
    proposal = _run(_workflow(_fragmented_day(), preferences=prefs))

    assert proposal.strategy == Strategy.OPTIMIZE
    consolidate = next(c for c in proposal.proposed_changes if c.type == "consolidate")
    assert _times(consolidate) == ("13:00", "16:40")
    assert consolidate.params["block_ids"] == ["w1", "w2", "w3", "w4"]

    moves = {c.params["block_id"]: _times(c) for c in proposal.proposed_changes if c.type == "move"}
    assert moves == {
        "w1": ("13:00", "14:00"),
        "w2": ("14:00", "14:40"),
        "w3": ("14:40", "15:40"),
        "w4": ("15:40", "16:40"),
    }

    lunch = next(c for c in proposal.proposed_changes if c.params.get("type") == "break")
    assert lunch.protected
    assert _times(lunch) == ("12:00", "13:00")


def test_optimize_metrics():
    prefs = UserPreferences(lunch_start_time="12:00")
    proposal = _run(_workflow(_fragmented_day(), preferences=prefs))
    metrics = proposal.metrics

    assert metrics.fragmentation_score == 0.5
    assert metrics.efficiency_gain == 45
    assert metrics.energy_alignment == 50.0
    assert metrics.focus_time == 220


def test_preview_does_not_touch_current_schedule():
    blocks = _fragmented_day()
    proposal = _run(_workflow(blocks, preferences=UserPreferences(lunch_start_time="12:00")))

    assert blocks[0].start_time.hour == 9
    assert [b.start_time.strftime("%H:%M") for b in proposal.current_schedule] == [
        "09:00", "10:20", "13:00", "16:00",
    ]
    moved = {b.id: b for b in proposal.optimized_schedule}
    assert moved["w1"].start_time.strftime("%H:%M") == "13:00"
    assert moved["w1"].is_preview


# ========================
# Task only / partial
# ========================

def test_tasks_and_a_usable_gap_means_task_only(high_task, low_task):
    blocks = [make_block("w", "work", "09:00", "13:00"), make_block("m", "meeting", "14:30", "17:00")]
    proposal = _run(_workflow(blocks, tasks=[high_task, low_task]))

    assert proposal.strategy == Strategy.TASK_ONLY
    assert len(proposal.proposed_changes) == 1
    assign = proposal.proposed_changes[0]
    assert assign.type == "assign"
    assert assign.params == {"task_id": "t-high", "block_id": "w"}
    preview = {b.id: b for b in proposal.optimized_schedule}
    assert preview["w"].task_ids == ["t-high"]
    assert proposal.metrics.tasks_assigned == 1


def test_missing_lunch_is_called_out():
    blocks = [make_block("w", "work", "09:00", "13:00"), make_block("m", "meeting", "14:30", "17:00")]
    proposal = _run(_workflow(blocks))
    assert any("No lunch break" in i.content for i in proposal.insights)


def test_large_gap_without_tasks_means_partial():
    blocks = [make_block("m1", "meeting", "09:00", "10:00"), make_block("m2", "meeting", "15:00", "17:00")]
    proposal = _run(_workflow(blocks))

    assert proposal.strategy == Strategy.PARTIAL
    assert len(proposal.proposed_changes) == 1
    fill = proposal.proposed_changes[0]
    assert fill.params["title"] == "Task Block"
    assert _times(fill) == ("10:00", "15:00")
    assert fill.confidence == 0.7


def test_partial_fill_keeps_preferred_lunch():
    blocks = [make_block("m1", "meeting", "09:00", "10:00"), make_block("m2", "meeting", "15:00", "17:00")]
    proposal = _run(_workflow(blocks, preferences=UserPreferences(lunch_start_time="12:00")))

    assert proposal.strategy == Strategy.PARTIAL
    fill = next(c for c in proposal.proposed_changes if c.params.get("title") == "Task Block")
    assert _times(fill) == ("10:00", "15:00")

    lunch = next(c for c in proposal.proposed_changes if c.params.get("type") == "break")
    assert lunch.protected
    assert lunch.params["title"] == "Lunch"
    assert _times(lunch) == ("12:00", "13:00")
    assert lunch.conflicts == ["Task Block"]


def test_capacity_limits_task_matching():
    blocks = [make_block("w", "work", "09:00", "10:30")]
    tasks = [
        Task(id="a", title="A", priority="high", estimated_minutes=60, score=90),
        Task(id="b", title="B", priority="high", estimated_minutes=60, score=80),
        Task(id="c", title="C", priority="high", score=70),
    ]
    pairs = match_tasks_to_blocks(tasks, SchedulingData(date=DAY, current_schedule=blocks))
    assert [(t.id, b) for t, b in pairs] == [("a", "w"), ("c", "w")]


def test_pattern_preference_breaks_ties():
    blocks = [make_block("w", "work", "09:00", "17:00")]
    data = SchedulingData(date=DAY, current_schedule=blocks, gaps=find_gaps(blocks, DAY))
    rag = RagContext(patterns=[{"type": "preference", "content": "prefers the optimize scheduling strategy"}])

    assert determine_strategy(data) == Strategy.TASK_ONLY
    assert determine_strategy(data, rag) == Strategy.OPTIMIZE


def test_strategy_table_order():
    assert determine_strategy(SchedulingData(date=DAY)) == Strategy.FULL

    blocks = [make_block("m", "meeting", "09:00", "10:00")]
    gap = Gap(start_time=blocks[0].end_time, end_time=blocks[0].end_time, duration=45)
    data = SchedulingData(date=DAY, current_schedule=blocks, gaps=[gap], available_tasks=[Task(id="t", title="T")])
    assert determine_strategy(data) == Strategy.TASK_ONLY


# ========================
# Invariants and degradation
# ========================

def test_protected_lunch_survives_a_conflicting_meeting(high_task):
    blocks = [make_block("w", "work", "09:00", "11:00"), make_block("m", "meeting", "12:00", "12:30")]
    proposal = _run(_workflow(blocks, tasks=[high_task], preferences=UserPreferences(lunch_start_time="12:00")))

    lunch = next(c for c in proposal.proposed_changes if c.params.get("type") == "break")
    assert lunch.protected
    assert lunch.conflicts == ["m (12:00)"]


def test_existing_lunch_is_not_duplicated(high_task):
    blocks = [make_block("w", "work", "09:00", "11:00"), make_block("l", "break", "12:00", "13:00")]
    proposal = _run(_workflow(blocks, tasks=[high_task], preferences=UserPreferences(lunch_start_time="12:00")))
    assert not any(c.params.get("type") == "break" for c in proposal.proposed_changes)


def test_email_digest_query_and_backlog_warning():
    email = FakeEmailService(emails(urgent=2, other=10))
    proposal = _run(_workflow(email=email))

    assert email.queries == ["is:unread OR is:starred"]
    assert any("12 unread/starred emails" in i.content for i in proposal.insights)


def test_failed_fetch_degrades_to_empty_input():
    workflow = AdaptiveSchedulingWorkflow(
        FakeScheduleService(error=ConnectionError("db unreachable")),
        FakeTaskService(),
        FakePreferenceService(),
        fetch_timeout=2,
    )
    proposal = _run(workflow)

    assert proposal.strategy == Strategy.FULL
    assert any("Could not load schedule" in i.content for i in proposal.insights)


def test_failing_stage_is_recorded_and_pipeline_continues():
    blocks = [make_block("a", "work", "09:00", "10:00"), make_block("b", "meeting", "09:30", "11:00")]
    proposal = _run(_workflow(blocks))

    assert proposal is not None
    assert proposal.strategy == Strategy.TASK_ONLY
    assert any("analyze_state" in i.content and i.type == "warning" for i in proposal.insights)


def test_failing_pattern_provider_does_not_stop_planning():
    def broken_provider(user_id, day):
        raise RuntimeError("history store offline")

    proposal = _run(_workflow(pattern_provider=broken_provider))

    assert proposal.strategy == Strategy.FULL
    assert proposal.proposed_changes


def test_deadline_skips_remaining_stages():
    clock = FakeClock()
    proposal = _run(_workflow(clock=clock), timeout=0)

    assert proposal.strategy is None
    assert proposal.proposed_changes == []
    assert any("partial" in i.content for i in proposal.insights)


def test_metrics_are_idempotent():
    prefs = UserPreferences(lunch_start_time="12:00")
    workflow = _workflow(_fragmented_day(), preferences=prefs)
    proposal = _run(workflow)

    state = SchedulingState(user_id="u1", data=SchedulingData(date=DAY, current_schedule=proposal.current_schedule))
    state.proposed_changes = proposal.proposed_changes
    assert calculate_metrics(state) == calculate_metrics(state)
    assert calculate_metrics(state) == proposal.metrics


def test_proposal_serializes():
    result = _run(_workflow()).to_dict()

    assert result["date"] == "2026-10-19"
    assert result["strategy"] == "full"
    assert len(result["blocks"]) == 3
    assert result["blocks"][0]["isPreview"] is True
    assert set(result["metrics"]) == {
        "totalBlocks", "focusTime", "fragmentationScore", "tasksAssigned", "efficiencyGain", "energyAlignment",
    }
    assert result["nextSteps"][0] == "Review and confirm the proposed changes"
