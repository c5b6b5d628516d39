"""
End-to-end orchestration tests: context -> classify -> route -> plan, and
the approve / reject boundary around scheduling proposals
"""
import json
from datetime import datetime

import pytest

from config.settings import Settings
from conftest import (
    DAY,
    NY,
    FakeGenaiClient,
    FakePreferenceService,
    FakeScheduleService,
    FakeTaskService,
    make_block,
)
from orchestration.classifier import IntentClassifier
from orchestration.context_builder import ContextBuilder
from orchestration.intent_cache import IntentCache
from orchestration.orchestrator import (
    MAX_REJECTIONS_PER_USER,
    Orchestrator,
    _reply_kind,
    build_orchestrator,
)
from orchestration.router import Router
from orchestration.types import DirectRef, IntentSource, ToolRef, WorkflowRef
from scheduling.models import Strategy
from scheduling.workflow import AdaptiveSchedulingWorkflow


def _fixed_now(tz):
    return datetime(2026, 10, 19, 8, 0, tzinfo=NY).astimezone(tz)


def _orchestrator(blocks=(), change_applier=None, classifier=None):
    schedule = FakeScheduleService({DAY: list(blocks)})
    tasks = FakeTaskService()
    preferences = FakePreferenceService()
    return Orchestrator(
        context_builder=ContextBuilder(schedule, tasks, preferences, fetch_timeout=2, now=_fixed_now),
        classifier=classifier or IntentClassifier(client=None, cache=IntentCache()),
        router=Router(),
        scheduling_workflow=AdaptiveSchedulingWorkflow(schedule, tasks, preferences, fetch_timeout=2),
        change_applier=change_applier,
    )


class RecordingApplier:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, user_id, proposal):
        self.calls.append((user_id, proposal))
        if self.error:
            raise self.error


def test_plan_my_day_end_to_end():
    orchestrator = _orchestrator()
    result = orchestrator.process_message("Plan my day", "u1", "America/New_York")

    assert isinstance(result.handler, WorkflowRef)
    assert result.handler.name == "workflow_optimizeSchedule"
    assert result.intent.confidence == 0.7
    assert result.intent.source == IntentSource.FALLBACK
    assert result.proposal.strategy == Strategy.FULL
    assert result.proposal.date == DAY
    assert result.awaiting_approval
    assert "Should I go ahead" in result.message
    assert orchestrator.get_pending_proposal("u1") is result.proposal


def test_approval_hands_proposal_to_applier():
    applier = RecordingApplier()
    orchestrator = _orchestrator(change_applier=applier)
    planned = orchestrator.process_message("Plan my day", "u1", "America/New_York")

    result = orchestrator.process_message("yes, go ahead", "u1", "America/New_York")

    assert result.handler == DirectRef(reason="proposal_approved")
    assert applier.calls == [("u1", planned.proposal)]
    assert orchestrator.get_pending_proposal("u1") is None
    assert result.message == "Done! Applied 3 changes."


def test_llm_date_word_is_planned_not_failed():
    response = {
        "category": "workflow",
        "confidence": 0.9,
        "entities": {"dates": ["today"]},
        "suggestedHandler": {"type": "workflow", "name": "optimizeSchedule", "params": {"date": "today"}},
        "reasoning": "Plan for today",
    }
    classifier = IntentClassifier(client=FakeGenaiClient(text=json.dumps(response)), cache=IntentCache(), timeout=2)
    result = _orchestrator(classifier=classifier).process_message("Plan my day", "u1", "America/New_York")

    assert result.intent.source == IntentSource.LLM
    assert result.handler.params.date == "2026-10-19"
    assert result.proposal is not None
    assert result.proposal.date == DAY
    assert result.awaiting_approval


def test_new_request_while_proposal_pending_is_not_an_approval():
    applier = RecordingApplier()
    orchestrator = _orchestrator(change_applier=applier)
    planned = orchestrator.process_message("Plan my day", "u1", "America/New_York")

    result = orchestrator.process_message("Let's go over my emails", "u1", "America/New_York")

    assert applier.calls == []
    assert isinstance(result.handler, ToolRef)
    assert result.handler.name == "email_getBacklog"
    assert orchestrator.get_pending_proposal("u1") is planned.proposal


def test_failed_apply_is_reported():
    orchestrator = _orchestrator(change_applier=RecordingApplier(error=RuntimeError("write failed")))
    orchestrator.process_message("Plan my day", "u1", "America/New_York")

    result = orchestrator.respond_to_proposal("u1", "ok")

    assert result.handler == DirectRef(reason="apply_failed")
    assert "write failed" in result.message


def test_rejection_is_remembered_for_the_next_request():
    applier = RecordingApplier()
    orchestrator = _orchestrator(change_applier=applier)
    orchestrator.process_message("Plan my day", "u1", "America/New_York")

    rejected = orchestrator.process_message("no thanks", "u1", "America/New_York")
    assert rejected.handler == DirectRef(reason="proposal_rejected")
    assert applier.calls == []
    assert orchestrator.rejected_actions["u1"][0].message == "plan my day"

    again = orchestrator.process_message("Plan my day", "u1", "America/New_York")
    assert again.handler == DirectRef(reason="previously_rejected")
    assert again.intent.source == IntentSource.REJECTION
    assert again.proposal is None


def test_unclear_reply_keeps_proposal_pending():
    orchestrator = _orchestrator()
    orchestrator.process_message("Plan my day", "u1", "America/New_York")

    result = orchestrator.respond_to_proposal("u1", "maybe later")

    assert result.awaiting_approval
    assert result.handler == DirectRef(reason="awaiting_approval")
    assert orchestrator.get_pending_proposal("u1") is not None


def test_reply_without_pending_proposal():
    result = _orchestrator().respond_to_proposal("u1", "yes")
    assert result.handler == DirectRef(reason="no_pending_proposal")


def test_proposals_are_per_user():
    orchestrator = _orchestrator()
    orchestrator.process_message("Plan my day", "u1", "America/New_York")

    result = orchestrator.process_message("yes", "u2", "America/New_York")

    assert result.handler.type == "direct"
    assert result.handler.reason != "proposal_approved"
    assert orchestrator.get_pending_proposal("u1") is not None


def test_tool_requests_are_routed_not_executed():
    blocks = [make_block("w", "work", "09:00", "10:00")]
    result = _orchestrator(blocks).process_message("show my schedule", "u1", "America/New_York")

    assert isinstance(result.handler, ToolRef)
    assert result.handler.name == "schedule_viewSchedule"
    assert result.handler.params.date == "2026-10-19"
    assert result.proposal is None
    assert not result.awaiting_approval


def test_day_without_changes_is_not_held():
    blocks = [
        make_block("w", "work", "09:00", "12:00"),
        make_block("l", "break", "12:00", "13:00"),
        make_block("w2", "work", "13:00", "17:00"),
    ]
    orchestrator = _orchestrator(blocks)
    result = orchestrator.process_message("Plan my day", "u1", "America/New_York")

    assert result.proposal is not None
    assert result.proposal.proposed_changes == []
    assert not result.awaiting_approval
    assert orchestrator.get_pending_proposal("u1") is None


def test_unexpected_error_becomes_direct_error_result():
    class BrokenClassifier:
        def classify(self, message, context, timeout=None):
            raise RuntimeError("classifier exploded")

    result = _orchestrator(classifier=BrokenClassifier()).process_message("Plan my day", "u1")

    assert result.handler == DirectRef(reason="error")
    assert result.intent.confidence == 0.0
    assert "something went wrong" in result.message


def test_rejections_are_capped_per_user():
    orchestrator = _orchestrator()
    for i in range(MAX_REJECTIONS_PER_USER + 5):
        orchestrator.record_rejection("u1", f"request {i}", "no")

    actions = orchestrator.rejected_actions["u1"]
    assert len(actions) == MAX_REJECTIONS_PER_USER
    assert actions[-1].message == f"request {MAX_REJECTIONS_PER_USER + 4}"


def test_result_serializes():
    result = _orchestrator().process_message("Plan my day", "u1", "America/New_York").to_dict()

    assert result["handler"] == {"type": "workflow", "name": "workflow_optimizeSchedule", "params": {}}
    assert result["cached"] is False
    assert result["awaitingApproval"] is True
    assert result["proposal"]["strategy"] == "full"


@pytest.mark.parametrize("message,kind", [
    ("yes", "approve"),
    ("Sounds good!", "approve"),
    ("go ahead", "approve"),
    ("no", "reject"),
    ("never mind", "reject"),
    ("yes... actually don't", "reject"),
    ("no thanks", "reject"),
    ("ok", "approve"),
    ("what about lunch?", None),
    ("nothing", None),
    ("maybe later", None),
    ("Let's go over my emails", None),
    ("Is it ok to move my 3pm?", None),
    ("go over my emails", None),
    ("cancel my 3pm meeting", None),
])
def test_reply_kind(message, kind):
    assert _reply_kind(message) == kind


def test_build_orchestrator_requires_credentials(monkeypatch):
    monkeypatch.setattr(Settings, "SUPABASE_URL", "")
    with pytest.raises(ValueError, match="SUPABASE_URL"):
        build_orchestrator()
