"""
Orchestrator
Request entry point: build context, classify, route, and run the day-planning
workflow when that's where the request lands.

Proposals from the scheduling workflow are never applied here. They wait in
pending_proposals until the user approves (handed to the change applier)
or rejects (remembered, so the same request isn't proposed again).
"""
import re
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone as dt_timezone
from threading import Lock
from typing import Any, Callable, Optional

from google import genai

from config import settings
from registry import DAY_PLANNING_WORKFLOWS
from scheduling.models import Proposal
from scheduling.workflow import AdaptiveSchedulingWorkflow
from services import (
    SupabaseEmailService,
    SupabasePreferenceService,
    SupabaseScheduleService,
    SupabaseTaskService,
)
from utils import get_logger
from .classifier import IntentClassifier
from .context_builder import ContextBuilder
from .intent_cache import IntentCache
from .rate_limiter import RateLimiter
from .router import Router
from .types import (
    DirectRef,
    Intent,
    IntentCategory,
    OrchestrationContext,
    OrchestrationResult,
    RejectedAction,
    WorkflowRef,
)

logger = get_logger(__name__)

APPROVAL_WORDS = {"yes", "y", "ok", "okay", "sure", "go", "approve", "approved", "proceed", "yep", "yup", "confirm"}
APPROVAL_PHRASES = ("do it", "sounds good", "looks good", "go ahead")
REJECTION_WORDS = {"no", "n", "cancel", "stop", "nevermind", "nope", "nah", "reject", "decline"}
REJECTION_PHRASES = ("never mind", "don't", "do not", "not now")
# Words a short yes/no answer may carry besides the answer itself
REPLY_FILLER = {"please", "thanks", "thank", "you", "actually", "that", "this", "all", "right", "fine", "great", "perfect", "then"}
REPLY_VOCABULARY = (
    APPROVAL_WORDS
    | REJECTION_WORDS
    | REPLY_FILLER
    | {word for phrase in APPROVAL_PHRASES + REJECTION_PHRASES for word in phrase.split()}
)
MAX_REPLY_WORDS = 5

MAX_REJECTIONS_PER_USER = 20

ChangeApplier = Callable[[str, Proposal], Any]


@dataclass
class PendingProposal:
    proposal: Proposal
    request: str            # normalized message that produced it
    created_at: datetime


def _normalize(message: str) -> str:
    return message.lower().strip()


def _reply_kind(message: str) -> Optional[str]:
    """
    'approve', 'reject' or None. Only a short, standalone yes/no answer
    counts; anything carrying other words is a new request. Rejection wins ties.
    """
    text = _normalize(message)
    tokens = re.findall(r"[a-z0-9']+", text)
    if not tokens or len(tokens) > MAX_REPLY_WORDS:
        return None
    if any(token not in REPLY_VOCABULARY for token in tokens):
        return None
    words = set(tokens)
    if words & REJECTION_WORDS or any(p in text for p in REJECTION_PHRASES):
        return "reject"
    if words & APPROVAL_WORDS or any(p in text for p in APPROVAL_PHRASES):
        return "approve"
    return None


def _direct_intent(reason: str, reasoning: str, confidence: float = 1.0) -> Intent:
    return Intent(
        category=IntentCategory.CONVERSATION,
        confidence=confidence,
        suggested_handler=DirectRef(reason=reason),
        reasoning=reasoning,
    )


class Orchestrator:
    """
    Handles one user message at a time per call; safe to share across threads.

    Flow:
    - pending proposal + yes/no reply -> respond_to_proposal
    - otherwise context -> classify -> route -> (scheduling workflow)
    """

    def __init__(
        self,
        context_builder: ContextBuilder,
        classifier: IntentClassifier,
        router: Router,
        scheduling_workflow: AdaptiveSchedulingWorkflow,
        change_applier: ChangeApplier | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.context_builder = context_builder
        self.classifier = classifier
        self.router = router
        self.scheduling_workflow = scheduling_workflow
        self.change_applier = change_applier
        self.clock = clock

        # Store proposals awaiting user approval, and what users turned down
        self.pending_proposals: dict[str, PendingProposal] = {}
        self.rejected_actions: dict[str, list[RejectedAction]] = {}
        self._lock = Lock()

    def process_message(
        self,
        message: str,
        user_id: str,
        timezone: str | None = None,
        viewing_date: date | None = None,
        timeout: float | None = None,
    ) -> OrchestrationResult:
        """Process a user message. Never raises."""
        started = self.clock()
        deadline = started + timeout if timeout is not None else None

        def remaining() -> float | None:
            return None if deadline is None else max(0.0, deadline - self.clock())

        try:
            # Step 0: Is the user answering a pending proposal?
            if self.get_pending_proposal(user_id) and _reply_kind(message):
                return self.respond_to_proposal(user_id, message)

            # Step 1: Context
            with self._lock:
                rejected = tuple(self.rejected_actions.get(user_id, ()))
            context = self.context_builder.build(user_id, timezone, viewing_date, rejected)

            # Step 2: Classify and route
            intent = self.classifier.classify(message, context, timeout=remaining())
            handler = self.router.route(intent, context, message)
            logger.info(f"Request for {user_id}: {intent.category.value} -> {handler.to_dict()}")

            # Step 3: Day planning runs here; other handlers belong to the caller
            proposal = None
            reply = None
            if isinstance(handler, WorkflowRef) and handler.name in DAY_PLANNING_WORKFLOWS:
                proposal = self._plan_day(user_id, message, handler, context, intent, remaining())
                reply = proposal.summary
                if proposal.proposed_changes:
                    reply += "\n\nShould I go ahead with these changes?"

            return OrchestrationResult(
                intent=intent,
                handler=handler,
                context=context,
                processing_time=round((self.clock() - started) * 1000, 1),
                proposal=proposal,
                awaiting_approval=bool(proposal and proposal.proposed_changes),
                message=reply,
            )

        except Exception as e:
            logger.exception("Orchestrator error")
            return OrchestrationResult(
                intent=_direct_intent("error", f"Unexpected error: {type(e).__name__}", confidence=0.0),
                handler=DirectRef(reason="error"),
                processing_time=round((self.clock() - started) * 1000, 1),
                message="I'm sorry, something went wrong. Please try again or rephrase your request.",
            )

    def _plan_day(
        self,
        user_id: str,
        message: str,
        handler: WorkflowRef,
        context: OrchestrationContext,
        intent: Intent,
        timeout: float | None,
    ) -> Proposal:
        target = context.current_time.date()
        if handler.params.date:
            try:
                target = date.fromisoformat(handler.params.date)
            except ValueError:
                logger.warning(f"Invalid plan date '{handler.params.date}', planning {target} instead")
        proposal = self.scheduling_workflow.run(
            user_id,
            target,
            timezone=context.timezone,
            intent=intent,
            timeout=timeout,
        )
        if proposal.proposed_changes:
            with self._lock:
                self.pending_proposals[user_id] = PendingProposal(
                    proposal=proposal,
                    request=_normalize(message),
                    created_at=datetime.now(dt_timezone.utc),
                )
            logger.info(f"Holding {len(proposal.proposed_changes)} changes for {user_id} pending approval")
        return proposal

    # ========================
    # Confirmation boundary
    # ========================

    def get_pending_proposal(self, user_id: str) -> Optional[Proposal]:
        with self._lock:
            pending = self.pending_proposals.get(user_id)
        return pending.proposal if pending else None

    def respond_to_proposal(self, user_id: str, message: str) -> OrchestrationResult:
        """Handle the user's answer to a pending proposal"""
        started = self.clock()
        kind = _reply_kind(message)

        with self._lock:
            pending = self.pending_proposals.get(user_id)
            if pending and kind:
                del self.pending_proposals[user_id]

        def result(reason: str, reasoning: str, reply: str, proposal=None, awaiting=False) -> OrchestrationResult:
            return OrchestrationResult(
                intent=_direct_intent(reason, reasoning),
                handler=DirectRef(reason=reason),
                processing_time=round((self.clock() - started) * 1000, 1),
                proposal=proposal,
                awaiting_approval=awaiting,
                message=reply,
            )

        if pending is None:
            return result("no_pending_proposal", "Nothing is waiting for approval", "There's nothing waiting for your approval.")

        if kind == "approve":
            count = len(pending.proposal.proposed_changes)
            if self.change_applier is None:
                logger.warning(f"Proposal approved for {user_id} but no change applier is configured")
                return result("proposal_approved", "User approved the proposal", f"Approved {count} changes.", pending.proposal)
            try:
                self.change_applier(user_id, pending.proposal)
            except Exception as e:
                logger.exception(f"Applying approved changes failed for {user_id}")
                return result(
                    "apply_failed",
                    f"Change applier failed: {type(e).__name__}",
                    f"I couldn't apply those changes: {e}",
                    pending.proposal,
                )
            logger.info(f"Applied {count} approved changes for {user_id}")
            return result("proposal_approved", "User approved the proposal", f"Done! Applied {count} changes.", pending.proposal)

        if kind == "reject":
            self.record_rejection(user_id, pending.request, message.strip() or "declined")
            return result(
                "proposal_rejected",
                "User rejected the proposal",
                "No problem, cancelled! What would you like to do instead?",
            )

        # Not a clear yes/no
        return result(
            "awaiting_approval",
            "Reply was neither approval nor rejection",
            f"I'm waiting for your approval. Say yes to proceed or no to cancel.\n\n{pending.proposal.summary}",
            pending.proposal,
            awaiting=True,
        )

    def record_rejection(self, user_id: str, request: str, reason: str) -> None:
        action = RejectedAction(
            message=_normalize(request),
            reason=reason,
            rejected_at=datetime.now(dt_timezone.utc),
        )
        with self._lock:
            actions = self.rejected_actions.setdefault(user_id, [])
            actions.append(action)
            del actions[:-MAX_REJECTIONS_PER_USER]
        logger.info(f"Recorded rejected action for {user_id}: {action.message[:50]}")


def build_orchestrator(change_applier: ChangeApplier | None = None) -> Orchestrator:
    """Wire the default Gemini + Supabase stack from settings"""
    missing = settings.validate()
    if missing:
        raise ValueError(f"Missing required settings: {', '.join(missing)}")

    schedule = SupabaseScheduleService()
    tasks = SupabaseTaskService()
    preferences = SupabasePreferenceService()
    emails = SupabaseEmailService()

    classifier = IntentClassifier(
        client=genai.Client(api_key=settings.GEMINI_API_KEY),
        cache=IntentCache(
            max_size=settings.INTENT_CACHE_MAX_SIZE,
            ttl_seconds=settings.INTENT_CACHE_TTL_SECONDS,
        ),
        rate_limiter=RateLimiter(
            max_requests_per_minute=settings.LLM_REQUESTS_PER_MINUTE,
            max_requests_per_day=settings.LLM_REQUESTS_PER_DAY,
        ),
    )
    return Orchestrator(
        context_builder=ContextBuilder(schedule, tasks, preferences, emails),
        classifier=classifier,
        router=Router(),
        scheduling_workflow=AdaptiveSchedulingWorkflow(schedule, tasks, preferences, emails),
        change_applier=change_applier,
    )
