"""
Adaptive Scheduling Workflow
Turns a snapshot of a user's day into a validated proposal of schedule changes.

Stages run strictly in order over one mutable SchedulingState:
1. fetch_data           - schedule, preferences, unassigned tasks, email digest
2. analyze_state        - gaps and inefficiencies
3. fetch_history        - user patterns (optional provider)
4. determine_strategy   - full / optimize / partial / task_only
5. execute_strategy     - strategy-specific changes
6. protect_invariants   - lunch is always protected
7. validate             - drop or flag overlapping / empty changes
8. generate_proposal    - metrics, summary, next steps

A failing stage is logged and recorded; the pipeline continues with the
state as the previous stage left it. Stage 8 always runs.
"""
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from datetime import date
from typing import Callable, Optional

from config import settings
from services.interfaces import EmailService, PreferenceService, ScheduleService, TaskService
from utils import get_logger
from .helpers import (
    add_minutes,
    detect_inefficiencies,
    find_gaps,
    generate_natural_summary,
    is_lunch_time,
    score_task,
    sort_blocks,
)
from .metrics import apply_changes_to_schedule, calculate_metrics, elapsed_ms, empty_metrics, generate_next_steps
from .models import (
    Change,
    Proposal,
    RagContext,
    SchedulingData,
    SchedulingState,
    UserPreferences,
)
from .strategies import STRATEGY_PLANNERS, determine_strategy
from .validator import ScheduleValidator

logger = get_logger(__name__)

WORKFLOW_NAME = "adaptive_scheduling"
EMAIL_DIGEST_QUERY = "is:unread OR is:starred"

PatternProvider = Callable[[str, date], Optional[RagContext]]


class AdaptiveSchedulingWorkflow:
    """
    Runs the 8-stage scheduling pipeline.

    Collaborators are injected; email and pattern providers are optional.
    """

    def __init__(
        self,
        schedule_service: ScheduleService,
        task_service: TaskService,
        preference_service: PreferenceService,
        email_service: EmailService | None = None,
        pattern_provider: PatternProvider | None = None,
        validator: ScheduleValidator | None = None,
        energy_level: str = "medium",
        fetch_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.schedule_service = schedule_service
        self.task_service = task_service
        self.preference_service = preference_service
        self.email_service = email_service
        self.pattern_provider = pattern_provider
        self.validator = validator or ScheduleValidator()
        self.energy_level = energy_level
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        self.clock = clock

        self.stages: list[tuple[str, Callable[[SchedulingState, float], None]]] = [
            ("fetch_data", self._fetch_data),
            ("analyze_state", self._analyze_state),
            ("fetch_history", self._fetch_history),
            ("determine_strategy", self._determine_strategy),
            ("execute_strategy", self._execute_strategy),
            ("protect_invariants", self._protect_invariants),
            ("validate", self._validate),
        ]

    def run(
        self,
        user_id: str,
        target_date: date,
        timezone: str | None = None,
        intent=None,
        timeout: float | None = None,
    ) -> Proposal:
        """Run every stage and return a proposal. Never raises."""
        state = SchedulingState(
            user_id=user_id,
            intent=intent,
            data=SchedulingData(date=target_date, timezone=timezone or settings.DEFAULT_TIMEZONE),
            start_time=self.clock(),
        )
        deadline = state.start_time + (timeout if timeout is not None else settings.SCHEDULING_TIMEOUT_SECONDS)
        logger.info(f"[{WORKFLOW_NAME}] Starting for {user_id} on {target_date.isoformat()}")

        for name, stage in self.stages:
            if self.clock() >= deadline:
                logger.warning(f"[{WORKFLOW_NAME}] Deadline reached, skipping {name}")
                state.messages.append(f"Skipped {name}: deadline reached")
                continue
            try:
                stage(state, deadline)
            except Exception as e:
                logger.exception(f"[{WORKFLOW_NAME}] Error in {name}")
                state.messages.append(f"Error in {name}: {e}")
                state.add_insight("warning", f"Step '{name}' failed and was skipped: {e}", 0.5)

        if any(m.startswith("Skipped") for m in state.messages):
            state.add_insight("warning", "Planning ran out of time; this proposal is partial", 0.6)

        try:
            self._generate_proposal(state)
        except Exception as e:
            logger.exception(f"[{WORKFLOW_NAME}] Error in generate_proposal")
            state.messages.append(f"Error generating proposal: {e}")
            state.result = self._minimal_proposal(state)

        logger.info(
            f"[{WORKFLOW_NAME}] Done: strategy={state.result.strategy.value if state.result.strategy else None}, "
            f"changes={len(state.result.proposed_changes)}, {state.result.execution_time}ms"
        )
        return state.result

    # ========================
    # Stages
    # ========================

    def _fetch_data(self, state: SchedulingState, deadline: float) -> None:
        data = state.data
        user_id = state.user_id
        fetches = {
            "schedule": lambda: self.schedule_service.get_schedule_for_date(user_id, data.date, data.timezone),
            "preferences": lambda: self.preference_service.get_user_preferences(user_id),
            "tasks": lambda: self.task_service.get_unassigned_tasks(user_id),
        }
        if self.email_service is not None:
            fetches["emails"] = lambda: self.email_service.list_recent(user_id, EMAIL_DIGEST_QUERY, 50)

        executor = ThreadPoolExecutor(max_workers=len(fetches))
        try:
            futures = {name: executor.submit(fn) for name, fn in fetches.items()}
            results = {}
            for name, future in futures.items():
                wait = max(0.0, min(self.fetch_timeout, deadline - self.clock()))
                try:
                    results[name] = future.result(timeout=wait)
                except FutureTimeoutError:
                    logger.warning(f"[{WORKFLOW_NAME}] Fetching {name} timed out")
                    state.add_insight("warning", f"Could not load {name} in time; continuing without it", 0.7)
                except Exception as e:
                    logger.warning(f"[{WORKFLOW_NAME}] Fetching {name} failed: {e}")
                    state.add_insight("warning", f"Could not load {name}; continuing without it", 0.7)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        data.current_schedule = list(results.get("schedule") or [])
        data.preferences = results.get("preferences") or UserPreferences()
        data.available_tasks = [
            replace(task, score=score_task(task, self.energy_level)) for task in results.get("tasks") or []
        ]
        data.email_backlog = list(results.get("emails") or [])

        total_minutes = sum(b.duration_minutes for b in data.current_schedule)
        state.add_insight(
            "observation",
            f"Current schedule has {len(data.current_schedule)} blocks with {round(total_minutes / 60)} hours planned",
            1.0,
        )
        if len(data.email_backlog) > 10:
            state.add_insight(
                "warning",
                f"You have {len(data.email_backlog)} unread/starred emails that may need attention",
                0.9,
            )
        if data.available_tasks and not any(b.type == "work" for b in data.current_schedule):
            state.add_insight(
                "recommendation",
                f"No focus blocks scheduled but {len(data.available_tasks)} tasks are pending",
                0.85,
            )
        if data.current_schedule and not any(is_lunch_time(b) for b in data.current_schedule):
            state.add_insight(
                "warning",
                "No lunch break scheduled - important for sustained productivity",
                0.95,
            )
        state.messages.append(
            f"Fetched {len(data.current_schedule)} blocks, {len(data.available_tasks)} tasks, "
            f"{len(data.email_backlog)} emails"
        )

    def _analyze_state(self, state: SchedulingState, deadline: float) -> None:
        data = state.data
        data.current_schedule = sort_blocks(data.current_schedule)
        prefs = data.preferences
        data.gaps = find_gaps(data.current_schedule, data.date, prefs.work_start_time, prefs.work_end_time)
        data.inefficiencies = detect_inefficiencies(data.current_schedule, data.gaps)
        state.messages.append(f"Found {len(data.gaps)} gaps and {len(data.inefficiencies)} inefficiencies")

    def _fetch_history(self, state: SchedulingState, deadline: float) -> None:
        context = None
        if self.pattern_provider is not None:
            context = self.pattern_provider(state.user_id, state.data.date)
        state.rag_context = context or RagContext()

    def _determine_strategy(self, state: SchedulingState, deadline: float) -> None:
        state.data.strategy = determine_strategy(state.data, state.rag_context)
        state.messages.append(f"Selected {state.data.strategy.value} strategy based on schedule analysis")

    def _execute_strategy(self, state: SchedulingState, deadline: float) -> None:
        if state.data.strategy is None:
            return
        planner = STRATEGY_PLANNERS[state.data.strategy]
        state.proposed_changes.extend(planner(state))

    def _protect_invariants(self, state: SchedulingState, deadline: float) -> None:
        data = state.data
        prefs = data.preferences
        has_lunch = any(
            c.entity == "block" and c.type in ("create", "move") and c.params.get("type") == "break"
            for c in state.proposed_changes
        ) or any(is_lunch_time(b) for b in data.current_schedule)

        if has_lunch or not prefs.lunch_start_time:
            return

        state.proposed_changes.append(Change(
            type="create",
            entity="block",
            data={
                "operation": "createTimeBlock",
                "params": {
                    "date": data.date.isoformat(),
                    "type": "break",
                    "title": "Lunch",
                    "start_time": prefs.lunch_start_time,
                    "end_time": add_minutes(prefs.lunch_start_time, 60),
                    "description": "Protected lunch break",
                },
            },
            reason="Protecting lunch break",
            impact={"wellbeing": "high"},
            confidence=1.0,
            protected=True,
        ))
        state.messages.append("Added protected lunch break")

    def _validate(self, state: SchedulingState, deadline: float) -> None:
        result = self.validator.validate(state.proposed_changes, state.data.current_schedule)
        state.proposed_changes = result.accepted
        for warning in result.warnings:
            state.add_insight("warning", warning, 0.8)
        for error in result.errors:
            state.add_insight("warning", error, 0.9)
        state.add_insight("observation", f"Validated {len(result.accepted)} proposed changes", 1.0)
        state.messages.append(result.to_message())

    def _generate_proposal(self, state: SchedulingState) -> None:
        metrics = calculate_metrics(state)
        summary = generate_natural_summary(state.proposed_changes)

        if state.proposed_changes:
            state.add_insight(
                "recommendation",
                f"{len(state.proposed_changes)} changes will improve schedule efficiency by {metrics.efficiency_gain}%",
                0.85,
                metadata={"metrics": metrics.to_dict()},
            )

        state.result = Proposal(
            date=state.data.date,
            strategy=state.data.strategy,
            current_schedule=state.data.current_schedule,
            optimized_schedule=apply_changes_to_schedule(state),
            metrics=metrics,
            summary=summary,
            proposed_changes=list(state.proposed_changes),
            insights=list(state.insights),
            next_steps=generate_next_steps(state),
            execution_time=elapsed_ms(state.start_time, self.clock()),
        )
        state.messages.append(summary)

    def _minimal_proposal(self, state: SchedulingState) -> Proposal:
        return Proposal(
            date=state.data.date,
            strategy=state.data.strategy,
            current_schedule=list(state.data.current_schedule),
            optimized_schedule=list(state.data.current_schedule),
            metrics=empty_metrics(),
            summary="I couldn't finish planning your day. No changes were proposed.",
            proposed_changes=[],
            insights=list(state.insights),
            next_steps=[],
            execution_time=elapsed_ms(state.start_time, self.clock()),
        )
