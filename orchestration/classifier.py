"""
Intent Classifier
Turns a user message plus the context snapshot into a routable Intent.

Order matters! On every call we:
1. Check the intent cache (a hit skips everything else)
2. Extract entities with regexes (always, seeds the fallback)
3. Short-circuit messages matching a previously rejected action
4. Ask Gemini for a structured classification (rate limited, retried, timed)
5. On any failure, fall back to the keyword table
"""
import json
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Optional

from google import genai
from google.genai import types

from config import settings
from registry import canonical_tool_name, describe_handlers, is_workflow
from utils import get_logger
from .entity_extractor import extract_entities
from .intent_cache import IntentCache, make_cache_key
from .rate_limiter import RateLimiter
from .retry import RetryPolicy
from .types import (
    DirectRef,
    HandlerRef,
    Intent,
    IntentCategory,
    IntentEntities,
    IntentSource,
    OrchestrationContext,
    ToolParams,
    ToolRef,
    WorkflowParams,
    WorkflowRef,
)

logger = get_logger(__name__)

KEYWORD_CONFIDENCE = 0.7
NO_MATCH_CONFIDENCE = 0.5
REJECTION_CONFIDENCE = 0.9

# Checked top to bottom; specific phrases must come before the generic
# words they contain ("delete block" before "block"). Bare nouns that also
# appear inside requests ("block", "tasks", "email") sit in the last rows.
KEYWORD_ROUTES: list[tuple[tuple[str, ...], str]] = [
    (("fill email block", "fill my email block", "fill the email block", "emails for my email block"),
     "fillEmailBlock"),
    (("fill work block", "fill my work block", "fill the work block", "fill block", "fill my block"),
     "fillWorkBlock"),
    (("delete block", "delete the block", "delete my block", "delete time block", "remove block",
      "remove the block", "remove my block", "cancel block", "cancel my block", "clear block",
      "delete", "remove"),
     "deleteTimeBlock"),
    (("move block", "move the block", "move my", "reschedule", "push back", "shift my"),
     "moveTimeBlock"),
    (("triage", "process emails", "process my emails", "sort my emails", "clean up my inbox"),
     "triageEmails"),
    (("prioritize", "what should i do first", "what should i work on", "rank my tasks", "most important task"),
     "prioritizeTasks"),
    (("optimize calendar", "optimize my calendar", "calendar conflicts", "meeting conflicts"),
     "optimizeCalendar"),
    (("plan my day", "plan the day", "plan today", "plan tomorrow", "plan my", "schedule my day",
      "organize my day", "optimize", "organize", "plan"),
     "optimizeSchedule"),
    (("create block", "create a block", "add block", "add a block", "block time", "block off", "block out",
      "time block", "schedule a block", "schedule a meeting", "schedule time"),
     "createTimeBlock"),
    (("add task", "add a task", "create task", "create a task", "new task", "remind me to"),
     "createTask"),
    (("show my schedule", "view schedule", "view my schedule", "my schedule", "what's on", "whats on",
      "what do i have", "my calendar", "my day look"),
     "viewSchedule"),
    (("block",),
     "createTimeBlock"),
    (("my tasks", "show tasks", "view tasks", "task list", "to-do", "todo", "backlog", "tasks"),
     "viewTasks"),
    (("my emails", "inbox", "unread", "emails", "email"),
     "viewEmails"),
]

CLASSIFIER_SYSTEM_PROMPT = """You route messages for a personal productivity assistant that manages a user's
time blocks, task backlog and email backlog.

Classify the user's message and respond with a single JSON object only:
{
  "category": "workflow" | "tool" | "conversation",
  "confidence": number between 0 and 1,
  "subcategory": optional short label,
  "entities": {"dates": [], "times": [], "people": [], "tasks": [], "duration": minutes or null},
  "suggestedHandler": {"type": "workflow" | "tool" | "direct", "name": handler name or null, "params": {}},
  "reasoning": one sentence
}

Use "workflow" for multi-step planning (planning a day, filling a block, triaging email),
"tool" for a single read or edit, and "conversation" with a "direct" handler for anything else.
Only use handler names from the list you are given."""


class ClassificationError(Exception):
    """Raised when the LLM response can't be turned into an Intent"""
    pass


def _make_ref(category: IntentCategory, name: str | None, params: dict | None = None) -> HandlerRef:
    params = dict(params or {})
    if category == IntentCategory.CONVERSATION or not name:
        return DirectRef(reason=str(params.get("reason", "")))

    name = canonical_tool_name(name)
    date = params.pop("date", None)
    block_id = params.pop("blockId", None) or params.pop("block_id", None)
    duration = params.pop("duration", None)
    duration = int(duration) if isinstance(duration, (int, float)) else None

    if category == IntentCategory.WORKFLOW:
        block_time = params.pop("blockTime", None) or params.pop("block_time", None)
        return WorkflowRef(name=name, params=WorkflowParams(
            date=date, block_id=block_id, block_time=block_time, duration=duration, extra=params,
        ))
    return ToolRef(name=name, params=ToolParams(
        date=date, block_id=block_id, time=params.pop("time", None), duration=duration, extra=params,
    ))


def keyword_fallback(message: str, entities: IntentEntities, reason: str = "") -> Intent:
    """Deterministic routing used whenever the LLM path is unavailable"""
    text = message.lower().strip()
    for patterns, alias in KEYWORD_ROUTES:
        for pattern in patterns:
            if pattern in text:
                name = canonical_tool_name(alias)
                category = IntentCategory.WORKFLOW if is_workflow(name) else IntentCategory.TOOL
                return Intent(
                    category=category,
                    confidence=KEYWORD_CONFIDENCE,
                    suggested_handler=_make_ref(category, name),
                    reasoning=f"Keyword match on '{pattern}'" + (f" ({reason})" if reason else ""),
                    entities=entities,
                    subcategory=alias,
                    source=IntentSource.FALLBACK,
                )

    return Intent(
        category=IntentCategory.CONVERSATION,
        confidence=NO_MATCH_CONFIDENCE,
        suggested_handler=DirectRef(reason="no_keyword_match"),
        reasoning="No keyword matched; treating as conversation" + (f" ({reason})" if reason else ""),
        entities=entities,
        source=IntentSource.FALLBACK,
    )


def _strip_code_fences(text: str) -> str:
    json_text = text.strip()
    if json_text.startswith("```"):
        lines = [line for line in json_text.split("\n") if not line.startswith("```")]
        json_text = "\n".join(lines)
    return json_text


def _merge_entities(extracted: IntentEntities, reported: dict | None) -> IntentEntities:
    """LLM-reported values win; extractor values fill whatever the LLM left empty"""
    reported = reported or {}

    def pick(key: str) -> list[str]:
        value = reported.get(key)
        if isinstance(value, list) and value:
            return [str(v) for v in value]
        return list(getattr(extracted, key))

    duration = reported.get("duration")
    return IntentEntities(
        dates=pick("dates"),
        times=pick("times"),
        people=pick("people"),
        tasks=pick("tasks"),
        duration=int(duration) if isinstance(duration, (int, float)) and duration > 0 else extracted.duration,
    )


def parse_intent_response(response_text: str, extracted: IntentEntities) -> Intent:
    """Parse and validate the LLM's JSON into an Intent"""
    try:
        data = json.loads(_strip_code_fences(response_text))
    except json.JSONDecodeError as e:
        raise ClassificationError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ClassificationError("Response is not a JSON object")

    try:
        category = IntentCategory(data.get("category"))
    except ValueError as e:
        raise ClassificationError(f"Unknown category: {data.get('category')!r}") from e

    try:
        confidence = float(data.get("confidence", 0.0))
    except (TypeError, ValueError) as e:
        raise ClassificationError("Confidence is not a number") from e
    confidence = max(0.0, min(1.0, confidence))

    handler = data.get("suggestedHandler") or {}
    if not isinstance(handler, dict):
        raise ClassificationError("suggestedHandler is not an object")
    handler_type = handler.get("type", "direct")
    if handler_type not in ("workflow", "tool", "direct"):
        raise ClassificationError(f"Unknown handler type: {handler_type!r}")
    name = handler.get("name")
    if handler_type != "direct" and not name:
        raise ClassificationError(f"{handler_type} handler without a name")

    ref_category = {
        "workflow": IntentCategory.WORKFLOW,
        "tool": IntentCategory.TOOL,
        "direct": IntentCategory.CONVERSATION,
    }[handler_type]
    params = handler.get("params") if isinstance(handler.get("params"), dict) else {}

    return Intent(
        category=category,
        confidence=confidence,
        suggested_handler=_make_ref(ref_category, name, params),
        reasoning=str(data.get("reasoning", "")),
        entities=_merge_entities(extracted, data.get("entities")),
        subcategory=data.get("subcategory"),
        source=IntentSource.LLM,
    )


class IntentClassifier:
    """
    Classifies messages with Gemini, behind a shared cache.

    Never raises from classify(); provider trouble of any kind ends in the
    keyword fallback, which is not cached.
    """

    def __init__(
        self,
        client: genai.Client | None,
        cache: IntentCache,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        model_name: str | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.LLM_MAX_ATTEMPTS,
            base_delay=settings.LLM_RETRY_BASE_DELAY,
        )
        self.model_name = model_name or settings.MODEL_NAME
        self.timeout = timeout if timeout is not None else settings.CLASSIFIER_TIMEOUT_SECONDS
        self.clock = clock
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="classifier")

    def classify(self, message: str, context: OrchestrationContext, timeout: float | None = None) -> Intent:
        deadline = self.clock() + (timeout if timeout is not None else self.timeout)

        key = make_cache_key(message, context)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Intent cache hit: {cached.suggested_handler.to_dict().get('name', 'direct')}")
            return replace(cached, source=IntentSource.CACHE)

        entities = extract_entities(message)

        rejected = self._check_rejections(message, context, entities)
        if rejected is not None:
            return rejected

        try:
            intent = self._classify_with_llm(message, context, entities, deadline)
        except Exception as e:
            logger.warning(f"LLM classification failed, using keyword fallback: {type(e).__name__}: {e}")
            return keyword_fallback(message, entities, reason=type(e).__name__)

        self.cache.set(key, intent)
        logger.info(
            f"Classified as {intent.category.value} ({intent.confidence:.2f}): {intent.suggested_handler.to_dict()}"
        )
        return intent

    def get_cache_stats(self) -> dict:
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self.cache.clear()

    # ========================
    # Internals
    # ========================

    def _check_rejections(
        self,
        message: str,
        context: OrchestrationContext,
        entities: IntentEntities,
    ) -> Optional[Intent]:
        patterns = context.user_patterns
        if not patterns or not patterns.rejected_actions:
            return None

        text = message.lower().strip()
        for action in patterns.rejected_actions:
            if action.message and action.message in text:
                logger.info(f"Message matches a previously rejected action: {action.message[:50]}")
                return Intent(
                    category=IntentCategory.CONVERSATION,
                    confidence=REJECTION_CONFIDENCE,
                    suggested_handler=DirectRef(reason="previously_rejected"),
                    reasoning=f"Similar request was previously rejected: {action.reason}",
                    entities=entities,
                    source=IntentSource.REJECTION,
                )
        return None

    def _classify_with_llm(
        self,
        message: str,
        context: OrchestrationContext,
        entities: IntentEntities,
        deadline: float,
    ) -> Intent:
        if self.client is None:
            raise ClassificationError("No LLM client configured")

        if self.rate_limiter is not None:
            self.rate_limiter.acquire(deadline=deadline)

        prompt = self._build_prompt(message, context, entities)
        future = self._executor.submit(self.retry_policy.call, lambda: self._generate(prompt), deadline)
        remaining = deadline - self.clock()
        if remaining <= 0:
            future.cancel()
            raise TimeoutError("Classification deadline already passed")
        # Raises concurrent.futures.TimeoutError (a TimeoutError) when slow
        response_text = future.result(timeout=remaining)

        logger.debug(f"LLM classification response: {response_text[:500]}")
        return parse_intent_response(response_text, entities)

    def _generate(self, prompt: str) -> str:
        response = self.client.models.generate_content(
            model=self.model_name,
            contents=[types.Content(role="user", parts=[types.Part(text=prompt)])],
            config=types.GenerateContentConfig(
                system_instruction=CLASSIFIER_SYSTEM_PROMPT,
                temperature=0.1,
                response_mime_type="application/json",
            ),
        )

        response_text = ""
        for candidate in response.candidates or []:
            if not candidate.content or not candidate.content.parts:
                continue
            for part in candidate.content.parts:
                if part.text:
                    response_text += part.text
        if not response_text:
            raise ClassificationError("Empty response from model")
        return response_text

    def _build_prompt(self, message: str, context: OrchestrationContext, entities: IntentEntities) -> str:
        return f"""## CURRENT CONTEXT
{context.to_summary()}

## EXTRACTED ENTITIES
{json.dumps(entities.to_dict())}

## AVAILABLE HANDLERS
{describe_handlers()}

## USER MESSAGE
{message}
"""
