"""
Entity Extractor
Pulls dates, times, durations and people out of raw text with regexes.
Pure and deterministic; its output seeds the keyword fallback, so it runs
whether or not the LLM classifier succeeds.
"""
import re

from .types import IntentEntities

DATE_PATTERNS = [
    re.compile(r"\b(today|tomorrow|yesterday|tonight)\b", re.IGNORECASE),
    re.compile(r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", re.IGNORECASE),
    re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
    re.compile(r"\b(\d{1,2}/\d{1,2})\b"),
]

TIME_PATTERNS = [
    re.compile(r"\b(\d{1,2}(?::\d{2})?\s*(?:am|pm))\b", re.IGNORECASE),
    re.compile(r"\b(morning|afternoon|evening|night)\b", re.IGNORECASE),
]

DURATION_PATTERN = re.compile(r"\b(\d+)\s*(hour|hr|minute|min)s?\b", re.IGNORECASE)

# Deliberately case-sensitive: a name is a capitalized word or two
PERSON_PATTERN = re.compile(r"\b(?:with|from|to|cc)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)")


def _dedupe(values: list[str]) -> list[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def extract_entities(message: str) -> IntentEntities:
    """Extract entities from a raw user message"""
    dates = [m.group(1).lower() for p in DATE_PATTERNS for m in p.finditer(message)]
    times = [re.sub(r"\s+", " ", m.group(1).lower()) for p in TIME_PATTERNS for m in p.finditer(message)]
    people = [m.group(1).title() for m in PERSON_PATTERN.finditer(message)]

    duration = None
    match = DURATION_PATTERN.search(message)
    if match:
        amount = int(match.group(1))
        unit = match.group(2).lower()
        duration = amount * 60 if unit in ("hour", "hr") else amount

    return IntentEntities(
        dates=_dedupe(dates),
        times=_dedupe(times),
        people=_dedupe(people),
        duration=duration,
    )
