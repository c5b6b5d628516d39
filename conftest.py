"""
Shared fixtures: in-memory collaborator services, a block factory on a
fixed Monday in New York, and a stand-in for the Gemini client.
"""
from datetime import date, datetime, time
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from scheduling.models import EmailSummary, Task, TimeBlock, UserPreferences
from services.interfaces import EmailService, PreferenceService, ScheduleService, TaskService

NY = ZoneInfo("America/New_York")
DAY = date(2026, 10, 19)  # a Monday


def make_block(block_id, block_type, start, end, title=None, day=DAY):
    s = datetime.combine(day, time.fromisoformat(start), tzinfo=NY)
    e = datetime.combine(day, time.fromisoformat(end), tzinfo=NY)
    return TimeBlock(id=block_id, type=block_type, title=title or block_id, start_time=s, end_time=e)


def at(hhmm, day=DAY):
    return datetime.combine(day, time.fromisoformat(hhmm), tzinfo=NY)


class FakeScheduleService(ScheduleService):
    def __init__(self, by_date=None, error=None):
        self.by_date = by_date or {}
        self.error = error
        self.calls = []

    def get_schedule_for_date(self, user_id, day, timezone):
        self.calls.append((user_id, day, timezone))
        if self.error:
            raise self.error
        return list(self.by_date.get(day, []))


class FakeTaskService(TaskService):
    def __init__(self, backlog=None, unassigned=None, error=None):
        self.backlog = backlog or []
        self.unassigned = unassigned if unassigned is not None else list(self.backlog)
        self.error = error

    def get_task_backlog(self, user_id):
        if self.error:
            raise self.error
        return list(self.backlog)

    def get_unassigned_tasks(self, user_id):
        if self.error:
            raise self.error
        return list(self.unassigned)


class FakePreferenceService(PreferenceService):
    def __init__(self, preferences=None, error=None):
        self.preferences = preferences or UserPreferences()
        self.error = error

    def get_user_preferences(self, user_id):
        if self.error:
            raise self.error
        return self.preferences


class FakeEmailService(EmailService):
    def __init__(self, emails=None, error=None):
        self.emails = emails or []
        self.error = error
        self.queries = []

    def list_recent(self, user_id, query="", max_results=50):
        self.queries.append(query)
        if self.error:
            raise self.error
        return list(self.emails)[:max_results]


class FakeModels:
    """Mimics client.models.generate_content with canned text or an exception"""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error:
            raise self.error
        part = SimpleNamespace(text=self.text)
        return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


class FakeGenaiClient:
    def __init__(self, text=None, error=None):
        self.models = FakeModels(text=text, error=error)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def emails(urgent=0, other=0):
    result = [EmailSummary(id=f"u{i}", urgency="urgent", importance="important") for i in range(urgent)]
    result += [EmailSummary(id=f"o{i}") for i in range(other)]
    return result


@pytest.fixture
def block():
    return make_block


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def high_task():
    return Task(id="t-high", title="Write quarterly report", priority="high", urgency=90, estimated_minutes=60)


@pytest.fixture
def low_task():
    return Task(id="t-low", title="Tidy bookmarks", priority="low", urgency=10)
