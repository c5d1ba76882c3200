from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from congressrp.bills import BillStore
from congressrp.workflow import Notifier, Workflow

START = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.calls = []

    def names(self) -> list[str]:
        return [name for name, *_ in self.calls]

    async def notify_submission(self, bill):
        self.calls.append(("submission", bill))

    async def notify_voting_opened(self, bill):
        self.calls.append(("voting_opened", bill))

    async def notify_outcome(self, bill, result, reason):
        self.calls.append(("outcome", bill, result, reason))

    async def notify_chamber_passed(self, bill, chamber):
        self.calls.append(("chamber_passed", bill, chamber))

    async def notify_handoff(self, bill, from_chamber):
        self.calls.append(("handoff", bill, from_chamber))

    async def notify_enactment(self, bill):
        self.calls.append(("enactment", bill))


class FailingNotifier(Notifier):
    """Every delivery blows up, like a deleted channel would."""

    async def notify_submission(self, bill):
        raise RuntimeError("channel gone")

    async def notify_voting_opened(self, bill):
        raise RuntimeError("channel gone")

    async def notify_outcome(self, bill, result, reason):
        raise RuntimeError("channel gone")

    async def notify_handoff(self, bill, from_chamber):
        raise RuntimeError("channel gone")

    async def notify_enactment(self, bill):
        raise RuntimeError("channel gone")


class FakeResponse:
    def __init__(self, events):
        self.events = events
        self._done = False

    def is_done(self):
        return self._done

    async def defer(self, **kwargs):
        self._done = True
        self.events.append(("defer", kwargs))

    async def send_message(self, content=None, **kwargs):
        self._done = True
        self.events.append(("response", content, kwargs))


class FakeFollowup:
    def __init__(self, events):
        self.events = events

    async def send(self, content=None, **kwargs):
        self.events.append(("followup", content, kwargs))


class FakeInteraction:
    """Just enough of discord.Interaction to answer a button click."""

    def __init__(self, user_id: int = 42, events: list | None = None):
        self.events = [] if events is None else events
        self.user = SimpleNamespace(id=user_id)
        self.response = FakeResponse(self.events)
        self.followup = FakeFollowup(self.events)

    def replies(self) -> list[str]:
        return [e[1] for e in self.events if e[0] in ("response", "followup")]


class Clock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def store():
    return BillStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def workflow(store, notifier, clock):
    return Workflow(store, notifier, vote_duration=timedelta(hours=24), clock=clock)


@pytest.fixture
def failing_workflow(store, clock):
    return Workflow(store, FailingNotifier(), vote_duration=timedelta(hours=24), clock=clock)
