import asyncio
from functools import partial
from typing import Callable, List

import pytest

from inspira.app.domain.models import Identity
from inspira.app.infra.db import build_engine, get_session, init_db
from inspira.app.infra.documents import DocumentStore
from inspira.app.infra.identity import LocalIdentityProvider
from inspira.app.services.enrollment import EnrollmentStore
from inspira.app.services.flow import FlowMachine
from inspira.app.services.identity import IdentitySession
from inspira.app.services.report import ReportGenerator


class ManualTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by explicit ``advance`` calls instead of wall time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: List[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [t for t in self.timers if t.due <= self.now and not t.cancelled]
        self.timers = [t for t in self.timers if t not in due and not t.cancelled]
        for timer in sorted(due, key=lambda t: t.due):
            timer.callback()

    @property
    def pending(self) -> int:
        return sum(1 for t in self.timers if not t.cancelled)


class FixedClock:
    def __init__(self, *stamps: str) -> None:
        self.stamps = list(stamps)

    def __call__(self) -> str:
        return self.stamps.pop(0) if len(self.stamps) > 1 else self.stamps[0]


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def documents(engine):
    return DocumentStore(partial(get_session, engine))


@pytest.fixture
def clock():
    return FixedClock("2026-10-18T04:05:06.000Z", "2026-10-18T05:00:00.000Z")


@pytest.fixture
def store(documents, clock):
    return EnrollmentStore(documents, app_id="test-app", clock=clock)


@pytest.fixture
def reports(store):
    return ReportGenerator(store)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def provider():
    return LocalIdentityProvider()


@pytest.fixture
def make_machine(provider, store, reports, scheduler):
    """Build a machine over an already initialised identity session."""

    def factory(identity_provider=None, store_override=None) -> FlowMachine:
        session = IdentitySession(identity_provider or provider)
        asyncio.run(session.initialize())
        return FlowMachine(session, store_override or store, reports, scheduler)

    return factory


@pytest.fixture
def alice():
    return Identity(uid="google-alice", display_name="Alice", email="alice@example.com", is_anonymous=False)
