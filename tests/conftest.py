"""
Shared fixtures: a manual scheduler, a controllable clock and stub collaborators.
"""
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import pytest

from models.schemas import InterviewQuestion, QuestionDifficulty
from documents.parser import ParsedDocument, detect_kind
from interview.orchestrator import SessionOrchestrator
from utils.errors import UnsupportedFormatError


class FakeClock:
    """Monotonic seconds and a wall clock that move together."""

    EPOCH = datetime(2024, 1, 1, 9, 0, 0)

    def __init__(self):
        self.seconds = 1000.0

    def monotonic(self) -> float:
        return self.seconds

    def now(self) -> datetime:
        return self.EPOCH + timedelta(seconds=self.seconds - 1000.0)

    def advance(self, seconds: float) -> None:
        self.seconds += seconds


class ManualHandle:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Runs scheduled callbacks only when the test says so."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.handles: List[ManualHandle] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self.clock.monotonic() + delay_s, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    def run_due(self) -> int:
        """Run every callback whose deadline has passed, in deadline order."""
        ran = 0
        while True:
            due = [h for h in self.pending if h.due <= self.clock.monotonic() + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.handles.remove(handle)
            handle.callback()
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        self.clock.advance(seconds)
        return self.run_due()


class StubParser:
    def __init__(self, parsed: Optional[ParsedDocument] = None):
        self.parsed = parsed or ParsedDocument(
            text="Ada Lovelace\nada@example.com\n(555) 123-4567\nReact, Node.js",
            name="Ada Lovelace",
            email="ada@example.com",
            phone="+15551234567",
        )

    def parse(self, filename, content_type, data) -> ParsedDocument:
        if detect_kind(filename, content_type) is None:
            raise UnsupportedFormatError(filename, content_type)
        return self.parsed


class StubGenerator:
    def __init__(self, questions: Optional[List[InterviewQuestion]] = None, error: Optional[Exception] = None):
        self.questions = questions if questions is not None else make_questions()
        self.error = error
        self.calls = 0

    def generate(self, profile, resume_text=None) -> List[InterviewQuestion]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [q.model_copy(deep=True) for q in self.questions]


def make_questions() -> List[InterviewQuestion]:
    easy, medium, hard = QuestionDifficulty.EASY, QuestionDifficulty.MEDIUM, QuestionDifficulty.HARD
    return [
        InterviewQuestion(prompt="What is a closure in JavaScript?", difficulty=easy,
                          expected_keywords=["closure", "scope"]),
        InterviewQuestion(prompt="What does useState return?", difficulty=easy,
                          expected_keywords=["state", "setter"]),
        InterviewQuestion(prompt="How would you cache API responses?", difficulty=medium,
                          expected_keywords=["cache", "Redis"]),
        InterviewQuestion(prompt="How do you validate forms in React?", difficulty=medium,
                          expected_keywords=["validation", "schema"]),
        InterviewQuestion(prompt="Design a rate limiter for a Node.js API.", difficulty=hard,
                          expected_keywords=["token bucket", "Redis"]),
        InterviewQuestion(prompt="How would you add server-side rendering to a React app?", difficulty=hard,
                          expected_keywords=["hydration", "SEO"]),
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def parser():
    return StubParser()


@pytest.fixture
def generator():
    return StubGenerator()


@pytest.fixture
def make_orchestrator(clock, scheduler, parser, generator):
    def factory(**overrides) -> SessionOrchestrator:
        options = dict(
            parser=parser,
            generator=generator,
            scheduler=scheduler,
            clock=clock.now,
            monotonic=clock.monotonic,
            autosave=False,
        )
        options.update(overrides)
        return SessionOrchestrator(**options)
    return factory


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


@pytest.fixture
def started(orchestrator):
    """An orchestrator whose active session has just been asked question 1."""
    orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")
    orchestrator.start_interview()
    return orchestrator
