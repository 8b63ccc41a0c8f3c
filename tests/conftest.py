# conftest.py - Shared pytest fixtures for the query drafter tests
"""Shared fixtures for the session core and app tests.

Collaborator doubles come in two flavours:
- the in-process mocks from core.collaborators with zero latency, for tests
  that only care about the final state;
- scripted doubles whose calls stay pending until the test resolves them,
  for tests that look at the session while a call is in flight.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from core.collaborators import DEMO_TRANSCRIPT, LoggingFeedbackSink, MockExecutor, MockGenerator
from core.session import SessionController
from models import DatabaseType, Draft, ExecutionResult


# =============================================================================
# Scripted collaborators
# =============================================================================


class _Scripted:
    """Each call parks on a future; the test settles it with resolve()/fail()."""

    def __init__(self):
        self.pending: list[asyncio.Future] = []
        self.calls: list[tuple[Any, ...]] = []

    async def _wait(self):
        fut = asyncio.get_running_loop().create_future()
        self.pending.append(fut)
        return await fut

    def resolve(self, index: int, value: Any) -> None:
        self.pending[index].set_result(value)

    def fail(self, index: int, error: Exception) -> None:
        self.pending[index].set_exception(error)


class ScriptedGenerator(_Scripted):
    async def generate(self, request_text, transcript, *, database=DatabaseType.SQL, regenerating=False) -> Draft:
        self.calls.append((request_text, tuple(transcript), database))
        return await self._wait()


class ScriptedExecutor(_Scripted):
    async def execute(self, query_text) -> ExecutionResult:
        self.calls.append((query_text,))
        return await self._wait()


class StaticGenerator:
    """Always answers with the same draft."""

    def __init__(self, draft: Draft):
        self.draft = draft
        self.calls: list[tuple[Any, ...]] = []

    async def generate(self, request_text, transcript, *, database=DatabaseType.SQL, regenerating=False) -> Draft:
        self.calls.append((request_text, tuple(transcript), database))
        return self.draft


async def settle(rounds: int = 5) -> None:
    """Let pending tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def result_of(*rows, columns=("value",)) -> ExecutionResult:
    return ExecutionResult(columns=tuple(columns), rows=tuple(tuple(r) for r in rows), row_count=len(rows))


# =============================================================================
# Session fixtures
# =============================================================================


@pytest.fixture
def generator() -> MockGenerator:
    return MockGenerator(delay=0)


@pytest.fixture
def executor() -> MockExecutor:
    return MockExecutor(delay=0)


@pytest.fixture
def feedback() -> LoggingFeedbackSink:
    return LoggingFeedbackSink()


@pytest.fixture
def session(generator, executor, feedback) -> SessionController:
    """Empty session wired to zero-latency mocks."""
    return SessionController(generator, executor, feedback)


@pytest.fixture
def seeded_session(generator, executor, feedback) -> SessionController:
    """Session starting from the two-pair demonstration transcript."""
    return SessionController(generator, executor, feedback, seed=DEMO_TRANSCRIPT)


@pytest.fixture
def events_q() -> asyncio.Queue:
    return asyncio.Queue()


def drain(q: asyncio.Queue) -> list[dict]:
    events = []
    while not q.empty():
        events.append(q.get_nowait())
    return events
