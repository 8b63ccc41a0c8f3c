"""Tests for the session while collaborator calls are still in flight.

Scripted doubles park every call on a future so the tests can observe the
session between the start and the end of a generation or execution.
"""

from __future__ import annotations

import asyncio

from core.collaborators import DEMO_TRANSCRIPT, LoggingFeedbackSink, MockExecutor
from core.domain import OpStatus
from core.errors import GenerationError
from core.lifecycle import RunState
from core.session import SessionController
from models import DatabaseType, Draft

from conftest import ScriptedExecutor, ScriptedGenerator, result_of, settle


def _session(generator=None, executor=None, seed=DEMO_TRANSCRIPT) -> SessionController:
    return SessionController(
        generator or ScriptedGenerator(),
        executor or MockExecutor(delay=0),
        LoggingFeedbackSink(),
        seed=seed,
    )


class TestGeneratingGate:
    """submit and regenerate share one in-flight generation."""

    async def test_pending_submission_adds_one_turn(self):
        gen = ScriptedGenerator()
        session = _session(gen, seed=())

        task = asyncio.create_task(session.submit("list customers"))
        await settle()

        assert len(session.turns) == 1
        assert session.generating
        assert session.snapshot().generating

        gen.resolve(0, Draft("SELECT * FROM customers;", "everything"))
        result = await task

        assert result.ok
        assert len(session.turns) == 2
        assert not session.generating

    async def test_second_submit_is_rejected(self):
        gen = ScriptedGenerator()
        session = _session(gen, seed=())
        task = asyncio.create_task(session.submit("first"))
        await settle()

        second = await session.submit("second")

        assert second.status is OpStatus.REJECTED
        assert len(session.turns) == 1
        assert len(gen.calls) == 1

        gen.resolve(0, Draft("SELECT 1;"))
        await task

    async def test_regenerate_rejected_while_generating(self):
        gen = ScriptedGenerator()
        session = _session(gen)
        task = asyncio.create_task(session.submit("more"))
        await settle()

        result = await session.regenerate(0)

        assert result.status is OpStatus.REJECTED
        gen.resolve(0, Draft("SELECT 2;"))
        await task

    async def test_database_switch_rejected_while_generating(self):
        gen = ScriptedGenerator()
        session = _session(gen)
        task = asyncio.create_task(session.submit("more"))
        await settle()

        assert session.set_database(DatabaseType.MYSQL).status is OpStatus.REJECTED
        assert session.database is DatabaseType.SQL

        gen.resolve(0, Draft("SELECT 2;"))
        await task

    async def test_failed_generation_releases_gate(self):
        gen = ScriptedGenerator()
        session = _session(gen, seed=())
        task = asyncio.create_task(session.submit("first"))
        await settle()

        gen.fail(0, GenerationError("malformed reply"))
        result = await task

        assert result.status is OpStatus.FAILED
        assert not session.generating
        assert len(session.turns) == 1

    async def test_other_operations_stay_available(self):
        """run, confirm, select and undo are not blocked by a generation."""
        gen = ScriptedGenerator()
        session = _session(gen)
        task = asyncio.create_task(session.submit("pending"))
        await settle()

        assert (await session.run(1)).ok
        assert session.confirm(1).ok
        assert session.select(3).ok
        assert session.is_confirmed(1)
        assert session.selected == 3

        gen.resolve(0, Draft("SELECT 3;"))
        await task

    async def test_undo_during_generation_discards_draft(self):
        """Undoing the pending request drops the late draft instead of orphaning it."""
        gen = ScriptedGenerator()
        session = _session(gen)
        task = asyncio.create_task(session.submit("pending"))
        await settle()

        session.undo()
        assert len(session.turns) == len(DEMO_TRANSCRIPT)

        gen.resolve(0, Draft("SELECT 4;"))
        result = await task

        assert result.status is OpStatus.IGNORED
        assert len(session.turns) == len(DEMO_TRANSCRIPT)
        assert session.turns[len(session.turns) - 1].is_response


class TestConcurrentRuns:
    """Execution overlaps with itself and with generation."""

    async def test_running_state_while_pending(self):
        ex = ScriptedExecutor()
        session = _session(executor=ex)
        task = asyncio.create_task(session.run(1))
        await settle()

        assert session.run_state(1) is RunState.RUNNING
        assert 1 in session.snapshot().running

        ex.resolve(0, result_of([1]))
        await task
        assert session.run_state(1) is RunState.EXECUTED

    async def test_same_position_last_completion_wins(self):
        ex = ScriptedExecutor()
        session = _session(executor=ex)
        first = asyncio.create_task(session.run(1))
        second = asyncio.create_task(session.run(1))
        await settle()

        late = result_of(["late"])
        early = result_of(["early"])
        ex.resolve(1, early)
        await second
        ex.resolve(0, late)
        await first

        assert session.result_for(1) is late
        assert session.run_state(1) is RunState.EXECUTED

    async def test_distinct_positions_run_independently(self):
        ex = ScriptedExecutor()
        session = _session(executor=ex)
        a = asyncio.create_task(session.run(1))
        b = asyncio.create_task(session.run(3))
        await settle()

        ex.resolve(1, result_of(["three"]))
        ex.resolve(0, result_of(["one"]))
        await asyncio.gather(a, b)

        assert session.result_for(1).rows == (("one",),)
        assert session.result_for(3).rows == (("three",),)

    async def test_result_for_undone_query_is_dropped(self):
        ex = ScriptedExecutor()
        session = _session(executor=ex)
        task = asyncio.create_task(session.run(3))
        await settle()

        session.undo()
        ex.resolve(0, result_of([1]))
        result = await task

        assert result.status is OpStatus.IGNORED
        assert len(session.results) == 0

    async def test_result_for_regenerated_query_is_dropped(self):
        ex = ScriptedExecutor()
        gen = ScriptedGenerator()
        session = _session(gen, ex)
        run = asyncio.create_task(session.run(1))
        regen = asyncio.create_task(session.regenerate(0))
        await settle()

        gen.resolve(0, Draft("SELECT 'new';", "new"))
        await regen
        ex.resolve(0, result_of(["old"]))
        result = await run

        assert result.status is OpStatus.IGNORED
        assert session.result_for(1) is None
