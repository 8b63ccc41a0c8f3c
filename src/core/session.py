"""
Session controller: the single writer of the transcript, lifecycle flags,
result cache and history.

Every mutation happens synchronously between awaits, so on one event loop
no two operations interleave their effects. Only the collaborator calls
suspend.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from core.collaborators import Executor, FeedbackSink, Generator
from core.domain import OpResult, SessionEvent
from core.errors import ExecutionError, FeedbackError, GenerationError
from core.history import HistoryStack
from core.lifecycle import LifecycleTracker, RunState
from core.result_cache import ResultCache
from core.turn_store import TurnStore
from models import DatabaseType, Draft, ExecutionResult, Role, Turn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session handed to the presentation layer."""
    turns: tuple[Turn, ...]
    executed: frozenset[int]
    confirmed: frozenset[int]
    running: frozenset[int]
    results: Mapping[int, ExecutionResult] = field(default_factory=lambda: MappingProxyType({}))
    selected: Optional[int] = None
    generating: bool = False
    database: DatabaseType = DatabaseType.SQL
    history_depth: int = 0

    def response_positions(self) -> list[int]:
        return [i for i, t in enumerate(self.turns) if t.is_response]


class SessionController:
    def __init__(
        self,
        generator: Generator,
        executor: Executor,
        feedback: FeedbackSink,
        *,
        seed: Iterable[tuple[Role, Draft]] = (),
        database: DatabaseType = DatabaseType.SQL,
        preserve_state_on_regenerate: bool = False,
        events_q: Optional[asyncio.Queue] = None,
    ):
        self.generator = generator
        self.executor = executor
        self.feedback = feedback
        self.database = database
        self.preserve_state_on_regenerate = preserve_state_on_regenerate
        self.events_q = events_q

        self.turns = TurnStore(seed)
        self.lifecycle = LifecycleTracker()
        self.results = ResultCache()
        self.history = HistoryStack()

        self.generating = False
        self._selected_id: Optional[int] = None

    def _emit(self, ev: SessionEvent) -> None:
        if self.events_q is not None:
            self.events_q.put_nowait(ev)

    def _set_generating(self, active: bool) -> None:
        self.generating = active
        self._emit({'type': 'generating', 'active': active})

    def _response_id(self, position: int) -> int:
        return self.turns.require(position, Role.RESPONSE).turn_id

    # ---------------------------------------------------------------- queries

    def run_state(self, position: int) -> RunState:
        return self.lifecycle.state(self._response_id(position))

    def is_confirmed(self, position: int) -> bool:
        """False for positions that no longer exist."""
        if position < 0 or position >= len(self.turns):
            return False
        turn = self.turns[position]
        return turn.is_response and turn.turn_id in self.lifecycle.confirmed

    def result_for(self, position: int) -> Optional[ExecutionResult]:
        if position < 0 or position >= len(self.turns):
            return None
        return self.results.get(self.turns[position].turn_id)

    @property
    def selected(self) -> Optional[int]:
        if self._selected_id is None:
            return None
        return self.turns.position_of(self._selected_id)

    def _positions(self, turn_ids: Iterable[int]) -> frozenset[int]:
        wanted = set(turn_ids)
        return frozenset(i for i, t in enumerate(self.turns) if t.turn_id in wanted)

    def snapshot(self) -> SessionSnapshot:
        results = {}
        for position, turn in enumerate(self.turns):
            result = self.results.get(turn.turn_id)
            if result is not None:
                results[position] = result
        return SessionSnapshot(
            turns=self.turns.snapshot(),
            executed=self._positions(self.lifecycle.executed),
            confirmed=self._positions(self.lifecycle.confirmed),
            running=self._positions(self.lifecycle.running_ids()),
            results=MappingProxyType(results),
            selected=self.selected,
            generating=self.generating,
            database=self.database,
            history_depth=len(self.history),
        )

    # ------------------------------------------------------------- operations

    async def submit(self, text: str) -> OpResult:
        """
        Append a request, generate its response and append that too.

        Blank input is ignored; a submission while another generation is in
        flight is rejected. So is one while the last request is still without
        a response: it has to be regenerated or undone first.
        """
        if not text or not text.strip():
            return OpResult.ignored("empty request")
        if self.generating:
            return OpResult.rejected("a generation is already in progress")
        if self._unanswered_request() is not None:
            return OpResult.rejected("the last request has no query yet; regenerate or undo it",
                                     position=len(self.turns) - 1)

        request = self.turns.append(Role.REQUEST, text)
        self._emit({'type': 'turn_appended', 'position': len(self.turns) - 1, 'role': Role.REQUEST.value})
        return await self._answer(request)

    def _unanswered_request(self) -> Optional[Turn]:
        if not len(self.turns) or self.generating:
            return None
        last = self.turns[len(self.turns) - 1]
        return last if last.is_request else None

    async def _answer(self, request: Turn, regenerating: bool = False) -> OpResult:
        """Generate a response for the trailing `request` and append it."""
        text = request.content
        transcript = self.turns.prior_transcript(self.turns.position_of(request.turn_id))
        self._set_generating(True)
        try:
            draft = await self._generate(text, transcript, regenerating=regenerating)
        except GenerationError as e:
            logger.warning("Generation failed for %r: %s", text, e)
            self._emit({'type': 'generation_failed', 'message': str(e)})
            return OpResult.failed(e, position=self.turns.position_of(request.turn_id))
        finally:
            self._set_generating(False)

        if not self.turns.contains(request.turn_id):
            logger.info("Discarding draft for %r: request was undone while generating", text)
            return OpResult.ignored("request was undone while generating")

        response = self.turns.append(Role.RESPONSE, draft.content, draft.explanation, draft.preview)
        position = len(self.turns) - 1
        self._emit({'type': 'turn_appended', 'position': position, 'role': Role.RESPONSE.value})
        logger.info("Generated query at position %d for %r", position, text)
        return OpResult.success(position=position, value=response)

    async def regenerate(self, request_position: int, keep_preview: bool = True) -> OpResult:
        """
        Ask the generator again for the request at `request_position` and
        replace the response right after it, in place.

        A trailing request whose generation failed has no response yet; it
        gets one appended instead.
        """
        request = self.turns.require(request_position, Role.REQUEST)
        if request_position == len(self.turns) - 1:
            if self.generating:
                return OpResult.rejected("a generation is already in progress", position=request_position)
            return await self._answer(request, regenerating=True)

        response = self.turns.require(request_position + 1, Role.RESPONSE)
        if self.generating:
            return OpResult.rejected("a generation is already in progress", position=request_position + 1)

        transcript = self.turns.prior_transcript(request_position)
        self._set_generating(True)
        try:
            draft = await self._generate(request.content, transcript, regenerating=True)
        except GenerationError as e:
            logger.warning("Regeneration failed for %r: %s", request.content, e)
            self._emit({'type': 'generation_failed', 'message': str(e)})
            return OpResult.failed(e, position=self.turns.position_of(response.turn_id))
        finally:
            self._set_generating(False)

        position = self.turns.position_of(response.turn_id)
        if position is None:
            logger.info("Discarding regenerated draft: response was undone meanwhile")
            return OpResult.ignored("response was undone while regenerating")

        current = self.turns[position]
        preview = draft.preview
        if preview is None and keep_preview:
            preview = current.preview
        new = self.turns.replace_response(position, draft.content, draft.explanation, preview)
        if not self.preserve_state_on_regenerate:
            self.lifecycle.reset(new.turn_id)
            self.results.discard(new.turn_id)
        self._emit({'type': 'turn_replaced', 'position': position, 'revision': new.revision})
        logger.info("Regenerated response for: %s", request.content)
        return OpResult.success(position=position, value=new)

    async def run(self, position: int) -> OpResult:
        """
        Execute the query at `position` and cache its result.

        Re-running overwrites the cached result. When two runs on the same
        response overlap, whichever completes last wins.
        """
        turn = self.turns.require(position, Role.RESPONSE)
        self.lifecycle.start_run(turn.turn_id)
        self._emit({'type': 'run_started', 'position': position})
        try:
            result = await self._execute(turn.content)
        except ExecutionError as e:
            logger.warning("Query at position %d failed: %s", position, e)
            self._emit({'type': 'run_failed', 'position': position, 'message': str(e)})
            return OpResult.failed(e, position=self.turns.position_of(turn.turn_id))
        finally:
            self.lifecycle.finish_run(turn.turn_id)

        now_position = self.turns.position_of(turn.turn_id)
        if now_position is None or self.turns[now_position].revision != turn.revision:
            logger.info("Discarding result for a query that was undone or regenerated")
            return OpResult.ignored("query changed while running", position=now_position)

        self.results.put(turn.turn_id, result)
        self._emit({'type': 'run_finished', 'position': now_position, 'row_count': result.row_count})
        logger.info("Query executed: %s", turn.content)
        return OpResult.success(position=now_position, value=result)

    def confirm(self, position: int) -> OpResult:
        turn_id = self._response_id(position)
        if turn_id not in self.results:
            return OpResult.rejected("query has no result to confirm", position=position)
        if self.lifecycle.confirm(turn_id):
            self._emit({'type': 'confirmed', 'position': position})
        return OpResult.success(position=position)

    def undo(self) -> OpResult:
        """
        Rewind the most recent request/response pair.

        A trailing request that is still waiting on its generation counts as
        the whole pair. The entire result cache is cleared, not only the
        removed entries.
        """
        if not len(self.turns):
            return OpResult.ignored("nothing to undo")

        self.history.push(self.turns.snapshot())
        count = 1 if self.turns[len(self.turns) - 1].is_request else 2
        removed = self.turns.truncate(count)
        removed_ids = [t.turn_id for t in removed]
        self.lifecycle.forget(removed_ids)
        self.results.clear()
        if self._selected_id in removed_ids:
            self._selected_id = None
        self._emit({'type': 'undone', 'removed': len(removed)})
        logger.info("Undid last query (%d turns removed)", len(removed))
        return OpResult.success(value=removed)

    def undo_from_inspection(self, position: int) -> OpResult:
        """Drop the confirmation and cached result of one query; the transcript stays."""
        turn_id = self._response_id(position)
        self.lifecycle.reset(turn_id)
        self.results.discard(turn_id)
        self._emit({'type': 'inspection_undone', 'position': position})
        return OpResult.success(position=position)

    def select(self, position: int) -> OpResult:
        """Toggle which response is expanded; at most one is."""
        turn_id = self._response_id(position)
        self._selected_id = None if self._selected_id == turn_id else turn_id
        selected = self.selected
        self._emit({'type': 'selected', 'position': selected})
        return OpResult.success(position=selected)

    async def report(self, position: int) -> OpResult:
        turn = self.turns.require(position, Role.RESPONSE)
        try:
            await self.feedback.report(turn.content)
        except FeedbackError as e:
            logger.warning("Could not report query at position %d: %s", position, e)
            self._emit({'type': 'reported', 'position': position, 'ok': False})
            return OpResult.failed(e, position=position)
        except Exception as e:
            logger.exception("Feedback sink crashed")
            self._emit({'type': 'reported', 'position': position, 'ok': False})
            return OpResult.failed(FeedbackError(str(e)), position=position)
        self._emit({'type': 'reported', 'position': position, 'ok': True})
        return OpResult.success(position=position)

    def set_database(self, database: DatabaseType) -> OpResult:
        if self.generating:
            return OpResult.rejected("cannot switch database while generating")
        self.database = DatabaseType(database)
        self._emit({'type': 'database', 'database': self.database.value})
        return OpResult.success(value=self.database)

    # ---------------------------------------------------------- collaborators

    async def _generate(self, text: str, transcript: tuple[Turn, ...], regenerating: bool = False) -> Draft:
        try:
            return await self.generator.generate(text, transcript, database=self.database,
                                                 regenerating=regenerating)
        except GenerationError:
            raise
        except Exception as e:
            logger.exception("Generator crashed")
            raise GenerationError(str(e)) from e

    async def _execute(self, query_text: str) -> ExecutionResult:
        try:
            return await self.executor.execute(query_text)
        except ExecutionError:
            raise
        except Exception as e:
            logger.exception("Executor crashed")
            raise ExecutionError(str(e)) from e
