"""
Query Drafter
"""

import asyncio
from typing import Optional

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header

from core import logging_setup
from core.collaborators import DEMO_TRANSCRIPT, LoggingFeedbackSink, MockExecutor, MockGenerator
from core.config import Settings
from core.domain import OpResult, OpStatus
from core.session import SessionController
from models import Role
from screens import ResultsScreen
from widgets import ChatLog, DatabaseChosen, DatabaseSelect, InputArea


def build_session(settings: Settings, events_q: Optional[asyncio.Queue] = None) -> SessionController:
    """Wire the controller to the collaborators the settings ask for."""
    if settings.backend == "openai":
        # imported lazily: the model client wants an API key at construction
        from core.agents.query_writer import QueryWriter

        on_token = None
        if events_q is not None:
            on_token = lambda text: events_q.put_nowait({'type': 'token', 'text': text})
        generator = QueryWriter(settings.model, on_token=on_token)
    else:
        generator = MockGenerator(delay=settings.generation_delay)

    return SessionController(
        generator,
        MockExecutor(delay=settings.execution_delay),
        LoggingFeedbackSink(),
        seed=DEMO_TRANSCRIPT if settings.seed_demo else (),
        database=settings.database,
        preserve_state_on_regenerate=settings.preserve_state_on_regenerate,
        events_q=events_q,
    )


class QueryDrafterApp(App):
    TITLE = "Query Drafter"

    BINDINGS = [
        Binding("up", "cursor(-1)", "Prev query"),
        Binding("down", "cursor(1)", "Next query"),
        Binding("ctrl+r", "run_query", "Run", priority=True),
        Binding("ctrl+o", "inspect", "Explain", priority=True),
        Binding("ctrl+g", "regenerate", "Regenerate", priority=True),
        Binding("ctrl+z", "undo", "Undo", priority=True),
        Binding("ctrl+b", "report", "Report error", priority=True),
        Binding("ctrl+t", "choose_database", "Database", priority=True),
    ]

    def __init__(self, settings: Optional[Settings] = None, session: Optional[SessionController] = None):
        super().__init__()
        self.settings = settings or Settings()
        self.event_q: asyncio.Queue = asyncio.Queue()
        if session is None:
            session = build_session(self.settings, self.event_q)
        else:
            session.events_q = self.event_q
        self.session = session

        # ordinal among responses, not an absolute position
        self.cursor: Optional[int] = None
        self._stream_buffer = ""

    def compose(self) -> ComposeResult:
        yield Header()
        yield ChatLog(id="chat_log", markup=True, wrap=True)
        yield InputArea(id="input_text", placeholder="Describe the query you need... (Enter to send)")
        yield DatabaseSelect(id="input_selection")
        yield Footer()

    async def on_mount(self) -> None:
        self._change_input_mode(is_selection=False)
        self._move_cursor_to_last()
        self.refresh_view()
        self._pump()

    # ------------------------------------------------------------- view state

    def highlighted_position(self) -> Optional[int]:
        """Absolute position of the highlighted query."""
        responses = self.session.turns.positions(Role.RESPONSE)
        if self.cursor is None or not responses:
            return None
        return responses[min(self.cursor, len(responses) - 1)]

    def _move_cursor_to_last(self) -> None:
        count = len(self.session.turns.positions(Role.RESPONSE))
        self.cursor = count - 1 if count else None

    def refresh_view(self) -> None:
        snapshot = self.session.snapshot()
        self.sub_title = f"{snapshot.database.value}"
        self.query_one("#chat_log", ChatLog).render_session(snapshot, self.highlighted_position())
        self.query_one("#input_text", InputArea).set_busy(snapshot.generating)

    def _change_input_mode(self, is_selection: bool):
        input_selection = self.query_one('#input_selection', DatabaseSelect)
        input_text = self.query_one('#input_text', InputArea)

        if is_selection:
            input_selection.display, input_text.display = True, False
            input_selection.highlight_database(self.session.database)
            input_selection.focus()
        else:
            input_selection.display, input_text.display = False, True
            input_text.focus()

    def _surface(self, result: OpResult) -> None:
        if result.status is OpStatus.FAILED:
            self.notify(result.reason or "operation failed", severity="error")
        elif result.status is OpStatus.REJECTED:
            self.notify(result.reason, severity="warning")

    # ---------------------------------------------------------------- input

    async def on_input_area_submit(self, message: InputArea.Submit) -> None:
        self.run_submit(message.value)

    async def on_database_chosen(self, message: DatabaseChosen) -> None:
        self._surface(self.session.set_database(message.database))
        self._change_input_mode(is_selection=False)

    def action_cursor(self, step: int) -> None:
        count = len(self.session.turns.positions(Role.RESPONSE))
        if not count:
            self.cursor = None
        else:
            current = self.cursor if self.cursor is not None else count - 1
            self.cursor = max(0, min(count - 1, current + step))
        self.refresh_view()

    def action_run_query(self) -> None:
        position = self.highlighted_position()
        if position is not None:
            self.run_query(position)

    def action_inspect(self) -> None:
        position = self.highlighted_position()
        if position is not None:
            self.session.select(position)

    def action_regenerate(self) -> None:
        turns = self.session.turns
        last = len(turns) - 1
        if last >= 0 and turns[last].is_request and not self.session.generating:
            # a request left without a query by a failed generation is retried first
            self.run_regenerate(last)
            return
        position = self.highlighted_position()
        if position is not None:
            self.run_regenerate(position - 1)

    def action_undo(self) -> None:
        self._surface(self.session.undo())
        self._move_cursor_to_last()

    def action_report(self) -> None:
        position = self.highlighted_position()
        if position is not None:
            self.run_report(position)

    def action_choose_database(self) -> None:
        self._change_input_mode(is_selection=True)

    # -------------------------------------------------------------- workers

    @work(group='generate')
    async def run_submit(self, text: str):
        result = await self.session.submit(text)
        if result.ok:
            self._move_cursor_to_last()
        self._surface(result)

    @work(group='generate')
    async def run_regenerate(self, request_position: int):
        result = await self.session.regenerate(request_position)
        if result.ok and result.position == len(self.session.turns) - 1:
            self._move_cursor_to_last()
        self._surface(result)

    @work(group='execute')
    async def run_query(self, position: int):
        result = await self.session.run(position)
        self._surface(result)
        if result.ok:
            turn = self.session.turns[result.position]
            self.push_screen(
                ResultsScreen(turn.content, result.value, turn.preview),
                callback=lambda decision: self._on_results_closed(turn.turn_id, decision),
            )

    @work(group='feedback')
    async def run_report(self, position: int):
        result = await self.session.report(position)
        if result.ok:
            self.notify("Error reported! Thanks, this feedback improves query generation.")
        self._surface(result)

    def _on_results_closed(self, turn_id: int, decision: Optional[bool]) -> None:
        position = self.session.turns.position_of(turn_id)
        if position is None or decision is None:
            return
        if decision:
            self._surface(self.session.confirm(position))
        else:
            self.session.undo_from_inspection(position)

    @work(exclusive=True, group='pump')
    async def _pump(self):
        """
        Session event loop: every event redraws the transcript; streamed
        tokens are shown in the sub title while a draft is being written.
        """
        while True:
            ev = await self.event_q.get()
            type = ev.get('type', '')

            if type == 'token':
                self._stream_buffer += ev.get('text', '')
                self.sub_title = f"{self.session.database.value} | {self._stream_buffer[-60:]}"
                continue
            if type == 'generating' and not ev.get('active'):
                self._stream_buffer = ""

            self.refresh_view()


def main():
    settings = Settings.from_env()
    logging_setup.configure(settings.log_level, settings.log_file)
    app = QueryDrafterApp(settings)
    app.run()


if __name__ == "__main__":
    main()
