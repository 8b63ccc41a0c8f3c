"""
Transcript view: renders a session snapshot into a RichLog.
"""
from typing import Optional, Union

from rich.console import Group
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from textual.widgets import RichLog

from core.session import SessionSnapshot
from models import DatabaseType, ExecutionResult, TableData


def render_table(data: Union[TableData, ExecutionResult], label: Optional[str] = None) -> Table:
    table = Table(title=label, show_lines=False, expand=False)
    for column in data.columns:
        table.add_column(str(column))
    for row in data.rows:
        table.add_row(*("" if cell is None else str(cell) for cell in row))
    return table


def _lexer(database: DatabaseType) -> str:
    return "javascript" if database is DatabaseType.MONGODB else "sql"


def status_line(snapshot: SessionSnapshot, position: int) -> str:
    if position in snapshot.running:
        status = "[yellow]running...[/yellow]"
    elif position in snapshot.executed:
        status = "[green]executed[/green]"
    else:
        status = "[dim]not run[/dim]"
    if position in snapshot.confirmed:
        status += " [bold green]confirmed[/bold green]"
    result = snapshot.results.get(position)
    if result is not None:
        status += f" [dim]{result.row_count} row(s) at {result.executed_at:%Y-%m-%d %H:%M:%S}[/dim]"
    return status


class ChatLog(RichLog):
    def render_session(self, snapshot: SessionSnapshot, cursor: Optional[int] = None) -> None:
        """Redraw the whole transcript; `cursor` is the position of the highlighted query."""
        self.clear()
        if not snapshot.turns:
            self.write("[dim]Start by describing the data you need...[/dim]")

        lexer = _lexer(snapshot.database)
        request_no = 0
        for position, turn in enumerate(snapshot.turns):
            if turn.is_request:
                request_no += 1
                self.write(f"[bold]#{request_no}[/bold] [dim]user:[/dim] {escape(turn.content)}")
                continue

            marker = "▶ " if position == cursor else ""
            parts = [Syntax(turn.content, lexer, word_wrap=True), status_line(snapshot, position)]
            if position == snapshot.selected:
                if turn.explanation:
                    parts.append(f"[italic]{escape(turn.explanation)}[/italic]")
                preview = turn.preview
                if preview is not None:
                    if preview.title:
                        parts.append(f"[bold]{escape(preview.title)}[/bold]")
                    if preview.before is not None:
                        parts.append(render_table(preview.before, "Before"))
                    if preview.after is not None:
                        parts.append(render_table(preview.after, "After"))
            self.write(Panel(Group(*parts), title=f"{marker}query", title_align="left",
                             border_style="cyan" if position == cursor else "dim"))

        if snapshot.generating:
            self.write("[dim]Generating...[/dim]")
