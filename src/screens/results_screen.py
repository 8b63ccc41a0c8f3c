"""
Modal screen showing the outcome of a query run.
"""

from typing import Optional

from rich.console import Group
from textual import on
from textual.widgets import Static, OptionList
from textual.widgets.option_list import Option
from textual.containers import Center, Vertical
from textual.screen import ModalScreen

from models import ExecutionResult, Preview
from widgets.chat_log import render_table


class ResultsScreen(ModalScreen[Optional[bool]]):
    """
    Dismisses with True to confirm the changes, False to undo the query,
    or None when closed without a decision.
    """
    CSS = """
#panel {
    width: 90%;
    max-width: 140;
    border: round $secondary;
    padding: 1 2;
}
#result_options {
    margin-top: 1;
}
#panel OptionList {
    border: none;
    background: transparent;
}
    """
    BINDINGS = [
        ('1', 'confirm', 'confirm'),
        ('2', 'undo', 'undo'),
        ('escape', 'close', 'close'),
    ]

    def __init__(self, query: str, result: ExecutionResult, preview: Optional[Preview] = None) -> None:
        super().__init__()
        self.query_text = query
        self.result = result
        self.preview = preview

    def _body(self):
        if self.preview is not None and self.preview.is_comparison:
            return Group(
                render_table(self.preview.before, "Before"),
                render_table(self.preview.after, "After"),
            )
        return render_table(self.result, "Results")

    def compose(self):
        executed_at = self.result.executed_at.strftime("%Y-%m-%d %H:%M:%S")
        yield Center(
            Vertical(
                Static("[bold green]Query executed successfully[/bold green]\n", markup=True),
                Static(f"[dim]Rows returned:[/dim] {self.result.row_count}    "
                       f"[dim]Executed at:[/dim] {executed_at}\n", markup=True),
                Static(self._body()),
                OptionList(
                    Option("1. Confirm changes", id="confirm"),
                    Option("2. Undo query", id="undo"),
                    id="result_options",
                ),
            ),
            id="panel",
        )

    def on_mount(self) -> None:
        ol = self.query_one(OptionList)
        ol.focus()
        ol.highlighted = 0

    @on(OptionList.OptionSelected)
    def on_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(event.option_id == 'confirm')

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_undo(self) -> None:
        self.dismiss(False)

    def action_close(self) -> None:
        self.dismiss(None)
