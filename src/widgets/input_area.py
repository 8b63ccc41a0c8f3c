"""
Request input for the query drafter.
"""
from textual.widgets import Input
from textual.message import Message

IDLE_PLACEHOLDER = "Describe the query you need... (Enter to send)"
BUSY_PLACEHOLDER = "Generating..."


class InputArea(Input):
    class Submit(Message, bubble=True):
        def __init__(self, value: str) -> None:
            super().__init__()
            self.value = value

    def set_busy(self, busy: bool) -> None:
        self.placeholder = BUSY_PLACEHOLDER if busy else IDLE_PLACEHOLDER

    async def action_submit(self) -> None:
        """Blank input is left for the session to ignore; the box is cleared either way."""
        self.post_message(self.Submit(self.value))
        self.value = ""
