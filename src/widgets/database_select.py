from textual import on
from textual.widgets import OptionList
from textual.widgets.option_list import Option
from textual.message import Message

from models import DatabaseType


class DatabaseChosen(Message):
    def __init__(self, database: DatabaseType) -> None:
        super().__init__()
        self.database = database


class DatabaseSelect(OptionList):
    """Option list of target databases; the current one is highlighted on show."""

    def __init__(self, id: str) -> None:
        super().__init__(
            *(Option(f"{i}. {db.value}", id=db.value) for i, db in enumerate(DatabaseType, start=1)),
            id=id,
        )

    def highlight_database(self, database: DatabaseType) -> None:
        self.highlighted = list(DatabaseType).index(database)

    @on(OptionList.OptionSelected)
    def on_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.post_message(DatabaseChosen(DatabaseType(event.option.id)))
        event.stop()
