"""
Custom UI widgets for the query drafter.
"""
from .input_area import InputArea
from .chat_log import ChatLog
from .database_select import DatabaseChosen, DatabaseSelect

__all__ = ["InputArea", "ChatLog", "DatabaseChosen", "DatabaseSelect"]
