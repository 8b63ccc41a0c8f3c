"""
Session events pushed to the presentation layer, and operation outcomes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional, TypedDict, Union


class GeneratingEvent(TypedDict, total=False):
    type: Literal['generating']
    active: bool


class TurnAppendedEvent(TypedDict, total=False):
    type: Literal['turn_appended']
    position: int
    role: str


class TurnReplacedEvent(TypedDict, total=False):
    type: Literal['turn_replaced']
    position: int
    revision: int


class GenerationFailedEvent(TypedDict, total=False):
    type: Literal['generation_failed']
    message: str


class RunStartedEvent(TypedDict, total=False):
    type: Literal['run_started']
    position: int


class RunFinishedEvent(TypedDict, total=False):
    type: Literal['run_finished']
    position: int
    row_count: int


class RunFailedEvent(TypedDict, total=False):
    type: Literal['run_failed']
    position: int
    message: str


class ConfirmedEvent(TypedDict, total=False):
    type: Literal['confirmed']
    position: int


class UndoneEvent(TypedDict, total=False):
    type: Literal['undone']
    removed: int


class InspectionUndoneEvent(TypedDict, total=False):
    type: Literal['inspection_undone']
    position: int


class SelectedEvent(TypedDict, total=False):
    type: Literal['selected']
    position: Optional[int]


class ReportedEvent(TypedDict, total=False):
    type: Literal['reported']
    position: int
    ok: bool


class DatabaseEvent(TypedDict, total=False):
    type: Literal['database']
    database: str


SessionEvent = Union[
    GeneratingEvent, TurnAppendedEvent, TurnReplacedEvent, GenerationFailedEvent,
    RunStartedEvent, RunFinishedEvent, RunFailedEvent, ConfirmedEvent,
    UndoneEvent, InspectionUndoneEvent, SelectedEvent, ReportedEvent, DatabaseEvent,
]


class OpStatus(str, Enum):
    """How a controller operation ended."""

    OK = "ok"
    IGNORED = "ignored"      # empty input, or a late completion nobody wants
    REJECTED = "rejected"    # disabled affordance: busy or precondition unmet
    FAILED = "failed"        # a collaborator raised

    def is_ok(self) -> bool:
        return self is OpStatus.OK


@dataclass(frozen=True)
class OpResult:
    status: OpStatus
    position: Optional[int] = None
    reason: str = ""
    error: Optional[Exception] = None
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status.is_ok()

    @classmethod
    def success(cls, position: Optional[int] = None, value: Any = None) -> "OpResult":
        return cls(OpStatus.OK, position=position, value=value)

    @classmethod
    def ignored(cls, reason: str, position: Optional[int] = None) -> "OpResult":
        return cls(OpStatus.IGNORED, position=position, reason=reason)

    @classmethod
    def rejected(cls, reason: str, position: Optional[int] = None) -> "OpResult":
        return cls(OpStatus.REJECTED, position=position, reason=reason)

    @classmethod
    def failed(cls, error: Exception, position: Optional[int] = None) -> "OpResult":
        return cls(OpStatus.FAILED, position=position, reason=str(error), error=error)


class TokenEvent(TypedDict, total=False):
    type: Literal['token']
    text: str


class ReplyDoneEvent(TypedDict, total=False):
    type: Literal['reply_done']
    text: str


StreamEvent = Union[TokenEvent, ReplyDoneEvent]
