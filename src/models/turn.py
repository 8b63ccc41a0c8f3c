"""
Data models for the query drafting session.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

Cell = Union[str, int, float, None]


class Role(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"


class DatabaseType(str, Enum):
    """Target data store the generated queries are written for."""
    SQL = "SQL"
    MONGODB = "MongoDB"
    POSTGRESQL = "PostgreSQL"
    MYSQL = "MySQL"


@dataclass(frozen=True)
class TableData:
    columns: tuple[str, ...] = ()
    rows: tuple[tuple[Cell, ...], ...] = ()

    @classmethod
    def of(cls, columns, rows) -> "TableData":
        return cls(tuple(columns), tuple(tuple(r) for r in rows))


@dataclass(frozen=True)
class Preview:
    """
    Before/after snapshot illustrating what a mutating query would change.
    """
    before: Optional[TableData] = None
    after: Optional[TableData] = None
    title: Optional[str] = None

    @property
    def is_comparison(self) -> bool:
        return self.before is not None and self.after is not None


@dataclass(frozen=True)
class Turn:
    """
    Represents a single entry of the transcript.

    `turn_id` is assigned once by the turn store and survives in-place
    regeneration; `revision` counts how many times a response was replaced.
    """
    turn_id: int
    role: Role
    content: str = ""
    explanation: Optional[str] = None
    preview: Optional[Preview] = None
    revision: int = 0

    @property
    def is_request(self) -> bool:
        return self.role is Role.REQUEST

    @property
    def is_response(self) -> bool:
        return self.role is Role.RESPONSE


@dataclass(frozen=True)
class Draft:
    """What a generator hands back for one request."""
    content: str
    explanation: str = ""
    preview: Optional[Preview] = None


@dataclass(frozen=True)
class ExecutionResult:
    columns: tuple[str, ...]
    rows: tuple[tuple[Cell, ...], ...]
    row_count: int
    executed_at: datetime = field(default_factory=lambda: datetime.now().astimezone())

    def __post_init__(self):
        if self.row_count < 0:
            raise ValueError(f"row_count must be >= 0, got {self.row_count}")
