"""
Data models for the query drafting session.
"""
from .turn import (
    Cell,
    DatabaseType,
    Draft,
    ExecutionResult,
    Preview,
    Role,
    TableData,
    Turn,
)

__all__ = [
    "Cell",
    "DatabaseType",
    "Draft",
    "ExecutionResult",
    "Preview",
    "Role",
    "TableData",
    "Turn",
]
