"""
Exceptions raised by the session core and its collaborators.
"""


class SessionError(Exception):
    """Base class for every error the session knows how to report."""


class GenerationError(SessionError):
    """The generator could not produce a draft (upstream malformed or unavailable)."""


class ExecutionError(SessionError):
    """The executor failed to run a query (syntax, permission, connectivity)."""


class FeedbackError(SessionError):
    """A defect report could not be delivered."""


class PositionError(SessionError, IndexError):
    """A transcript position does not exist or holds the wrong kind of turn."""

    def __init__(self, position: int, reason: str):
        super().__init__(f"position {position}: {reason}")
        self.position = position
        self.reason = reason
