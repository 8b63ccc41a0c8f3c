"""
Ordered transcript of request/response turns.

Position (0-based index) is how callers address a turn. Every turn also
carries a `turn_id` handed out by the store; ids are never reused within a
session, so side maps keyed by id can not be confused by truncation.
"""

from dataclasses import replace
from typing import Iterable, Iterator, Optional

from core.errors import PositionError
from models import Draft, Preview, Role, Turn


class TurnStore:
    def __init__(self, seed: Iterable[tuple[Role, Draft]] = ()):
        self.next_turn_id = 1
        self._turns: list[Turn] = []
        for role, draft in seed:
            self.append(role, draft.content, draft.explanation or None, draft.preview)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    def __getitem__(self, position: int) -> Turn:
        return self.get(position)

    def get(self, position: int) -> Turn:
        if position < 0 or position >= len(self._turns):
            raise PositionError(position, f"out of range (transcript has {len(self._turns)} turns)")
        return self._turns[position]

    def require(self, position: int, role: Role) -> Turn:
        turn = self.get(position)
        if turn.role is not role:
            raise PositionError(position, f"expected a {role.value} turn, found {turn.role.value}")
        return turn

    def append(self, role: Role, content: str, explanation: Optional[str] = None,
               preview: Optional[Preview] = None) -> Turn:
        turn = Turn(
            turn_id=self.next_turn_id,
            role=role,
            content=content,
            explanation=explanation if role is Role.RESPONSE else None,
            preview=preview,
        )
        self.next_turn_id += 1
        self._turns.append(turn)
        return turn

    def replace_response(self, position: int, content: str, explanation: Optional[str],
                         preview: Optional[Preview]) -> Turn:
        """Swap a response's payload in place; id and position stay the same."""
        old = self.require(position, Role.RESPONSE)
        new = replace(
            old,
            content=content,
            explanation=explanation,
            preview=preview,
            revision=old.revision + 1,
        )
        self._turns[position] = new
        return new

    def truncate(self, count: int) -> list[Turn]:
        """Drop up to `count` turns from the tail and return them, oldest first."""
        if count <= 0:
            return []
        cut = max(len(self._turns) - count, 0)
        removed = self._turns[cut:]
        del self._turns[cut:]
        return removed

    def snapshot(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def position_of(self, turn_id: int) -> Optional[int]:
        for position, turn in enumerate(self._turns):
            if turn.turn_id == turn_id:
                return position
        return None

    def contains(self, turn_id: int) -> bool:
        return self.position_of(turn_id) is not None

    def positions(self, role: Role) -> list[int]:
        """
        Absolute positions of every turn with the given role.

        This is the "Nth response" projection: `positions(Role.RESPONSE)[n]`.
        It is recomputed on every call and never stored.
        """
        return [i for i, turn in enumerate(self._turns) if turn.role is role]

    def prior_transcript(self, position: int) -> tuple[Turn, ...]:
        return tuple(self._turns[:position])
