"""
Append-only log of transcript snapshots taken before each undo.

Snapshots are kept for inspection only; nothing replays them back into the
transcript, so there is no redo.
"""
from typing import Optional

from models import Turn


class HistoryStack:
    def __init__(self):
        self._snapshots: list[tuple[Turn, ...]] = []

    def __len__(self) -> int:
        return len(self._snapshots)

    def push(self, snapshot: tuple[Turn, ...]) -> None:
        self._snapshots.append(tuple(snapshot))

    def latest(self) -> Optional[tuple[Turn, ...]]:
        return self._snapshots[-1] if self._snapshots else None

    def snapshots(self) -> tuple[tuple[Turn, ...], ...]:
        return tuple(self._snapshots)
