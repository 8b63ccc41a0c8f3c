"""
Last execution result per response, keyed by turn id.
"""
from types import MappingProxyType
from typing import Mapping, Optional

from models import ExecutionResult


class ResultCache:
    def __init__(self):
        self._results: dict[int, ExecutionResult] = {}

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, turn_id: int) -> bool:
        return turn_id in self._results

    def get(self, turn_id: int) -> Optional[ExecutionResult]:
        return self._results.get(turn_id)

    def put(self, turn_id: int, result: ExecutionResult) -> Optional[ExecutionResult]:
        """Store `result`, returning whatever it overwrote."""
        previous = self._results.get(turn_id)
        self._results[turn_id] = result
        return previous

    def discard(self, turn_id: int) -> None:
        self._results.pop(turn_id, None)

    def clear(self) -> None:
        self._results.clear()

    def view(self) -> Mapping[int, ExecutionResult]:
        return MappingProxyType(self._results)
