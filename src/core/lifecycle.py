"""
Per-response execution and confirmation bookkeeping, keyed by turn id.
"""
from collections import Counter
from enum import Enum
from typing import Iterable


class RunState(str, Enum):
    NOT_RUN = "not_run"
    RUNNING = "running"
    EXECUTED = "executed"


class LifecycleTracker:
    def __init__(self):
        self.executed: set[int] = set()
        self.confirmed: set[int] = set()
        self._running: Counter[int] = Counter()

    def state(self, turn_id: int) -> RunState:
        if self._running[turn_id] > 0:
            return RunState.RUNNING
        if turn_id in self.executed:
            return RunState.EXECUTED
        return RunState.NOT_RUN

    def start_run(self, turn_id: int) -> None:
        # an attempt counts as executed even if it later fails
        self.executed.add(turn_id)
        self._running[turn_id] += 1

    def finish_run(self, turn_id: int) -> None:
        if self._running[turn_id] <= 1:
            self._running.pop(turn_id, None)
        else:
            self._running[turn_id] -= 1

    def is_running(self, turn_id: int) -> bool:
        return self._running[turn_id] > 0

    def running_ids(self) -> set[int]:
        return {tid for tid, n in self._running.items() if n > 0}

    def confirm(self, turn_id: int) -> bool:
        """Return True if the flag was newly set."""
        if turn_id in self.confirmed:
            return False
        self.confirmed.add(turn_id)
        return True

    def unconfirm(self, turn_id: int) -> None:
        self.confirmed.discard(turn_id)

    def reset(self, turn_id: int) -> None:
        """Back to not-run and unconfirmed; in-flight runs keep their counter."""
        self.executed.discard(turn_id)
        self.confirmed.discard(turn_id)

    def forget(self, turn_ids: Iterable[int]) -> None:
        for tid in turn_ids:
            self.reset(tid)
