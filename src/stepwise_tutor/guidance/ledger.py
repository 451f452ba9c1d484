from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass
class AttemptResult:
    attempts: int
    remaining: int
    exhausted: bool


class AttemptLedger:
    """Per-step count of incorrect submissions, capped at a fixed budget."""

    def __init__(self, max_attempts_per_step: int = 3):
        if max_attempts_per_step < 1:
            raise ValueError("max_attempts_per_step must be at least 1")
        self.max_attempts_per_step = max_attempts_per_step
        self._attempts: Dict[int, int] = {}

    def attempts(self, step_index: int) -> int:
        return self._attempts.get(step_index, 0)

    def remaining(self, step_index: int) -> int:
        return self.max_attempts_per_step - self.attempts(step_index)

    def is_exhausted(self, step_index: int) -> bool:
        return self.attempts(step_index) >= self.max_attempts_per_step

    def has_entry(self, step_index: int) -> bool:
        return step_index in self._attempts

    def record_failure(self, step_index: int) -> AttemptResult:
        """Consume one attempt on a step; never exceeds the budget."""
        if self.is_exhausted(step_index):
            raise ValueError(f"attempt budget already exhausted for step {step_index}")
        count = self.attempts(step_index) + 1
        self._attempts[step_index] = count
        return AttemptResult(
            attempts=count,
            remaining=self.max_attempts_per_step - count,
            exhausted=count >= self.max_attempts_per_step,
        )

    def mark_completed(self, step_index: int, synthetic_attempts: int = 1) -> None:
        """Give an untouched step a synthetic count when it is completed by a final answer."""
        if step_index not in self._attempts:
            self._attempts[step_index] = min(synthetic_attempts, self.max_attempts_per_step)

    def total(self) -> int:
        return sum(self._attempts.values())

    def snapshot(self) -> Dict[int, int]:
        return dict(self._attempts)

    def clear(self) -> None:
        self._attempts.clear()
