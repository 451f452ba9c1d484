from __future__ import annotations

import logging
from typing import Any, Dict

from pydantic import BaseModel

logger = logging.getLogger(__name__)

EARLY_ANSWER_PROGRESS = 0.7

RECOMMENDATIONS = {
    "excellent": (
        "Great work! Solving problems step by step is strengthening your understanding."
    ),
    "good": (
        "You're progressing well. You sometimes try to skip steps; focus on solving each one."
    ),
    "needs_improvement": (
        "Working step by step matters for learning math. Follow the process instead of "
        "jumping to the final answer early."
    ),
}


class LearningReport(BaseModel):
    learning_score: int
    early_answer_rate: int
    average_steps_completed: float
    performance_tier: str
    recommendation: str


def _clamp_score(value: int) -> int:
    return max(0, min(100, value))


class LearningTelemetry:
    """
    Longitudinal learning signal for one learner.

    Outlives any single guidance session: sessions reset their own state but
    keep pointing at the same telemetry instance, so a learner who keeps
    skipping to final answers gets stricter enforcement on later problems.

    The learning score starts at 100, is always clamped to [0, 100], drops on
    early final answers and recovers slowly on clean step completions.
    `record_problem` must be called exactly once per completed or abandoned
    problem; the guidance session enforces that.
    """

    def __init__(
        self,
        learning_score: int = 100,
        total_problems_attempted: int = 0,
        early_final_answer_count: int = 0,
        average_steps_completed: float = 0.0,
        hints_revealed: int = 0,
        blocked_skip_attempts: int = 0,
        permitted_early_completions: int = 0,
    ):
        self.learning_score = _clamp_score(learning_score)
        self.total_problems_attempted = total_problems_attempted
        self.early_final_answer_count = early_final_answer_count
        self.average_steps_completed = average_steps_completed
        self.hints_revealed = hints_revealed
        self.blocked_skip_attempts = blocked_skip_attempts
        self.permitted_early_completions = permitted_early_completions

    def adjust_score(self, delta: int) -> int:
        self.learning_score = _clamp_score(self.learning_score + delta)
        return self.learning_score

    def reward_step(self, points: int = 2) -> int:
        return self.adjust_score(points)

    def penalize_early_final_answer(self, points: int = 10) -> int:
        score = self.adjust_score(-points)
        logger.info("Early final answer penalty applied; learning score now %d", score)
        return score

    def record_hint(self) -> None:
        self.hints_revealed += 1

    def record_blocked_skip(self) -> None:
        self.blocked_skip_attempts += 1

    def record_problem(
        self,
        step_index: int,
        total_steps: int,
        was_correct: bool,
        was_final_answer: bool,
    ) -> None:
        """Fold one finished or abandoned problem into the running statistics."""
        self.total_problems_attempted += 1
        early = was_final_answer and (step_index + 1) / total_steps < EARLY_ANSWER_PROGRESS
        if early:
            self.early_final_answer_count += 1
            if was_correct:
                self.permitted_early_completions += 1

        # Two-term smoothing, not a true mean.
        completed_steps = step_index + 1
        self.average_steps_completed = (self.average_steps_completed + completed_steps) / 2
        logger.debug(
            "Recorded problem: step=%d/%d correct=%s final=%s early=%s",
            completed_steps,
            total_steps,
            was_correct,
            was_final_answer,
            early,
        )

    def early_answer_rate(self) -> float:
        if self.total_problems_attempted == 0:
            return 0.0
        return self.early_final_answer_count / self.total_problems_attempted * 100

    def report(self) -> LearningReport:
        rate = self.early_answer_rate()
        tier = "excellent"
        if rate > 60:
            tier = "needs_improvement"
        elif rate > 30:
            tier = "good"
        return LearningReport(
            learning_score=self.learning_score,
            early_answer_rate=round(rate),
            average_steps_completed=round(self.average_steps_completed, 1),
            performance_tier=tier,
            recommendation=RECOMMENDATIONS[tier],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "learning_score": self.learning_score,
            "total_problems_attempted": self.total_problems_attempted,
            "early_final_answer_count": self.early_final_answer_count,
            "average_steps_completed": self.average_steps_completed,
            "hints_revealed": self.hints_revealed,
            "blocked_skip_attempts": self.blocked_skip_attempts,
            "permitted_early_completions": self.permitted_early_completions,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearningTelemetry":
        return cls(
            learning_score=int(data.get("learning_score", 100)),
            total_problems_attempted=int(data.get("total_problems_attempted", 0)),
            early_final_answer_count=int(data.get("early_final_answer_count", 0)),
            average_steps_completed=float(data.get("average_steps_completed", 0.0)),
            hints_revealed=int(data.get("hints_revealed", 0)),
            blocked_skip_attempts=int(data.get("blocked_skip_attempts", 0)),
            permitted_early_completions=int(data.get("permitted_early_completions", 0)),
        )
