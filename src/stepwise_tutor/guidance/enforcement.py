from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from stepwise_tutor.config.schema import EnforcementConfig, EnforcementLevelConfig
from stepwise_tutor.data_models import Step
from stepwise_tutor.guidance.hints import TRIG_MARKERS

logger = logging.getLogger(__name__)


@dataclass
class ComplexityReport:
    score: int
    step_count: int
    is_simple: bool
    is_complex: bool


@dataclass
class EnforcementDecision:
    allow: bool
    warn: bool
    early: bool
    steps_remaining: int
    message: str | None = None
    educational_reason: str | None = None


def analyze_complexity(steps: Sequence[Step]) -> ComplexityReport:
    """Score a problem by step count and the operators used in each step's answer."""
    score = 0
    for step in steps:
        answer = step.correct_answer
        score += 10
        if "\\frac" in answer:
            score += 15
        if "\\sqrt" in answer:
            score += 10
        score += 5 * answer.count("^")
        if "\\int" in answer or "\\sum" in answer:
            score += 25
        if any(marker in answer for marker in TRIG_MARKERS):
            score += 15
    return ComplexityReport(
        score=score,
        step_count=len(steps),
        is_simple=score < 30,
        is_complex=score > 80,
    )


def classify(steps: Sequence[Step], learning_score: int, strict_score_floor: int = 70) -> str:
    """
    Choose the enforcement level for a problem.

    Short simple problems are `flexible`, long or operator-heavy ones are
    `strict`, everything else is `normal`. A learning score below
    `strict_score_floor` forces `strict` regardless of the problem.
    """
    complexity = analyze_complexity(steps)
    level = "normal"
    if complexity.is_simple and complexity.step_count <= 2:
        level = "flexible"
    elif complexity.is_complex or complexity.step_count >= 4:
        level = "strict"
    if learning_score < strict_score_floor:
        level = "strict"
    return level


class EnforcementPolicy:
    """Session-scoped skip detector holding the consecutive early final answer counter."""

    def __init__(self, level: str, rules: EnforcementLevelConfig):
        self.level = level
        self.final_answer_threshold = rules.final_answer_threshold
        self.max_consecutive_final_answers = rules.max_consecutive_final_answers
        self.consecutive_early_final_answers = 0

    @classmethod
    def for_problem(
        cls, steps: Sequence[Step], learning_score: int, config: EnforcementConfig
    ) -> "EnforcementPolicy":
        level = classify(steps, learning_score, config.strict_score_floor)
        return cls(level, config.levels[level])

    def reset(self) -> None:
        self.consecutive_early_final_answers = 0

    def is_early(self, step_index: int, total_steps: int) -> bool:
        return (step_index + 1) / total_steps < self.final_answer_threshold

    def would_block(self, step_index: int, total_steps: int) -> bool:
        """Whether a final answer submitted now would be blocked; does not touch the counter."""
        return (
            self.is_early(step_index, total_steps)
            and self.consecutive_early_final_answers + 1 >= self.max_consecutive_final_answers
        )

    def decide(self, step_index: int, total_steps: int, is_final_answer: bool) -> EnforcementDecision:
        steps_remaining = total_steps - (step_index + 1)

        if not (is_final_answer and self.is_early(step_index, total_steps)):
            self.consecutive_early_final_answers = 0
            return EnforcementDecision(
                allow=True, warn=False, early=False, steps_remaining=steps_remaining
            )

        self.consecutive_early_final_answers += 1
        if self.consecutive_early_final_answers >= self.max_consecutive_final_answers:
            logger.info(
                "Blocked early final answer at step %d/%d (level=%s, consecutive=%d)",
                step_index + 1,
                total_steps,
                self.level,
                self.consecutive_early_final_answers,
            )
            return EnforcementDecision(
                allow=False,
                warn=True,
                early=True,
                steps_remaining=steps_remaining,
                message=(
                    "You can't skip ahead here. Solve this problem step by step "
                    f"({steps_remaining} step{'s' if steps_remaining != 1 else ''} left)."
                ),
                educational_reason="Understanding every step is how the method sticks.",
            )

        chances_left = self.max_consecutive_final_answers - self.consecutive_early_final_answers
        return EnforcementDecision(
            allow=True,
            warn=True,
            early=True,
            steps_remaining=steps_remaining,
            message=(
                "You're moving very fast. Working through the steps is recommended "
                f"({chances_left} skip{'s' if chances_left != 1 else ''} left)."
            ),
            educational_reason="Solving each step builds your mathematical reasoning.",
        )
