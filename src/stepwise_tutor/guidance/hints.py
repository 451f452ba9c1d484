from __future__ import annotations

from typing import List

from stepwise_tutor.data_models import Hint, SolutionDocument, SolutionStepInput, Step
from stepwise_tutor.evaluation.similarity import extract_validation_keywords

DEFAULT_GENERAL_HINT = "Think carefully about what this step asks for."
MATHEMATICAL_HINT = "Think about which mathematical operation this step needs."
DETAILED_HINT = "Remember to use the result you got in the previous step."

TRIG_MARKERS = ("sin", "cos", "tan")


def hints_for(step: SolutionStepInput) -> List[Hint]:
    """Return the general, mathematical and detailed hints for a step, in that order."""
    return [
        Hint(level=1, text=step.hint or DEFAULT_GENERAL_HINT, kind="general"),
        Hint(level=2, text=MATHEMATICAL_HINT, kind="mathematical"),
        Hint(level=3, text=DETAILED_HINT, kind="detailed"),
    ]


def step_difficulty(answer: str) -> int:
    """Score 1-5 based on the heavier operators present in a step's answer."""
    difficulty = 1
    if "\\frac" in answer:
        difficulty += 2
    if "\\sqrt" in answer:
        difficulty += 2
    if "^" in answer:
        difficulty += 1
    if "\\sum" in answer or "\\int" in answer:
        difficulty += 3
    if any(marker in answer for marker in TRIG_MARKERS):
        difficulty += 1
    return min(difficulty, 5)


def prepare_steps(document: SolutionDocument) -> List[Step]:
    """Turn raw generator output into immutable steps with hints, difficulty and keywords."""
    prepared: List[Step] = []
    for index, raw in enumerate(document.steps):
        prepared.append(
            Step(
                number=index + 1,
                description=raw.description or f"Step {index + 1}",
                correct_answer=raw.correct_answer,
                hints=hints_for(raw),
                difficulty=step_difficulty(raw.correct_answer),
                validation_keywords=extract_validation_keywords(raw.correct_answer),
                common_mistakes=list(raw.wrong_options),
            )
        )
    return prepared


def hint_for_attempts(step: Step, attempts: int) -> Hint:
    """
    Pick the hint matching how many attempts the learner has spent on a step.

    The level is `min(attempts, len(hints))`; before any attempt the general
    hint is shown.
    """
    level = max(1, min(attempts, len(step.hints)))
    return step.hints[level - 1]
