from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from stepwise_tutor.data_models import (
    FinalAnswerCheck,
    FinalAnswerRequest,
    StepEvaluation,
    StepEvaluationRequest,
    WrongOption,
)
from stepwise_tutor.evaluation.similarity import calculate_similarity, keyword_coverage


class StepEvaluator(ABC):
    """Interface for the collaborator that judges learner submissions."""

    @abstractmethod
    async def evaluate_step(self, request: StepEvaluationRequest) -> StepEvaluation:
        """Judge a submission against the current step's correct answer."""

    @abstractmethod
    async def check_final_answer(self, request: FinalAnswerRequest) -> FinalAnswerCheck:
        """Decide whether a submission is the problem's overall answer."""


class LocalSimilarityEvaluator(StepEvaluator):
    """
    Offline evaluator based on positional string similarity.

    Used when no remote evaluator is configured and as the fallback whenever
    the remote one fails. A step counts as correct at `step_threshold`
    similarity, a final answer at `final_answer_threshold`.
    """

    def __init__(self, step_threshold: float = 0.7, final_answer_threshold: float = 0.8):
        self.step_threshold = step_threshold
        self.final_answer_threshold = final_answer_threshold

    def judge_step(self, request: StepEvaluationRequest) -> StepEvaluation:
        similarity = calculate_similarity(request.student_input, request.correct_answer)
        if similarity >= self.step_threshold:
            return StepEvaluation(
                is_correct=True,
                feedback="This step looks correct!",
                improvement="You can move on to the next step.",
                encouragement="Great work!",
                accuracy=similarity,
            )

        error_type = "general_error"
        mistake = self._match_common_mistake(request)
        if mistake is not None:
            error_type = "common_mistake"
            feedback = mistake.feedback or "This is a common mistake for this step."
        elif keyword_coverage(request.student_input, request.validation_keywords) >= 0.5:
            feedback = "You're on the right track, but something in this step is off. Check your calculation."
        else:
            feedback = "There is a mistake in this step. Please check your work."
        return StepEvaluation(
            is_correct=False,
            feedback=feedback,
            error_type=error_type,
            improvement=(
                "Review this topic once more before trying again."
                if request.is_final_attempt
                else "Work through the calculation more carefully."
            ),
            encouragement="Mistakes are part of learning." if request.is_final_attempt else "Try again!",
            accuracy=similarity,
        )

    def _match_common_mistake(self, request: StepEvaluationRequest) -> Optional[WrongOption]:
        for option in request.common_mistakes:
            if option.text and calculate_similarity(request.student_input, option.text) >= self.step_threshold:
                return option
        return None

    def judge_final_answer(self, request: FinalAnswerRequest) -> FinalAnswerCheck:
        similarity = calculate_similarity(request.student_input, request.final_answer)
        matched = similarity >= self.final_answer_threshold
        return FinalAnswerCheck(
            is_final_answer=matched,
            is_correct=matched,
            confidence=similarity,
            message=(
                "You gave the correct final answer!"
                if matched
                else "This looks like an intermediate step answer."
            ),
        )

    async def evaluate_step(self, request: StepEvaluationRequest) -> StepEvaluation:
        return self.judge_step(request)

    async def check_final_answer(self, request: FinalAnswerRequest) -> FinalAnswerCheck:
        return self.judge_final_answer(request)
