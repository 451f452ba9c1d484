from __future__ import annotations

import json
import logging
from typing import Any, Dict, Type, TypeVar

from openai import OpenAIError
from pydantic import BaseModel, ValidationError

from stepwise_tutor.data_models import (
    FinalAnswerCheck,
    FinalAnswerRequest,
    StepEvaluation,
    StepEvaluationRequest,
)
from stepwise_tutor.errors import EvaluatorTransportError
from stepwise_tutor.evaluation.base import StepEvaluator
from stepwise_tutor.evaluation.llm_client import LLMClient

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

STEP_SYSTEM_MESSAGE = (
    "You are a math tutor grading one step of a learner's worked solution. "
    "Always respond with strict JSON matching this schema:\n"
    "{\n"
    '  "isCorrect": bool,\n'
    '  "feedback": str,\n'
    '  "errorType": str | null,\n'
    '  "improvement": str,\n'
    '  "encouragement": str\n'
    "}\n"
    "Do not wrap the JSON in markdown fences."
)

FINAL_ANSWER_SYSTEM_MESSAGE = (
    "You check whether a learner's submission is the final answer of a math problem. "
    "Always respond with strict JSON matching this schema:\n"
    "{\n"
    '  "isFinalAnswer": bool,\n'
    '  "isCorrect": bool,\n'
    '  "confidence": float,\n'
    '  "message": str\n'
    "}\n"
    "Do not wrap the JSON in markdown fences."
)


def _clean_json_payload(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        fence_end = text.find("```", 3)
        if fence_end != -1:
            text = text[3:fence_end].strip()
        if text.startswith("json"):
            text = text[4:].strip()
    return text


def build_step_prompt(request: StepEvaluationRequest, max_attempts: int) -> str:
    mistakes = "\n".join(
        f"- {option.text}" + (f" ({option.feedback})" if option.feedback else "")
        for option in request.common_mistakes
        if option.text
    )
    return (
        f"Expected step result: {request.correct_answer}\n"
        f"Learner answer: {request.student_input}\n"
        f"Step description: {request.step_description}\n"
        f"Attempt: {request.attempt_number}/{max_attempts}\n"
        f"Last attempt: {'yes' if request.is_final_attempt else 'no'}\n"
        + (f"Known common mistakes:\n{mistakes}\n" if mistakes else "")
        + "\n"
        "Guidance:\n"
        "- Accept mathematically equivalent forms (e.g. 1/2 and 0.5).\n"
        "- Feedback must be verbal only, at most two sentences, with no formulas or LaTeX.\n"
        "- Say what to reconsider without showing the computation.\n"
        "- Keep improvement and encouragement to one sentence each."
    )


def build_final_answer_prompt(request: FinalAnswerRequest) -> str:
    return (
        f"Correct final answer of the problem: {request.final_answer}\n"
        f"Learner answer: {request.student_input}\n"
        f"Current step: {request.current_step}/{request.total_steps}\n\n"
        "Rules:\n"
        "- isFinalAnswer is true only when the learner stated the problem's final answer.\n"
        "- An intermediate step result is not a final answer.\n"
        "- Check mathematical equivalence (e.g. 1/2 = 0.5)."
    )


class LLMStepEvaluator(StepEvaluator):
    """
    Remote step evaluator backed by an OpenAI chat model.

    Every failure mode (transport errors, non-JSON replies, replies that do not
    match the expected schema) surfaces as `EvaluatorTransportError` so the
    guidance session can fall back to local similarity checks.
    """

    def __init__(self, llm_client: LLMClient, max_attempts_per_step: int = 3):
        self.llm = llm_client
        self.max_attempts_per_step = max_attempts_per_step

    async def evaluate_step(self, request: StepEvaluationRequest) -> StepEvaluation:
        return await self._ask(
            STEP_SYSTEM_MESSAGE,
            build_step_prompt(request, self.max_attempts_per_step),
            StepEvaluation,
        )

    async def check_final_answer(self, request: FinalAnswerRequest) -> FinalAnswerCheck:
        return await self._ask(
            FINAL_ANSWER_SYSTEM_MESSAGE,
            build_final_answer_prompt(request),
            FinalAnswerCheck,
        )

    async def _ask(self, system_message: str, user_message: str, model: Type[ModelT]) -> ModelT:
        try:
            response = await self.llm.generate(
                [
                    {"role": "system", "content": system_message},
                    {"role": "user", "content": user_message},
                ]
            )
        except OpenAIError as exc:
            raise EvaluatorTransportError(f"Evaluator request failed: {exc}") from exc

        cleaned = _clean_json_payload(response)
        try:
            payload: Dict[str, Any] = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse evaluator response: %s", cleaned)
            raise EvaluatorTransportError("Evaluator returned invalid JSON.") from exc

        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.error("Evaluator payload validation failed: %s", exc)
            raise EvaluatorTransportError("Evaluator returned an unexpected structure.") from exc
