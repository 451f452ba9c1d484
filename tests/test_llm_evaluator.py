"""Tests for the remote step evaluator and its OpenAI client wrapper."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from stepwise_tutor.config.schema import EvaluatorConfig
from stepwise_tutor.data_models import FinalAnswerRequest, StepEvaluationRequest, WrongOption
from stepwise_tutor.errors import EvaluatorTransportError, EvaluatorUnavailable
from stepwise_tutor.evaluation.llm_client import LLMClient
from stepwise_tutor.evaluation.llm_evaluator import (
    LLMStepEvaluator,
    _clean_json_payload,
    build_step_prompt,
)


class FakeLLMClient:
    """Return a canned response and remember the messages it was sent."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate(self, messages, **kwargs):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.response


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def step_request():
    return StepEvaluationRequest(
        correct_answer="2x = 8",
        student_input="2x = 6",
        step_description="Simplify both sides",
        attempt_number=2,
    )


def test_clean_json_payload_strips_fences():
    raw = '```json\n{"isCorrect": true}\n```'
    assert json.loads(_clean_json_payload(raw)) == {"isCorrect": True}
    assert _clean_json_payload('  {"a": 1} ') == '{"a": 1}'


def test_step_prompt_mentions_attempts(step_request):
    prompt = build_step_prompt(step_request, max_attempts=3)
    assert "Attempt: 2/3" in prompt
    assert "Last attempt: no" in prompt
    assert "2x = 6" in prompt


def test_step_prompt_lists_known_mistakes():
    request = StepEvaluationRequest(
        correct_answer="2x = 8",
        student_input="2x = 14",
        common_mistakes=[WrongOption(text="2x = 14", feedback="Subtract, don't add.")],
    )
    prompt = build_step_prompt(request, max_attempts=3)

    assert "Known common mistakes:" in prompt
    assert "- 2x = 14 (Subtract, don't add.)" in prompt
    assert "Known common mistakes" not in build_step_prompt(
        StepEvaluationRequest(correct_answer="2x = 8", student_input="2x = 14"), max_attempts=3
    )


def test_evaluate_step_parses_camel_case_reply(step_request):
    client = FakeLLMClient(
        response=json.dumps(
            {
                "isCorrect": False,
                "feedback": "The right side is off.",
                "errorType": "calculation_error",
                "improvement": "Recompute 11 minus 3.",
                "encouragement": "Almost there!",
            }
        )
    )
    evaluator = LLMStepEvaluator(client, max_attempts_per_step=3)

    evaluation = asyncio.run(evaluator.evaluate_step(step_request))

    assert evaluation.is_correct is False
    assert evaluation.error_type == "calculation_error"
    assert evaluation.improvement == "Recompute 11 minus 3."
    system, user = client.calls[0]
    assert system["role"] == "system"
    assert "Attempt: 2/3" in user["content"]


def test_check_final_answer_parses_reply():
    client = FakeLLMClient(
        response='```json\n{"isFinalAnswer": true, "isCorrect": true, "confidence": 0.95, "message": "Correct!"}\n```'
    )
    evaluator = LLMStepEvaluator(client)

    check = asyncio.run(
        evaluator.check_final_answer(
            FinalAnswerRequest(final_answer="x = 4", student_input="4", current_step=1, total_steps=3)
        )
    )

    assert check.is_final_answer is True
    assert check.is_correct is True
    assert check.confidence == 0.95


@pytest.mark.parametrize(
    "client",
    [
        FakeLLMClient(response="not json at all"),
        FakeLLMClient(response='{"feedback": "missing the verdict"}'),
        FakeLLMClient(error=OpenAIError("boom")),
    ],
)
def test_failures_surface_as_transport_errors(client, step_request):
    evaluator = LLMStepEvaluator(client)
    with pytest.raises(EvaluatorTransportError):
        asyncio.run(evaluator.evaluate_step(step_request))


def test_llm_client_requires_credentials(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EvaluatorUnavailable):
        LLMClient(EvaluatorConfig())


def test_llm_client_sends_configured_parameters():
    completions = FakeCompletions('{"isCorrect": true}')
    fake_openai = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    client = LLMClient(EvaluatorConfig(name="gpt-test", max_output_tokens=128), client=fake_openai)

    content = asyncio.run(client.generate([{"role": "user", "content": "hi"}]))

    assert content == '{"isCorrect": true}'
    assert completions.kwargs["model"] == "gpt-test"
    assert completions.kwargs["temperature"] == 0.0
    assert completions.kwargs["max_tokens"] == 128


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
