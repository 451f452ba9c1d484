"""Tests for problem complexity scoring and skip enforcement."""

from __future__ import annotations

import pytest

from stepwise_tutor.config.schema import EnforcementConfig
from stepwise_tutor.data_models import SolutionDocument
from stepwise_tutor.guidance.enforcement import EnforcementPolicy, analyze_complexity, classify
from stepwise_tutor.guidance.hints import prepare_steps


def make_steps(*answers: str):
    document = SolutionDocument.model_validate(
        {"steps": [{"correctAnswer": answer} for answer in answers]}
    )
    return prepare_steps(document)


@pytest.fixture
def config():
    return EnforcementConfig()


def test_complexity_counts_steps_and_operators():
    steps = make_steps("x^2 + y^2 = r^2", "\\frac{a}{b}", "\\sqrt{16} = 4", "\\sin x")
    report = analyze_complexity(steps)

    # 4 steps, three powers, one fraction, one root, one trig function
    assert report.score == 40 + 15 + 15 + 10 + 15
    assert report.step_count == 4
    assert report.is_complex is True
    assert report.is_simple is False


def test_integral_pushes_problem_to_complex():
    report = analyze_complexity(make_steps("\\int_0^1 x dx", "= 1/2"))
    assert report.score == 20 + 25 + 5
    assert report.is_complex is False


@pytest.mark.parametrize(
    "answers, score, expected",
    [
        (("x = 4",), 100, "flexible"),
        (("2x = 8", "x = 4"), 100, "flexible"),
        (("a", "b", "c"), 100, "normal"),
        (("a", "b", "c", "d"), 100, "strict"),
        (("x = 4",), 69, "strict"),
        (("x = 4",), 70, "flexible"),
    ],
)
def test_classify(answers, score, expected):
    assert classify(make_steps(*answers), score) == expected


def test_policy_uses_level_rules(config):
    policy = EnforcementPolicy.for_problem(make_steps("a", "b", "c"), 100, config)

    assert policy.level == "normal"
    assert policy.final_answer_threshold == 0.7
    assert policy.max_consecutive_final_answers == 2
    assert policy.consecutive_early_final_answers == 0


def test_first_early_answer_warns_then_blocks(config):
    """Normal enforcement tolerates one early final answer and blocks the second."""
    policy = EnforcementPolicy.for_problem(make_steps("a", "b", "c"), 100, config)

    first = policy.decide(0, 3, is_final_answer=True)
    assert first.allow is True
    assert first.warn is True
    assert first.early is True
    assert first.steps_remaining == 2
    assert "1 skip left" in first.message

    second = policy.decide(0, 3, is_final_answer=True)
    assert second.allow is False
    assert second.early is True
    assert "2 steps left" in second.message
    assert policy.consecutive_early_final_answers == 2


def test_honest_submission_resets_counter(config):
    policy = EnforcementPolicy.for_problem(make_steps("a", "b", "c"), 100, config)
    policy.decide(0, 3, is_final_answer=True)

    decision = policy.decide(0, 3, is_final_answer=False)

    assert decision.allow is True
    assert decision.warn is False
    assert policy.consecutive_early_final_answers == 0


def test_final_answer_past_threshold_is_not_early(config):
    policy = EnforcementPolicy.for_problem(make_steps("a", "b", "c"), 100, config)

    decision = policy.decide(2, 3, is_final_answer=True)

    assert decision.allow is True
    assert decision.early is False
    assert decision.steps_remaining == 0


def test_strict_blocks_first_early_answer(config):
    policy = EnforcementPolicy.for_problem(make_steps("x = 4"), 40, config)
    assert policy.level == "strict"

    # One step means progress 1.0, which is never early.
    assert policy.decide(0, 1, is_final_answer=True).allow is True

    policy = EnforcementPolicy.for_problem(make_steps("a", "b", "c", "d", "e"), 100, config)
    decision = policy.decide(1, 5, is_final_answer=True)
    assert decision.allow is False
    assert decision.steps_remaining == 3


def test_reset_clears_counter(config):
    policy = EnforcementPolicy.for_problem(make_steps("a", "b", "c"), 100, config)
    policy.decide(0, 3, is_final_answer=True)
    policy.reset()
    assert policy.consecutive_early_final_answers == 0


def test_would_block_does_not_touch_counter(config):
    policy = EnforcementPolicy.for_problem(make_steps("a", "b", "c"), 100, config)

    assert policy.would_block(0, 3) is False
    policy.decide(0, 3, is_final_answer=True)
    assert policy.would_block(0, 3) is True
    assert policy.would_block(2, 3) is False
    assert policy.consecutive_early_final_answers == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
