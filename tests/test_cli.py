"""Tests for the engine facade and the command-line interface."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from stepwise_tutor.cli import app
from stepwise_tutor.config import Settings
from stepwise_tutor.config.loader import OVERRIDES_ENV_VAR
from stepwise_tutor.system import TutorEngine, build_evaluator

REPO_ROOT = Path(__file__).resolve().parents[1]
REPO_CONFIG = REPO_ROOT / "config" / "default.yaml"
SAMPLE_SOLUTION = REPO_ROOT / "examples_data" / "linear_equation.json"

runner = CliRunner()


@pytest.fixture
def offline_env(monkeypatch, tmp_path):
    """Point telemetry at a temp directory and disable the remote evaluator."""
    overrides = {"paths": {"telemetry_dir": str(tmp_path)}, "evaluator": {"enabled": False}}
    monkeypatch.setenv(OVERRIDES_ENV_VAR, json.dumps(overrides))
    return tmp_path


@pytest.fixture
def engine(tmp_path):
    settings = Settings.model_validate({"paths": {"telemetry_dir": str(tmp_path)}})
    return TutorEngine(settings)


def test_build_evaluator_without_credentials(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert build_evaluator(Settings()) is None
    assert build_evaluator(Settings.model_validate({"evaluator": {"enabled": False}})) is None


def test_sessions_share_learner_telemetry(engine):
    """Penalties from one problem shape enforcement on the next."""
    solution = json.loads(SAMPLE_SOLUTION.read_text(encoding="utf-8"))
    session, descriptor = engine.start_session("learner", solution)
    assert descriptor.total_steps == 2

    session.restart_problem()
    second, _ = engine.start_session("learner", solution)

    assert second.telemetry is session.telemetry
    assert engine.telemetry_for("other") is not session.telemetry


def test_save_and_reload_telemetry(engine, tmp_path):
    session, _ = engine.start_session("learner", {"steps": [{"correctAnswer": "x = 4"}]})
    verdict = asyncio.run(session.evaluate_submission("x = 4"))
    assert verdict.is_completed is True

    engine.save_telemetry("learner")

    fresh = TutorEngine(engine.settings)
    report = fresh.learning_report("learner")
    assert report.learning_score == 100
    assert (tmp_path / "learner.json").exists()


def test_cli_inspect(offline_env):
    result = runner.invoke(app, ["inspect", str(SAMPLE_SOLUTION), "--config", str(REPO_CONFIG)])

    assert result.exit_code == 0, result.output
    assert "flexible" in result.output
    assert "Complexity score" in result.output


def test_cli_solve_step_by_step(offline_env):
    result = runner.invoke(
        app,
        ["solve", str(SAMPLE_SOLUTION), "--config", str(REPO_CONFIG), "--learner-id", "cli_learner"],
        input=":hint\n2x = 8\nx = 4\n",
    )

    assert result.exit_code == 0, result.output
    assert "Solved!" in result.output
    assert "Learning report for cli_learner" in result.output
    saved = json.loads((offline_env / "cli_learner.json").read_text(encoding="utf-8"))
    assert saved["total_problems_attempted"] == 1
    assert saved["hints_revealed"] == 1


def test_cli_solve_quit_records_abandonment(offline_env):
    result = runner.invoke(
        app,
        ["solve", str(SAMPLE_SOLUTION), "--config", str(REPO_CONFIG), "--learner-id", "quitter"],
        input="17\n:quit\n",
    )

    assert result.exit_code == 0, result.output
    saved = json.loads((offline_env / "quitter.json").read_text(encoding="utf-8"))
    assert saved["total_problems_attempted"] == 1
    assert saved["learning_score"] == 100


def test_cli_report_for_unknown_learner(offline_env):
    result = runner.invoke(app, ["report", "nobody", "--config", str(REPO_CONFIG)])

    assert result.exit_code == 0, result.output
    assert "Learning score: 100/100" in result.output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
