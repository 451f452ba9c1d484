from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from stepwise_tutor.data_models import SolutionDocument, SubmissionVerdict
from stepwise_tutor.errors import InvalidSolutionError
from stepwise_tutor.guidance import GuidanceSession, analyze_complexity, classify, prepare_steps
from stepwise_tutor.system import TutorEngine
from stepwise_tutor.utils.logging import get_logger

app = typer.Typer(help="Step-by-step math tutor that walks learners through generated solutions.")
console = Console()
log = get_logger(__name__)

load_dotenv(override=False)


def _load_solution(path: Path) -> Dict[str, Any]:
    """Read a solution document from a JSON file."""
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _print_step(session: GuidanceSession) -> None:
    info = session.current_step_info()
    attempts = session.attempt_info()
    console.print(
        f"\n[bold]Step {info['step_number']}/{info['total_steps']}[/bold] "
        f"(difficulty {info['difficulty']}, {attempts['remaining']} attempt(s) left)"
    )
    console.print(info["description"])


def _print_verdict(verdict: SubmissionVerdict) -> None:
    style = "green" if verdict.is_correct else "red"
    console.print(f"[{style}]{verdict.message}[/{style}]")
    if verdict.warning_message:
        console.print(f"[yellow]{verdict.warning_message}[/yellow]")
    if verdict.hint and not verdict.is_completed:
        console.print(f"[dim]Hint: {verdict.hint}[/dim]")
    if verdict.encouragement:
        console.print(verdict.encouragement)


@app.command()
def solve(
    solution_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    learner_id: str = typer.Option("demo_learner", help="Learner identifier."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
    api_key: Optional[str] = typer.Option(None, help="API key for the remote evaluator."),
    offline: bool = typer.Option(False, help="Judge answers with local similarity checks only."),
):
    """
    Walk through a solution one step at a time.

    Type an answer for the current step, `:hint` for a hint, or `:quit` to stop. Learning
    telemetry is saved for the learner when the walk-through ends.
    """
    engine = TutorEngine.from_config(config, api_key=api_key, offline=offline)
    try:
        session, descriptor = engine.start_session(learner_id, _load_solution(solution_file))
    except InvalidSolutionError as exc:
        raise typer.BadParameter(str(exc)) from exc

    console.print(
        f"[bold]{descriptor.total_steps} step(s)[/bold], enforcement level "
        f"[cyan]{descriptor.enforcement_level}[/cyan], "
        f"{descriptor.max_attempts_per_step} attempt(s) per step."
    )

    while True:
        _print_step(session)
        answer = console.input("> ").strip()
        if answer == ":quit":
            break
        if answer == ":hint":
            reveal = session.request_hint()
            console.print(f"[dim]Hint (level {reveal.level}, {reveal.kind}): {reveal.text}[/dim]")
            continue

        verdict = asyncio.run(session.evaluate_submission(answer))
        _print_verdict(verdict)

        if verdict.is_completed:
            stats = session.completion_stats()
            console.print(
                f"\n[bold green]Solved![/bold green] {stats.correct_submissions} correct, "
                f"{stats.wrong_submissions} wrong, {stats.elapsed_formatted}, "
                f"performance: {stats.performance}"
            )
            break
        if verdict.should_reset:
            if not typer.confirm("Start this problem again?", default=True):
                break
            session.restart_problem()

    log.info(
        "walkthrough_finished",
        learner_id=learner_id,
        completed=session.is_completed,
        submissions=len(session.submission_log),
        attempts=session.attempts_per_step,
    )
    session.reset()
    engine.save_telemetry(learner_id)
    _print_report(engine, learner_id)


@app.command()
def inspect(
    solution_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    learner_id: str = typer.Option("demo_learner", help="Learner identifier."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
):
    """Show the enforcement level, complexity score and prepared steps for a solution."""
    engine = TutorEngine.from_config(config, offline=True)
    try:
        document = SolutionDocument.model_validate(_load_solution(solution_file))
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid solution document: {exc}") from exc

    steps = prepare_steps(document)
    complexity = analyze_complexity(steps)
    telemetry = engine.telemetry_for(learner_id)
    level = classify(steps, telemetry.learning_score, engine.settings.enforcement.strict_score_floor)
    console.print(
        f"Complexity score [bold]{complexity.score}[/bold] "
        f"(simple={complexity.is_simple}, complex={complexity.is_complex}); "
        f"enforcement level for {learner_id}: [cyan]{level}[/cyan]"
    )

    table = Table("#", "Description", "Answer", "Difficulty", "Keywords")
    for step in steps:
        table.add_row(
            str(step.number),
            step.description,
            step.correct_answer,
            str(step.difficulty),
            " ".join(step.validation_keywords),
        )
    console.print(table)


@app.command()
def report(
    learner_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
):
    """Print the learning report stored for a learner."""
    engine = TutorEngine.from_config(config, offline=True)
    _print_report(engine, learner_id)


def _print_report(engine: TutorEngine, learner_id: str) -> None:
    learning = engine.learning_report(learner_id)
    console.print(f"\n[bold]Learning report for {learner_id}[/bold]")
    console.print(f"Learning score: {learning.learning_score}/100")
    console.print(f"Early answer rate: {learning.early_answer_rate}%")
    console.print(f"Average steps completed: {learning.average_steps_completed}")
    console.print(f"Performance: {learning.performance_tier}")
    console.print(learning.recommendation)


if __name__ == "__main__":
    app()
