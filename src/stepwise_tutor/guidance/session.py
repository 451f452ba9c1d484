from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Set

from pydantic import ValidationError

from stepwise_tutor.config.schema import EnforcementConfig, GuidanceConfig
from stepwise_tutor.data_models import (
    CompletionStats,
    CompletionSummary,
    FinalAnswerCheck,
    FinalAnswerRequest,
    HintReveal,
    SessionDescriptor,
    SolutionDocument,
    Step,
    StepEvaluation,
    StepEvaluationRequest,
    SubmissionRecord,
    SubmissionVerdict,
)
from stepwise_tutor.errors import (
    EvaluatorError,
    InvalidSolutionError,
    SessionNotInitializedError,
    SubmissionInProgressError,
)
from stepwise_tutor.evaluation.base import LocalSimilarityEvaluator, StepEvaluator
from stepwise_tutor.guidance.enforcement import EnforcementDecision, EnforcementPolicy
from stepwise_tutor.guidance.hints import hint_for_attempts, prepare_steps
from stepwise_tutor.guidance.ledger import AttemptLedger
from stepwise_tutor.guidance.telemetry import LearningTelemetry

logger = logging.getLogger(__name__)


def _format_elapsed(seconds: float) -> str:
    whole = int(seconds)
    minutes, remaining_seconds = divmod(whole, 60)
    if minutes > 0:
        return f"{minutes}m {remaining_seconds}s"
    return f"{remaining_seconds}s"


class GuidanceSession:
    """
    Walk a learner through a multi-step solution one step at a time.

    The session owns the step pointer, the attempt ledger, hint usage and the
    enforcement counter for a single problem. Learning telemetry and the step
    evaluator are injected: telemetry is shared across sessions for the same
    learner, the evaluator defaults to local similarity checks.

    State transitions
    -----------------
    - Correct answer: no attempt consumed; advance one step, or complete the
      problem on the last step.
    - Incorrect answer on the first step: retry the same step.
    - Incorrect answer on a later step: back to step 0, attempt counts and hint
      usage preserved.
    - Attempt budget exhausted on a step: terminal verdict with
      ``should_reset=True``; the caller must call `reset` or `restart_problem`.
    - Final answer submitted early: warned, or blocked after too many
      consecutive skips, whether or not the answer is correct. Allowed correct
      final answers complete the whole problem; allowed incorrect ones are
      judged as an ordinary submission for the current step.

    Only `evaluate_submission` awaits anything. It refuses concurrent calls
    rather than queueing them, and every mutation happens after the evaluator
    has answered so a failed evaluation leaves the ledger and telemetry intact.

    Examples
    --------
    >>> session = GuidanceSession(LearningTelemetry())
    >>> session.initialize_guidance({"steps": [{"description": "Solve", "correctAnswer": "x = 4"}]})
    >>> verdict = asyncio.run(session.evaluate_submission("x = 4"))
    >>> verdict.is_completed
    True
    """

    def __init__(
        self,
        telemetry: LearningTelemetry,
        evaluator: Optional[StepEvaluator] = None,
        guidance_config: Optional[GuidanceConfig] = None,
        enforcement_config: Optional[EnforcementConfig] = None,
    ):
        self.telemetry = telemetry
        self.guidance_config = guidance_config or GuidanceConfig()
        self.enforcement_config = enforcement_config or EnforcementConfig()
        self.fallback = LocalSimilarityEvaluator(
            step_threshold=self.guidance_config.step_similarity_threshold,
            final_answer_threshold=self.guidance_config.final_answer_similarity_threshold,
        )
        self.evaluator: StepEvaluator = evaluator or self.fallback
        self.ledger = AttemptLedger(self.guidance_config.max_attempts_per_step)
        self.is_processing = False
        self._clear_state()

    def _clear_state(self) -> None:
        self.document: Optional[SolutionDocument] = None
        self.steps: List[Step] = []
        self.policy: Optional[EnforcementPolicy] = None
        self.submission_log: List[SubmissionRecord] = []
        self._start_problem_run()

    def _start_problem_run(self) -> None:
        self.ledger.clear()
        self.current_step_index = 0
        self.step_failed = False
        self.hints_used_steps: Set[int] = set()
        self.hint_count = 0
        self.is_hint_visible = False
        self.is_completed = False
        self.completed_by_final_answer = False
        self.started_at = time.monotonic()
        self._problem_pending = False

    @property
    def is_initialized(self) -> bool:
        return self.document is not None

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def max_attempts_per_step(self) -> int:
        return self.ledger.max_attempts_per_step

    @property
    def attempts_per_step(self) -> Dict[int, int]:
        return self.ledger.snapshot()

    @property
    def current_step(self) -> Step:
        self._require_initialized()
        return self.steps[self.current_step_index]

    @property
    def enforcement_level(self) -> Optional[str]:
        return self.policy.level if self.policy else None

    def _require_initialized(self) -> None:
        if self.document is None or self.policy is None:
            raise SessionNotInitializedError("Call initialize_guidance() before using the session.")

    # ------------------------------------------------------------------ lifecycle

    def initialize_guidance(self, solution: SolutionDocument | Mapping[str, Any]) -> SessionDescriptor:
        """
        Load a solution document and start a fresh session for it.

        Raises
        ------
        InvalidSolutionError
            If the document is missing, has no steps, or does not match the
            expected shape.
        """
        if solution is None:
            raise InvalidSolutionError("Solution document is missing.")
        if isinstance(solution, SolutionDocument):
            document = solution
        else:
            try:
                document = SolutionDocument.model_validate(solution)
            except ValidationError as exc:
                raise InvalidSolutionError(f"Invalid solution document: {exc}") from exc

        steps = prepare_steps(document)
        self._record_abandonment()
        self._clear_state()
        self.document = document
        self.steps = steps
        self.policy = EnforcementPolicy.for_problem(
            steps, self.telemetry.learning_score, self.enforcement_config
        )
        self.policy.reset()

        logger.info(
            "Guidance initialized: level=%s total_steps=%d learning_score=%d",
            self.policy.level,
            self.total_steps,
            self.telemetry.learning_score,
        )
        return SessionDescriptor(
            total_steps=self.total_steps,
            enforcement_level=self.policy.level,
            max_attempts_per_step=self.max_attempts_per_step,
            problem_summary=document.problem_summary,
        )

    def reset(self) -> None:
        """Drop all session state; learning telemetry is kept."""
        self._record_abandonment()
        self._clear_state()
        logger.info("Guidance session reset; learning score kept at %d", self.telemetry.learning_score)

    def restart_problem(self) -> None:
        """Start the same problem over after a terminal verdict, keeping the skip counter."""
        self._require_initialized()
        self._record_abandonment()
        self._start_problem_run()
        logger.info("Problem restarted from step 1")

    def _record_problem(self, step_index: int, was_correct: bool, was_final_answer: bool) -> None:
        if not self._problem_pending:
            return
        self.telemetry.record_problem(step_index, self.total_steps, was_correct, was_final_answer)
        self._problem_pending = False

    def _record_abandonment(self) -> None:
        if self.steps and not self.is_completed:
            self._record_problem(self.current_step_index, was_correct=False, was_final_answer=False)

    # ------------------------------------------------------------------ submissions

    async def evaluate_submission(self, student_input: str) -> SubmissionVerdict:
        """
        Judge one learner submission for the current step and return a verdict.

        Raises
        ------
        SessionNotInitializedError
            If no solution document has been loaded.
        SubmissionInProgressError
            If another submission is still being evaluated.
        """
        self._require_initialized()
        if self.is_processing:
            raise SubmissionInProgressError("A submission is already being evaluated.")
        self.is_processing = True
        try:
            return await self._evaluate(student_input)
        finally:
            self.is_processing = False

    async def _evaluate(self, student_input: str) -> SubmissionVerdict:
        index = self.current_step_index
        step = self.steps[index]

        if self.is_completed:
            return SubmissionVerdict(
                is_correct=False,
                attempts=self.ledger.attempts(index),
                remaining_attempts=self.ledger.remaining(index),
                message="This problem is already solved.",
                step_index=index,
                is_completed=True,
                completed_by_final_answer=self.completed_by_final_answer,
            )

        if self.ledger.is_exhausted(index):
            self.step_failed = True
            return SubmissionVerdict(
                is_correct=False,
                should_reset=True,
                attempts=self.ledger.attempts(index),
                remaining_attempts=0,
                message="You have no attempts left for this step.",
                hint="All steps will be reset. Please start again.",
                step_index=index,
            )

        text = (student_input or "").strip()
        if not text:
            return SubmissionVerdict(
                is_correct=False,
                attempts=self.ledger.attempts(index),
                remaining_attempts=self.ledger.remaining(index),
                message="Please write a solution for this step.",
                error_type="empty_input",
                step_index=index,
                can_retry=True,
            )

        attempt_number = self.ledger.attempts(index) + 1
        is_final_attempt = attempt_number >= self.max_attempts_per_step

        try:
            final_check = await self._check_final_answer(text)
            is_final_answer = final_check.is_final_answer
            settled_by_final_answer = is_final_answer and (
                final_check.is_correct or self.policy.would_block(index, self.total_steps)
            )
            evaluation: Optional[StepEvaluation] = None
            if not settled_by_final_answer:
                evaluation = await self._evaluate_step(step, text, attempt_number, is_final_attempt)
        except Exception:
            logger.exception("Evaluation failed for step %d; attempt not consumed", index + 1)
            return SubmissionVerdict(
                is_correct=False,
                attempts=self.ledger.attempts(index),
                remaining_attempts=self.ledger.remaining(index),
                message="Evaluation failed, please try again.",
                hint="Please retry.",
                error_type="evaluation_failed",
                step_index=index,
                can_retry=True,
            )

        decision = self.policy.decide(index, self.total_steps, is_final_answer)
        if decision.early:
            self.telemetry.penalize_early_final_answer(self.enforcement_config.early_answer_penalty)

        if is_final_answer and (not decision.allow or final_check.is_correct):
            return self._handle_final_answer(index, text, attempt_number, final_check, decision)

        verdict = self._handle_step_result(index, step, text, attempt_number, evaluation)
        if decision.warn:
            verdict = verdict.model_copy(
                update={
                    "warning_message": decision.message,
                    "educational_note": decision.educational_reason,
                }
            )
        return verdict

    def _handle_final_answer(
        self,
        index: int,
        text: str,
        attempt_number: int,
        final_check: FinalAnswerCheck,
        decision: EnforcementDecision,
    ) -> SubmissionVerdict:
        if not decision.allow:
            self.telemetry.record_blocked_skip()
            self._log_submission(index, text, was_correct=False, attempt_number=attempt_number)
            return SubmissionVerdict(
                is_correct=False,
                attempts=self.ledger.attempts(index),
                remaining_attempts=self.ledger.remaining(index),
                message=decision.message or "Step skipping is not allowed here.",
                hint=decision.educational_reason,
                step_index=index,
                can_retry=True,
                step_skipping_blocked=True,
                required_steps_remaining=decision.steps_remaining,
            )

        attempts = self.ledger.attempts(index)
        self._log_submission(index, text, was_correct=True, attempt_number=attempt_number)
        self.complete_via_final_answer()
        self._record_problem(index, was_correct=True, was_final_answer=True)
        logger.info(
            "Problem completed by final answer at step %d/%d (early=%s)",
            index + 1,
            self.total_steps,
            decision.early,
        )
        return SubmissionVerdict(
            is_correct=True,
            should_proceed=True,
            attempts=attempts,
            remaining_attempts=self.max_attempts_per_step - attempts,
            message=final_check.message,
            hint="Congratulations! You gave the correct final answer.",
            step_index=index,
            warning_message=decision.message if decision.warn else None,
            educational_note=decision.educational_reason if decision.warn else None,
            is_completed=True,
            completed_by_final_answer=True,
        )

    def _handle_step_result(
        self,
        index: int,
        step: Step,
        text: str,
        attempt_number: int,
        evaluation: StepEvaluation,
    ) -> SubmissionVerdict:
        if evaluation.is_correct:
            self._log_submission(index, text, was_correct=True, attempt_number=attempt_number)
            self.telemetry.reward_step(self.enforcement_config.step_reward)
            self.step_failed = False
            self.is_hint_visible = False

            is_last = index == self.total_steps - 1
            if is_last:
                self.is_completed = True
                self._record_problem(index, was_correct=True, was_final_answer=False)
                logger.info("Problem completed step by step (%d steps)", self.total_steps)
            else:
                self.current_step_index = index + 1

            return SubmissionVerdict(
                is_correct=True,
                should_proceed=True,
                attempts=self.ledger.attempts(index),
                remaining_attempts=self.ledger.remaining(index),
                message=evaluation.feedback,
                hint=(
                    "You completed every step!"
                    if is_last
                    else evaluation.improvement or "You can move on to the next step."
                ),
                encouragement=evaluation.encouragement,
                step_index=index,
                next_step_index=None if is_last else self.current_step_index,
                is_completed=is_last,
            )

        result = self.ledger.record_failure(index)
        self._log_submission(index, text, was_correct=False, attempt_number=attempt_number)
        hint = evaluation.improvement or hint_for_attempts(step, result.attempts).text

        if result.exhausted:
            self.step_failed = True
            self._record_problem(index, was_correct=False, was_final_answer=False)
            logger.info("Attempt budget exhausted on step %d", index + 1)
            return SubmissionVerdict(
                is_correct=False,
                should_reset=True,
                attempts=result.attempts,
                remaining_attempts=0,
                message=(
                    f"{evaluation.feedback} You have used all {self.max_attempts_per_step} "
                    "attempts for this step. The session will restart."
                ),
                hint=hint,
                error_type=evaluation.error_type,
                encouragement=evaluation.encouragement,
                step_index=index,
            )

        if index == 0:
            restart_current = True
            message = f"{evaluation.feedback} Try this step again."
        else:
            restart_current = False
            self.current_step_index = 0
            self.is_hint_visible = False
            message = f"{evaluation.feedback} You made a mistake on step {index + 1}; start again from step 1."

        return SubmissionVerdict(
            is_correct=False,
            attempts=result.attempts,
            remaining_attempts=result.remaining,
            message=message,
            hint=hint,
            error_type=evaluation.error_type,
            encouragement=evaluation.encouragement,
            step_index=index,
            next_step_index=self.current_step_index,
            can_retry=True,
            restart_current_step=restart_current,
            restart_from_beginning=not restart_current,
        )

    def _log_submission(self, index: int, text: str, was_correct: bool, attempt_number: int) -> None:
        self.submission_log.append(
            SubmissionRecord(
                step_index=index,
                input=text,
                was_correct=was_correct,
                attempt_number=attempt_number,
            )
        )
        self._problem_pending = True

    async def _check_final_answer(self, text: str) -> FinalAnswerCheck:
        final_answer = self.document.final_answer
        if not final_answer:
            return FinalAnswerCheck(is_final_answer=False)
        request = FinalAnswerRequest(
            final_answer=final_answer,
            student_input=text,
            current_step=self.current_step_index + 1,
            total_steps=self.total_steps,
        )
        if self.evaluator is self.fallback:
            return self.fallback.judge_final_answer(request)
        try:
            return await self.evaluator.check_final_answer(request)
        except EvaluatorError as exc:
            logger.warning("Final answer check unavailable, using local fallback: %s", exc)
        except Exception:  # noqa: BLE001
            logger.exception("Final answer check failed unexpectedly, using local fallback")
        return self.fallback.judge_final_answer(request)

    async def _evaluate_step(
        self, step: Step, text: str, attempt_number: int, is_final_attempt: bool
    ) -> StepEvaluation:
        request = StepEvaluationRequest(
            correct_answer=step.correct_answer,
            student_input=text,
            step_description=step.description,
            attempt_number=attempt_number,
            is_final_attempt=is_final_attempt,
            validation_keywords=step.validation_keywords,
            common_mistakes=step.common_mistakes,
        )
        if self.evaluator is self.fallback:
            return self.fallback.judge_step(request)
        try:
            return await self.evaluator.evaluate_step(request)
        except EvaluatorError as exc:
            logger.warning("Step evaluator unavailable, using local fallback: %s", exc)
        except Exception:  # noqa: BLE001
            logger.exception("Step evaluator failed unexpectedly, using local fallback")
        return self.fallback.judge_step(request)

    # ------------------------------------------------------------------ hints & completion

    def request_hint(self) -> HintReveal:
        """Reveal the hint for the current step, escalating with the attempts spent on it."""
        self._require_initialized()
        index = self.current_step_index
        step = self.steps[index]
        hint = hint_for_attempts(step, self.ledger.attempts(index))

        first_reveal = index not in self.hints_used_steps
        if first_reveal:
            self.hints_used_steps.add(index)
            self.hint_count += 1
            self.telemetry.record_hint()
        self.is_hint_visible = True

        return HintReveal(
            step_number=step.number,
            level=hint.level,
            kind=hint.kind,
            text=hint.text,
            hint_count=self.hint_count,
            first_reveal=first_reveal,
        )

    def complete_via_final_answer(self) -> CompletionSummary:
        """Mark the current and all remaining steps as done and finish the problem."""
        self._require_initialized()
        for index in range(self.current_step_index, self.total_steps):
            self.ledger.mark_completed(index)
        self.current_step_index = self.total_steps - 1
        self.step_failed = False
        self.is_completed = True
        self.completed_by_final_answer = True
        return CompletionSummary(
            total_steps_completed=self.total_steps,
            current_step=self.current_step_index + 1,
        )

    # ------------------------------------------------------------------ read-only views

    def attempt_info(self) -> Dict[str, Any]:
        self._require_initialized()
        index = self.current_step_index
        remaining = self.ledger.remaining(index)
        return {
            "step_number": index + 1,
            "attempts": self.ledger.attempts(index),
            "remaining": remaining,
            "max_attempts": self.max_attempts_per_step,
            "can_attempt": remaining > 0,
            "is_failed": self.step_failed,
        }

    def current_step_info(self) -> Optional[Dict[str, Any]]:
        if not self.is_initialized:
            return None
        step = self.steps[self.current_step_index]
        return {
            "step_number": step.number,
            "description": step.description,
            "total_steps": self.total_steps,
            "progress": step.number / self.total_steps * 100,
            "difficulty": step.difficulty,
            "has_hints": bool(step.hints),
        }

    def completed_steps(self) -> int:
        if self.is_completed:
            return self.total_steps
        return self.current_step_index

    def progress(self) -> Dict[str, Any]:
        correct = sum(1 for record in self.submission_log if record.was_correct)
        total = len(self.submission_log)
        return {
            "current_step": self.current_step_index + 1,
            "total_steps": self.total_steps,
            "completed_steps": self.completed_steps(),
            "submissions": total,
            "accuracy": correct / total * 100 if total else 0.0,
        }

    def attempt_stats(self) -> Dict[str, Any]:
        total_attempts = self.ledger.total()
        completed = self.completed_steps()
        return {
            "total_attempts": total_attempts,
            "completed_steps": completed,
            "current_step": self.current_step_index + 1,
            "total_steps": self.total_steps,
            "average_attempts_per_step": round(total_attempts / completed, 1) if completed else 0.0,
        }

    def hint_stats(self) -> Dict[str, Any]:
        return {
            "total_hints": self.hint_count,
            "used_steps": sorted(self.hints_used_steps),
            "current_step_used_hint": self.current_step_index in self.hints_used_steps,
        }

    def completion_stats(self) -> CompletionStats:
        self._require_initialized()
        wrong = sum(1 for record in self.submission_log if not record.was_correct)
        correct = len(self.submission_log) - wrong
        elapsed = time.monotonic() - self.started_at
        return CompletionStats(
            total_steps=self.total_steps,
            completed_steps=self.completed_steps(),
            wrong_submissions=wrong,
            correct_submissions=correct,
            success_rate=self.total_steps / (self.total_steps + wrong) * 100,
            elapsed_seconds=elapsed,
            elapsed_formatted=_format_elapsed(elapsed),
            performance=self._performance_tier(wrong),
            attempts_per_step=self.ledger.snapshot(),
            hints_used_steps=sorted(self.hints_used_steps),
        )

    def _performance_tier(self, wrong: int) -> str:
        interactions = len(self.submission_log)
        if interactions == 0:
            return "excellent"
        success_rate = (interactions - wrong) / interactions * 100
        budget = self.max_attempts_per_step * self.total_steps
        efficiency = (budget - wrong) / budget * 100
        if success_rate >= 90 and efficiency >= 80:
            return "excellent"
        if success_rate >= 70 and efficiency >= 60:
            return "good"
        if success_rate >= 50:
            return "average"
        return "needs_improvement"
