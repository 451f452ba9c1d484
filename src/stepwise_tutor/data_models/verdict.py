from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .solution import WrongOption


class StepEvaluationRequest(BaseModel):
    """Payload sent to the step evaluator for one learner submission."""

    correct_answer: str
    student_input: str
    step_description: str = ""
    attempt_number: int = Field(1, ge=1)
    is_final_attempt: bool = False
    validation_keywords: List[str] = Field(default_factory=list)
    common_mistakes: List[WrongOption] = Field(default_factory=list)


class StepEvaluation(BaseModel):
    """Structured judgement of a single step submission."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_correct: bool = Field(alias="isCorrect")
    feedback: str = "Evaluation complete."
    error_type: Optional[str] = Field(None, alias="errorType")
    improvement: Optional[str] = None
    encouragement: Optional[str] = None
    accuracy: float = Field(0.0, ge=0.0, le=1.0)


class FinalAnswerRequest(BaseModel):
    """Payload asking whether a submission is the problem's overall answer."""

    final_answer: str
    student_input: str
    current_step: int = Field(1, ge=1)
    total_steps: int = Field(1, ge=1)


class FinalAnswerCheck(BaseModel):
    """Evaluator opinion on whether a submission targets the final answer."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_final_answer: bool = Field(alias="isFinalAnswer")
    is_correct: bool = Field(False, alias="isCorrect")
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    message: str = "Final answer check complete."


class SubmissionRecord(BaseModel):
    """Audit entry for one learner submission."""

    model_config = ConfigDict(frozen=True)

    step_index: int
    input: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    was_correct: bool
    attempt_number: int


class SubmissionVerdict(BaseModel):
    """What the caller should do after a submission."""

    is_correct: bool
    should_proceed: bool = False
    should_reset: bool = False
    attempts: int = 0
    remaining_attempts: int = 0
    message: str = ""
    hint: Optional[str] = None
    error_type: Optional[str] = None
    encouragement: Optional[str] = None
    step_index: int = 0
    next_step_index: Optional[int] = None
    can_retry: bool = False
    restart_current_step: bool = False
    restart_from_beginning: bool = False
    step_skipping_blocked: bool = False
    required_steps_remaining: Optional[int] = None
    warning_message: Optional[str] = None
    educational_note: Optional[str] = None
    is_completed: bool = False
    completed_by_final_answer: bool = False

    @property
    def must_reset(self) -> bool:
        return self.should_reset


class SessionDescriptor(BaseModel):
    """Returned by `initialize_guidance`."""

    total_steps: int
    enforcement_level: str
    max_attempts_per_step: int
    problem_summary: Optional[Any] = None


class HintReveal(BaseModel):
    """Hint handed to the learner for the current step."""

    step_number: int
    level: int
    kind: str
    text: str
    hint_count: int
    first_reveal: bool


class CompletionSummary(BaseModel):
    """Result of finishing a problem through its final answer."""

    total_steps_completed: int
    current_step: int
    completed_by_final_answer: bool = True


class CompletionStats(BaseModel):
    """End-of-problem statistics for display."""

    total_steps: int
    completed_steps: int
    wrong_submissions: int
    correct_submissions: int
    success_rate: float
    elapsed_seconds: float
    elapsed_formatted: str
    performance: str
    attempts_per_step: Dict[int, int] = Field(default_factory=dict)
    hints_used_steps: List[int] = Field(default_factory=list)
