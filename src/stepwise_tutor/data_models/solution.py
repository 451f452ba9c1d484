from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, validator


class WrongOption(BaseModel):
    """Distractor shipped with a generated step, kept for feedback and review."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: str = ""
    latex: str = ""
    feedback: Optional[str] = None


class SolutionStepInput(BaseModel):
    """One step exactly as the solution generator produced it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    description: Optional[str] = None
    correct_answer: str = Field(..., alias="correctAnswer")
    hint: Optional[str] = None
    wrong_options: List[WrongOption] = Field(default_factory=list, alias="wrongOptions")

    @validator("correct_answer")
    def answer_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("every step needs a non-empty correct answer")
        return value

    @validator("wrong_options", pre=True)
    def coerce_plain_options(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"text": item} if isinstance(item, str) else item for item in value]
        return value


class SolutionDocument(BaseModel):
    """Multi-step solution handed to a guidance session."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    steps: List[SolutionStepInput]
    problem_summary: Optional[Any] = Field(None, alias="problemSummary")

    @validator("steps")
    def validate_steps(cls, value: List[SolutionStepInput]) -> List[SolutionStepInput]:
        if not value:
            raise ValueError("solution must include at least one step")
        return value

    @property
    def final_answer(self) -> str:
        return self.steps[-1].correct_answer


class Hint(BaseModel):
    """Single hint at a given escalation level."""

    model_config = ConfigDict(frozen=True)

    level: int = Field(ge=1)
    text: str
    kind: str  # general | mathematical | detailed


class Step(BaseModel):
    """Prepared, immutable step used by the guidance session."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(ge=1)
    description: str
    correct_answer: str
    hints: List[Hint]
    difficulty: int = Field(ge=1, le=5)
    validation_keywords: List[str] = Field(default_factory=list)
    common_mistakes: List[WrongOption] = Field(default_factory=list)
