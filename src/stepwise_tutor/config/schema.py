from __future__ import annotations

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field, validator

ENFORCEMENT_LEVELS = ("flexible", "normal", "strict")


class EvaluatorConfig(BaseModel):
    """Model-level settings for the LLM that judges learner submissions."""

    enabled: bool = Field(True, description="Use the remote evaluator when credentials exist.")
    name: str = Field("gpt-4o-mini", description="LLM identifier.")
    temperature: float = Field(0.0, ge=0, le=2)
    max_output_tokens: int = Field(400, ge=64)
    timeout_seconds: float = Field(20.0, gt=0)
    max_retries: int = Field(2, ge=0)


class GuidanceConfig(BaseModel):
    """Attempt budget and local similarity thresholds for a guidance session."""

    max_attempts_per_step: int = Field(3, ge=1)
    step_similarity_threshold: float = Field(0.7, ge=0, le=1)
    final_answer_similarity_threshold: float = Field(0.8, ge=0, le=1)


class EnforcementLevelConfig(BaseModel):
    """How early a final answer may arrive and how many skips are tolerated."""

    final_answer_threshold: float = Field(..., gt=0, le=1)
    max_consecutive_final_answers: int = Field(..., ge=1)


def _default_levels() -> Dict[str, EnforcementLevelConfig]:
    return {
        "flexible": EnforcementLevelConfig(final_answer_threshold=0.5, max_consecutive_final_answers=3),
        "normal": EnforcementLevelConfig(final_answer_threshold=0.7, max_consecutive_final_answers=2),
        "strict": EnforcementLevelConfig(final_answer_threshold=0.8, max_consecutive_final_answers=1),
    }


class EnforcementConfig(BaseModel):
    """Skip-prevention tiers plus the learning score adjustments they drive."""

    levels: Dict[str, EnforcementLevelConfig] = Field(default_factory=_default_levels)
    strict_score_floor: int = Field(70, ge=0, le=100)
    early_answer_penalty: int = Field(10, ge=0, le=100)
    step_reward: int = Field(2, ge=0, le=100)

    @validator("levels")
    def all_levels_present(
        cls, value: Dict[str, EnforcementLevelConfig]
    ) -> Dict[str, EnforcementLevelConfig]:
        """Ensure every enforcement tier has an entry."""
        missing = [level for level in ENFORCEMENT_LEVELS if level not in value]
        if missing:
            raise ValueError(f"enforcement levels missing: {', '.join(missing)}")
        return value


class PathsConfig(BaseModel):
    """Filesystem layout for persisted learner telemetry."""

    telemetry_dir: Path = Field(Path("data/telemetry"))


class LoggingConfig(BaseModel):
    """Controls for logging output and format."""

    level: str = Field("INFO")
    use_json: bool = False


class Settings(BaseModel):
    """Top-level project configuration aggregating all sub-settings."""

    project_name: str = Field("Stepwise Tutor")
    evaluator: EvaluatorConfig = Field(default_factory=EvaluatorConfig)
    guidance: GuidanceConfig = Field(default_factory=GuidanceConfig)
    enforcement: EnforcementConfig = Field(default_factory=EnforcementConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
