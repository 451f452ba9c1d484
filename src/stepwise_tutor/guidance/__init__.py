from .enforcement import (
    ComplexityReport,
    EnforcementDecision,
    EnforcementPolicy,
    analyze_complexity,
    classify,
)
from .hints import hint_for_attempts, hints_for, prepare_steps, step_difficulty
from .ledger import AttemptLedger, AttemptResult
from .session import GuidanceSession
from .telemetry import LearningReport, LearningTelemetry

__all__ = [
    "AttemptLedger",
    "AttemptResult",
    "ComplexityReport",
    "EnforcementDecision",
    "EnforcementPolicy",
    "GuidanceSession",
    "LearningReport",
    "LearningTelemetry",
    "analyze_complexity",
    "classify",
    "hint_for_attempts",
    "hints_for",
    "prepare_steps",
    "step_difficulty",
]
