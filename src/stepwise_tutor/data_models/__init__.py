from .solution import Hint, SolutionDocument, SolutionStepInput, Step, WrongOption
from .verdict import (
    CompletionStats,
    CompletionSummary,
    FinalAnswerCheck,
    FinalAnswerRequest,
    HintReveal,
    SessionDescriptor,
    StepEvaluation,
    StepEvaluationRequest,
    SubmissionRecord,
    SubmissionVerdict,
)

__all__ = [
    "CompletionStats",
    "CompletionSummary",
    "FinalAnswerCheck",
    "FinalAnswerRequest",
    "Hint",
    "HintReveal",
    "SessionDescriptor",
    "SolutionDocument",
    "SolutionStepInput",
    "Step",
    "StepEvaluation",
    "StepEvaluationRequest",
    "SubmissionRecord",
    "SubmissionVerdict",
    "WrongOption",
]
