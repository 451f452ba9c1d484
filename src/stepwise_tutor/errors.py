"""Exception taxonomy for the tutoring engine.

Only `InvalidSolutionError`, `SessionNotInitializedError` and
`SubmissionInProgressError` ever reach callers. Evaluator errors are caught by
the guidance session and answered with the local similarity heuristic.
"""

from __future__ import annotations


class TutorError(Exception):
    """Base class for all tutoring engine errors."""


class InvalidSolutionError(TutorError, ValueError):
    """The solution document is missing steps or is otherwise malformed."""


class SessionNotInitializedError(TutorError, RuntimeError):
    """A session operation was called before `initialize_guidance`."""


class SubmissionInProgressError(TutorError, RuntimeError):
    """A submission arrived while another one was still being evaluated."""


class EvaluatorError(TutorError):
    """Base class for remote step evaluator failures."""


class EvaluatorUnavailable(EvaluatorError):
    """No remote evaluator is reachable or configured."""


class EvaluatorTransportError(EvaluatorError):
    """The remote evaluator failed in transit or returned an unusable payload."""
