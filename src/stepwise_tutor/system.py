from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from stepwise_tutor.config import Settings, load_settings
from stepwise_tutor.data_models import SessionDescriptor, SolutionDocument
from stepwise_tutor.errors import EvaluatorUnavailable
from stepwise_tutor.evaluation import LLMClient, LLMStepEvaluator, StepEvaluator
from stepwise_tutor.guidance import GuidanceSession, LearningReport, LearningTelemetry
from stepwise_tutor.storage import TelemetryStore
from stepwise_tutor.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def build_evaluator(settings: Settings, api_key: Optional[str] = None) -> Optional[StepEvaluator]:
    """Create the remote evaluator, or return None so sessions fall back to local checks."""
    if not settings.evaluator.enabled:
        logger.info("Remote evaluator disabled in configuration; using local similarity checks")
        return None
    try:
        client = LLMClient(settings.evaluator, api_key=api_key)
    except EvaluatorUnavailable as exc:
        logger.warning("Remote evaluator unavailable (%s); using local similarity checks", exc)
        return None
    return LLMStepEvaluator(client, max_attempts_per_step=settings.guidance.max_attempts_per_step)


class TutorEngine:
    """
    Facade wiring configuration, the step evaluator and learner telemetry.

    Lifecycles
    ----------
    - The step evaluator is created once per engine and shared by every session.
    - Learning telemetry is one instance per learner, cached for the lifetime of
      the engine and only snapshotted to disk by `save_telemetry`.
    - Guidance sessions are cheap and per problem; `new_session` hands out a
      fresh one bound to the learner's telemetry.

    Attributes
    ----------
    settings : Settings
        Validated configuration, usually from config/default.yaml.
    evaluator : StepEvaluator | None
        Remote evaluator; None means sessions use local similarity checks.
    telemetry_store : TelemetryStore
        JSON persistence for per-learner telemetry.
    """

    def __init__(
        self,
        settings: Settings,
        evaluator: Optional[StepEvaluator] = None,
        telemetry_store: Optional[TelemetryStore] = None,
    ):
        self.settings = settings
        self.evaluator = evaluator
        self.telemetry_store = telemetry_store or TelemetryStore(settings.paths.telemetry_dir)
        self._telemetry: Dict[str, LearningTelemetry] = {}

    @classmethod
    def from_config(
        cls,
        config_path: Optional[Path] = None,
        api_key: Optional[str] = None,
        offline: bool = False,
    ) -> "TutorEngine":
        """Load settings, configure logging and build the evaluator unless running offline."""
        settings = load_settings(config_path)
        configure_logging(settings.logging.level, settings.logging.use_json)
        evaluator = None if offline else build_evaluator(settings, api_key=api_key)
        return cls(settings, evaluator=evaluator)

    def telemetry_for(self, learner_id: str) -> LearningTelemetry:
        """Return the learner's telemetry, loading it from disk on first use."""
        if learner_id not in self._telemetry:
            self._telemetry[learner_id] = self.telemetry_store.load(learner_id)
        return self._telemetry[learner_id]

    def new_session(self, learner_id: str) -> GuidanceSession:
        return GuidanceSession(
            telemetry=self.telemetry_for(learner_id),
            evaluator=self.evaluator,
            guidance_config=self.settings.guidance,
            enforcement_config=self.settings.enforcement,
        )

    def start_session(
        self, learner_id: str, solution: SolutionDocument | Mapping[str, Any]
    ) -> Tuple[GuidanceSession, SessionDescriptor]:
        session = self.new_session(learner_id)
        descriptor = session.initialize_guidance(solution)
        return session, descriptor

    def learning_report(self, learner_id: str) -> LearningReport:
        return self.telemetry_for(learner_id).report()

    def save_telemetry(self, learner_id: str) -> None:
        self.telemetry_store.save(learner_id, self.telemetry_for(learner_id))
