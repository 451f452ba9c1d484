from __future__ import annotations

import json
import logging
from pathlib import Path

from stepwise_tutor.guidance.telemetry import LearningTelemetry

logger = logging.getLogger(__name__)


class TelemetryStore:
    """
    Persist learning telemetry between runs, one JSON file per learner.

    The engine keeps telemetry in memory for its whole lifetime; this store only
    snapshots it so a learner's score survives process restarts.

    Storage Format
    --------------
    Files are named `{learner_id}.json`, e.g. `data/telemetry/student123.json`:
    ```json
    {
      "learner_id": "student123",
      "learning_score": 86,
      "total_problems_attempted": 7,
      "early_final_answer_count": 2,
      "average_steps_completed": 2.6,
      "hints_revealed": 4,
      "blocked_skip_attempts": 1,
      "permitted_early_completions": 1
    }
    ```

    Examples
    --------
    >>> store = TelemetryStore(Path("data/telemetry"))
    >>> telemetry = store.load("student123")
    >>> telemetry.learning_score
    100  # new learners start at full score
    >>> telemetry.penalize_early_final_answer(10)
    90
    >>> store.save("student123", telemetry)
    """

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, learner_id: str) -> Path:
        """Return the JSON file path for a given learner ID."""
        return self.base_dir / f"{learner_id}.json"

    def load(self, learner_id: str) -> LearningTelemetry:
        """Load a learner's telemetry, or a fresh instance when nothing is stored yet."""
        path = self.path_for(learner_id)
        if not path.exists():
            return LearningTelemetry()
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        return LearningTelemetry.from_dict(data)

    def save(self, learner_id: str, telemetry: LearningTelemetry) -> None:
        """Serialize the learner's telemetry back to disk."""
        path = self.path_for(learner_id)
        serialized = {"learner_id": learner_id, **telemetry.to_dict()}
        with path.open("w", encoding="utf-8") as handle:
            json.dump(serialized, handle, indent=2)
        logger.debug("Saved telemetry for %s to %s", learner_id, path)
