"""
Stepwise Tutor.

Adaptive step-by-step tutoring engine: walks a learner through a generated
multi-step math solution, bounds retries per step, blocks premature final
answers and keeps a longitudinal learning score per learner.
"""

from .config.loader import load_settings
from .guidance import GuidanceSession, LearningTelemetry
from .system import TutorEngine

__all__ = ["GuidanceSession", "LearningTelemetry", "TutorEngine", "load_settings"]
