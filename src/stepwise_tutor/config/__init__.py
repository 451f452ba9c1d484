from .loader import load_settings
from .schema import (
    EnforcementConfig,
    EnforcementLevelConfig,
    EvaluatorConfig,
    GuidanceConfig,
    Settings,
)

__all__ = [
    "EnforcementConfig",
    "EnforcementLevelConfig",
    "EvaluatorConfig",
    "GuidanceConfig",
    "Settings",
    "load_settings",
]
