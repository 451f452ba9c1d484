from .telemetry_store import TelemetryStore

__all__ = ["TelemetryStore"]
