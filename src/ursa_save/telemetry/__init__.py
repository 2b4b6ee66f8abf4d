from .bridge import attach_telemetry
from .client import TelemetryClient, TelemetryRecord, default_telemetry_dir

__all__ = ["TelemetryClient", "TelemetryRecord", "attach_telemetry", "default_telemetry_dir"]
