"""In-process telemetry stores."""
