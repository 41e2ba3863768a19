"""
enisync Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for observability
- Reconciliation change counts, convergence wait durations and
  lifecycle operation spans
"""

from enisync.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    create_exporter,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
    "create_exporter",
]
