"""
OpenTelemetry Exporter for enisync

Architectural Intent:
- Wraps every lifecycle operation in a span named enisync.<operation>;
  a failing operation records the exception and marks the span as an error
- Reconciliation change counts are gauges per device; convergence waits
  are histograms of duration and poll count per awaited condition
- Every data point is kept in a local buffer so a run without a collector
  can still be inspected; once the OTLP pipeline is installed the SDK's
  periodic reader does the exporting and the buffer is only a mirror

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Iterator, Optional
from urllib.parse import urlparse
import logging

from opentelemetry import metrics, trace
from opentelemetry.trace import Status, StatusCode

from enisync.application.orchestration.convergence import WaitReport

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "enisync"

GAUGE = "gauge"
HISTOGRAM = "histogram"


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "enisync"
    environment: str = "production"
    enable_traces: bool = True
    enable_metrics: bool = True
    insecure: bool = False

    def __post_init__(self) -> None:
        if not self.endpoint:
            return
        parsed = urlparse(self.endpoint)
        local = parsed.hostname in ("localhost", "127.0.0.1", "::1")
        if parsed.scheme == "http" and not local and not self.insecure:
            raise ValueError(
                f"Refusing plaintext export to {self.endpoint}: use https:// "
                "or set insecure=True"
            )


@dataclass(frozen=True)
class MetricPoint:
    name: str
    value: float
    kind: str = GAUGE
    unit: str = ""
    attributes: dict[str, str] = field(default_factory=dict)
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class OTELExporter:
    """Spans and metrics for reconciliation and lifecycle operations."""

    def __init__(self, config: OTELConfig):
        self.config = config
        self._initialized = False
        self._meter: Any = None
        self._instruments: dict[str, Any] = {}
        self._metrics_buffer: list[MetricPoint] = []

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def buffered(self) -> tuple[MetricPoint, ...]:
        return tuple(self._metrics_buffer)

    def initialize(self) -> None:
        """Install the OTLP trace and metric pipelines for the configured endpoint."""
        if not self.config.endpoint:
            logger.debug("No OTEL endpoint configured, keeping metrics in memory only")
            return
        try:
            self._install_pipelines()
        except ImportError:
            logger.warning("OTLP exporter not installed, keeping metrics in memory only")
            return
        except Exception as e:
            logger.error("Failed to initialize OTEL export to %s: %s", self.config.endpoint, e)
            return
        self._initialized = True
        logger.debug("Exporting telemetry to %s", self.config.endpoint)

    def _install_pipelines(self) -> None:
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        resource = Resource(
            attributes={
                SERVICE_NAME: self.config.service_name,
                "deployment.environment": self.config.environment,
            }
        )
        target = {"endpoint": self.config.endpoint, "insecure": self.config.insecure}

        if self.config.enable_traces:
            provider = TracerProvider(resource=resource)
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**target)))
            trace.set_tracer_provider(provider)

        if self.config.enable_metrics:
            reader = PeriodicExportingMetricReader(OTLPMetricExporter(**target))
            metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))
            self._meter = metrics.get_meter(INSTRUMENTATION_NAME)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _instrument(self, name: str, kind: str, unit: str) -> Any:
        if self._meter is None:
            return None
        if name not in self._instruments:
            if kind == HISTOGRAM:
                self._instruments[name] = self._meter.create_histogram(name, unit=unit)
            else:
                self._instruments[name] = self._meter.create_gauge(name, unit=unit)
        return self._instruments[name]

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
        kind: str = GAUGE,
    ) -> None:
        point = MetricPoint(name, float(value), kind, unit, dict(attributes or {}))
        self._metrics_buffer.append(point)
        if not self._initialized:
            return
        instrument = self._instrument(name, kind, unit)
        if instrument is None:
            return
        if kind == HISTOGRAM:
            instrument.record(point.value, attributes=point.attributes)
        else:
            instrument.set(point.value, attributes=point.attributes)

    def record_reconciliation(self, device: str, changes: int, dry_run: bool) -> None:
        self.record_metric(
            "enisync.reconcile.changes",
            changes,
            attributes={"device": device, "dry_run": str(dry_run)},
        )

    def record_convergence(self, report: WaitReport) -> None:
        """ConvergenceWaiter observer: one duration and one poll count per wait."""
        attributes = {"condition": report.condition, "converged": str(report.converged)}
        self.record_metric(
            "enisync.convergence.duration_ms",
            report.elapsed * 1000.0,
            unit="ms",
            attributes=attributes,
            kind=HISTOGRAM,
        )
        self.record_metric(
            "enisync.convergence.polls", report.polls, attributes=attributes, kind=HISTOGRAM
        )

    # ------------------------------------------------------------------
    # Traces
    # ------------------------------------------------------------------

    @contextmanager
    def span(
        self, operation: str, attributes: Optional[dict[str, str]] = None
    ) -> Iterator[Optional[Any]]:
        """Trace one lifecycle operation as enisync.<operation>."""
        if not self._initialized:
            yield None
            return
        tracer = trace.get_tracer(INSTRUMENTATION_NAME)
        span = tracer.start_span(f"enisync.{operation}", attributes=attributes or {})
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
        finally:
            span.end()

    def export(self) -> None:
        """Drop the local mirror once the SDK reader owns exporting."""
        if not self._initialized:
            return
        count = len(self._metrics_buffer)
        self._metrics_buffer.clear()
        if count:
            logger.debug("Handed %d metric points to the OTLP reader", count)


def create_exporter(
    endpoint: Optional[str] = None,
    insecure: bool = False,
    service_name: str = "enisync",
) -> OTELExporter:
    exporter = OTELExporter(
        OTELConfig(endpoint=endpoint or "", service_name=service_name, insecure=insecure)
    )
    exporter.initialize()
    return exporter
