"""Tests for OTELExporter."""

from unittest.mock import MagicMock, patch

import pytest

from enisync.application.orchestration.convergence import WaitReport
from enisync.infrastructure.telemetry.otel_exporter import (
    GAUGE,
    HISTOGRAM,
    OTELConfig,
    OTELExporter,
    create_exporter,
)


@pytest.fixture
def exporter():
    return OTELExporter(OTELConfig(endpoint=""))


@pytest.fixture
def live_exporter():
    exporter = OTELExporter(OTELConfig(endpoint=""))
    exporter._initialized = True
    exporter._meter = MagicMock()
    return exporter


class TestOTELConfig:
    def test_default_empty_endpoint(self):
        config = OTELConfig()
        assert config.endpoint == ""
        assert config.service_name == "enisync"

    def test_localhost_http_allowed(self):
        config = OTELConfig(endpoint="http://localhost:4317")
        assert config.endpoint == "http://localhost:4317"

    def test_remote_https_allowed(self):
        config = OTELConfig(endpoint="https://collector.example.com:4317")
        assert config.endpoint == "https://collector.example.com:4317"

    def test_remote_http_rejected(self):
        with pytest.raises(ValueError, match="insecure=True"):
            OTELConfig(endpoint="http://collector.example.com:4317")

    def test_remote_http_with_insecure(self):
        config = OTELConfig(endpoint="http://collector.example.com:4317", insecure=True)
        assert config.insecure is True


class TestInitialize:
    def test_without_endpoint(self):
        exporter = create_exporter()
        assert not exporter.initialized

    def test_pipeline_failure_leaves_export_disabled(self):
        exporter = OTELExporter(OTELConfig(endpoint="http://localhost:4317"))
        with patch.object(exporter, "_install_pipelines", side_effect=RuntimeError("no grpc")):
            exporter.initialize()
        assert not exporter.initialized

    def test_missing_exporter_package(self):
        exporter = OTELExporter(OTELConfig(endpoint="http://localhost:4317"))
        with patch.object(exporter, "_install_pipelines", side_effect=ImportError("grpc")):
            exporter.initialize()
        assert not exporter.initialized

    def test_installs_pipelines(self):
        exporter = OTELExporter(OTELConfig(endpoint="http://localhost:4317"))
        with patch.object(exporter, "_install_pipelines") as install:
            exporter.initialize()
        install.assert_called_once_with()
        assert exporter.initialized


class TestMetrics:
    def test_record_metric_buffers(self, exporter):
        exporter.record_metric("test.metric", 42)
        [point] = exporter.buffered
        assert point.name == "test.metric"
        assert point.value == 42.0
        assert point.kind == GAUGE

    def test_record_reconciliation(self, exporter):
        exporter.record_reconciliation("eth1", 3, dry_run=True)
        [point] = exporter.buffered
        assert point.name == "enisync.reconcile.changes"
        assert point.value == 3.0
        assert point.attributes == {"device": "eth1", "dry_run": "True"}

    def test_record_convergence(self, exporter):
        exporter.record_convergence(WaitReport("eth1 to attach", True, 4, 1.2))
        duration, polls = exporter.buffered
        assert duration.name == "enisync.convergence.duration_ms"
        assert duration.value == pytest.approx(1200.0)
        assert duration.kind == HISTOGRAM
        assert polls.value == 4.0
        assert polls.attributes["converged"] == "True"

    def test_export_noop_when_not_initialized(self, exporter):
        exporter.record_metric("test", 1.0)
        exporter.export()
        assert len(exporter.buffered) == 1

    def test_export_clears_buffer_when_initialized(self, live_exporter):
        live_exporter.record_metric("test", 1.0)
        live_exporter.export()
        assert live_exporter.buffered == ()

    def test_gauge_set_when_initialized(self, live_exporter):
        live_exporter.record_reconciliation("eth1", 2, dry_run=False)
        gauge = live_exporter._meter.create_gauge.return_value
        gauge.set.assert_called_once_with(2.0, attributes={"device": "eth1", "dry_run": "False"})

    def test_histogram_recorded_when_initialized(self, live_exporter):
        live_exporter.record_convergence(WaitReport("eth1 to attach", False, 2, 0.5))
        histogram = live_exporter._meter.create_histogram.return_value
        assert histogram.record.call_count == 2
        live_exporter._meter.create_gauge.assert_not_called()

    def test_instruments_reused(self, live_exporter):
        live_exporter.record_reconciliation("eth1", 1, dry_run=False)
        live_exporter.record_reconciliation("eth2", 0, dry_run=False)
        live_exporter._meter.create_gauge.assert_called_once()


class TestSpans:
    def test_span_noop_when_not_initialized(self, exporter):
        with exporter.span("configure") as span:
            assert span is None

    def test_span_named_after_operation(self, live_exporter):
        with patch("opentelemetry.trace.get_tracer") as get_tracer:
            with live_exporter.span("attach_interface", {"interface_id": "eni-1"}):
                pass
        tracer = get_tracer.return_value
        tracer.start_span.assert_called_once_with(
            "enisync.attach_interface", attributes={"interface_id": "eni-1"}
        )
        tracer.start_span.return_value.end.assert_called_once()

    def test_span_records_exception(self, live_exporter):
        error = RuntimeError("boom")
        with patch("opentelemetry.trace.get_tracer") as get_tracer:
            with pytest.raises(RuntimeError):
                with live_exporter.span("detach_interface"):
                    raise error
        span = get_tracer.return_value.start_span.return_value
        span.record_exception.assert_called_once_with(error)
        span.set_status.assert_called_once()
        span.end.assert_called_once()
