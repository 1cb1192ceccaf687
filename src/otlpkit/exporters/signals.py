"""OpenTelemetry SDK exporters backed by an otlpkit transport client.

The exporters encode a batch into an OTLP request message and hand it to
the transport. ``send()`` raises the classified ``OTLPError``; ``export()``
implements the SDK contract and reports the outcome as a result value.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Protocol as TypingProtocol, Sequence

from opentelemetry.exporter.otlp.proto.common._log_encoder import encode_logs
from opentelemetry.exporter.otlp.proto.common.metrics_encoder import encode_metrics
from opentelemetry.exporter.otlp.proto.common.trace_encoder import encode_spans
from opentelemetry.sdk._logs.export import LogExporter, LogExportResult
from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from otlpkit.api.types import ExportConfig, Protocol, Signal
from otlpkit.exceptions import OTLPError, TransportError, encode_error_from
from otlpkit.exporters.builder import ClientGuard

if TYPE_CHECKING:
    from opentelemetry.sdk.metrics.export import MetricsData
    from opentelemetry.sdk.trace import ReadableSpan

logger = logging.getLogger(__name__)


class TransportClient(TypingProtocol):
    """What the signal exporters need from a transport."""

    def send(self, request: Any) -> None:
        """Deliver one OTLP request message; raise OTLPError on failure."""
        ...

    def close(self) -> None:
        """Release resources owned by the client; idempotent."""
        ...


class _ExporterCore:
    """State shared by the three signal exporters."""

    def __init__(
        self,
        signal: Signal,
        config: ExportConfig,
        client: TransportClient,
        encoder: Callable[[Any], Any],
    ) -> None:
        self.signal = signal
        self.config = config
        self.client = client
        self.last_error: OTLPError | None = None
        self._encoder = encoder
        self._guard = ClientGuard(f"{signal.value} exporter client")
        self._shutdown = False
        self._shutdown_lock = threading.Lock()

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def send(self, batch: Any) -> None:
        if self._shutdown:
            raise TransportError(f"the {self.signal.value} exporter has been shut down")

        try:
            request = self._encoder(batch)
        except Exception as e:
            raise encode_error_from(e) from e

        with self._guard.hold():
            # shutdown may have closed the client while we waited
            if self._shutdown:
                raise TransportError(f"the {self.signal.value} exporter has been shut down")
            self.client.send(request)

    def export(self, batch: Any) -> bool:
        if self._shutdown:
            logger.warning("Exporter already shutdown, ignoring %s batch", self.signal.value)
            return False
        try:
            self.send(batch)
        except OTLPError as e:
            self.last_error = e
            logger.warning("Failed to export %s batch: %s", self.signal.value, e)
            return False
        self.last_error = None
        return True

    def shutdown(self) -> None:
        with self._shutdown_lock:
            if self._shutdown:
                logger.debug("%s exporter already shut down", self.signal.value)
                return
            self._shutdown = True
        with self._guard.hold_for_release():
            self.client.close()


class _OTLPExporterMixin:
    _core: _ExporterCore

    @property
    def config(self) -> ExportConfig:
        """The resolved configuration this exporter was built with."""
        return self._core.config

    @property
    def protocol(self) -> Protocol:
        return self._core.config.protocol

    @property
    def last_error(self) -> OTLPError | None:
        """Error of the most recent failed ``export()``, None after a success."""
        return self._core.last_error


class OTLPSpanExporter(_OTLPExporterMixin, SpanExporter):
    """Span exporter sending OTLP over the configured transport."""

    def __init__(self, config: ExportConfig, client: TransportClient) -> None:
        self._core = _ExporterCore(Signal.TRACES, config, client, encode_spans)

    def send(self, spans: Sequence[ReadableSpan]) -> None:
        """Export ``spans``, raising the classified error on failure."""
        self._core.send(spans)

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        if self._core.export(spans):
            return SpanExportResult.SUCCESS
        return SpanExportResult.FAILURE

    def shutdown(self) -> None:
        self._core.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        # Nothing is buffered here
        return True


class OTLPMetricExporter(_OTLPExporterMixin, MetricExporter):
    """Metric exporter sending OTLP over the configured transport."""

    def __init__(
        self,
        config: ExportConfig,
        client: TransportClient,
        preferred_temporality: dict | None = None,
        preferred_aggregation: dict | None = None,
    ) -> None:
        super().__init__(
            preferred_temporality=preferred_temporality,
            preferred_aggregation=preferred_aggregation,
        )
        self._core = _ExporterCore(Signal.METRICS, config, client, encode_metrics)

    def send(self, metrics_data: MetricsData) -> None:
        """Export ``metrics_data``, raising the classified error on failure."""
        self._core.send(metrics_data)

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10_000,
        **kwargs: Any,
    ) -> MetricExportResult:
        if self._core.export(metrics_data):
            return MetricExportResult.SUCCESS
        return MetricExportResult.FAILURE

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs: Any) -> None:
        self._core.shutdown()


class OTLPLogExporter(_OTLPExporterMixin, LogExporter):
    """Log exporter sending OTLP over the configured transport."""

    def __init__(self, config: ExportConfig, client: TransportClient) -> None:
        self._core = _ExporterCore(Signal.LOGS, config, client, encode_logs)

    def send(self, batch: Sequence[Any]) -> None:
        """Export a batch of log records, raising the classified error on failure."""
        self._core.send(batch)

    def export(self, batch: Sequence[Any]) -> LogExportResult:
        if self._core.export(batch):
            return LogExportResult.SUCCESS
        return LogExportResult.FAILURE

    def shutdown(self) -> None:
        self._core.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


def create_signal_exporter(
    signal: Signal,
    config: ExportConfig,
    client: TransportClient,
    **kwargs: Any,
) -> OTLPSpanExporter | OTLPMetricExporter | OTLPLogExporter:
    """Wrap ``client`` in the SDK exporter matching ``signal``."""
    if signal is Signal.METRICS:
        return OTLPMetricExporter(config, client, **kwargs)
    if kwargs:
        raise TypeError(
            f"Unexpected arguments for the {signal.value} exporter: {', '.join(kwargs)}"
        )
    if signal is Signal.TRACES:
        return OTLPSpanExporter(config, client)
    return OTLPLogExporter(config, client)
