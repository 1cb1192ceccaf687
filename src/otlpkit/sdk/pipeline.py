"""Signal pipelines: pair one exporter with SDK processing and install it.

This module is responsible for:
- Building exactly one exporter per install call
- Attaching it to the SDK processor or metric reader
- Installing the provider globally and registering it for shutdown
"""

from __future__ import annotations

import math
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Sequence

from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, SimpleLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

from otlpkit._internal.logging import log_info
from otlpkit.api.types import BatchConfig, Signal
from otlpkit.exceptions import ConfigurationError
from otlpkit.sdk import lifecycle

if TYPE_CHECKING:
    from opentelemetry.sdk.metrics.view import View
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import SpanLimits
    from opentelemetry.sdk.trace.sampling import Sampler

    from otlpkit.exporters.builder import ExporterBuilder

DEFAULT_METRIC_PERIOD = timedelta(seconds=60)


class _SignalPipeline:
    """Options shared by the three pipelines; single use."""

    signal: Signal

    def __init__(self) -> None:
        self._exporter_builder: ExporterBuilder | None = None
        self._resource: Resource | None = None
        self._installed = False

    def with_exporter(self, builder: ExporterBuilder):
        """Use ``builder`` to create this pipeline's exporter."""
        if self._exporter_builder is not None:
            raise ConfigurationError(
                f"The {self.signal.value} pipeline already has an exporter"
            )
        self._exporter_builder = builder
        return self

    def with_resource(self, resource: Resource):
        self._resource = resource
        return self

    def _claim(self) -> ExporterBuilder:
        if self._installed:
            raise ConfigurationError(
                f"The {self.signal.value} pipeline has already been installed"
            )
        if self._exporter_builder is None:
            raise ConfigurationError(
                f"No exporter configured for the {self.signal.value} pipeline; "
                "call with_exporter() first"
            )
        self._installed = True
        return self._exporter_builder

    def _provider_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"shutdown_on_exit": False}
        if self._resource is not None:
            kwargs["resource"] = self._resource
        return kwargs

    def _register(self, provider: Any, mode: str) -> None:
        lifecycle.register(self.signal, provider)
        log_info(f"Installed {self.signal.value} pipeline ({mode})")


class TracePipeline(_SignalPipeline):
    """Installs a TracerProvider exporting spans over OTLP."""

    signal = Signal.TRACES

    def __init__(self) -> None:
        super().__init__()
        self._sampler: Sampler | None = None
        self._span_limits: SpanLimits | None = None
        self._batch_config: BatchConfig | None = None

    def with_sampler(self, sampler: Sampler) -> TracePipeline:
        self._sampler = sampler
        return self

    def with_span_limits(self, span_limits: SpanLimits) -> TracePipeline:
        self._span_limits = span_limits
        return self

    def with_batch_config(self, batch_config: BatchConfig) -> TracePipeline:
        self._batch_config = batch_config
        return self

    def install_simple(self) -> TracerProvider:
        """Export every span synchronously as it ends."""
        exporter = self._claim().build(Signal.TRACES)
        return self._install(SimpleSpanProcessor(exporter), "simple")

    def install_batch(self, batch_config: BatchConfig | None = None) -> TracerProvider:
        """Export spans in batches from the SDK's background worker."""
        exporter = self._claim().build(Signal.TRACES)
        options = batch_config or self._batch_config or BatchConfig()
        return self._install(BatchSpanProcessor(exporter, **options.processor_kwargs()), "batch")

    def _install(self, processor: Any, mode: str) -> TracerProvider:
        kwargs = self._provider_kwargs()
        if self._sampler is not None:
            kwargs["sampler"] = self._sampler
        if self._span_limits is not None:
            kwargs["span_limits"] = self._span_limits

        provider = TracerProvider(**kwargs)
        provider.add_span_processor(processor)
        trace.set_tracer_provider(provider)
        self._register(provider, mode)
        return provider


class MetricPipeline(_SignalPipeline):
    """Installs a MeterProvider exporting metrics over OTLP.

    Metrics are always pulled by a periodic reader. ``install_simple()``
    exports only on ``force_flush()`` or shutdown; ``install_batch()``
    exports every period.
    """

    signal = Signal.METRICS

    def __init__(self) -> None:
        super().__init__()
        self._period: timedelta = DEFAULT_METRIC_PERIOD
        self._export_timeout: timedelta | None = None
        self._views: Sequence[View] = ()
        self._temporality: dict | None = None
        self._aggregation: dict | None = None

    def with_period(self, period: timedelta) -> MetricPipeline:
        if not isinstance(period, timedelta) or period <= timedelta(0):
            raise ConfigurationError(f"Metric export period must be positive, got {period!r}")
        self._period = period
        return self

    def with_export_timeout(self, timeout: timedelta) -> MetricPipeline:
        if not isinstance(timeout, timedelta) or timeout <= timedelta(0):
            raise ConfigurationError(f"Metric export timeout must be positive, got {timeout!r}")
        self._export_timeout = timeout
        return self

    def with_views(self, *views: View) -> MetricPipeline:
        self._views = tuple(views)
        return self

    def with_temporality(self, temporality: dict) -> MetricPipeline:
        """Preferred temporality per instrument class."""
        self._temporality = temporality
        return self

    def with_aggregation(self, aggregation: dict) -> MetricPipeline:
        """Preferred aggregation per instrument class."""
        self._aggregation = aggregation
        return self

    def install_simple(self) -> MeterProvider:
        return self._install(math.inf, "simple")

    def install_batch(self, period: timedelta | None = None) -> MeterProvider:
        if period is not None:
            self.with_period(period)
        return self._install(self._period.total_seconds() * 1000, "batch")

    def _install(self, interval_millis: float, mode: str) -> MeterProvider:
        exporter = self._claim().build(
            Signal.METRICS,
            preferred_temporality=self._temporality,
            preferred_aggregation=self._aggregation,
        )

        reader_kwargs: dict[str, Any] = {"export_interval_millis": interval_millis}
        if self._export_timeout is not None:
            reader_kwargs["export_timeout_millis"] = self._export_timeout.total_seconds() * 1000
        reader = PeriodicExportingMetricReader(exporter, **reader_kwargs)

        kwargs = self._provider_kwargs()
        if self._views:
            kwargs["views"] = self._views
        provider = MeterProvider(metric_readers=[reader], **kwargs)
        metrics.set_meter_provider(provider)
        self._register(provider, mode)
        return provider


class LogPipeline(_SignalPipeline):
    """Installs a LoggerProvider exporting log records over OTLP."""

    signal = Signal.LOGS

    def __init__(self) -> None:
        super().__init__()
        self._batch_config: BatchConfig | None = None

    def with_batch_config(self, batch_config: BatchConfig) -> LogPipeline:
        self._batch_config = batch_config
        return self

    def install_simple(self) -> LoggerProvider:
        exporter = self._claim().build(Signal.LOGS)
        return self._install(SimpleLogRecordProcessor(exporter), "simple")

    def install_batch(self, batch_config: BatchConfig | None = None) -> LoggerProvider:
        exporter = self._claim().build(Signal.LOGS)
        options = batch_config or self._batch_config or BatchConfig()
        return self._install(
            BatchLogRecordProcessor(exporter, **options.processor_kwargs()), "batch"
        )

    def _install(self, processor: Any, mode: str) -> LoggerProvider:
        provider = LoggerProvider(**self._provider_kwargs())
        provider.add_log_record_processor(processor)
        set_logger_provider(provider)
        self._register(provider, mode)
        return provider


class OtlpPipeline:
    """Entry point for choosing a signal."""

    def tracing(self) -> TracePipeline:
        return TracePipeline()

    def metrics(self) -> MetricPipeline:
        return MetricPipeline()

    def logging(self) -> LogPipeline:
        return LogPipeline()


def new_pipeline() -> OtlpPipeline:
    """Start a signal pipeline, e.g. ``new_pipeline().tracing()``."""
    return OtlpPipeline()
