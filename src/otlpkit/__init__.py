"""otlpkit: OTLP exporter configuration and transport selection.

Build an exporter for one signal and install it into the OpenTelemetry SDK:

    import otlpkit
    from datetime import timedelta

    provider = (
        otlpkit.new_pipeline()
        .tracing()
        .with_exporter(
            otlpkit.new_exporter()
            .http()
            .with_endpoint("http://collector:4318/v1/traces")
            .with_timeout(timedelta(seconds=5))
        )
        .install_batch()
    )

Endpoint, headers, timeout, compression and protocol can also come from the
standard ``OTEL_EXPORTER_OTLP_*`` environment variables; explicit builder
calls always win.
"""

from __future__ import annotations

from otlpkit.api.types import BatchConfig, Compression, ExportConfig, Protocol, Signal
from otlpkit.compression import select_compression
from otlpkit.config import load_config
from otlpkit.exceptions import (
    ConfigurationError,
    EncodeError,
    FeatureRequiredForCompressionAlgorithmError,
    InvalidHeaderNameError,
    InvalidHeaderValueError,
    InvalidUriError,
    NoHttpClientError,
    OTLPError,
    PoisonedLockError,
    RequestFailedError,
    StatusError,
    TransportError,
    UnsupportedCompressionAlgorithmError,
)
from otlpkit.exporters import (
    GrpcExporterBuilder,
    HttpExporterBuilder,
    OTLPLogExporter,
    OTLPMetricExporter,
    OTLPSpanExporter,
    new_exporter,
)
from otlpkit.resolver import resolve_export_config
from otlpkit.sdk.lifecycle import shutdown
from otlpkit.sdk.pipeline import new_pipeline
from otlpkit.version import __version__

__all__ = [
    "BatchConfig",
    "Compression",
    "ConfigurationError",
    "EncodeError",
    "ExportConfig",
    "FeatureRequiredForCompressionAlgorithmError",
    "GrpcExporterBuilder",
    "HttpExporterBuilder",
    "InvalidHeaderNameError",
    "InvalidHeaderValueError",
    "InvalidUriError",
    "NoHttpClientError",
    "OTLPError",
    "OTLPLogExporter",
    "OTLPMetricExporter",
    "OTLPSpanExporter",
    "PoisonedLockError",
    "Protocol",
    "RequestFailedError",
    "Signal",
    "StatusError",
    "TransportError",
    "UnsupportedCompressionAlgorithmError",
    "__version__",
    "load_config",
    "new_exporter",
    "new_pipeline",
    "resolve_export_config",
    "select_compression",
    "shutdown",
]
