"""gRPC transport for OTLP exporters.

Uses grpcio channels and the collector service stubs generated in
opentelemetry-proto.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence
from urllib.parse import urlsplit

from otlpkit.api.types import Compression, ExportConfig, Protocol, Signal
from otlpkit.exceptions import OTLPError, TransportError, status_from_rpc_error
from otlpkit.exporters.builder import ExporterBuilder
from otlpkit.headers import as_grpc_metadata, merge_headers, metadata_to_dict, validate_headers
from otlpkit.version import __version__

# grpcio is optional at import time so HTTP-only installs keep working
try:
    import grpc
    from opentelemetry.proto.collector.logs.v1.logs_service_pb2_grpc import (
        LogsServiceStub,
    )
    from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2_grpc import (
        MetricsServiceStub,
    )
    from opentelemetry.proto.collector.trace.v1.trace_service_pb2_grpc import (
        TraceServiceStub,
    )

    GRPC_AVAILABLE = True
except ImportError:
    grpc = None  # type: ignore[assignment]
    GRPC_AVAILABLE = False

logger = logging.getLogger(__name__)

USER_AGENT = f"otlpkit/{__version__}"


@dataclass
class GrpcOptions:
    """Options only the gRPC transport understands."""

    metadata: dict[str, str] = field(default_factory=dict)
    channel: Any = None
    interceptors: list[Any] = field(default_factory=list)
    # PEM bytes of trusted roots; None uses grpcio's bundled roots
    tls_roots: bytes | None = None
    client_key: bytes | None = None
    client_certificate: bytes | None = None
    channel_options: list[tuple[str, Any]] = field(default_factory=list)


class GrpcExporterBuilder(ExporterBuilder):
    """Builds exporters that send OTLP over gRPC.

    Example:
        exporter = (
            new_exporter()
            .grpc()
            .with_endpoint("http://collector:4317")
            .with_metadata({"x-tenant": "acme"})
            .build(Signal.TRACES)
        )
    """

    transport = "grpc"

    def __init__(self) -> None:
        super().__init__(Protocol.GRPC)
        self.options = GrpcOptions()

    def with_metadata(
        self, metadata: Mapping[str, str] | Iterable[tuple[str, str]]
    ) -> GrpcExporterBuilder:
        """Add gRPC metadata; merged over the configured headers."""
        self.options.metadata.update(metadata_to_dict(metadata))
        return self

    def with_channel(self, channel: Any) -> GrpcExporterBuilder:
        """Send over ``channel`` instead of creating one.

        The exporter never closes a channel it did not create.
        """
        self.options.channel = channel
        return self

    def with_interceptors(self, *interceptors: Any) -> GrpcExporterBuilder:
        self.options.interceptors.extend(interceptors)
        return self

    def with_tls_roots(self, roots: bytes | None) -> GrpcExporterBuilder:
        """Select the TLS root source: PEM bytes, or None for grpcio's roots."""
        self.options.tls_roots = roots
        return self

    def with_client_identity(self, key: bytes, certificate_chain: bytes) -> GrpcExporterBuilder:
        """Present a client certificate (mutual TLS)."""
        self.options.client_key = key
        self.options.client_certificate = certificate_chain
        return self

    def with_insecure(self, insecure: bool) -> GrpcExporterBuilder:
        """Force a plaintext (True) or TLS (False) channel."""
        self._overrides.insecure = insecure
        return self

    def with_channel_options(self, options: Sequence[tuple[str, Any]]) -> GrpcExporterBuilder:
        self.options.channel_options.extend(options)
        return self

    def _validate_options(self, config: ExportConfig) -> None:
        validate_headers(self.options.metadata)
        if (self.options.client_key is None) != (self.options.client_certificate is None):
            raise TransportError("client key and certificate chain must be set together")

    def _create_client(self, signal: Signal, config: ExportConfig) -> GrpcClient:
        if not GRPC_AVAILABLE:
            raise TransportError(
                "grpcio is not installed. Install with: pip install grpcio"
            )

        metadata = as_grpc_metadata(merge_headers(config.headers, self.options.metadata))

        if self.options.channel is not None:
            channel = self.options.channel
            owns_channel = False
        else:
            channel = self._create_channel(config)
            owns_channel = True

        if self.options.interceptors:
            channel = grpc.intercept_channel(channel, *self.options.interceptors)

        return GrpcClient(
            signal=signal,
            channel=channel,
            metadata=metadata,
            timeout=config.timeout_seconds,
            compression=config.compression,
            owns_channel=owns_channel,
        )

    def _create_channel(self, config: ExportConfig) -> Any:
        parts = urlsplit(config.endpoint)
        target = parts.netloc
        insecure = config.insecure
        if insecure is None:
            insecure = parts.scheme.lower() == "http"

        options = [("grpc.primary_user_agent", USER_AGENT), *self.options.channel_options]

        if insecure:
            logger.debug("Creating insecure gRPC channel to %s", target)
            return grpc.insecure_channel(target, options=options)

        credentials = self._credentials(config)
        logger.debug("Creating secure gRPC channel to %s", target)
        return grpc.secure_channel(target, credentials, options=options)

    def _credentials(self, config: ExportConfig) -> Any:
        roots = self.options.tls_roots
        if roots is None and config.certificate_file:
            try:
                with open(config.certificate_file, "rb") as f:
                    roots = f.read()
            except OSError as e:
                raise TransportError(
                    f"cannot read certificate file {config.certificate_file}: {e}"
                ) from e
        try:
            return grpc.ssl_channel_credentials(
                root_certificates=roots,
                private_key=self.options.client_key,
                certificate_chain=self.options.client_certificate,
            )
        except (TypeError, ValueError) as e:
            raise TransportError(f"invalid TLS configuration: {e}") from e


def _stub_for(signal: Signal, channel: Any) -> Any:
    if signal is Signal.TRACES:
        return TraceServiceStub(channel)
    if signal is Signal.METRICS:
        return MetricsServiceStub(channel)
    return LogsServiceStub(channel)


class GrpcClient:
    """Sends OTLP request messages through a collector service stub."""

    def __init__(
        self,
        signal: Signal,
        channel: Any,
        metadata: tuple[tuple[str, str], ...],
        timeout: float,
        compression: Compression | None,
        owns_channel: bool = True,
        stub: Any = None,
    ) -> None:
        self.signal = signal
        self.metadata = metadata
        self.timeout = timeout
        self.compression = compression
        self._channel = channel
        self._owns_channel = owns_channel
        self._stub = stub if stub is not None else _stub_for(signal, channel)
        self._closed = False

    def send(self, request: Any) -> None:
        kwargs: dict[str, Any] = {"metadata": self.metadata, "timeout": self.timeout}
        if self.compression is Compression.GZIP:
            kwargs["compression"] = grpc.Compression.Gzip
        try:
            self._stub.Export(request, **kwargs)
        except grpc.RpcError as e:
            raise status_from_rpc_error(e) from e
        except OTLPError:
            raise
        except Exception as e:
            # e.g. ValueError from a closed channel, or a failing interceptor
            raise TransportError(
                f"gRPC {self.signal.value} export failed: {str(e) or type(e).__name__}"
            ) from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_channel and self._channel is not None:
            self._channel.close()
            logger.debug("Closed gRPC channel for %s exporter", self.signal.value)
