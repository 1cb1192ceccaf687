"""Public configuration types for the otlpkit package.

These types are part of the stable public API and follow semver guarantees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from otlpkit.exceptions import ConfigurationError


class Protocol(Enum):
    """Wire protocol used to deliver encoded telemetry.

    Values are the spellings accepted by ``OTEL_EXPORTER_OTLP_PROTOCOL``.
    """

    GRPC = "grpc"
    HTTP_BINARY = "http/protobuf"
    HTTP_JSON = "http/json"

    @classmethod
    def parse(cls, value: str) -> Protocol:
        """Parse an environment spelling such as ``http/protobuf``.

        Raises:
            ConfigurationError: If the value names no known protocol.
        """
        normalized = value.strip().lower()
        for protocol in cls:
            if protocol.value == normalized:
                return protocol
        raise ConfigurationError(
            f"Unknown protocol '{value}'. "
            f"Valid protocols: {', '.join(p.value for p in cls)}"
        )

    @property
    def is_http(self) -> bool:
        return self is not Protocol.GRPC


class Signal(Enum):
    """Telemetry stream exported independently of the others."""

    TRACES = "traces"
    METRICS = "metrics"
    LOGS = "logs"

    @property
    def env_segment(self) -> str:
        """Segment used in signal-specific environment variable names."""
        return self.value.upper()

    @property
    def http_path(self) -> str:
        """Path appended to a base URL for the HTTP transports."""
        return f"/v1/{self.value}"


class Compression(Enum):
    """Compression algorithms known to the exporters."""

    GZIP = "gzip"
    ZSTD = "zstd"


DEFAULT_TIMEOUT = timedelta(milliseconds=10_000)


@dataclass(frozen=True)
class ExportConfig:
    """Fully resolved configuration of one exporter.

    Instances are produced by the config resolver and never mutated; the
    headers mapping is read-only.
    """

    endpoint: str
    protocol: Protocol
    timeout: timedelta = DEFAULT_TIMEOUT
    headers: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    compression: Compression | None = None
    # Path of a PEM bundle with trusted roots; None uses the transport default
    certificate_file: str | None = None
    # gRPC only: None derives plaintext/TLS from the endpoint scheme
    insecure: bool | None = None

    def __post_init__(self) -> None:
        from otlpkit.resolver import validate_endpoint

        validate_endpoint(self.endpoint)
        if not isinstance(self.protocol, Protocol):
            raise ConfigurationError(f"Protocol must be a Protocol member, got {self.protocol!r}")
        if not isinstance(self.timeout, timedelta) or self.timeout <= timedelta(0):
            raise ConfigurationError(f"Timeout must be a positive timedelta, got {self.timeout!r}")
        if not isinstance(self.headers, MappingProxyType):
            object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def timeout_seconds(self) -> float:
        return self.timeout.total_seconds()


@dataclass
class ExportOverrides:
    """Values set through explicit builder calls.

    ``None`` means the call was not made and the lower precedence layers
    apply.
    """

    endpoint: str | None = None
    protocol: Protocol | None = None
    timeout: timedelta | None = None
    headers: dict[str, str] = field(default_factory=dict)
    compression: str | Compression | None = None
    # Distinguishes an explicit with_compression(None) from "not called"
    compression_set: bool = False
    certificate_file: str | None = None
    insecure: bool | None = None


@dataclass
class BatchConfig:
    """Options handed to the SDK batch processors.

    ``None`` fields keep the SDK defaults, including its own environment
    variables.
    """

    max_queue_size: int | None = None
    schedule_delay: timedelta | None = None
    max_export_batch_size: int | None = None
    export_timeout: timedelta | None = None

    def processor_kwargs(self) -> dict[str, int]:
        kwargs: dict[str, int] = {}
        if self.max_queue_size is not None:
            kwargs["max_queue_size"] = self.max_queue_size
        if self.schedule_delay is not None:
            kwargs["schedule_delay_millis"] = _millis(self.schedule_delay)
        if self.max_export_batch_size is not None:
            kwargs["max_export_batch_size"] = self.max_export_batch_size
        if self.export_timeout is not None:
            kwargs["export_timeout_millis"] = _millis(self.export_timeout)
        return kwargs


def _millis(value: timedelta) -> int:
    return int(value.total_seconds() * 1000)
