"""Configuration surface shared by every transport variant.

Each variant composes an ``ExportOverrides`` (the shared settings) with its
own options dataclass, and implements ``_create_client`` to turn a resolved
``ExportConfig`` into a transport client.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from otlpkit.api.types import Compression, ExportConfig, ExportOverrides, Protocol, Signal
from otlpkit.exceptions import ConfigurationError, OTLPError, PoisonedLockError
from otlpkit.resolver import resolve_export_config

if TYPE_CHECKING:
    from otlpkit.exporters.signals import (
        OTLPLogExporter,
        OTLPMetricExporter,
        OTLPSpanExporter,
        TransportClient,
    )

logger = logging.getLogger(__name__)


class ExporterBuilder:
    """Builder for one exporter; single use.

    All ``with_*`` methods return the builder so calls can be chained.
    Nothing is validated until ``build()``.
    """

    #: Compression transport key: "grpc" or "http"
    transport: str = ""

    def __init__(self, protocol: Protocol) -> None:
        self._preset = protocol
        self._overrides = ExportOverrides()
        self._environ: Mapping[str, str] | None = None
        self._built = False

    @property
    def protocol(self) -> Protocol:
        """Protocol of the explicit configuration, or the variant preset."""
        return self._overrides.protocol or self._preset

    def with_endpoint(self, endpoint: str) -> ExporterBuilder:
        self._overrides.endpoint = endpoint
        return self

    def with_timeout(self, timeout: timedelta) -> ExporterBuilder:
        self._overrides.timeout = timeout
        return self

    def with_headers(self, headers: Mapping[str, str]) -> ExporterBuilder:
        """Add headers sent with every export request.

        Explicit headers win over headers from the environment.
        """
        self._overrides.headers.update(headers)
        return self

    def with_compression(self, compression: str | Compression | None) -> ExporterBuilder:
        """Request a compression algorithm; None or "none" disables it."""
        self._overrides.compression = compression
        self._overrides.compression_set = True
        return self

    def with_protocol(self, protocol: Protocol) -> ExporterBuilder:
        self._overrides.protocol = protocol
        return self

    def with_certificate_file(self, path: str) -> ExporterBuilder:
        """Trust the root certificates in this PEM file."""
        self._overrides.certificate_file = path
        return self

    def with_env(self, environ: Mapping[str, str]) -> ExporterBuilder:
        """Resolve against ``environ`` instead of the process environment."""
        self._environ = environ
        return self

    def resolve(self, signal: Signal) -> ExportConfig:
        """Resolve the configuration without building or consuming the builder."""
        return resolve_export_config(
            signal,
            self._overrides,
            self._preset,
            environ=self._environ,
        )

    def build(self, signal: Signal, **exporter_kwargs: Any) -> Any:
        """Build the exporter for ``signal``.

        Configuration is resolved and validated before any transport
        resource is allocated.

        Args:
            signal: Signal the exporter will export.
            **exporter_kwargs: Passed to the signal exporter (metrics only:
                ``preferred_temporality``, ``preferred_aggregation``).

        Returns:
            An OTLPSpanExporter, OTLPMetricExporter or OTLPLogExporter.

        Raises:
            ConfigurationError: If the builder was already used or an
                explicit value is invalid.
            OTLPError: Any other configuration or transport setup failure.
        """
        from otlpkit.exporters.signals import create_signal_exporter

        if self._built:
            raise ConfigurationError("Exporter builder has already been used")
        self._built = True

        config = self.resolve(signal)
        self._validate_options(config)
        client = self._create_client(signal, config)
        exporter = create_signal_exporter(signal, config, client, **exporter_kwargs)

        logger.debug(
            "Built %s exporter: endpoint=%s protocol=%s compression=%s",
            signal.value,
            config.endpoint,
            config.protocol.value,
            config.compression.value if config.compression else "none",
        )
        return exporter

    def build_span_exporter(self) -> OTLPSpanExporter:
        return self.build(Signal.TRACES)

    def build_metric_exporter(self, **kwargs: Any) -> OTLPMetricExporter:
        return self.build(Signal.METRICS, **kwargs)

    def build_log_exporter(self) -> OTLPLogExporter:
        return self.build(Signal.LOGS)

    def _validate_options(self, config: ExportConfig) -> None:
        """Validate variant-specific options; must not allocate resources."""

    def _create_client(self, signal: Signal, config: ExportConfig) -> TransportClient:
        raise NotImplementedError


class ClientGuard:
    """Serializes access to a transport client.

    An unexpected exception (anything that is not an ``OTLPError``) inside
    the guarded section leaves the client in an unknown state; the guard is
    then poisoned and every later entry raises ``PoisonedLockError``.
    """

    def __init__(self, resource: str) -> None:
        self.resource = resource
        self._lock = threading.Lock()
        self._poisoned = False

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @contextmanager
    def hold(self) -> Iterator[None]:
        with self._lock:
            if self._poisoned:
                raise PoisonedLockError(self.resource)
            try:
                yield
            except OTLPError:
                raise
            except BaseException:
                self._poisoned = True
                raise

    @contextmanager
    def hold_for_release(self) -> Iterator[None]:
        """Take the lock even when poisoned, so the client can still be closed."""
        with self._lock:
            yield
