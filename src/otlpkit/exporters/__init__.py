"""Exporter builders for the supported transports.

Each transport is isolated in its own subpackage; they share the
configuration surface in ``otlpkit.exporters.builder``.
"""

from __future__ import annotations

import logging
from typing import Mapping

from otlpkit.api.types import Protocol, Signal
from otlpkit.environment import EnvLookup, snapshot
from otlpkit.exceptions import ConfigurationError
from otlpkit.exporters.builder import ExporterBuilder
from otlpkit.exporters.grpc import GrpcExporterBuilder
from otlpkit.exporters.http import HttpExporterBuilder
from otlpkit.exporters.signals import OTLPLogExporter, OTLPMetricExporter, OTLPSpanExporter

logger = logging.getLogger(__name__)


class ExporterFactory:
    """Entry point for choosing a transport variant."""

    def grpc(self) -> GrpcExporterBuilder:
        return GrpcExporterBuilder()

    def http(self) -> HttpExporterBuilder:
        """HTTP with a binary protobuf body."""
        return HttpExporterBuilder(Protocol.HTTP_BINARY)

    def http_json(self) -> HttpExporterBuilder:
        """HTTP with an OTLP/JSON body."""
        return HttpExporterBuilder(Protocol.HTTP_JSON)

    def for_protocol(self, protocol: Protocol) -> ExporterBuilder:
        if protocol is Protocol.GRPC:
            return self.grpc()
        return HttpExporterBuilder(protocol)

    def from_env(
        self, signal: Signal, environ: Mapping[str, str] | None = None
    ) -> ExporterBuilder:
        """Pick the variant named by ``OTEL_EXPORTER_OTLP_[<SIGNAL>_]PROTOCOL``.

        An unknown protocol value is ignored with a warning and gRPC is used.
        The returned builder resolves against the same environment snapshot.
        """
        env = snapshot(environ)
        protocol = Protocol.GRPC
        found = EnvLookup(env, signal).first("PROTOCOL")
        if found is not None:
            variable, raw = found
            try:
                protocol = Protocol.parse(raw)
            except ConfigurationError:
                logger.warning("Ignoring %s='%s': unknown protocol", variable, raw)
        return self.for_protocol(protocol).with_env(env)


def new_exporter() -> ExporterFactory:
    """Start building an exporter, e.g. ``new_exporter().http().build(...)``."""
    return ExporterFactory()


__all__ = [
    "ExporterBuilder",
    "ExporterFactory",
    "GrpcExporterBuilder",
    "HttpExporterBuilder",
    "OTLPLogExporter",
    "OTLPMetricExporter",
    "OTLPSpanExporter",
    "new_exporter",
]
