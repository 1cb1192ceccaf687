"""OTLP exporter environment variables.

Each setting has a signal-agnostic variable and one variable per signal,
e.g. ``OTEL_EXPORTER_OTLP_ENDPOINT`` and ``OTEL_EXPORTER_OTLP_TRACES_ENDPOINT``.
"""

from __future__ import annotations

import os
from typing import Mapping

from otlpkit.api.types import Signal

OTEL_EXPORTER_OTLP_ENDPOINT = "OTEL_EXPORTER_OTLP_ENDPOINT"
OTEL_EXPORTER_OTLP_PROTOCOL = "OTEL_EXPORTER_OTLP_PROTOCOL"
OTEL_EXPORTER_OTLP_HEADERS = "OTEL_EXPORTER_OTLP_HEADERS"
OTEL_EXPORTER_OTLP_TIMEOUT = "OTEL_EXPORTER_OTLP_TIMEOUT"
OTEL_EXPORTER_OTLP_COMPRESSION = "OTEL_EXPORTER_OTLP_COMPRESSION"
OTEL_EXPORTER_OTLP_CERTIFICATE = "OTEL_EXPORTER_OTLP_CERTIFICATE"
OTEL_EXPORTER_OTLP_INSECURE = "OTEL_EXPORTER_OTLP_INSECURE"

OTEL_EXPORTER_OTLP_TRACES_ENDPOINT = "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT"
OTEL_EXPORTER_OTLP_TRACES_PROTOCOL = "OTEL_EXPORTER_OTLP_TRACES_PROTOCOL"
OTEL_EXPORTER_OTLP_TRACES_HEADERS = "OTEL_EXPORTER_OTLP_TRACES_HEADERS"
OTEL_EXPORTER_OTLP_TRACES_TIMEOUT = "OTEL_EXPORTER_OTLP_TRACES_TIMEOUT"
OTEL_EXPORTER_OTLP_TRACES_COMPRESSION = "OTEL_EXPORTER_OTLP_TRACES_COMPRESSION"

OTEL_EXPORTER_OTLP_METRICS_ENDPOINT = "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT"
OTEL_EXPORTER_OTLP_METRICS_PROTOCOL = "OTEL_EXPORTER_OTLP_METRICS_PROTOCOL"
OTEL_EXPORTER_OTLP_METRICS_HEADERS = "OTEL_EXPORTER_OTLP_METRICS_HEADERS"
OTEL_EXPORTER_OTLP_METRICS_TIMEOUT = "OTEL_EXPORTER_OTLP_METRICS_TIMEOUT"
OTEL_EXPORTER_OTLP_METRICS_COMPRESSION = "OTEL_EXPORTER_OTLP_METRICS_COMPRESSION"

OTEL_EXPORTER_OTLP_LOGS_ENDPOINT = "OTEL_EXPORTER_OTLP_LOGS_ENDPOINT"
OTEL_EXPORTER_OTLP_LOGS_PROTOCOL = "OTEL_EXPORTER_OTLP_LOGS_PROTOCOL"
OTEL_EXPORTER_OTLP_LOGS_HEADERS = "OTEL_EXPORTER_OTLP_LOGS_HEADERS"
OTEL_EXPORTER_OTLP_LOGS_TIMEOUT = "OTEL_EXPORTER_OTLP_LOGS_TIMEOUT"
OTEL_EXPORTER_OTLP_LOGS_COMPRESSION = "OTEL_EXPORTER_OTLP_LOGS_COMPRESSION"

OTEL_EXPORTER_OTLP_GRPC_ENDPOINT_DEFAULT = "http://localhost:4317"
OTEL_EXPORTER_OTLP_HTTP_ENDPOINT_DEFAULT = "http://localhost:4318"
OTEL_EXPORTER_OTLP_ENDPOINT_DEFAULT = OTEL_EXPORTER_OTLP_GRPC_ENDPOINT_DEFAULT
OTEL_EXPORTER_OTLP_PROTOCOL_DEFAULT = "grpc"
OTEL_EXPORTER_OTLP_TIMEOUT_DEFAULT = 10_000

_PREFIX = "OTEL_EXPORTER_OTLP_"


def signal_variable(setting: str, signal: Signal) -> str:
    """Name of the signal-specific variable for a setting.

    >>> signal_variable("ENDPOINT", Signal.TRACES)
    'OTEL_EXPORTER_OTLP_TRACES_ENDPOINT'
    """
    return f"{_PREFIX}{signal.env_segment}_{setting}"


def generic_variable(setting: str) -> str:
    return f"{_PREFIX}{setting}"


def snapshot(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Take a copy of the environment used for one build.

    Args:
        environ: Injected environment; the process environment if None.
    """
    return dict(os.environ if environ is None else environ)


class EnvLookup:
    """Reads one setting for one signal out of an environment snapshot."""

    def __init__(self, environ: Mapping[str, str], signal: Signal) -> None:
        self._environ = environ
        self.signal = signal

    def specific(self, setting: str) -> tuple[str, str] | None:
        """Return ``(variable, value)`` for the signal-specific variable."""
        return self._get(signal_variable(setting, self.signal))

    def generic(self, setting: str) -> tuple[str, str] | None:
        """Return ``(variable, value)`` for the signal-agnostic variable."""
        return self._get(generic_variable(setting))

    def first(self, setting: str) -> tuple[str, str] | None:
        """Signal-specific value if set, else the signal-agnostic one."""
        return self.specific(setting) or self.generic(setting)

    def _get(self, name: str) -> tuple[str, str] | None:
        value = self._environ.get(name)
        if value is None or not value.strip():
            return None
        return name, value.strip()
