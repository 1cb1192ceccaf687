"""Public API types for otlpkit."""

from otlpkit.api.types import (
    DEFAULT_TIMEOUT,
    BatchConfig,
    Compression,
    ExportConfig,
    ExportOverrides,
    Protocol,
    Signal,
)

__all__ = [
    "BatchConfig",
    "Compression",
    "DEFAULT_TIMEOUT",
    "ExportConfig",
    "ExportOverrides",
    "Protocol",
    "Signal",
]
