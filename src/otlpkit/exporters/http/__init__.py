"""HTTP transport for otlpkit exporters."""

from otlpkit.exporters.http.exporter import (
    REQUESTS_AVAILABLE,
    HttpClient,
    HttpExporterBuilder,
    HttpOptions,
)

__all__ = ["REQUESTS_AVAILABLE", "HttpClient", "HttpExporterBuilder", "HttpOptions"]
