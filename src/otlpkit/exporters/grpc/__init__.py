"""gRPC transport for otlpkit exporters."""

from otlpkit.exporters.grpc.exporter import (
    GRPC_AVAILABLE,
    GrpcClient,
    GrpcExporterBuilder,
    GrpcOptions,
)

__all__ = ["GRPC_AVAILABLE", "GrpcClient", "GrpcExporterBuilder", "GrpcOptions"]
