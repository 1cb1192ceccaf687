"""Unit tests for the HTTP exporter builder and transport."""

from __future__ import annotations

import gzip
import json
from datetime import timedelta

import pytest
import requests
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import (
    ExportTraceServiceRequest,
)
from opentelemetry.sdk.trace.export import SpanExportResult

from otlpkit import new_exporter
from otlpkit.api.types import Compression, Protocol, Signal
from otlpkit.exceptions import (
    ConfigurationError,
    InvalidUriError,
    NoHttpClientError,
    RequestFailedError,
)
from otlpkit.exporters.http import exporter as http_exporter
from otlpkit.exporters.http.exporter import HttpClient, compress, encode_json
from tests.fakes import FakeHttpSession, FakeResponse


@pytest.mark.unit
class TestHttpBuild:
    def test_explicit_endpoint_with_injected_client(self, fake_session: FakeHttpSession) -> None:
        """
        GIVEN no endpoint variable is set
        AND with_endpoint("http://collector:4318") is called on an HTTP binary builder
        WHEN the exporter is built with an injected client
        THEN the build succeeds and the exporter endpoint matches exactly
        """
        builder = new_exporter().http().with_endpoint("http://collector:4318")

        assert builder.resolve(Signal.TRACES).endpoint == "http://collector:4318"

        exporter = builder.with_http_client(fake_session).build(Signal.TRACES)

        assert exporter.config.endpoint == "http://collector:4318"
        assert exporter.protocol is Protocol.HTTP_BINARY

    def test_no_client_and_no_default_fails(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """
        GIVEN requests is not available and no client was injected
        WHEN an HTTP exporter is built
        THEN NoHttpClientError is raised and no session is created
        """
        created: list[object] = []
        monkeypatch.setattr(http_exporter, "REQUESTS_AVAILABLE", False)
        monkeypatch.setattr(http_exporter, "requests", None)
        monkeypatch.setattr(HttpClient, "__init__", lambda *a, **k: created.append(a))

        with pytest.raises(NoHttpClientError):
            new_exporter().http().with_env({}).build(Signal.TRACES)

        assert created == []

    def test_default_client_is_a_requests_session(self) -> None:
        exporter = new_exporter().http().with_env({}).build(Signal.TRACES)

        assert isinstance(exporter._core.client._client, requests.Session)
        exporter.shutdown()

    def test_certificate_file_sets_session_verify(self) -> None:
        exporter = (
            new_exporter()
            .http()
            .with_env({"OTEL_EXPORTER_OTLP_CERTIFICATE": "/etc/ssl/ca.pem"})
            .build(Signal.TRACES)
        )

        assert exporter._core.client._client.verify == "/etc/ssl/ca.pem"
        exporter.shutdown()

    def test_zero_timeout_fails_build(self, fake_session: FakeHttpSession) -> None:
        builder = (
            new_exporter()
            .http()
            .with_http_client(fake_session)
            .with_timeout(timedelta(milliseconds=0))
        )

        with pytest.raises(ConfigurationError):
            builder.build(Signal.TRACES)

    def test_invalid_uri_fails_before_client_use(self, fake_session: FakeHttpSession) -> None:
        builder = new_exporter().http().with_http_client(fake_session).with_endpoint("not a uri")

        with pytest.raises(InvalidUriError):
            builder.build(Signal.TRACES)

        assert fake_session.calls == []

    def test_builder_is_single_use(self, fake_session: FakeHttpSession) -> None:
        builder = new_exporter().http().with_http_client(fake_session).with_env({})
        builder.build(Signal.TRACES)

        with pytest.raises(ConfigurationError):
            builder.build(Signal.TRACES)

    def test_grpc_protocol_rejected_on_http_builder(self, fake_session: FakeHttpSession) -> None:
        builder = new_exporter().http().with_http_client(fake_session).with_protocol(Protocol.GRPC)

        with pytest.raises(ConfigurationError):
            builder.build(Signal.TRACES)

    def test_json_builder_uses_json_protocol(self, fake_session: FakeHttpSession) -> None:
        exporter = new_exporter().http_json().with_http_client(fake_session).with_env({}).build(
            Signal.LOGS
        )

        assert exporter.protocol is Protocol.HTTP_JSON
        assert exporter.config.endpoint == "http://localhost:4318/v1/logs"


@pytest.mark.unit
class TestHttpExport:
    def test_export_posts_protobuf(self, fake_session: FakeHttpSession, finished_span) -> None:
        exporter = (
            new_exporter()
            .http()
            .with_http_client(fake_session)
            .with_env({"OTEL_EXPORTER_OTLP_HEADERS": "x-tenant=acme"})
            .with_timeout(timedelta(seconds=2))
            .build(Signal.TRACES)
        )

        result = exporter.export([finished_span])

        assert result is SpanExportResult.SUCCESS
        call = fake_session.last_call
        assert call.url == "http://localhost:4318/v1/traces"
        assert call.timeout == 2.0
        assert call.headers["Content-Type"] == "application/x-protobuf"
        assert call.headers["x-tenant"] == "acme"
        assert "Content-Encoding" not in call.headers

        request = ExportTraceServiceRequest.FromString(call.data)
        span = request.resource_spans[0].scope_spans[0].spans[0]
        assert span.name == "operation"

    def test_export_gzip(self, fake_session: FakeHttpSession, finished_span) -> None:
        exporter = (
            new_exporter()
            .http()
            .with_http_client(fake_session)
            .with_env({})
            .with_compression("gzip")
            .build(Signal.TRACES)
        )

        exporter.export([finished_span])

        call = fake_session.last_call
        assert call.headers["Content-Encoding"] == "gzip"
        request = ExportTraceServiceRequest.FromString(gzip.decompress(call.data))
        assert request.resource_spans

    def test_export_json_uses_hex_ids(self, fake_session: FakeHttpSession, finished_span) -> None:
        exporter = new_exporter().http_json().with_http_client(fake_session).with_env({}).build(
            Signal.TRACES
        )

        exporter.export([finished_span])

        call = fake_session.last_call
        assert call.headers["Content-Type"] == "application/json"
        body = json.loads(call.data)
        span = body["resourceSpans"][0]["scopeSpans"][0]["spans"][0]
        assert span["traceId"] == format(finished_span.context.trace_id, "032x")
        assert span["spanId"] == format(finished_span.context.span_id, "016x")

    def test_error_status_raises_request_failed(self, finished_span) -> None:
        session = FakeHttpSession(response=FakeResponse(status_code=400, text="bad payload"))
        exporter = new_exporter().http().with_http_client(session).with_env({}).build(
            Signal.TRACES
        )

        with pytest.raises(RequestFailedError) as exc_info:
            exporter.send([finished_span])

        assert exc_info.value.status_code == 400
        assert "bad payload" in str(exc_info.value)

    def test_export_reports_failure_and_keeps_error(self, finished_span) -> None:
        session = FakeHttpSession(error=requests.ConnectionError("connection refused"))
        exporter = new_exporter().http().with_http_client(session).with_env({}).build(
            Signal.TRACES
        )

        result = exporter.export([finished_span])

        assert result is SpanExportResult.FAILURE
        assert isinstance(exporter.last_error, RequestFailedError)
        assert "connection refused" in str(exporter.last_error)

    def test_os_error_from_custom_client_is_request_failure(self, finished_span) -> None:
        session = FakeHttpSession(error=ConnectionResetError("reset by peer"))
        exporter = new_exporter().http().with_http_client(session).with_env({}).build(
            Signal.TRACES
        )

        with pytest.raises(RequestFailedError):
            exporter.send([finished_span])

    def test_shutdown_does_not_close_injected_client(self, fake_session: FakeHttpSession) -> None:
        exporter = new_exporter().http().with_http_client(fake_session).with_env({}).build(
            Signal.TRACES
        )

        exporter.shutdown()

        assert fake_session.closed is False


@pytest.mark.unit
class TestEncoding:
    def test_encode_json_converts_only_id_fields(self) -> None:
        request = ExportTraceServiceRequest()
        span = request.resource_spans.add().scope_spans.add().spans.add()
        span.trace_id = bytes.fromhex("0af7651916cd43dd8448eb211c80319c")
        span.span_id = bytes.fromhex("b7ad6b7169203331")
        span.name = "checkout"

        body = json.loads(encode_json(request))

        encoded = body["resourceSpans"][0]["scopeSpans"][0]["spans"][0]
        assert encoded["traceId"] == "0af7651916cd43dd8448eb211c80319c"
        assert encoded["spanId"] == "b7ad6b7169203331"
        assert encoded["name"] == "checkout"

    def test_compress_none_returns_body(self) -> None:
        assert compress(b"payload", None) == b"payload"

    def test_compress_zstd(self) -> None:
        zstandard = pytest.importorskip("zstandard")

        compressed = compress(b"payload" * 10, Compression.ZSTD)

        assert zstandard.ZstdDecompressor().decompress(compressed) == b"payload" * 10


class CollectorUnreachable(Exception):
    """Error type of an HTTP client not built on requests."""


@pytest.mark.unit
class TestInjectedClientFailures:
    def test_any_client_error_is_request_failed(self, finished_span) -> None:
        """
        GIVEN an injected client that raises its own exception type
        WHEN a batch is sent
        THEN the failure surfaces as RequestFailedError chained to the original
        """
        session = FakeHttpSession(error=CollectorUnreachable("connection refused by collector"))
        exporter = new_exporter().http().with_http_client(session).with_env({}).build(
            Signal.TRACES
        )

        with pytest.raises(RequestFailedError) as exc_info:
            exporter.send([finished_span])

        assert "connection refused by collector" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, CollectorUnreachable)

    def test_exporter_recovers_after_client_error(self, finished_span) -> None:
        """
        GIVEN an export that failed with a client-specific error
        WHEN the client recovers and the next batch is exported
        THEN the export succeeds instead of reporting a poisoned client
        """
        session = FakeHttpSession(error=CollectorUnreachable("dropped"))
        exporter = new_exporter().http().with_http_client(session).with_env({}).build(
            Signal.TRACES
        )
        assert exporter.export([finished_span]) is SpanExportResult.FAILURE
        assert isinstance(exporter.last_error, RequestFailedError)

        session.error = None

        assert exporter.export([finished_span]) is SpanExportResult.SUCCESS
        assert exporter.last_error is None
        assert len(session.calls) == 2
