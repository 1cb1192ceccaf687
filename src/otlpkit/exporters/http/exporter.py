"""HTTP transport for OTLP exporters, with binary protobuf or JSON bodies."""

from __future__ import annotations

import base64
import gzip
import json
import logging
from dataclasses import dataclass
from typing import Any

from google.protobuf.json_format import MessageToDict
from google.protobuf.message import EncodeError as ProtobufEncodeError

from otlpkit.api.types import Compression, ExportConfig, Protocol, Signal
from otlpkit.exceptions import (
    EncodeError,
    NoHttpClientError,
    RequestFailedError,
    encode_error_from,
    to_otlp_error,
)
from otlpkit.exporters.builder import ExporterBuilder
from otlpkit.version import __version__

# requests is the default client; without it a client must be injected
try:
    import requests

    REQUESTS_AVAILABLE = True
except ImportError:
    requests = None  # type: ignore[assignment]
    REQUESTS_AVAILABLE = False

logger = logging.getLogger(__name__)

USER_AGENT = f"otlpkit/{__version__}"

CONTENT_TYPES: dict[Protocol, str] = {
    Protocol.HTTP_BINARY: "application/x-protobuf",
    Protocol.HTTP_JSON: "application/json",
}

# OTLP/JSON encodes these bytes fields as hex instead of base64
_HEX_ID_FIELDS = frozenset({"traceId", "spanId", "parentSpanId"})


@dataclass
class HttpOptions:
    """Options only the HTTP transport understands."""

    # Anything with post(url, data=, headers=, timeout=), e.g. requests.Session
    client: Any = None


class HttpExporterBuilder(ExporterBuilder):
    """Builds exporters that POST OTLP payloads over HTTP.

    The body format follows the protocol: ``Protocol.HTTP_BINARY`` sends
    binary protobuf, ``Protocol.HTTP_JSON`` sends OTLP/JSON.
    """

    transport = "http"

    def __init__(self, protocol: Protocol = Protocol.HTTP_BINARY) -> None:
        super().__init__(protocol)
        self.options = HttpOptions()

    def with_http_client(self, client: Any) -> HttpExporterBuilder:
        """Use ``client`` to send requests; it is never closed by the exporter."""
        self.options.client = client
        return self

    def _create_client(self, signal: Signal, config: ExportConfig) -> HttpClient:
        if self.options.client is not None:
            return HttpClient(config, self.options.client, owns_client=False)

        if not REQUESTS_AVAILABLE:
            raise NoHttpClientError()

        session = requests.Session()
        if config.certificate_file:
            session.verify = config.certificate_file
        return HttpClient(config, session, owns_client=True)


class HttpClient:
    """Serializes, compresses and POSTs OTLP request messages."""

    def __init__(self, config: ExportConfig, client: Any, owns_client: bool = True) -> None:
        self.endpoint = config.endpoint
        self.protocol = config.protocol
        self.compression = config.compression
        self.timeout = config.timeout_seconds
        self.headers = self._request_headers(config)
        self._client = client
        self._owns_client = owns_client
        self._closed = False

    def _request_headers(self, config: ExportConfig) -> dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        headers.update(config.headers)
        headers["Content-Type"] = CONTENT_TYPES[config.protocol]
        if config.compression is not None:
            headers["Content-Encoding"] = config.compression.value
        return headers

    def encode(self, request: Any) -> bytes:
        """Serialize and compress ``request`` into the request body.

        Raises:
            EncodeError: If serialization or compression fails.
        """
        try:
            if self.protocol is Protocol.HTTP_JSON:
                body = encode_json(request)
            else:
                body = request.SerializeToString()
        except (ProtobufEncodeError, TypeError, ValueError) as e:
            raise encode_error_from(e) from e
        return compress(body, self.compression)

    def send(self, request: Any) -> None:
        body = self.encode(request)
        try:
            response = self._client.post(
                self.endpoint,
                data=body,
                headers=self.headers,
                timeout=self.timeout,
            )
        except Exception as e:
            # Injected clients may be built on any HTTP library
            error = to_otlp_error(e) or RequestFailedError(str(e) or type(e).__name__)
            raise error from e

        status = getattr(response, "status_code", None)
        if status is None or not 200 <= status < 300:
            raise RequestFailedError(
                f"status {status}: {_response_text(response)}", status_code=status
            )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            self._client.close()
            logger.debug("Closed HTTP session for %s", self.endpoint)


def encode_json(message: Any) -> bytes:
    """Encode a protobuf message as OTLP/JSON."""
    data = MessageToDict(message, use_integers_for_enums=True)
    return json.dumps(_hex_ids(data), separators=(",", ":")).encode("utf-8")


def _hex_ids(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: base64.b64decode(item).hex()
            if key in _HEX_ID_FIELDS and isinstance(item, str)
            else _hex_ids(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_hex_ids(item) for item in value]
    return value


def compress(body: bytes, compression: Compression | None) -> bytes:
    """Compress ``body``; the algorithm has already been selected as available.

    Raises:
        EncodeError: If the compressor fails.
    """
    if compression is None:
        return body
    if compression is Compression.GZIP:
        return gzip.compress(body)

    import zstandard

    try:
        return zstandard.ZstdCompressor().compress(body)
    except zstandard.ZstdError as e:
        raise EncodeError(f"zstd compression failed: {e}") from e


def _response_text(response: Any) -> str:
    text = getattr(response, "text", None)
    if isinstance(text, str):
        return text[:200]
    content = getattr(response, "content", b"")
    if isinstance(content, bytes):
        return content[:200].decode("utf-8", errors="replace")
    return ""

