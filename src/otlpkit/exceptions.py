"""Exception classes for the otlpkit package.

Every failure raised by a builder or an exporter is an ``OTLPError``
subclass, whichever transport produced it, so callers can branch on one
closed set of kinds.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from otlpkit.api.types import Compression


class OTLPError(Exception):
    """Base class for all errors raised by otlpkit."""

    exporter_name = "otlp"


class ConfigurationError(OTLPError):
    """Raised when an explicit builder call carries an invalid value.

    Environment input is parsed permissively and falls back to defaults;
    explicit configuration is never silently corrected.
    """


class TransportError(OTLPError):
    """The underlying channel or connection could not be set up."""

    def __init__(self, message: str) -> None:
        super().__init__(f"transport error {message}")
        self.detail = message


class InvalidUriError(OTLPError):
    """The endpoint failed URI parsing or validation."""

    def __init__(self, uri: str, reason: str) -> None:
        super().__init__(f"invalid URI {uri!r}: {reason}")
        self.uri = uri
        self.reason = reason


class StatusError(OTLPError):
    """The gRPC server returned a non-success status."""

    def __init__(self, code: Any, message: str) -> None:
        super().__init__(f"the grpc server returns error ({code}): {message}")
        self.code = code
        self.message = message


class NoHttpClientError(OTLPError):
    """An HTTP exporter was requested but no client implementation exists."""

    def __init__(self) -> None:
        super().__init__(
            "no http client, you must install 'requests' or provide your own "
            "implementation with with_http_client()"
        )


class RequestFailedError(OTLPError):
    """The HTTP request was executed but failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(f"http request failed with {message}")
        self.detail = message
        self.status_code = status_code


class InvalidHeaderValueError(OTLPError):
    """A header value contains characters not allowed on the wire."""

    def __init__(self, value: str) -> None:
        super().__init__(f"http header value error {value!r}")
        self.value = value


class InvalidHeaderNameError(OTLPError):
    """A header name is not a valid token."""

    def __init__(self, name: str) -> None:
        super().__init__(f"http header name error {name!r}")
        self.name = name


class EncodeError(OTLPError):
    """Encoding or compressing the export payload failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"encoding error {message}")
        self.detail = message


class PoisonedLockError(OTLPError):
    """A guarded resource was left inconsistent by an earlier failure."""

    def __init__(self, resource: str) -> None:
        super().__init__(f"the lock of the {resource} has been poisoned")
        self.resource = resource


class UnsupportedCompressionAlgorithmError(OTLPError):
    """The requested compression algorithm is not known."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unsupported compression algorithm {name!r}")
        self.name = name


class FeatureRequiredForCompressionAlgorithmError(OTLPError):
    """The compression algorithm is known but its support is not available."""

    def __init__(self, feature: str, algorithm: Compression) -> None:
        super().__init__(
            f"feature {feature!r} is required to use the compression "
            f"algorithm {algorithm.value!r}"
        )
        self.feature = feature
        self.algorithm = algorithm


# --- conversions ------------------------------------------------------------


def error_from_status(code: Any, message: str, source: str | None = None) -> StatusError:
    """Build a StatusError from a remote status code and message.

    An empty remote message yields an empty ``message``. Otherwise the text
    is kept verbatim behind a prefix, and for the ``UNKNOWN`` code the
    source detail of the failure is appended.

    Args:
        code: The status code (``grpc.StatusCode`` or compatible).
        message: Message reported by the server.
        source: Detail about where the failure originated, if any.

    Returns:
        The converted StatusError.
    """
    if not message:
        return StatusError(code, "")

    result = ", detailed error message: " + message
    if _code_name(code) == "UNKNOWN":
        result += " " + (source or "")
    return StatusError(code, result)


def status_from_rpc_error(error: Any) -> StatusError:
    """Convert a ``grpc.RpcError`` raised by a stub call."""
    code = error.code() if callable(getattr(error, "code", None)) else None
    details = error.details() if callable(getattr(error, "details", None)) else None
    source = None
    if callable(getattr(error, "debug_error_string", None)):
        source = error.debug_error_string()
    return error_from_status(code, details or "", source)


def request_failed_from(error: BaseException) -> RequestFailedError:
    """Convert an HTTP client exception, keeping the response status if any."""
    response = getattr(error, "response", None)
    status_code = getattr(response, "status_code", None)
    return RequestFailedError(str(error) or type(error).__name__, status_code)


def encode_error_from(error: BaseException) -> EncodeError:
    """Convert a protobuf or compressor failure."""
    return EncodeError(str(error) or type(error).__name__)


def to_otlp_error(error: BaseException) -> OTLPError | None:
    """Map a transport library exception onto the error taxonomy.

    Returns ``None`` for exception types no transport is known to raise, so
    the caller can re-raise the original instead of hiding it.
    """
    if isinstance(error, OTLPError):
        return error

    try:
        import grpc
    except ImportError:
        grpc = None  # type: ignore[assignment]
    if grpc is not None and isinstance(error, grpc.RpcError):
        return status_from_rpc_error(error)

    try:
        import requests
    except ImportError:
        requests = None  # type: ignore[assignment]
    if requests is not None and isinstance(error, requests.RequestException):
        return request_failed_from(error)

    from google.protobuf.message import EncodeError as ProtobufEncodeError

    if isinstance(error, ProtobufEncodeError):
        return encode_error_from(error)

    return None


def _code_name(code: Any) -> str:
    name = getattr(code, "name", None)
    if isinstance(name, str):
        return name
    return str(code).rsplit(".", 1)[-1]
