"""Config resolution: defaults, environment and explicit builder calls.

Precedence, highest first:

1. explicit builder call
2. signal-specific environment variable (``OTEL_EXPORTER_OTLP_TRACES_*``)
3. signal-agnostic environment variable (``OTEL_EXPORTER_OTLP_*``)
4. built-in default

Environment input is parsed permissively: a value that cannot be used is
logged and the next layer applies. Explicit calls are validated strictly.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from types import MappingProxyType
from typing import Collection, Mapping
from urllib.parse import urlsplit

from otlpkit import compression as compression_selector
from otlpkit.api.types import (
    DEFAULT_TIMEOUT,
    ExportConfig,
    ExportOverrides,
    Protocol,
    Signal,
)
from otlpkit.environment import (
    OTEL_EXPORTER_OTLP_GRPC_ENDPOINT_DEFAULT,
    OTEL_EXPORTER_OTLP_HTTP_ENDPOINT_DEFAULT,
    EnvLookup,
    snapshot,
)
from otlpkit.exceptions import ConfigurationError, InvalidUriError
from otlpkit.headers import headers_from_env, merge_headers, validate_headers

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("http", "https")

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def resolve_export_config(
    signal: Signal,
    overrides: ExportOverrides,
    default_protocol: Protocol,
    environ: Mapping[str, str] | None = None,
    features: Collection[str] | None = None,
) -> ExportConfig:
    """Merge all configuration layers into one validated ExportConfig.

    Args:
        signal: Signal the exporter is built for.
        overrides: Values from explicit builder calls.
        default_protocol: Protocol preset of the builder variant; it also
            fixes the protocol family (gRPC or HTTP).
        environ: Environment snapshot; the process environment if None.
        features: Compression capability flags; probed if None.

    Returns:
        The resolved configuration.

    Raises:
        ConfigurationError: Invalid explicit timeout or protocol.
        InvalidUriError: Endpoint is not a usable URI.
        InvalidHeaderNameError: Invalid explicit header name.
        InvalidHeaderValueError: Invalid explicit header value.
        UnsupportedCompressionAlgorithmError: Unknown compression name.
        FeatureRequiredForCompressionAlgorithmError: Compression not available.
    """
    env = EnvLookup(snapshot(environ), signal)

    protocol = _resolve_protocol(env, overrides.protocol, default_protocol)
    transport = compression_selector.HTTP if protocol.is_http else compression_selector.GRPC

    return ExportConfig(
        endpoint=_resolve_endpoint(env, overrides.endpoint, protocol),
        protocol=protocol,
        timeout=_resolve_timeout(env, overrides.timeout),
        headers=MappingProxyType(_resolve_headers(env, overrides.headers)),
        compression=compression_selector.select_compression(
            _compression_value(env, overrides), transport, features
        ),
        certificate_file=overrides.certificate_file
        or _value(env.first("CERTIFICATE")),
        insecure=_resolve_insecure(env, overrides.insecure),
    )


def validate_endpoint(endpoint: str) -> str:
    """Check that ``endpoint`` is an absolute http(s) URI with a host.

    Raises:
        InvalidUriError: If the endpoint cannot be used.
    """
    if not isinstance(endpoint, str) or not endpoint:
        raise InvalidUriError(str(endpoint), "endpoint is empty")
    if any(ch.isspace() for ch in endpoint):
        raise InvalidUriError(endpoint, "endpoint contains whitespace")

    try:
        parts = urlsplit(endpoint)
        # Accessing port validates it
        parts.port
    except ValueError as e:
        raise InvalidUriError(endpoint, str(e)) from e

    if not parts.scheme:
        raise InvalidUriError(endpoint, "missing scheme")
    if parts.scheme.lower() not in SUPPORTED_SCHEMES:
        raise InvalidUriError(
            endpoint,
            f"unsupported scheme '{parts.scheme}', "
            f"expected one of: {', '.join(SUPPORTED_SCHEMES)}",
        )
    if not parts.hostname:
        raise InvalidUriError(endpoint, "missing host")
    return endpoint


def _resolve_protocol(
    env: EnvLookup, explicit: Protocol | None, default: Protocol
) -> Protocol:
    if explicit is not None:
        if not isinstance(explicit, Protocol):
            raise ConfigurationError(f"Protocol must be a Protocol member, got {explicit!r}")
        if explicit.is_http != default.is_http:
            raise ConfigurationError(
                f"Protocol {explicit.value} cannot be used with a "
                f"{default.value} exporter builder"
            )
        return explicit

    found = env.first("PROTOCOL")
    if found is not None:
        variable, raw = found
        try:
            protocol = Protocol.parse(raw)
        except ConfigurationError:
            logger.warning("Ignoring %s='%s': unknown protocol", variable, raw)
            return default
        if protocol.is_http == default.is_http:
            return protocol
        logger.debug(
            "Ignoring %s='%s' for a %s exporter builder", variable, raw, default.value
        )
    return default


def _resolve_endpoint(env: EnvLookup, explicit: str | None, protocol: Protocol) -> str:
    if explicit is not None:
        return validate_endpoint(explicit)

    specific = env.specific("ENDPOINT")
    if specific is not None:
        return validate_endpoint(specific[1])

    generic = env.generic("ENDPOINT")
    if protocol.is_http:
        base = generic[1] if generic else OTEL_EXPORTER_OTLP_HTTP_ENDPOINT_DEFAULT
        return validate_endpoint(_append_signal_path(base, env.signal))
    if generic is not None:
        return validate_endpoint(generic[1])
    return OTEL_EXPORTER_OTLP_GRPC_ENDPOINT_DEFAULT


def _append_signal_path(base: str, signal: Signal) -> str:
    return base.rstrip("/") + signal.http_path


def _resolve_timeout(env: EnvLookup, explicit: timedelta | None) -> timedelta:
    if explicit is not None:
        if not isinstance(explicit, timedelta):
            raise ConfigurationError(
                f"Timeout must be a datetime.timedelta, got {type(explicit).__name__}"
            )
        if explicit <= timedelta(0):
            raise ConfigurationError(f"Timeout must be positive, got {explicit}")
        return explicit

    for found in (env.specific("TIMEOUT"), env.generic("TIMEOUT")):
        if found is None:
            continue
        variable, raw = found
        try:
            millis = int(raw)
        except ValueError:
            logger.warning("Ignoring %s='%s': not a number of milliseconds", variable, raw)
            continue
        if millis <= 0:
            logger.warning("Ignoring %s='%s': timeout must be positive", variable, raw)
            continue
        return timedelta(milliseconds=millis)

    return DEFAULT_TIMEOUT


def _resolve_headers(env: EnvLookup, explicit: Mapping[str, str]) -> dict[str, str]:
    layers: list[Mapping[str, str]] = []
    for found in (env.generic("HEADERS"), env.specific("HEADERS")):
        if found is not None:
            layers.append(headers_from_env(*found))
    layers.append(validate_headers(explicit))
    return merge_headers(*layers)


def _compression_value(env: EnvLookup, overrides: ExportOverrides):
    if overrides.compression_set:
        return overrides.compression
    return _value(env.first("COMPRESSION"))


def _resolve_insecure(env: EnvLookup, explicit: bool | None) -> bool | None:
    if explicit is not None:
        return explicit

    found = env.first("INSECURE")
    if found is None:
        return None
    variable, raw = found
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning("Ignoring %s='%s': expected true or false", variable, raw)
    return None


def _value(found: tuple[str, str] | None) -> str | None:
    return found[1] if found is not None else None
