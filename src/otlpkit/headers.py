"""Header parsing and validation shared by the HTTP and gRPC transports."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Mapping

from opentelemetry.util.re import parse_env_headers

from otlpkit.exceptions import InvalidHeaderNameError, InvalidHeaderValueError

logger = logging.getLogger(__name__)

# RFC 7230 token characters
_TOKEN_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
# Visible ASCII, space and horizontal tab; no other control characters
_VALUE_PATTERN = re.compile(r"^[\t\x20-\x7e]*$")


def validate_header_name(name: str) -> str:
    """Return ``name`` unchanged if it is a valid header token.

    Raises:
        InvalidHeaderNameError: If the name is empty or has illegal characters.
    """
    if not isinstance(name, str) or not _TOKEN_PATTERN.match(name):
        raise InvalidHeaderNameError(str(name))
    return name


def validate_header_value(value: str) -> str:
    """Return ``value`` unchanged if it can be sent on the wire.

    Raises:
        InvalidHeaderValueError: If the value has control or non-ASCII characters.
    """
    if not isinstance(value, str) or not _VALUE_PATTERN.match(value):
        raise InvalidHeaderValueError(str(value))
    return value


def validate_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Validate every pair, preserving order."""
    return {
        validate_header_name(name): validate_header_value(value)
        for name, value in headers.items()
    }


def headers_from_env(variable: str, raw: str) -> dict[str, str]:
    """Parse a ``key=value,key2=value2`` environment value.

    Malformed or invalid entries are skipped with a warning; environment
    input never fails a build.

    Args:
        variable: Name of the variable, used in log messages.
        raw: The variable's value.
    """
    parsed = parse_env_headers(raw, liberal=True)
    headers: dict[str, str] = {}
    for name, value in parsed.items():
        try:
            headers[validate_header_name(name)] = validate_header_value(value)
        except (InvalidHeaderNameError, InvalidHeaderValueError) as e:
            logger.warning("Ignoring header from %s: %s", variable, e)
    return headers


def merge_headers(*layers: Mapping[str, str]) -> dict[str, str]:
    """Merge header layers; later layers win, compared case-insensitively."""
    merged: dict[str, str] = {}
    index: dict[str, str] = {}
    for layer in layers:
        for name, value in layer.items():
            previous = index.get(name.lower())
            if previous is not None:
                del merged[previous]
            merged[name] = value
            index[name.lower()] = name
    return merged


def as_grpc_metadata(headers: Mapping[str, str]) -> tuple[tuple[str, str], ...]:
    """gRPC metadata keys must be lower case."""
    return tuple((name.lower(), value) for name, value in headers.items())


def metadata_to_dict(metadata: Mapping[str, str] | Iterable[tuple[str, str]]) -> dict[str, str]:
    if isinstance(metadata, Mapping):
        return dict(metadata)
    return {name: value for name, value in metadata}
