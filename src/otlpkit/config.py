"""Exporter configuration files.

A YAML file can describe the exporters instead of (or in addition to)
builder calls::

    validation:
      mode: strict
    exporter:
      protocol: http/protobuf
      endpoint: https://collector.example.com:4318
      headers:
        authorization: "Bearer ${OTLP_TOKEN}"
      timeout_ms: 5000
      compression: gzip
    traces:
      endpoint: https://traces.example.com/v1/traces

Values from the file are applied as explicit builder calls, so they take
precedence over the environment. ``${VAR}`` references are substituted
from the process environment, or from the mapping passed to
``load_config``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

import yaml

from otlpkit._internal.logging import log_info
from otlpkit.api.types import Protocol, Signal
from otlpkit.environment import snapshot
from otlpkit.exceptions import ConfigurationError
from otlpkit.exporters import ExporterBuilder, GrpcExporterBuilder, new_exporter

logger = logging.getLogger(__name__)

# Pattern for environment variable substitution: ${VAR_NAME}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

SECTION_KEYS = {
    "protocol",
    "endpoint",
    "headers",
    "timeout_ms",
    "compression",
    "certificate_file",
    "insecure",
}


@dataclass
class ExporterSection:
    """Exporter settings from one section of the file; None means unset."""

    protocol: Protocol | None = None
    endpoint: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout_ms: int | None = None
    compression: str | None = None
    certificate_file: str | None = None
    insecure: bool | None = None

    def overlay(self, other: ExporterSection) -> ExporterSection:
        """Return a section where the values set in ``other`` win."""
        return ExporterSection(
            protocol=other.protocol or self.protocol,
            endpoint=other.endpoint or self.endpoint,
            headers={**self.headers, **other.headers},
            timeout_ms=other.timeout_ms if other.timeout_ms is not None else self.timeout_ms,
            compression=other.compression if other.compression is not None else self.compression,
            certificate_file=other.certificate_file or self.certificate_file,
            insecure=other.insecure if other.insecure is not None else self.insecure,
        )


@dataclass
class ValidationConfig:
    """Validation mode configuration."""

    mode: str = "permissive"  # "strict" | "permissive"


@dataclass
class OTLPFileConfig:
    """Parsed exporter configuration file."""

    exporter: ExporterSection = field(default_factory=ExporterSection)
    signals: dict[Signal, ExporterSection] = field(default_factory=dict)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    @property
    def is_strict(self) -> bool:
        """Return True if validation mode is strict."""
        return self.validation.mode == "strict"

    def section(self, signal: Signal) -> ExporterSection:
        """Shared settings overlaid with the settings for ``signal``."""
        return self.exporter.overlay(self.signals.get(signal, ExporterSection()))

    def exporter_builder(
        self, signal: Signal, environ: Mapping[str, str] | None = None
    ) -> ExporterBuilder:
        """Create a builder preloaded with the file's settings for ``signal``.

        When the file names no protocol the variant is chosen from the
        environment, as ``new_exporter().from_env()`` does.
        """
        section = self.section(signal)
        factory = new_exporter()
        if section.protocol is not None:
            builder = factory.for_protocol(section.protocol)
            if environ is not None:
                builder.with_env(environ)
        else:
            builder = factory.from_env(signal, environ)

        if section.endpoint is not None:
            builder.with_endpoint(section.endpoint)
        if section.headers:
            builder.with_headers(section.headers)
        if section.timeout_ms is not None:
            builder.with_timeout(timedelta(milliseconds=section.timeout_ms))
        if section.compression is not None:
            builder.with_compression(section.compression)
        if section.certificate_file is not None:
            builder.with_certificate_file(section.certificate_file)
        if section.insecure is not None and isinstance(builder, GrpcExporterBuilder):
            builder.with_insecure(section.insecure)
        return builder


def _expand_references(data: Any, environ: Mapping[str, str], strict: bool) -> Any:
    """Replace ``${VAR}`` references in every string of a parsed YAML tree.

    Raises:
        ConfigurationError: In strict mode, if a referenced variable is unset.
    """
    if isinstance(data, str):
        return ENV_VAR_PATTERN.sub(
            lambda match: _lookup_reference(match.group(1), environ, strict), data
        )
    if isinstance(data, dict):
        return {key: _expand_references(item, environ, strict) for key, item in data.items()}
    if isinstance(data, list):
        return [_expand_references(item, environ, strict) for item in data]
    return data


def _lookup_reference(name: str, environ: Mapping[str, str], strict: bool) -> str:
    value = environ.get(name)
    if value is not None:
        return value
    if strict:
        raise ConfigurationError(
            f"Configuration references environment variable '{name}', which is not set"
        )
    logger.warning("Configuration references unset variable '%s'; substituting ''", name)
    return ""


def _parse_section(name: str, data: Any, errors: list[str]) -> ExporterSection:
    """Parse one exporter section, collecting problems into ``errors``."""
    section = ExporterSection()
    if data is None:
        return section
    if not isinstance(data, dict):
        errors.append(f"{name} must be a mapping")
        return section

    unknown = sorted(set(data) - SECTION_KEYS)
    if unknown:
        logger.warning("Unknown options in %s ignored: %s", name, unknown)

    if data.get("protocol") is not None:
        try:
            section.protocol = Protocol.parse(str(data["protocol"]))
        except ConfigurationError as e:
            errors.append(f"{name}.protocol: {e}")

    if data.get("endpoint") is not None:
        section.endpoint = str(data["endpoint"])

    headers = data.get("headers")
    if isinstance(headers, dict):
        section.headers = {str(k): str(v) for k, v in headers.items()}
    elif headers is not None:
        errors.append(f"{name}.headers must be a mapping")

    timeout_ms = data.get("timeout_ms")
    if timeout_ms is not None:
        try:
            section.timeout_ms = int(timeout_ms)
        except (TypeError, ValueError):
            errors.append(f"{name}.timeout_ms must be an integer, got {timeout_ms!r}")

    if data.get("compression") is not None:
        section.compression = str(data["compression"])

    if data.get("certificate_file") is not None:
        section.certificate_file = str(data["certificate_file"])

    insecure = data.get("insecure")
    if isinstance(insecure, bool):
        section.insecure = insecure
    elif insecure is not None:
        errors.append(f"{name}.insecure must be true or false")

    return section


def _parse_validation_config(data: dict[str, Any]) -> ValidationConfig:
    """Parse validation configuration section."""
    mode = data.get("mode", "permissive")
    if mode not in ("strict", "permissive"):
        logger.warning("Unknown validation mode '%s', defaulting to permissive", mode)
        mode = "permissive"
    return ValidationConfig(mode=mode)


def load_config(
    path: str | Path,
    strict: bool | None = None,
    environ: Mapping[str, str] | None = None,
) -> OTLPFileConfig:
    """Load and parse an exporter configuration file.

    Args:
        path: Path to the YAML configuration file.
        strict: Override validation mode. If None, use mode from config file.
        environ: Variables for ${VAR} references; the process environment
            if None.

    Returns:
        Parsed OTLPFileConfig. In permissive mode invalid values are dropped
        with a warning.

    Raises:
        ConfigurationError: If the file doesn't exist, the YAML is invalid,
                           or validation fails in strict mode.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            raw_data = yaml.safe_load(f)
            if raw_data is None:
                raw_data = {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e

    if not isinstance(raw_data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")

    validation = _parse_validation_config(raw_data.get("validation") or {})
    if strict is not None:
        validation.mode = "strict" if strict else "permissive"
    is_strict = validation.mode == "strict"

    data = _expand_references(raw_data, snapshot(environ), strict=is_strict)

    errors: list[str] = []
    config = OTLPFileConfig(
        exporter=_parse_section("exporter", data.get("exporter"), errors),
        signals={
            signal: _parse_section(signal.value, data[signal.value], errors)
            for signal in Signal
            if signal.value in data
        },
        validation=validation,
    )

    if errors:
        if config.is_strict:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}"
            )
        for error in errors:
            logger.warning("Ignoring invalid configuration: %s", error)

    log_info(f"Loaded exporter configuration from {path}")
    return config
