"""Unit tests for exporter configuration files.

Requirements covered:
- Shared and per-signal exporter sections
- ${VAR} substitution from the process environment
- Strict and permissive validation modes
- File values rank as explicit builder calls
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from otlpkit.api.types import Compression, Protocol, Signal
from otlpkit.config import load_config
from otlpkit.exceptions import ConfigurationError
from otlpkit.exporters import GrpcExporterBuilder, HttpExporterBuilder

if TYPE_CHECKING:
    from pathlib import Path


def write_config(tmp_path: "Path", content: str) -> "Path":
    config_path = tmp_path / "otlp.yaml"
    config_path.write_text(content)
    return config_path


@pytest.mark.unit
class TestLoadConfig:
    def test_sections_parsed(self, tmp_path: "Path") -> None:
        """
        GIVEN a file with a shared exporter section and a traces section
        WHEN config is loaded
        THEN the traces section overrides the shared values it sets
        AND keeps the shared values it does not set
        """
        config_path = write_config(
            tmp_path,
            """exporter:
  protocol: http/protobuf
  endpoint: https://collector.example.com:4318
  headers:
    x-tenant: acme
  timeout_ms: 5000
  compression: gzip
traces:
  endpoint: https://traces.example.com/v1/traces
  headers:
    x-team: payments
""",
        )

        config = load_config(config_path)
        section = config.section(Signal.TRACES)

        assert section.protocol is Protocol.HTTP_BINARY
        assert section.endpoint == "https://traces.example.com/v1/traces"
        assert section.headers == {"x-tenant": "acme", "x-team": "payments"}
        assert section.timeout_ms == 5000
        assert section.compression == "gzip"
        assert config.section(Signal.LOGS).endpoint == "https://collector.example.com:4318"

    def test_empty_file_gives_defaults(self, tmp_path: "Path") -> None:
        config = load_config(write_config(tmp_path, ""))

        assert config.exporter.endpoint is None
        assert config.signals == {}
        assert config.is_strict is False

    def test_missing_file_raises(self, tmp_path: "Path") -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml_raises(self, tmp_path: "Path") -> None:
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(write_config(tmp_path, "exporter: [unclosed"))

    def test_non_mapping_raises(self, tmp_path: "Path") -> None:
        with pytest.raises(ConfigurationError):
            load_config(write_config(tmp_path, "- just\n- a list\n"))


@pytest.mark.unit
class TestEnvSubstitution:
    def test_env_var_substituted(
        self, tmp_path: "Path", monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """
        GIVEN a header value referencing ${OTLP_TOKEN}
        AND OTLP_TOKEN is set
        WHEN config is loaded
        THEN the reference is replaced by the variable's value
        """
        monkeypatch.setenv("OTLP_TOKEN", "s3cret")
        config_path = write_config(
            tmp_path,
            """exporter:
  headers:
    authorization: "Bearer ${OTLP_TOKEN}"
""",
        )

        config = load_config(config_path)

        assert config.exporter.headers["authorization"] == "Bearer s3cret"

    def test_injected_environment_used_for_references(
        self, tmp_path: "Path", monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """
        GIVEN an environment mapping passed to load_config
        AND the process environment holds a different value
        WHEN config is loaded
        THEN references resolve against the mapping only
        """
        monkeypatch.setenv("OTLP_TOKEN", "from-process")
        config_path = write_config(
            tmp_path,
            """exporter:
  headers:
    authorization: "Bearer ${OTLP_TOKEN}"
  endpoint: "${COLLECTOR_URL}"
""",
        )

        config = load_config(
            config_path,
            environ={"OTLP_TOKEN": "injected", "COLLECTOR_URL": "http://collector:4318"},
        )

        assert config.exporter.headers["authorization"] == "Bearer injected"
        assert config.exporter.endpoint == "http://collector:4318"

    def test_missing_env_var_permissive(
        self, tmp_path: "Path", monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("OTLP_TOKEN", raising=False)
        config_path = write_config(
            tmp_path,
            """exporter:
  headers:
    authorization: "Bearer ${OTLP_TOKEN}"
""",
        )

        config = load_config(config_path)

        assert config.exporter.headers["authorization"] == "Bearer "

    def test_missing_env_var_strict(
        self, tmp_path: "Path", monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("OTLP_TOKEN", raising=False)
        config_path = write_config(
            tmp_path,
            """validation:
  mode: strict
exporter:
  endpoint: "${OTLP_TOKEN}"
""",
        )

        with pytest.raises(ConfigurationError, match="OTLP_TOKEN"):
            load_config(config_path)


@pytest.mark.unit
class TestValidationModes:
    INVALID = """exporter:
  protocol: carrier-pigeon
  timeout_ms: soon
  insecure: maybe
"""

    def test_permissive_drops_invalid_values(self, tmp_path: "Path") -> None:
        """
        GIVEN invalid protocol, timeout and insecure values
        WHEN config is loaded in permissive mode
        THEN the invalid values are left unset and no exception is raised
        """
        config = load_config(write_config(tmp_path, self.INVALID))

        assert config.exporter.protocol is None
        assert config.exporter.timeout_ms is None
        assert config.exporter.insecure is None

    def test_strict_raises_with_every_problem(self, tmp_path: "Path") -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(write_config(tmp_path, self.INVALID), strict=True)

        message = str(exc_info.value)
        assert "exporter.protocol" in message
        assert "exporter.timeout_ms" in message
        assert "exporter.insecure" in message

    def test_strict_argument_overrides_file(self, tmp_path: "Path") -> None:
        config_path = write_config(tmp_path, "validation:\n  mode: strict\n")

        assert load_config(config_path, strict=False).is_strict is False

    def test_unknown_mode_defaults_to_permissive(self, tmp_path: "Path") -> None:
        config = load_config(write_config(tmp_path, "validation:\n  mode: paranoid\n"))

        assert config.is_strict is False


@pytest.mark.unit
class TestExporterBuilder:
    def test_file_values_beat_environment(self, tmp_path: "Path") -> None:
        """
        GIVEN a file setting endpoint and timeout for metrics
        AND the environment sets both too
        WHEN a builder is created from the file
        THEN the resolved configuration uses the file values
        """
        config = load_config(
            write_config(
                tmp_path,
                """exporter:
  protocol: http/protobuf
  timeout_ms: 1500
metrics:
  endpoint: http://metrics.example.com:4318/v1/metrics
""",
            )
        )
        environ = {
            "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT": "http://env:4318/v1/metrics",
            "OTEL_EXPORTER_OTLP_TIMEOUT": "9000",
            "OTEL_EXPORTER_OTLP_COMPRESSION": "gzip",
        }

        builder = config.exporter_builder(Signal.METRICS, environ)
        resolved = builder.resolve(Signal.METRICS)

        assert isinstance(builder, HttpExporterBuilder)
        assert resolved.endpoint == "http://metrics.example.com:4318/v1/metrics"
        assert resolved.timeout == timedelta(milliseconds=1500)
        assert resolved.compression is Compression.GZIP

    def test_protocol_from_env_when_file_is_silent(self, tmp_path: "Path") -> None:
        config = load_config(write_config(tmp_path, "exporter:\n  timeout_ms: 2000\n"))

        builder = config.exporter_builder(
            Signal.LOGS, {"OTEL_EXPORTER_OTLP_PROTOCOL": "http/json"}
        )

        assert isinstance(builder, HttpExporterBuilder)
        assert builder.resolve(Signal.LOGS).protocol is Protocol.HTTP_JSON

    def test_grpc_section_applies_insecure(self, tmp_path: "Path") -> None:
        config = load_config(
            write_config(
                tmp_path,
                """exporter:
  protocol: grpc
  endpoint: https://collector:4317
  insecure: true
""",
            )
        )

        builder = config.exporter_builder(Signal.TRACES, {})

        assert isinstance(builder, GrpcExporterBuilder)
        assert builder.resolve(Signal.TRACES).insecure is True
