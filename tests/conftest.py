"""Shared pytest configuration and fixtures.

This module provides test fixtures that:
1. Reset OpenTelemetry global providers between tests for isolation
2. Remove OTEL_EXPORTER_OTLP_* variables so the real environment never leaks in
3. Provide typed fakes (FakeHttpSession, FakeChannel) instead of MagicMock
"""

from __future__ import annotations

import os
from typing import Generator

import pytest
from opentelemetry import trace as trace_api
from opentelemetry.sdk.trace import TracerProvider

from tests.fakes import FakeChannel, FakeHttpSession


def _reset_otel_globals() -> None:
    """Reset OpenTelemetry provider globals for test isolation.

    This avoids "Overriding of current TracerProvider is not allowed"
    between tests.

    WARNING: Only use this in tests. This accesses internal OTel APIs.
    """
    from opentelemetry._logs import _internal as logs_internal
    from opentelemetry.metrics import _internal as metrics_internal
    from opentelemetry.util._once import Once

    trace_api._TRACER_PROVIDER_SET_ONCE = Once()
    trace_api._TRACER_PROVIDER = None

    metrics_internal._METER_PROVIDER_SET_ONCE = Once()
    metrics_internal._METER_PROVIDER = None

    logs_internal._LOGGER_PROVIDER_SET_ONCE = Once()
    logs_internal._LOGGER_PROVIDER = None


def _reset_lifecycle() -> None:
    from otlpkit.sdk import lifecycle

    lifecycle.shutdown()


@pytest.fixture(autouse=True)
def reset_otel_state() -> Generator[None, None, None]:
    """Reset OpenTelemetry global state before and after each test."""
    _reset_lifecycle()
    _reset_otel_globals()
    yield
    _reset_lifecycle()
    _reset_otel_globals()


@pytest.fixture(autouse=True)
def clean_otlp_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove exporter variables inherited from the developer's shell."""
    for name in list(os.environ):
        if name.startswith("OTEL_EXPORTER_OTLP_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_session() -> FakeHttpSession:
    """Provide a FakeHttpSession answering 200 to every post."""
    return FakeHttpSession()


@pytest.fixture
def fake_channel() -> FakeChannel:
    """Provide a FakeChannel whose Export calls succeed."""
    return FakeChannel()


@pytest.fixture
def finished_span():
    """A real ended SDK span, ready to be encoded."""
    provider = TracerProvider()
    span = provider.get_tracer("otlpkit-tests").start_span("operation")
    span.set_attribute("component", "tests")
    span.end()
    return span
