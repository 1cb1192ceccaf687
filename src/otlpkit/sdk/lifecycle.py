"""Installed provider state.

This module tracks the providers installed by the signal pipelines:
- Which signals have an installed provider
- Shutdown coordination, so each provider (and through it each exporter
  transport) is released exactly once
"""

from __future__ import annotations

import atexit
import logging
import threading
from typing import Any

from otlpkit._internal.logging import log_debug
from otlpkit.api.types import Signal

logger = logging.getLogger(__name__)

_providers: dict[Signal, Any] = {}
_lock = threading.Lock()
_atexit_registered: bool = False


def register(signal: Signal, provider: Any) -> None:
    """Record ``provider`` as the installed provider for ``signal``.

    Args:
        signal: Signal the provider serves.
        provider: TracerProvider, MeterProvider or LoggerProvider.
    """
    global _atexit_registered
    with _lock:
        previous = _providers.get(signal)
        if previous is not None and previous is not provider:
            logger.warning(
                "A %s provider is already installed. Call shutdown() before "
                "installing another pipeline for the same signal.",
                signal.value,
            )
        _providers[signal] = provider
        if not _atexit_registered:
            atexit.register(shutdown)
            _atexit_registered = True


def is_installed(signal: Signal) -> bool:
    return signal in _providers


def get_provider(signal: Signal) -> Any | None:
    """Return the installed provider for ``signal``, or None."""
    return _providers.get(signal)


def shutdown() -> None:
    """Shut down every installed provider and forget it.

    This function is idempotent and safe to call multiple times.
    """
    with _lock:
        providers = list(_providers.items())
        _providers.clear()

    for signal, provider in providers:
        try:
            provider.shutdown()
            log_debug(f"{signal.value} provider shutdown complete")
        except Exception as e:
            logger.warning("Error during %s provider shutdown: %s", signal.value, e)
