"""Compression algorithm selection.

Which algorithms can actually be used depends on what is installed:
gzip is always available (grpcio ships it, the HTTP transport uses the
standard library), zstd needs the ``zstandard`` package and is only
supported by the HTTP transport.
"""

from __future__ import annotations

import importlib.util
import logging
from typing import Collection

from otlpkit.api.types import Compression
from otlpkit.exceptions import (
    FeatureRequiredForCompressionAlgorithmError,
    UnsupportedCompressionAlgorithmError,
)

logger = logging.getLogger(__name__)

GRPC = "grpc"
HTTP = "http"

# Extra that installs the package providing each optional feature
FEATURE_EXTRAS: dict[str, str] = {
    "zstd-http": "zstd",
}


def feature_name(algorithm: Compression, transport: str) -> str:
    """Capability flag required to use ``algorithm`` on ``transport``."""
    return f"{algorithm.value}-{transport}"


def available_features() -> frozenset[str]:
    """Probe which compression capabilities are installed."""
    features = {feature_name(Compression.GZIP, GRPC), feature_name(Compression.GZIP, HTTP)}
    if importlib.util.find_spec("zstandard") is not None:
        features.add(feature_name(Compression.ZSTD, HTTP))
    return frozenset(features)


def select_compression(
    value: str | Compression | None,
    transport: str,
    features: Collection[str] | None = None,
) -> Compression | None:
    """Validate a requested compression algorithm.

    Args:
        value: Algorithm name (from the environment or an explicit call),
            a Compression member, or None.
        transport: ``"grpc"`` or ``"http"``.
        features: Available capability flags; probed when None.

    Returns:
        The selected algorithm, or None for no compression.

    Raises:
        UnsupportedCompressionAlgorithmError: If the name is not known.
        FeatureRequiredForCompressionAlgorithmError: If the algorithm is
            known but not available for this transport.
    """
    if value is None:
        return None

    if isinstance(value, Compression):
        algorithm = value
    else:
        normalized = value.strip().lower()
        if normalized in ("", "none"):
            return None
        try:
            algorithm = Compression(normalized)
        except ValueError:
            raise UnsupportedCompressionAlgorithmError(value) from None

    if features is None:
        features = available_features()

    required = feature_name(algorithm, transport)
    if required not in features:
        extra = FEATURE_EXTRAS.get(required)
        if extra:
            logger.debug(
                "Compression %s needs the '%s' extra: pip install otlpkit[%s]",
                algorithm.value,
                extra,
                extra,
            )
        raise FeatureRequiredForCompressionAlgorithmError(required, algorithm)

    return algorithm
