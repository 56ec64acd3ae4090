"""Random sampling resolution.

Precedence, highest first:

    1. Directive random sampling percentage, when nonzero
    2. Legacy proxy ``tracing.sampling``, when nonzero (above 100 -> 1.0)
    3. Process-wide default sampling

A directive percentage of exactly 0 cannot express "report spans but sample
nothing"; it is treated as unset and falls through to the legacy chain.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

MIN_PERCENT = 0.0
MAX_PERCENT = 100.0
FALLBACK_PERCENT = 1.0


def validate_default_sampling(value: float) -> float:
    """Return ``value`` if it is a valid percentage, else 1.0."""
    if value < MIN_PERCENT or value > MAX_PERCENT:
        logger.warning("PILOT_TRACE_SAMPLING out of range: %s", value)
        return FALLBACK_PERCENT
    return value


def legacy_sampling_value(legacy_sampling: float, default_sampling: float) -> float:
    """Sampling percentage from the legacy proxy configuration chain."""
    sampling = default_sampling
    if legacy_sampling != 0.0:
        sampling = legacy_sampling
        if sampling > MAX_PERCENT:
            sampling = FALLBACK_PERCENT
    return sampling


def resolve_random_sampling(
    provider_percentage: float,
    legacy_sampling: float,
    default_sampling: float,
) -> float:
    """Compute the random sampling percentage.

    Args:
        provider_percentage: Directive override, 0 means unset. Used verbatim.
        legacy_sampling: Proxy configuration ``tracing.sampling``.
        default_sampling: Validated process-wide default.

    Returns:
        Random sampling percentage.
    """
    if provider_percentage != 0.0:
        return provider_percentage
    return legacy_sampling_value(legacy_sampling, default_sampling)
