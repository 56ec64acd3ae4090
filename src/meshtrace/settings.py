"""Process-wide settings consulted during resolution.

Settings are read once at process start and are immutable afterwards. They
are passed explicitly to the resolver instead of being read from globals.

Environment variables:
    - PILOT_TRACE_SAMPLING: Default random sampling percentage (0-100).
    - PILOT_ENABLE_ISTIO_TAGS: Add the built-in mesh tags to every span.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from meshtrace.sampling import validate_default_sampling

logger = logging.getLogger(__name__)

DEFAULT_TRACE_SAMPLING = 1.0

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning("Ignoring invalid boolean %s=%r, using %s", name, value, default)
    return default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring invalid number %s=%r, using %s", name, value, default)
        return default


@dataclass(frozen=True)
class TracingSettings:
    """Process-wide tracing defaults.

    Attributes:
        default_sampling: Fallback random sampling percentage. Values outside
            [0, 100] are replaced by 1.0 when the settings are created.
        enable_builtin_tags: Prepend the canonical revision, canonical
            service, mesh id and namespace tags.

    Example:
        >>> settings = TracingSettings(default_sampling=10.0)
        >>> settings.default_sampling
        10.0
    """

    default_sampling: float = DEFAULT_TRACE_SAMPLING
    enable_builtin_tags: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "default_sampling", validate_default_sampling(self.default_sampling)
        )

    @classmethod
    def from_env(cls) -> "TracingSettings":
        """Create settings from environment variables."""
        return cls(
            default_sampling=_env_float("PILOT_TRACE_SAMPLING", DEFAULT_TRACE_SAMPLING),
            enable_builtin_tags=_env_bool("PILOT_ENABLE_ISTIO_TAGS", True),
        )
