"""Exceptions raised while resolving tracing configuration.

Builder failures are never fatal to a resolution run: the orchestrator logs
them and continues without a backend. They are still raised as exceptions so
that each builder can be exercised and tested on its own.
"""

from __future__ import annotations


class MeshTraceError(Exception):
    """Base exception for all meshtrace errors."""

    pass


# =============================================================================
# Endpoint Resolution
# =============================================================================


class ClusterLookupError(MeshTraceError):
    """Raised by an endpoint resolver when no cluster serves service:port."""

    def __init__(self, service: str, port: int, message: str = "") -> None:
        self.service = service
        self.port = port
        detail = message or "no cluster registered"
        super().__init__(f"{service}:{port}: {detail}")


# =============================================================================
# Provider Builders
# =============================================================================


class ProviderBuildError(MeshTraceError):
    """Raised when a backend builder cannot produce a provider payload.

    Attributes:
        provider: Name of the extension provider being built.
        cause: Human readable reason.
    """

    message_template = "could not configure tracing provider {provider!r}: {cause}"

    def __init__(self, provider: str, cause: str) -> None:
        self.provider = provider
        self.cause = cause
        super().__init__(self.message_template.format(provider=provider, cause=cause))


class EndpointNotFoundError(ProviderBuildError):
    """The collector cluster for a cluster-backed provider could not be found."""

    message_template = "could not find cluster for tracing provider {provider!r}: {cause}"


class MissingCredentialError(ProviderBuildError):
    """Required platform metadata (such as a project id) is absent."""

    pass


class InvalidParameterError(ProviderBuildError):
    """A provider parameter or node metadata value is malformed."""

    pass


# =============================================================================
# Loading
# =============================================================================


class ConfigLoadError(MeshTraceError):
    """Raised when a configuration document cannot be parsed."""

    def __init__(self, message: str, source: str = "") -> None:
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)
