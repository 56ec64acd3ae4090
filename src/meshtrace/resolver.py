"""Tracing configuration resolution.

Reconciles the telemetry directive, the mesh configuration and the legacy
proxy configuration into the tracing block of one workload's HTTP
connection manager.

Flow:
    directive --+--> provider search --> backend builder --> endpoint resolver
                |
                +--> sampling resolver
                |
                +--> tag resolver
                             |
                             v
                   ResolvedTracingConfig

Provider failures never fail a resolution run. The worst outcome is a
configuration without a provider, which still carries sampling and tags.

Usage:
    >>> resolver = TracingResolver(endpoints=StaticEndpointResolver())
    >>> config = resolver.resolve(None, MeshConfig(enable_tracing=True), ProxyConfig())
    >>> config.provider is None
    True
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence, Union

from meshtrace.builders import BuildContext, ProviderBuild, build_provider
from meshtrace.endpoints import EndpointResolver
from meshtrace.errors import ProviderBuildError
from meshtrace.sampling import resolve_random_sampling
from meshtrace.settings import TracingSettings
from meshtrace.tags import resolve_custom_tags
from meshtrace.types import (
    MeshConfig,
    ProviderDefinition,
    ProxyConfig,
    ProxyMetadata,
    ResolvedTracingConfig,
    TelemetryDirective,
    TracingSpec,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Provider Search
# =============================================================================


@dataclass(frozen=True)
class ProviderFound:
    """A matching provider was built."""

    name: str
    build: ProviderBuild


@dataclass(frozen=True)
class ProviderNotFound:
    """No provider name was requested, or none matched."""

    name: str | None


@dataclass(frozen=True)
class ProvidersFailed:
    """Every matching provider failed to build."""

    name: str
    errors: tuple[ProviderBuildError, ...]


ProviderSearchOutcome = Union[ProviderFound, ProviderNotFound, ProvidersFailed]


def find_provider(
    name: str | None,
    providers: Sequence[ProviderDefinition],
    context: BuildContext,
) -> ProviderSearchOutcome:
    """Build the first provider matching ``name`` that builds successfully.

    Matching is case-insensitive. Names need not be unique, so a failing
    match does not end the search.
    """
    errors: list[ProviderBuildError] = []
    for definition in providers:
        if not definition.matches(name):
            continue
        try:
            build = build_provider(definition, context)
        except ProviderBuildError as e:
            logger.warning(
                "Not able to configure requested tracing provider %r: %s", definition.name, e
            )
            errors.append(e)
            continue
        return ProviderFound(name=definition.name, build=build)

    if errors:
        return ProvidersFailed(name=name or "", errors=tuple(errors))
    return ProviderNotFound(name=name)


def requested_provider(spec: TracingSpec, mesh: MeshConfig) -> str | None:
    """Provider named by the directive, else the mesh default."""
    if spec.providers:
        # only one provider per workload is supported
        return spec.providers[0].name
    return mesh.default_providers.tracing


# =============================================================================
# Resolution
# =============================================================================


def _proxy_max_path_tag_length(proxy_config: ProxyConfig) -> int | None:
    value = proxy_config.tracing.max_path_tag_length
    return value if value else None


def _legacy_config(proxy_config: ProxyConfig, settings: TracingSettings) -> ResolvedTracingConfig:
    tracing = proxy_config.tracing
    return ResolvedTracingConfig(
        random_sampling=resolve_random_sampling(0.0, tracing.sampling, settings.default_sampling),
        custom_tags=resolve_custom_tags({}, tracing.custom_tags, settings.enable_builtin_tags),
        max_path_tag_length=_proxy_max_path_tag_length(proxy_config),
    )


def resolve_tracing(
    directive: TelemetryDirective | None,
    mesh: MeshConfig,
    proxy_config: ProxyConfig | None,
    *,
    endpoints: EndpointResolver,
    settings: TracingSettings | None = None,
    metadata: ProxyMetadata | None = None,
    push_context: Any = None,
) -> ResolvedTracingConfig | None:
    """Resolve the tracing configuration of one workload.

    Args:
        directive: Effective telemetry directive of the workload, if any.
        mesh: Mesh configuration.
        proxy_config: Workload proxy configuration. Defaults to the mesh
            default proxy configuration.
        endpoints: Cluster lookup for cluster-backed providers.
        settings: Process-wide defaults.
        metadata: Node metadata of the workload's proxy.
        push_context: Opaque control plane snapshot handed to lookups.

    Returns:
        The tracing configuration, or None when tracing is disabled and the
        tracing block must be omitted.
    """
    settings = settings or TracingSettings()
    proxy_config = proxy_config or mesh.default_config

    if directive is None or not directive.tracing:
        if not mesh.enable_tracing:
            logger.debug("No valid tracing configuration found")
            return None
        return _legacy_config(proxy_config, settings)

    if len(directive.tracing) > 1:
        logger.warning(
            "Invalid number of tracing configurations provided (%d); using first configuration found",
            len(directive.tracing),
        )

    spec = directive.tracing[0]
    if spec.disable_span_reporting:
        return None

    context = BuildContext(
        endpoints=endpoints,
        metadata=metadata or ProxyMetadata(),
        push_context=push_context,
    )
    outcome = find_provider(requested_provider(spec, mesh), mesh.extension_providers, context)

    provider = None
    max_path_tag_length = None
    if isinstance(outcome, ProviderFound):
        provider = outcome.build.provider
        max_path_tag_length = outcome.build.max_path_tag_length
    else:
        # proxy config acts as the implicit parent until providers are required
        logger.debug("No provider was configured for tracing")

    tracing = proxy_config.tracing
    if max_path_tag_length is None:
        max_path_tag_length = _proxy_max_path_tag_length(proxy_config)

    return ResolvedTracingConfig(
        provider=provider,
        random_sampling=resolve_random_sampling(
            spec.random_sampling_percentage, tracing.sampling, settings.default_sampling
        ),
        custom_tags=resolve_custom_tags(
            spec.custom_tags, tracing.custom_tags, settings.enable_builtin_tags
        ),
        max_path_tag_length=max_path_tag_length,
    )


class TracingResolver:
    """Resolver bound to its process-wide collaborators.

    Holds no per-resolution state; a single instance may serve concurrent
    resolutions for different workloads.
    """

    def __init__(
        self,
        endpoints: EndpointResolver,
        settings: TracingSettings | None = None,
    ) -> None:
        self._endpoints = endpoints
        self._settings = settings or TracingSettings()

    @property
    def settings(self) -> TracingSettings:
        return self._settings

    def resolve(
        self,
        directive: TelemetryDirective | None,
        mesh: MeshConfig,
        proxy_config: ProxyConfig | None = None,
        *,
        metadata: ProxyMetadata | None = None,
        push_context: Any = None,
    ) -> ResolvedTracingConfig | None:
        return resolve_tracing(
            directive,
            mesh,
            proxy_config,
            endpoints=self._endpoints,
            settings=self._settings,
            metadata=metadata,
            push_context=push_context,
        )
