"""Tracing configuration resolution for service mesh proxies.

Given a mesh configuration, a workload's proxy configuration and an optional
telemetry directive, meshtrace computes the tracing settings the proxy
should use: which backend to report to, the sampling rate, custom span tags
and the path tag length limit.

Usage:
    >>> from meshtrace import (
    ...     MeshConfig, ProviderDefinition, ZipkinProvider, DefaultProviders,
    ...     ProxyConfig, StaticEndpointResolver, TelemetryDirective, TracingResolver,
    ...     TracingSpec,
    ... )
    >>>
    >>> mesh = MeshConfig(
    ...     enable_tracing=True,
    ...     default_providers=DefaultProviders(tracing="zipkin"),
    ...     extension_providers=(
    ...         ProviderDefinition("zipkin", ZipkinProvider("zipkin.istio-system", 9411)),
    ...     ),
    ... )
    >>> resolver = TracingResolver(
    ...     StaticEndpointResolver.from_services([("zipkin.istio-system", 9411)])
    ... )
    >>> config = resolver.resolve(TelemetryDirective((TracingSpec(),)), mesh, ProxyConfig())
    >>> config.provider.name
    'zipkin'
"""

from meshtrace.builders import (
    ALL_CONTEXTS,
    BackendBuilder,
    BuildContext,
    DatadogConfig,
    LightstepConfig,
    OpenCensusConfig,
    ProviderBuild,
    TraceContext,
    ZipkinConfig,
    build_provider,
)
from meshtrace.endpoints import (
    ClusterRef,
    EndpointResolver,
    StaticEndpointResolver,
)
from meshtrace.errors import (
    ClusterLookupError,
    ConfigLoadError,
    EndpointNotFoundError,
    InvalidParameterError,
    MeshTraceError,
    MissingCredentialError,
    ProviderBuildError,
)
from meshtrace.resolver import (
    ProviderFound,
    ProviderNotFound,
    ProvidersFailed,
    TracingResolver,
    find_provider,
    resolve_tracing,
)
from meshtrace.sampling import resolve_random_sampling
from meshtrace.settings import TracingSettings
from meshtrace.tags import resolve_custom_tags
from meshtrace.types import (
    CustomTag,
    DatadogProvider,
    DefaultProviders,
    EnvironmentTag,
    LightstepProvider,
    LiteralTag,
    MeshConfig,
    OpenCensusContext,
    OpenCensusProvider,
    ProviderDefinition,
    ProviderKind,
    ProviderRef,
    ProxyConfig,
    ProxyMetadata,
    ProxyTracing,
    RequestHeaderTag,
    ResolvedTracingConfig,
    StackdriverProvider,
    TelemetryDirective,
    TracingProvider,
    TracingSpec,
    ZipkinProvider,
)

__version__ = "0.1.0"

__all__ = [
    # Model
    "CustomTag",
    "DatadogProvider",
    "DefaultProviders",
    "EnvironmentTag",
    "LightstepProvider",
    "LiteralTag",
    "MeshConfig",
    "OpenCensusContext",
    "OpenCensusProvider",
    "ProviderDefinition",
    "ProviderKind",
    "ProviderRef",
    "ProxyConfig",
    "ProxyMetadata",
    "ProxyTracing",
    "RequestHeaderTag",
    "ResolvedTracingConfig",
    "StackdriverProvider",
    "TelemetryDirective",
    "TracingProvider",
    "TracingSpec",
    "ZipkinProvider",
    # Builders
    "ALL_CONTEXTS",
    "BackendBuilder",
    "BuildContext",
    "DatadogConfig",
    "LightstepConfig",
    "OpenCensusConfig",
    "ProviderBuild",
    "TraceContext",
    "ZipkinConfig",
    "build_provider",
    # Endpoints
    "ClusterRef",
    "EndpointResolver",
    "StaticEndpointResolver",
    # Errors
    "ClusterLookupError",
    "ConfigLoadError",
    "EndpointNotFoundError",
    "InvalidParameterError",
    "MeshTraceError",
    "MissingCredentialError",
    "ProviderBuildError",
    # Resolution
    "ProviderFound",
    "ProviderNotFound",
    "ProvidersFailed",
    "TracingResolver",
    "find_provider",
    "resolve_tracing",
    "resolve_random_sampling",
    "resolve_custom_tags",
    "TracingSettings",
]
