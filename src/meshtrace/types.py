"""Data model for tracing configuration resolution.

Three input surfaces feed a resolution run:

    TelemetryDirective   workload-scoped, newest API, optional
    MeshConfig           mesh-wide, owns the extension provider registry
    ProxyConfig          legacy per-workload settings, always present

The output is a ResolvedTracingConfig, or None when tracing is not
configured at all for the workload.

All types are immutable snapshots; nothing here is mutated during resolution.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Union


# =============================================================================
# Custom Tags
# =============================================================================


@dataclass(frozen=True)
class EnvironmentTag:
    """Tag value read from an environment variable of the proxy."""

    name: str
    default_value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"environment": {"name": self.name, "default_value": self.default_value}}


@dataclass(frozen=True)
class RequestHeaderTag:
    """Tag value read from a request header."""

    name: str
    default_value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"request_header": {"name": self.name, "default_value": self.default_value}}


@dataclass(frozen=True)
class LiteralTag:
    """Tag with a fixed value."""

    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"literal": {"value": self.value}}


TagSource = Union[EnvironmentTag, RequestHeaderTag, LiteralTag]


@dataclass(frozen=True)
class CustomTag:
    """A named span attribute and where its value comes from."""

    tag: str
    source: TagSource

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, **self.source.to_dict()}


# =============================================================================
# Telemetry Directive
# =============================================================================


@dataclass(frozen=True)
class ProviderRef:
    """Reference to an extension provider by name."""

    name: str


@dataclass(frozen=True)
class TracingSpec:
    """One tracing entry of a telemetry directive.

    Attributes:
        disable_span_reporting: Suppress tracing entirely for the workload.
        providers: Provider references. Only the first is honored.
        random_sampling_percentage: Sampling override. 0 means unset.
        custom_tags: Tag name to tag source.
    """

    disable_span_reporting: bool = False
    providers: tuple[ProviderRef, ...] = ()
    random_sampling_percentage: float = 0.0
    custom_tags: Mapping[str, TagSource] = field(default_factory=dict)


@dataclass(frozen=True)
class TelemetryDirective:
    """Workload-scoped telemetry configuration.

    Only one tracing spec per workload is supported; any beyond the first
    are ignored by the resolver.
    """

    tracing: tuple[TracingSpec, ...] = ()


# =============================================================================
# Extension Providers
# =============================================================================


class ProviderKind(str, Enum):
    """Supported tracing backend kinds."""

    ZIPKIN = "zipkin"
    DATADOG = "datadog"
    LIGHTSTEP = "lightstep"
    OPENCENSUS = "opencensus"
    STACKDRIVER = "stackdriver"


class OpenCensusContext(str, Enum):
    """Trace context formats accepted on an OpenCensus provider."""

    B3 = "B3"
    CLOUD_TRACE_CONTEXT = "CLOUD_TRACE_CONTEXT"
    GRPC_BIN = "GRPC_BIN"
    W3C_TRACE_CONTEXT = "W3C_TRACE_CONTEXT"


@dataclass(frozen=True)
class ZipkinProvider:
    kind: ClassVar[ProviderKind] = ProviderKind.ZIPKIN

    service: str
    port: int
    max_tag_length: int = 0


@dataclass(frozen=True)
class DatadogProvider:
    kind: ClassVar[ProviderKind] = ProviderKind.DATADOG

    service: str
    port: int
    max_tag_length: int = 0


@dataclass(frozen=True)
class LightstepProvider:
    """Lightstep collector. ``access_token`` is a path to the token file."""

    kind: ClassVar[ProviderKind] = ProviderKind.LIGHTSTEP

    service: str
    port: int
    access_token: str = ""
    max_tag_length: int = 0


@dataclass(frozen=True)
class OpenCensusProvider:
    """OpenCensus agent reached directly at ``service:port``."""

    kind: ClassVar[ProviderKind] = ProviderKind.OPENCENSUS

    service: str
    port: int
    context: tuple[OpenCensusContext, ...] = ()
    max_tag_length: int = 0


@dataclass(frozen=True)
class StackdriverProvider:
    """Google Cloud Trace through the OpenCensus tracer.

    Trace limit overrides left as None keep the default of 200.
    """

    kind: ClassVar[ProviderKind] = ProviderKind.STACKDRIVER

    debug: bool = False
    max_tag_length: int = 0
    max_number_of_annotations: int | None = None
    max_number_of_attributes: int | None = None
    max_number_of_message_events: int | None = None


ProviderVariant = Union[
    ZipkinProvider,
    DatadogProvider,
    LightstepProvider,
    OpenCensusProvider,
    StackdriverProvider,
]


@dataclass(frozen=True)
class ProviderDefinition:
    """A named extension provider from the mesh configuration."""

    name: str
    provider: ProviderVariant

    @property
    def kind(self) -> ProviderKind:
        return self.provider.kind

    def matches(self, name: str | None) -> bool:
        """Case-insensitive name comparison."""
        if name is None:
            return False
        return self.name.casefold() == name.casefold()


# =============================================================================
# Mesh and Proxy Configuration
# =============================================================================


@dataclass(frozen=True)
class ProxyTracing:
    """Legacy tracing section of a proxy configuration."""

    sampling: float = 0.0
    custom_tags: Mapping[str, TagSource] = field(default_factory=dict)
    max_path_tag_length: int = 0


@dataclass(frozen=True)
class ProxyConfig:
    tracing: ProxyTracing = field(default_factory=ProxyTracing)


@dataclass(frozen=True)
class DefaultProviders:
    tracing: str | None = None


@dataclass(frozen=True)
class MeshConfig:
    """Mesh-wide configuration.

    Attributes:
        enable_tracing: Legacy switch, only consulted without a directive.
        default_providers: Provider names used when a directive names none.
        extension_providers: Ordered provider registry. Names may repeat.
        default_config: Proxy configuration for workloads without their own.
    """

    enable_tracing: bool = False
    default_providers: DefaultProviders = field(default_factory=DefaultProviders)
    extension_providers: tuple[ProviderDefinition, ...] = ()
    default_config: ProxyConfig = field(default_factory=ProxyConfig)


@dataclass(frozen=True)
class ProxyMetadata:
    """Node metadata reported by the proxy.

    Attributes:
        platform_metadata: Cloud platform facts, e.g. ``gcp_project``.
        sts_port: Port of the local secure token service, empty when absent.
    """

    platform_metadata: Mapping[str, str] = field(default_factory=dict)
    sts_port: str = ""


# =============================================================================
# Resolved Output
# =============================================================================


class BackendPayload(ABC):
    """Typed configuration block for one tracing backend."""

    type_url: ClassVar[str]

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Render the payload fields in proto JSON field naming."""
        pass


@dataclass(frozen=True)
class TracingProvider:
    """Provider block of the resolved configuration."""

    name: str
    typed_config: BackendPayload

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "typed_config": {"@type": self.typed_config.type_url, **self.typed_config.to_dict()},
        }


FULL_SAMPLING = 100.0


@dataclass(frozen=True)
class ResolvedTracingConfig:
    """Tracing settings for one workload's HTTP connection manager.

    Only random sampling is configurable; client and overall sampling are
    always 100 percent.
    """

    random_sampling: float
    provider: TracingProvider | None = None
    custom_tags: tuple[CustomTag, ...] = ()
    max_path_tag_length: int | None = None
    client_sampling: float = field(default=FULL_SAMPLING, init=False)
    overall_sampling: float = field(default=FULL_SAMPLING, init=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape embedded in proxy configuration."""
        data: dict[str, Any] = {
            "client_sampling": {"value": self.client_sampling},
            "random_sampling": {"value": self.random_sampling},
            "overall_sampling": {"value": self.overall_sampling},
            "custom_tags": [tag.to_dict() for tag in self.custom_tags],
        }
        if self.provider is not None:
            data["provider"] = self.provider.to_dict()
        if self.max_path_tag_length is not None:
            data["max_path_tag_length"] = self.max_path_tag_length
        return data
