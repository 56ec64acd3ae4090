"""Backend builders for tracing providers.

Each provider kind has exactly one builder. A builder turns a provider
definition, plus the endpoint and node metadata context, into the typed
payload the proxy's tracer consumes.

Builders:
    - ZipkinBuilder: Zipkin v2 JSON collector (cluster-backed)
    - DatadogBuilder: Datadog agent (cluster-backed)
    - LightstepBuilder: Lightstep satellite (cluster-backed)
    - OpenCensusBuilder: OpenCensus agent at a literal address
    - StackdriverBuilder: Cloud Trace through the OpenCensus tracer

Failures raise ProviderBuildError subclasses carrying the provider name.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Mapping, Sequence

from meshtrace.endpoints import EndpointResolver
from meshtrace.errors import (
    ClusterLookupError,
    EndpointNotFoundError,
    InvalidParameterError,
    MissingCredentialError,
)
from meshtrace.types import (
    BackendPayload,
    DatadogProvider,
    LightstepProvider,
    OpenCensusContext,
    OpenCensusProvider,
    ProviderDefinition,
    ProviderKind,
    ProxyMetadata,
    StackdriverProvider,
    TracingProvider,
    ZipkinProvider,
)

logger = logging.getLogger(__name__)

_TYPE_PREFIX = "type.googleapis.com/envoy.config.trace.v3."


# =============================================================================
# Trace Contexts
# =============================================================================


class TraceContext(str, Enum):
    """Propagation formats understood by the OpenCensus tracer."""

    B3 = "B3"
    CLOUD_TRACE_CONTEXT = "CLOUD_TRACE_CONTEXT"
    GRPC_TRACE_BIN = "GRPC_TRACE_BIN"
    TRACE_CONTEXT = "TRACE_CONTEXT"


ALL_CONTEXTS: tuple[TraceContext, ...] = (
    TraceContext.B3,
    TraceContext.CLOUD_TRACE_CONTEXT,
    TraceContext.GRPC_TRACE_BIN,
    TraceContext.TRACE_CONTEXT,
)

_CONTEXT_MAP: dict[OpenCensusContext, TraceContext] = {
    OpenCensusContext.B3: TraceContext.B3,
    OpenCensusContext.CLOUD_TRACE_CONTEXT: TraceContext.CLOUD_TRACE_CONTEXT,
    OpenCensusContext.GRPC_BIN: TraceContext.GRPC_TRACE_BIN,
    OpenCensusContext.W3C_TRACE_CONTEXT: TraceContext.TRACE_CONTEXT,
}


def convert_contexts(contexts: Sequence[OpenCensusContext]) -> tuple[TraceContext, ...]:
    """Map provider context names to tracer contexts; empty means all four."""
    if not contexts:
        return ALL_CONTEXTS
    return tuple(_CONTEXT_MAP[c] for c in contexts)


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True)
class ZipkinConfig(BackendPayload):
    type_url: ClassVar[str] = _TYPE_PREFIX + "ZipkinConfig"

    collector_cluster: str
    collector_endpoint: str = "/api/v2/spans"
    collector_endpoint_version: str = "HTTP_JSON"
    trace_id_128bit: bool = True
    shared_span_context: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "collector_cluster": self.collector_cluster,
            "collector_endpoint": self.collector_endpoint,
            "collector_endpoint_version": self.collector_endpoint_version,
            "trace_id_128bit": self.trace_id_128bit,
            "shared_span_context": self.shared_span_context,
        }


@dataclass(frozen=True)
class DatadogConfig(BackendPayload):
    type_url: ClassVar[str] = _TYPE_PREFIX + "DatadogConfig"

    collector_cluster: str

    def to_dict(self) -> dict[str, Any]:
        return {"collector_cluster": self.collector_cluster}


@dataclass(frozen=True)
class LightstepConfig(BackendPayload):
    type_url: ClassVar[str] = _TYPE_PREFIX + "LightstepConfig"

    collector_cluster: str
    access_token_file: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "collector_cluster": self.collector_cluster,
            "access_token_file": self.access_token_file,
        }


@dataclass(frozen=True)
class TraceLimits:
    """Per-span limits applied by the OpenCensus tracer."""

    max_number_of_annotations: int = 200
    max_number_of_attributes: int = 200
    max_number_of_message_events: int = 200

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_number_of_annotations": self.max_number_of_annotations,
            "max_number_of_attributes": self.max_number_of_attributes,
            "max_number_of_message_events": self.max_number_of_message_events,
        }


@dataclass(frozen=True)
class StsCallCredentials:
    """Call credentials obtained from a local secure token service."""

    token_exchange_service_uri: str
    subject_token_path: str = "/var/run/secrets/tokens/istio-token"
    subject_token_type: str = "urn:ietf:params:oauth:token-type:jwt"
    scope: str = "https://www.googleapis.com/auth/cloud-platform"

    def to_dict(self) -> dict[str, Any]:
        return {
            "sts_service": {
                "token_exchange_service_uri": self.token_exchange_service_uri,
                "subject_token_path": self.subject_token_path,
                "subject_token_type": self.subject_token_type,
                "scope": self.scope,
            }
        }


@dataclass(frozen=True)
class GoogleGrpcService:
    """gRPC channel to the Cloud Trace API.

    The channel uses SSL credentials without a client certificate; identity
    comes from the call credentials.
    """

    target_uri: str
    stat_prefix: str
    call_credentials: tuple[StsCallCredentials, ...] = ()
    initial_metadata: tuple[tuple[str, str], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "google_grpc": {
                "target_uri": self.target_uri,
                "stat_prefix": self.stat_prefix,
                "channel_credentials": {"ssl_credentials": {}},
                "call_credentials": [c.to_dict() for c in self.call_credentials],
            },
            "initial_metadata": [
                {"key": key, "value": value} for key, value in self.initial_metadata
            ],
        }


@dataclass(frozen=True)
class OpenCensusConfig(BackendPayload):
    """OpenCensus tracer settings, shared by OpenCensus and Stackdriver."""

    type_url: ClassVar[str] = _TYPE_PREFIX + "OpenCensusConfig"

    incoming_trace_context: tuple[TraceContext, ...] = ALL_CONTEXTS
    outgoing_trace_context: tuple[TraceContext, ...] = ALL_CONTEXTS
    ocagent_exporter_enabled: bool = False
    ocagent_address: str = ""
    stackdriver_exporter_enabled: bool = False
    stackdriver_project_id: str = ""
    stackdriver_grpc_service: GoogleGrpcService | None = None
    stdout_exporter_enabled: bool = False
    trace_config: TraceLimits | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "incoming_trace_context": [c.value for c in self.incoming_trace_context],
            "outgoing_trace_context": [c.value for c in self.outgoing_trace_context],
        }
        if self.ocagent_exporter_enabled:
            data["ocagent_exporter_enabled"] = True
            data["ocagent_address"] = self.ocagent_address
        if self.stackdriver_exporter_enabled:
            data["stackdriver_exporter_enabled"] = True
            data["stackdriver_project_id"] = self.stackdriver_project_id
        if self.stackdriver_grpc_service is not None:
            data["stackdriver_grpc_service"] = self.stackdriver_grpc_service.to_dict()
        if self.stdout_exporter_enabled:
            data["stdout_exporter_enabled"] = True
        if self.trace_config is not None:
            data["trace_config"] = self.trace_config.to_dict()
        return data


# =============================================================================
# Builder Interface
# =============================================================================


@dataclass(frozen=True)
class BuildContext:
    """Collaborators available to builders.

    Attributes:
        endpoints: Cluster lookup for cluster-backed providers.
        metadata: Node metadata of the proxy being configured.
        push_context: Opaque control plane snapshot passed to lookups.
    """

    endpoints: EndpointResolver
    metadata: ProxyMetadata = field(default_factory=ProxyMetadata)
    push_context: Any = None


@dataclass(frozen=True)
class ProviderBuild:
    """Successful builder output."""

    provider: TracingProvider
    max_path_tag_length: int | None = None


def _max_tag_length(value: int) -> int | None:
    return value if value else None


class BackendBuilder(ABC):
    """Abstract base class for backend builders."""

    kind: ClassVar[ProviderKind]

    def build(self, definition: ProviderDefinition, context: BuildContext) -> ProviderBuild:
        """Build the provider block for ``definition``.

        Raises:
            ProviderBuildError: If the provider cannot be configured.
        """
        payload = self.payload(definition, context)
        return ProviderBuild(
            provider=TracingProvider(name=definition.name, typed_config=payload),
            max_path_tag_length=_max_tag_length(definition.provider.max_tag_length),
        )

    @abstractmethod
    def payload(self, definition: ProviderDefinition, context: BuildContext) -> BackendPayload:
        """Create the typed payload."""
        pass


class ClusterBackedBuilder(BackendBuilder):
    """Builder for providers reached through a mesh cluster."""

    def payload(self, definition: ProviderDefinition, context: BuildContext) -> BackendPayload:
        provider = definition.provider
        try:
            cluster = context.endpoints.lookup_cluster(
                context.push_context, provider.service, provider.port
            )
        except ClusterLookupError as e:
            raise EndpointNotFoundError(definition.name, str(e)) from e
        return self.cluster_payload(provider, cluster.name)

    @abstractmethod
    def cluster_payload(self, provider: Any, cluster: str) -> BackendPayload:
        pass


# =============================================================================
# Builders
# =============================================================================


class ZipkinBuilder(ClusterBackedBuilder):
    kind = ProviderKind.ZIPKIN

    def cluster_payload(self, provider: ZipkinProvider, cluster: str) -> BackendPayload:
        # v1 collector endpoints are deprecated; always send v2 JSON
        return ZipkinConfig(collector_cluster=cluster)


class DatadogBuilder(ClusterBackedBuilder):
    kind = ProviderKind.DATADOG

    def cluster_payload(self, provider: DatadogProvider, cluster: str) -> BackendPayload:
        return DatadogConfig(collector_cluster=cluster)


class LightstepBuilder(ClusterBackedBuilder):
    kind = ProviderKind.LIGHTSTEP

    def cluster_payload(self, provider: LightstepProvider, cluster: str) -> BackendPayload:
        return LightstepConfig(collector_cluster=cluster, access_token_file=provider.access_token)


class OpenCensusBuilder(BackendBuilder):
    kind = ProviderKind.OPENCENSUS

    def payload(self, definition: ProviderDefinition, context: BuildContext) -> BackendPayload:
        provider: OpenCensusProvider = definition.provider  # type: ignore[assignment]
        contexts = convert_contexts(provider.context)
        return OpenCensusConfig(
            ocagent_exporter_enabled=True,
            ocagent_address=f"{provider.service}:{provider.port}",
            incoming_trace_context=contexts,
            outgoing_trace_context=contexts,
        )


GCP_PROJECT = "gcp_project"
GCP_PROJECT_NUMBER = "gcp_project_number"

CLOUD_TRACE_TARGET = "cloudtrace.googleapis.com"
CLOUD_TRACE_STAT_PREFIX = "oc_stackdriver_tracer"

_DECIMAL = re.compile(r"[+-]?[0-9]+")


def project_id(metadata: Mapping[str, str]) -> str | None:
    """Project id from platform metadata, falling back to the project number."""
    if GCP_PROJECT in metadata:
        return metadata[GCP_PROJECT]
    return metadata.get(GCP_PROJECT_NUMBER)


def parse_sts_port(provider: str, value: str) -> int:
    """Parse the secure token service port from node metadata.

    Only plain ASCII decimal digits are accepted: surrounding whitespace,
    ``_`` separators and non-ASCII digits are rejected.
    """
    if not _DECIMAL.fullmatch(value):
        raise InvalidParameterError(provider, f"bad sts port: {value!r}")
    port = int(value)
    if port < 1:
        raise InvalidParameterError(provider, f"bad sts port: {value!r}")
    return port


def cloud_trace_service(project: str, sts_port: int) -> GoogleGrpcService:
    """gRPC service for Cloud Trace authenticated through the local STS."""
    return GoogleGrpcService(
        target_uri=CLOUD_TRACE_TARGET,
        stat_prefix=CLOUD_TRACE_STAT_PREFIX,
        call_credentials=(
            StsCallCredentials(
                token_exchange_service_uri=f"http://localhost:{sts_port}/token",
            ),
        ),
        initial_metadata=(("x-goog-user-project", project),),
    )


class StackdriverBuilder(BackendBuilder):
    kind = ProviderKind.STACKDRIVER

    def payload(self, definition: ProviderDefinition, context: BuildContext) -> BackendPayload:
        provider: StackdriverProvider = definition.provider  # type: ignore[assignment]
        metadata = context.metadata

        project = project_id(metadata.platform_metadata)
        if project is None:
            raise MissingCredentialError(definition.name, "unknown project id")

        grpc_service = None
        if metadata.sts_port:
            sts_port = parse_sts_port(definition.name, metadata.sts_port)
            grpc_service = cloud_trace_service(project, sts_port)

        overrides = {
            "max_number_of_annotations": provider.max_number_of_annotations,
            "max_number_of_attributes": provider.max_number_of_attributes,
            "max_number_of_message_events": provider.max_number_of_message_events,
        }
        limits = replace(
            TraceLimits(),
            **{name: value for name, value in overrides.items() if value is not None},
        )

        return OpenCensusConfig(
            stackdriver_exporter_enabled=True,
            stackdriver_project_id=project,
            stackdriver_grpc_service=grpc_service,
            stdout_exporter_enabled=provider.debug,
            incoming_trace_context=ALL_CONTEXTS,
            outgoing_trace_context=ALL_CONTEXTS,
            trace_config=limits,
        )


# =============================================================================
# Registry
# =============================================================================


BUILDERS: dict[ProviderKind, BackendBuilder] = {
    builder.kind: builder
    for builder in (
        ZipkinBuilder(),
        DatadogBuilder(),
        LightstepBuilder(),
        OpenCensusBuilder(),
        StackdriverBuilder(),
    )
}

_missing = set(ProviderKind) - set(BUILDERS)
if _missing:
    raise RuntimeError(f"No backend builder for provider kinds: {sorted(_missing)}")


def get_builder(kind: ProviderKind) -> BackendBuilder:
    return BUILDERS[kind]


def build_provider(definition: ProviderDefinition, context: BuildContext) -> ProviderBuild:
    """Build ``definition`` with the builder registered for its kind.

    Raises:
        ProviderBuildError: If the builder fails.
    """
    builder = get_builder(definition.kind)
    logger.debug("Building %s tracing provider %r", definition.kind.value, definition.name)
    return builder.build(definition, context)
