"""Loading configuration documents into the data model.

Documents use the camelCase field names of the mesh and telemetry APIs,
for example::

    enableTracing: true
    defaultProviders:
      tracing: zipkin
    extensionProviders:
      - name: zipkin
        zipkin:
          service: zipkin.istio-system.svc.cluster.local
          port: 9411

YAML and JSON files are both accepted.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from meshtrace.endpoints import outbound_cluster_name
from meshtrace.errors import ConfigLoadError
from meshtrace.types import (
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
    ProviderVariant,
    ProxyConfig,
    ProxyMetadata,
    ProxyTracing,
    RequestHeaderTag,
    StackdriverProvider,
    TagSource,
    TelemetryDirective,
    TracingSpec,
    ZipkinProvider,
)


# =============================================================================
# Documents
# =============================================================================


def load_document(path: str | Path) -> dict[str, Any]:
    """Read a YAML or JSON file into a mapping.

    An empty file yields an empty mapping.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(str(e), source=str(path)) from e
    except UnicodeDecodeError as e:
        raise ConfigLoadError(f"not valid UTF-8: {e}", source=str(path)) from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigLoadError(f"invalid document: {e}", source=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigLoadError("document root must be a mapping", source=str(path))
    return data


def _mapping(data: Any, where: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigLoadError(f"{where} must be a mapping, got {type(data).__name__}")
    return data


def _list(data: Any, where: str) -> list[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigLoadError(f"{where} must be a list, got {type(data).__name__}")
    return data


def _int(data: Any, where: str, default: int = 0) -> int:
    if data is None:
        return default
    if isinstance(data, bool):
        raise ConfigLoadError(f"{where} must be an integer")
    # proto wrapper form, e.g. {"value": 100}
    if isinstance(data, Mapping) and "value" in data:
        data = data["value"]
    if isinstance(data, float) and not data.is_integer():
        raise ConfigLoadError(f"{where} must be an integer, got {data!r}")
    try:
        return int(data)
    except (TypeError, ValueError):
        raise ConfigLoadError(f"{where} must be an integer, got {data!r}") from None


def _bool(data: Any, where: str, default: bool = False) -> bool:
    if data is None:
        return default
    if not isinstance(data, bool):
        raise ConfigLoadError(f"{where} must be a boolean, got {data!r}")
    return data


def _optional_int(data: Any, where: str) -> int | None:
    if data is None:
        return None
    return _int(data, where)


def _float(data: Any, where: str, default: float = 0.0) -> float:
    if data is None:
        return default
    if isinstance(data, bool):
        raise ConfigLoadError(f"{where} must be a number")
    if isinstance(data, Mapping) and "value" in data:
        data = data["value"]
    try:
        return float(data)
    except (TypeError, ValueError):
        raise ConfigLoadError(f"{where} must be a number, got {data!r}") from None


# =============================================================================
# Custom Tags
# =============================================================================


def load_tag_source(data: Any, where: str = "customTag") -> TagSource:
    """Parse one custom tag; exactly one of environment/header/literal."""
    data = _mapping(data, where)
    variants = [key for key in ("environment", "header", "literal") if key in data]
    if len(variants) != 1:
        raise ConfigLoadError(
            f"{where} must set exactly one of environment, header, literal"
        )

    variant = variants[0]
    body = _mapping(data[variant], f"{where}.{variant}")
    if variant == "literal":
        return LiteralTag(value=str(body.get("value", "")))

    name = body.get("name")
    if not name:
        raise ConfigLoadError(f"{where}.{variant}.name is required")
    default = str(body.get("defaultValue", ""))
    if variant == "environment":
        return EnvironmentTag(name=str(name), default_value=default)
    return RequestHeaderTag(name=str(name), default_value=default)


def load_custom_tags(data: Any, where: str = "customTags") -> dict[str, TagSource]:
    tags = _mapping(data, where)
    return {str(name): load_tag_source(tag, f"{where}.{name}") for name, tag in tags.items()}


# =============================================================================
# Proxy Configuration
# =============================================================================


def load_proxy_config(data: Any) -> ProxyConfig:
    """Parse a proxy configuration (``defaultConfig`` shape)."""
    data = _mapping(data, "proxyConfig")
    tracing = _mapping(data.get("tracing"), "tracing")
    return ProxyConfig(
        tracing=ProxyTracing(
            sampling=_float(tracing.get("sampling"), "tracing.sampling"),
            custom_tags=load_custom_tags(tracing.get("customTags"), "tracing.customTags"),
            max_path_tag_length=_int(
                tracing.get("maxPathTagLength"), "tracing.maxPathTagLength"
            ),
        )
    )


# =============================================================================
# Extension Providers
# =============================================================================


def _cluster_fields(body: Mapping[str, Any], where: str) -> dict[str, Any]:
    service = body.get("service")
    if not service:
        raise ConfigLoadError(f"{where}.service is required")
    return {
        "service": str(service),
        "port": _int(body.get("port"), f"{where}.port"),
        "max_tag_length": _int(body.get("maxTagLength"), f"{where}.maxTagLength"),
    }


def _zipkin(body: Mapping[str, Any], where: str) -> ProviderVariant:
    return ZipkinProvider(**_cluster_fields(body, where))


def _datadog(body: Mapping[str, Any], where: str) -> ProviderVariant:
    return DatadogProvider(**_cluster_fields(body, where))


def _lightstep(body: Mapping[str, Any], where: str) -> ProviderVariant:
    return LightstepProvider(
        access_token=str(body.get("accessToken", "")),
        **_cluster_fields(body, where),
    )


def _opencensus(body: Mapping[str, Any], where: str) -> ProviderVariant:
    contexts = []
    for value in _list(body.get("context"), f"{where}.context"):
        try:
            contexts.append(OpenCensusContext(str(value).upper()))
        except ValueError:
            raise ConfigLoadError(f"{where}.context: unknown trace context {value!r}") from None
    return OpenCensusProvider(context=tuple(contexts), **_cluster_fields(body, where))


def _stackdriver(body: Mapping[str, Any], where: str) -> ProviderVariant:
    return StackdriverProvider(
        debug=_bool(body.get("debug"), f"{where}.debug"),
        max_tag_length=_int(body.get("maxTagLength"), f"{where}.maxTagLength"),
        max_number_of_annotations=_optional_int(
            body.get("maxNumberOfAnnotations"), f"{where}.maxNumberOfAnnotations"
        ),
        max_number_of_attributes=_optional_int(
            body.get("maxNumberOfAttributes"), f"{where}.maxNumberOfAttributes"
        ),
        max_number_of_message_events=_optional_int(
            body.get("maxNumberOfMessageEvents"), f"{where}.maxNumberOfMessageEvents"
        ),
    )


_PROVIDER_LOADERS: dict[ProviderKind, Callable[[Mapping[str, Any], str], ProviderVariant]] = {
    ProviderKind.ZIPKIN: _zipkin,
    ProviderKind.DATADOG: _datadog,
    ProviderKind.LIGHTSTEP: _lightstep,
    ProviderKind.OPENCENSUS: _opencensus,
    ProviderKind.STACKDRIVER: _stackdriver,
}


def load_provider(data: Any, where: str = "extensionProvider") -> ProviderDefinition:
    """Parse one extension provider.

    The provider kind is the single kind key next to ``name``.
    """
    data = _mapping(data, where)
    name = data.get("name")
    if not name:
        raise ConfigLoadError(f"{where}.name is required")

    kinds = [kind for kind in ProviderKind if kind.value in data]
    if len(kinds) != 1:
        raise ConfigLoadError(
            f"{where} ({name}) must set exactly one of "
            + ", ".join(kind.value for kind in ProviderKind)
        )
    kind = kinds[0]
    body = _mapping(data[kind.value], f"{where}.{kind.value}")
    return ProviderDefinition(
        name=str(name),
        provider=_PROVIDER_LOADERS[kind](body, f"{where}.{kind.value}"),
    )


# =============================================================================
# Mesh Configuration
# =============================================================================


def load_mesh_config(data: Any) -> MeshConfig:
    """Parse a mesh configuration."""
    data = _mapping(data, "meshConfig")
    defaults = _mapping(data.get("defaultProviders"), "defaultProviders")

    # the mesh API allows a list of tracing providers; only one is used
    tracing_default = defaults.get("tracing")
    if isinstance(tracing_default, list):
        tracing_default = tracing_default[0] if tracing_default else None

    providers = tuple(
        load_provider(p, f"extensionProviders[{i}]")
        for i, p in enumerate(_list(data.get("extensionProviders"), "extensionProviders"))
    )
    return MeshConfig(
        enable_tracing=_bool(data.get("enableTracing"), "enableTracing"),
        default_providers=DefaultProviders(
            tracing=str(tracing_default) if tracing_default else None
        ),
        extension_providers=providers,
        default_config=load_proxy_config(data.get("defaultConfig")),
    )


# =============================================================================
# Telemetry Directive
# =============================================================================


def load_tracing_spec(data: Any, where: str = "tracing") -> TracingSpec:
    data = _mapping(data, where)
    providers = tuple(
        ProviderRef(name=str(_mapping(p, f"{where}.providers").get("name", "")))
        for p in _list(data.get("providers"), f"{where}.providers")
    )
    return TracingSpec(
        disable_span_reporting=_bool(
            data.get("disableSpanReporting"), f"{where}.disableSpanReporting"
        ),
        providers=providers,
        random_sampling_percentage=_float(
            data.get("randomSamplingPercentage"), f"{where}.randomSamplingPercentage"
        ),
        custom_tags=load_custom_tags(data.get("customTags"), f"{where}.customTags"),
    )


def load_telemetry(data: Any) -> TelemetryDirective:
    """Parse a telemetry resource or its ``spec`` body."""
    data = _mapping(data, "telemetry")
    if "spec" in data:
        data = _mapping(data["spec"], "spec")
    return TelemetryDirective(
        tracing=tuple(
            load_tracing_spec(t, f"tracing[{i}]")
            for i, t in enumerate(_list(data.get("tracing"), "tracing"))
        )
    )


def load_metadata(platform_metadata: Mapping[str, str] | None, sts_port: str = "") -> ProxyMetadata:
    return ProxyMetadata(
        platform_metadata={str(k): str(v) for k, v in (platform_metadata or {}).items()},
        sts_port=sts_port,
    )


def load_clusters(data: Any) -> dict[tuple[str, int], str]:
    """Parse a cluster table: ``clusters: [{service, port, cluster}]``.

    ``cluster`` may be omitted to use the outbound cluster name.
    """
    data = _mapping(data, "clusters")
    table: dict[tuple[str, int], str] = {}
    for i, entry in enumerate(_list(data.get("clusters"), "clusters")):
        entry = _mapping(entry, f"clusters[{i}]")
        service = entry.get("service")
        if not service:
            raise ConfigLoadError(f"clusters[{i}].service is required")
        port = _int(entry.get("port"), f"clusters[{i}].port")
        hostname = str(service).split("/", 1)[-1]
        table[(str(service), port)] = str(
            entry.get("cluster") or outbound_cluster_name(hostname, port)
        )
    return table
