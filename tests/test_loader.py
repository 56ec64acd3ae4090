"""Tests for configuration document loading."""

from __future__ import annotations

import json

import pytest

from meshtrace.endpoints import StaticEndpointResolver
from meshtrace.errors import ClusterLookupError, ConfigLoadError
from meshtrace.loader import (
    load_clusters,
    load_document,
    load_mesh_config,
    load_provider,
    load_proxy_config,
    load_tag_source,
    load_telemetry,
)
from meshtrace.types import (
    DatadogProvider,
    EnvironmentTag,
    LightstepProvider,
    LiteralTag,
    OpenCensusContext,
    OpenCensusProvider,
    ProviderKind,
    RequestHeaderTag,
    StackdriverProvider,
    ZipkinProvider,
)


MESH_YAML = """
enableTracing: true
defaultProviders:
  tracing:
    - zipkin
defaultConfig:
  tracing:
    sampling: 25
    maxPathTagLength: 100
    customTags:
      cluster:
        literal:
          value: east
extensionProviders:
  - name: zipkin
    zipkin:
      service: zipkin.istio-system.svc.cluster.local
      port: 9411
      maxTagLength: 256
  - name: oc
    opencensus:
      service: oc-agent
      port: 55678
      context: [B3, W3C_TRACE_CONTEXT]
  - name: sd
    stackdriver:
      debug: true
      maxNumberOfAttributes: 50
"""


# =============================================================================
# Documents
# =============================================================================


class TestLoadDocument:
    """Tests for load_document."""

    def test_yaml(self, tmp_path):
        path = tmp_path / "mesh.yaml"
        path.write_text(MESH_YAML)
        assert load_document(path)["enableTracing"] is True

    def test_json(self, tmp_path):
        path = tmp_path / "mesh.json"
        path.write_text(json.dumps({"enableTracing": False}))
        assert load_document(path) == {"enableTracing": False}

    def test_empty(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_document(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigLoadError):
            load_document(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("a: [unclosed")
        with pytest.raises(ConfigLoadError, match="invalid document"):
            load_document(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigLoadError, match="mapping"):
            load_document(path)

    def test_not_utf8(self, tmp_path):
        """Undecodable bytes surface as ConfigLoadError."""
        path = tmp_path / "mesh.yaml"
        path.write_bytes(b"\xff\xfe")
        with pytest.raises(ConfigLoadError, match="UTF-8"):
            load_document(path)


# =============================================================================
# Mesh Configuration
# =============================================================================


class TestLoadMeshConfig:
    """Tests for load_mesh_config."""

    @pytest.fixture
    def mesh(self, tmp_path):
        path = tmp_path / "mesh.yaml"
        path.write_text(MESH_YAML)
        return load_mesh_config(load_document(path))

    def test_top_level(self, mesh):
        assert mesh.enable_tracing is True
        assert mesh.default_providers.tracing == "zipkin"

    def test_default_config(self, mesh):
        tracing = mesh.default_config.tracing
        assert tracing.sampling == 25.0
        assert tracing.max_path_tag_length == 100
        assert tracing.custom_tags == {"cluster": LiteralTag("east")}

    def test_providers(self, mesh):
        zipkin, oc, sd = mesh.extension_providers

        assert zipkin.name == "zipkin"
        assert zipkin.provider == ZipkinProvider(
            "zipkin.istio-system.svc.cluster.local", 9411, max_tag_length=256
        )
        assert oc.provider == OpenCensusProvider(
            "oc-agent",
            55678,
            context=(OpenCensusContext.B3, OpenCensusContext.W3C_TRACE_CONTEXT),
        )
        assert sd.provider == StackdriverProvider(debug=True, max_number_of_attributes=50)
        assert sd.kind == ProviderKind.STACKDRIVER

    def test_empty(self):
        mesh = load_mesh_config({})
        assert mesh.enable_tracing is False
        assert mesh.default_providers.tracing is None
        assert mesh.extension_providers == ()

    def test_string_default_provider(self):
        mesh = load_mesh_config({"defaultProviders": {"tracing": "dd"}})
        assert mesh.default_providers.tracing == "dd"

    @pytest.mark.parametrize("value", ["false", "true", 0, 1])
    def test_enable_tracing_must_be_boolean(self, value):
        """A quoted "false" is not silently treated as enabled."""
        with pytest.raises(ConfigLoadError, match="enableTracing must be a boolean"):
            load_mesh_config({"enableTracing": value})


class TestLoadProvider:
    """Tests for load_provider."""

    def test_datadog(self):
        definition = load_provider(
            {"name": "dd", "datadog": {"service": "dd-agent", "port": 8126}}
        )
        assert definition.provider == DatadogProvider("dd-agent", 8126)

    def test_lightstep(self):
        definition = load_provider(
            {
                "name": "ls",
                "lightstep": {"service": "ls", "port": 8080, "accessToken": "/token"},
            }
        )
        assert definition.provider == LightstepProvider("ls", 8080, access_token="/token")

    def test_wrapped_int(self):
        definition = load_provider(
            {"name": "sd", "stackdriver": {"maxNumberOfAnnotations": {"value": 10}}}
        )
        assert definition.provider.max_number_of_annotations == 10

    def test_missing_name(self):
        with pytest.raises(ConfigLoadError, match="name"):
            load_provider({"zipkin": {"service": "z", "port": 1}})

    def test_no_kind(self):
        with pytest.raises(ConfigLoadError, match="exactly one"):
            load_provider({"name": "x"})

    def test_two_kinds(self):
        with pytest.raises(ConfigLoadError, match="exactly one"):
            load_provider(
                {
                    "name": "x",
                    "zipkin": {"service": "z", "port": 1},
                    "datadog": {"service": "d", "port": 2},
                }
            )

    def test_missing_service(self):
        with pytest.raises(ConfigLoadError, match="service"):
            load_provider({"name": "z", "zipkin": {"port": 9411}})

    def test_bad_port(self):
        with pytest.raises(ConfigLoadError, match="port"):
            load_provider({"name": "z", "zipkin": {"service": "z", "port": "http"}})

    @pytest.mark.parametrize("port", [9411.7, float("inf"), float("nan")])
    def test_fractional_port(self, port):
        """Fractional and non-finite numbers are not truncated."""
        with pytest.raises(ConfigLoadError, match="port must be an integer"):
            load_provider({"name": "z", "zipkin": {"service": "z", "port": port}})

    def test_integral_float_port(self):
        definition = load_provider({"name": "z", "zipkin": {"service": "z", "port": 9411.0}})
        assert definition.provider.port == 9411

    def test_debug_must_be_boolean(self):
        with pytest.raises(ConfigLoadError, match="debug must be a boolean"):
            load_provider({"name": "sd", "stackdriver": {"debug": "false"}})

    def test_unknown_context(self):
        with pytest.raises(ConfigLoadError, match="trace context"):
            load_provider(
                {"name": "oc", "opencensus": {"service": "a", "port": 1, "context": ["JAEGER"]}}
            )


# =============================================================================
# Tags, Proxy Config and Telemetry
# =============================================================================


class TestLoadTagSource:
    """Tests for custom tag parsing."""

    def test_variants(self):
        assert load_tag_source({"environment": {"name": "E", "defaultValue": "d"}}) == EnvironmentTag("E", "d")
        assert load_tag_source({"header": {"name": "x-h"}}) == RequestHeaderTag("x-h", "")
        assert load_tag_source({"literal": {"value": "v"}}) == LiteralTag("v")

    def test_no_variant(self):
        with pytest.raises(ConfigLoadError, match="exactly one"):
            load_tag_source({})

    def test_multiple_variants(self):
        with pytest.raises(ConfigLoadError, match="exactly one"):
            load_tag_source({"literal": {"value": "v"}, "header": {"name": "h"}})

    def test_missing_name(self):
        with pytest.raises(ConfigLoadError, match="name"):
            load_tag_source({"environment": {}})


class TestLoadProxyConfig:
    def test_defaults(self):
        config = load_proxy_config(None)
        assert config.tracing.sampling == 0.0
        assert config.tracing.custom_tags == {}
        assert config.tracing.max_path_tag_length == 0


class TestLoadTelemetry:
    """Tests for load_telemetry."""

    def test_resource(self):
        directive = load_telemetry(
            {
                "apiVersion": "telemetry.istio.io/v1alpha1",
                "kind": "Telemetry",
                "spec": {
                    "tracing": [
                        {
                            "providers": [{"name": "zipkin"}],
                            "randomSamplingPercentage": 10.5,
                            "customTags": {"u": {"header": {"name": "x-user"}}},
                        },
                        {"disableSpanReporting": True},
                    ]
                },
            }
        )

        first, second = directive.tracing
        assert first.providers[0].name == "zipkin"
        assert first.random_sampling_percentage == 10.5
        assert first.custom_tags == {"u": RequestHeaderTag("x-user")}
        assert first.disable_span_reporting is False
        assert second.disable_span_reporting is True

    def test_empty(self):
        assert load_telemetry({}).tracing == ()

    def test_disable_span_reporting_must_be_boolean(self):
        with pytest.raises(ConfigLoadError, match="disableSpanReporting must be a boolean"):
            load_telemetry({"spec": {"tracing": [{"disableSpanReporting": "false"}]}})


class TestLoadClusters:
    """Tests for cluster table loading."""

    def test_clusters(self):
        table = load_clusters(
            {
                "clusters": [
                    {"service": "zipkin.istio-system", "port": 9411},
                    {"service": "dd", "port": 8126, "cluster": "custom"},
                ]
            }
        )
        resolver = StaticEndpointResolver(table)

        assert resolver.lookup_cluster(None, "zipkin.istio-system", 9411).name == (
            "outbound|9411||zipkin.istio-system"
        )
        assert resolver.lookup_cluster(None, "dd", 8126).name == "custom"
        with pytest.raises(ClusterLookupError):
            resolver.lookup_cluster(None, "dd", 1)

    def test_namespaced_service(self):
        resolver = StaticEndpointResolver(load_clusters({"clusters": [{"service": "ns/zipkin", "port": 9411}]}))
        assert resolver.lookup_cluster(None, "zipkin", 9411).name == "outbound|9411||zipkin"
        assert resolver.lookup_cluster(None, "ns/zipkin", 9411).hostname == "zipkin"
