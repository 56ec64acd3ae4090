"""Endpoint resolution for cluster-backed tracing providers.

The resolver maps a logical service name and port to the cluster the proxy
uses to reach it. In a running control plane this is backed by service
discovery; the resolution engine only depends on the protocol below.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from meshtrace.errors import ClusterLookupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusterRef:
    """A resolved transport endpoint.

    Attributes:
        name: Cluster identifier referenced from tracer configuration.
        hostname: Service hostname the cluster was resolved from.
        port: Service port.
    """

    name: str
    hostname: str = ""
    port: int = 0


@runtime_checkable
class EndpointResolver(Protocol):
    """Protocol for cluster lookups.

    Implementations must be side-effect free and may raise
    ClusterLookupError at any time, for example while a newly registered
    service has not yet reached the registry snapshot.
    """

    def lookup_cluster(self, push_context: Any, service: str, port: int) -> ClusterRef:
        """Resolve ``service:port`` to a cluster.

        Args:
            push_context: Opaque snapshot of the control plane state.
            service: Service hostname, optionally ``namespace/hostname``.
            port: Service port.

        Returns:
            The resolved cluster.

        Raises:
            ClusterLookupError: If no cluster serves the service port.
        """
        ...


def outbound_cluster_name(hostname: str, port: int, subset: str = "") -> str:
    """Build an outbound cluster name, e.g. ``outbound|9411||zipkin.istio-system``."""
    return f"outbound|{port}|{subset}|{hostname}"


def _split_service(service: str) -> tuple[str, str]:
    """Split ``namespace/hostname`` into its parts."""
    if "/" in service:
        namespace, hostname = service.split("/", 1)
        return namespace, hostname
    return "", service


class StaticEndpointResolver:
    """Endpoint resolver backed by a fixed service table.

    Services may be registered as ``hostname`` or ``namespace/hostname``;
    lookups accept either form.

    Example:
        >>> resolver = StaticEndpointResolver.from_services(
        ...     [("zipkin.istio-system.svc.cluster.local", 9411)]
        ... )
        >>> resolver.lookup_cluster(None, "zipkin.istio-system.svc.cluster.local", 9411).name
        'outbound|9411||zipkin.istio-system.svc.cluster.local'
    """

    def __init__(self, clusters: Mapping[tuple[str, int], str] | None = None) -> None:
        self._clusters: dict[tuple[str, int], str] = {}
        for (service, port), cluster in (clusters or {}).items():
            self.register(service, port, cluster)

    @classmethod
    def from_services(cls, services: Iterable[tuple[str, int]]) -> "StaticEndpointResolver":
        """Create a resolver with outbound cluster names for each service."""
        resolver = cls()
        for service, port in services:
            _, hostname = _split_service(service)
            resolver.register(service, port, outbound_cluster_name(hostname, port))
        return resolver

    def register(self, service: str, port: int, cluster: str) -> None:
        _, hostname = _split_service(service)
        self._clusters[(hostname, int(port))] = cluster

    def lookup_cluster(self, push_context: Any, service: str, port: int) -> ClusterRef:
        _, hostname = _split_service(service)
        cluster = self._clusters.get((hostname, int(port)))
        if cluster is None:
            logger.debug("No cluster for %s:%s", hostname, port)
            raise ClusterLookupError(service, port)
        return ClusterRef(name=cluster, hostname=hostname, port=int(port))

    def __len__(self) -> int:
        return len(self._clusters)
