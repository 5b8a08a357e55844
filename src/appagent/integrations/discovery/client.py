"""
appagent.integrations.discovery.client - Cluster Discovery
============================================================

The discovery collaborator tells the workflow which resource kinds the
cluster serves and what their schemas look like.

    DiscoveryClient (ABC)
        connect()                 → reach the cluster
        discover_resources()      → [ResourceDescriptor, ...]
        explain_resource(kind)    → SchemaDescription

    Errors:
        ClusterConnectionError    → cluster unreachable
        ResourceNotFoundError     → unknown kind passed to explain_resource()

StaticDiscoveryClient answers from an in-process catalog. The default
catalog covers the core workload kinds; callers can pass their own to
mimic a specific cluster, including CRDs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Optional

import structlog

from appagent.core.exceptions import ClusterConnectionError, ResourceNotFoundError
from appagent.core.models import ResourceDescriptor, SchemaDescription


logger = structlog.get_logger()


# =============================================================================
# Abstract Base Class: DiscoveryClient
# =============================================================================
class DiscoveryClient(ABC):
    """Contract of the cluster discovery collaborator."""

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the cluster.

        Raises:
            ClusterConnectionError: If the cluster cannot be reached.
        """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True after a successful connect()."""

    @abstractmethod
    async def discover_resources(self) -> list[ResourceDescriptor]:
        """Resource kinds served by the cluster.

        Raises:
            ClusterConnectionError: If the cluster cannot be reached.
        """

    @abstractmethod
    async def explain_resource(self, kind: str) -> SchemaDescription:
        """Schema of one resource kind.

        Raises:
            ClusterConnectionError: If the cluster cannot be reached.
            ResourceNotFoundError: If the kind is not served.
        """


# =============================================================================
# Built-in Catalog
# =============================================================================
def default_catalog() -> list[tuple[ResourceDescriptor, SchemaDescription]]:
    """Core Kubernetes kinds with the fields a manifest must carry."""
    return [
        (
            ResourceDescriptor(
                kind="Deployment",
                api_version="apps/v1",
                group="apps",
                description="Stateless replicated workload",
            ),
            SchemaDescription(
                kind="Deployment",
                api_version="apps/v1",
                description="Deployment enables declarative updates for Pods and ReplicaSets.",
                required_fields=["spec.selector", "spec.template"],
                fields={
                    "spec.replicas": "integer; desired number of pods",
                    "spec.selector": "LabelSelector; required",
                    "spec.template": "PodTemplateSpec; required",
                    "spec.strategy": "DeploymentStrategy",
                },
            ),
        ),
        (
            ResourceDescriptor(
                kind="StatefulSet",
                api_version="apps/v1",
                group="apps",
                description="Stateful workload with stable identities and storage",
            ),
            SchemaDescription(
                kind="StatefulSet",
                api_version="apps/v1",
                description="StatefulSet manages pods with stable network identity and storage.",
                required_fields=["spec.selector", "spec.serviceName", "spec.template"],
                fields={
                    "spec.replicas": "integer",
                    "spec.serviceName": "string; governing headless service",
                    "spec.volumeClaimTemplates": "[]PersistentVolumeClaim",
                },
            ),
        ),
        (
            ResourceDescriptor(
                kind="Service",
                api_version="v1",
                description="Stable network endpoint for a set of pods",
            ),
            SchemaDescription(
                kind="Service",
                api_version="v1",
                description="Service exposes pods selected by labels on a stable address.",
                required_fields=["spec.ports"],
                fields={
                    "spec.type": "string; ClusterIP, NodePort or LoadBalancer",
                    "spec.selector": "map[string]string",
                    "spec.ports": "[]ServicePort; required",
                },
            ),
        ),
        (
            ResourceDescriptor(
                kind="ConfigMap",
                api_version="v1",
                description="Non-confidential key/value configuration",
            ),
            SchemaDescription(
                kind="ConfigMap",
                api_version="v1",
                description="ConfigMap holds configuration data for pods to consume.",
                fields={
                    "data": "map[string]string",
                    "binaryData": "map[string][]byte",
                },
            ),
        ),
        (
            ResourceDescriptor(
                kind="Ingress",
                api_version="networking.k8s.io/v1",
                group="networking.k8s.io",
                description="HTTP routing into the cluster",
            ),
            SchemaDescription(
                kind="Ingress",
                api_version="networking.k8s.io/v1",
                description="Ingress routes external HTTP(S) traffic to services.",
                required_fields=["spec.rules"],
                fields={
                    "spec.ingressClassName": "string",
                    "spec.rules": "[]IngressRule; required",
                    "spec.tls": "[]IngressTLS",
                },
            ),
        ),
    ]


# =============================================================================
# StaticDiscoveryClient Implementation
# =============================================================================
class StaticDiscoveryClient(DiscoveryClient):
    """Discovery client answering from an in-process catalog.

    Failure simulation (for tests): set_should_fail() makes every call
    raise ClusterConnectionError.

    Example:
        >>> client = StaticDiscoveryClient()
        >>> await client.connect()
        >>> [r.kind for r in await client.discover_resources()][:2]
        ['Deployment', 'StatefulSet']
    """

    def __init__(
        self,
        catalog: Optional[Iterable[tuple[ResourceDescriptor, SchemaDescription]]] = None,
        cluster_name: str = "in-process",
    ) -> None:
        entries = list(catalog) if catalog is not None else default_catalog()
        self._resources: dict[str, ResourceDescriptor] = {d.kind: d for d, _ in entries}
        self._schemas: dict[str, SchemaDescription] = {d.kind: s for d, s in entries}
        self._cluster_name = cluster_name
        self._connected: bool = False
        self._should_fail: bool = False
        self._failure_message: str = "Cluster unreachable"
        self._logger = logger.bind(component="discovery_client", cluster=cluster_name)

    @property
    def is_connected(self) -> bool:
        return self._connected

    def set_should_fail(self, should_fail: bool, message: str = "Cluster unreachable") -> None:
        self._should_fail = should_fail
        self._failure_message = message

    def add_resource(self, descriptor: ResourceDescriptor, schema: SchemaDescription) -> None:
        """Register an extra kind, e.g. a CRD."""
        self._resources[descriptor.kind] = descriptor
        self._schemas[descriptor.kind] = schema

    async def connect(self) -> None:
        self._check_reachable()
        self._connected = True
        self._logger.info("cluster_connected", resource_kinds=len(self._resources))

    async def discover_resources(self) -> list[ResourceDescriptor]:
        self._check_reachable()
        resources = list(self._resources.values())
        self._logger.debug("resources_discovered", count=len(resources))
        return resources

    async def explain_resource(self, kind: str) -> SchemaDescription:
        self._check_reachable()
        schema = self._schemas.get(kind)
        if schema is None:
            raise ResourceNotFoundError(kind=kind)
        return schema

    def _check_reachable(self) -> None:
        if self._should_fail:
            raise ClusterConnectionError(
                message=self._failure_message,
                details={"cluster": self._cluster_name},
            )
