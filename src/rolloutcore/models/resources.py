"""
Resource model for workload manifests.

Kinds form a closed set of workload kinds and discovery kinds. Capability
checks (replicas, pod template, selector) are plain functions over the kind
string so the same document dict can flow through every strategy without
wrapping.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rolloutcore.errors import (
    InputObjectMetadataNotDefinedError,
    NullInputObjectError,
    ResourceKindNotDefinedError,
)

Resource = Dict[str, Any]


class WorkloadKind(str, Enum):
    """Kinds that run containers."""
    POD = "Pod"
    REPLICASET = "ReplicaSet"
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    DAEMON_SET = "DaemonSet"
    JOB = "Job"
    CRON_JOB = "CronJob"


class DiscoveryKind(str, Enum):
    """Kinds that route traffic to workloads."""
    SERVICE = "Service"
    INGRESS = "Ingress"


class ServiceType(str, Enum):
    LOAD_BALANCER = "LoadBalancer"
    NODE_PORT = "NodePort"
    CLUSTER_IP = "ClusterIP"


DEPLOYMENT_TYPES = frozenset({"deployment", "replicaset", "daemonset", "pod", "statefulset"})
WORKLOAD_TYPES = frozenset(k.value.lower() for k in WorkloadKind)
WORKLOAD_TYPES_WITH_ROLLOUT_STATUS = frozenset({"deployment", "daemonset", "statefulset"})

# =============================================================================
# Variant naming
# =============================================================================

GREEN_SUFFIX = "-green"
CANARY_SUFFIX = "-canary"
BASELINE_SUFFIX = "-baseline"
STABLE_SUFFIX = "-stable"
TRAFFIC_SPLIT_SUFFIX = "-workflow-rollout"

# =============================================================================
# Version labels
# =============================================================================

CANARY_VERSION_LABEL = "workflow/version"
STABLE_LABEL_VALUE = "stable"
CANARY_LABEL_VALUE = "canary"
BASELINE_LABEL_VALUE = "baseline"

BLUE_GREEN_VERSION_LABEL = "k8s.deploy.color"
GREEN_LABEL_VALUE = "green"
NONE_LABEL_VALUE = "None"


def with_suffix(name: str, suffix: str) -> str:
    return f"{name}{suffix}"


def strip_suffix(name: str, suffix: str) -> str:
    """Remove ``suffix`` from ``name``; the caller must know it is there."""
    if not name.endswith(suffix):
        raise ValueError(f"Name '{name}' does not end with '{suffix}'")
    return name[: len(name) - len(suffix)]


# =============================================================================
# Kind classification
# =============================================================================


def get_kind(resource: Optional[Resource]) -> str:
    """Return the resource kind, raising if it is absent."""
    if not resource or not resource.get("kind"):
        raise ResourceKindNotDefinedError()
    return resource["kind"]


def get_name(resource: Optional[Resource]) -> str:
    """Return ``metadata.name``, raising if metadata or name is absent."""
    if resource is None:
        raise NullInputObjectError()
    metadata = resource.get("metadata")
    if not metadata or not metadata.get("name"):
        raise InputObjectMetadataNotDefinedError()
    return metadata["name"]


def get_namespace(resource: Resource) -> Optional[str]:
    return (resource.get("metadata") or {}).get("namespace")


def is_deployment_entity(resource: Resource) -> bool:
    return get_kind(resource).lower() in DEPLOYMENT_TYPES


def is_workload_entity(kind: str) -> bool:
    if not kind:
        raise ResourceKindNotDefinedError()
    return kind.lower() in WORKLOAD_TYPES


def is_service_entity(resource: Resource) -> bool:
    return get_kind(resource).lower() == DiscoveryKind.SERVICE.value.lower()


def is_ingress_entity(resource: Resource) -> bool:
    return get_kind(resource).lower() == DiscoveryKind.INGRESS.value.lower()


def has_replicas(kind: str) -> bool:
    """Pods, daemon sets and services carry no replica count."""
    lower = kind.lower()
    return lower not in ("pod", "daemonset", "service")


def has_pod_template(kind: str) -> bool:
    lower = kind.lower()
    return lower in WORKLOAD_TYPES and lower not in ("pod", "cronjob")


def has_selector(kind: str) -> bool:
    """Bare pods have no independent selector."""
    return kind.lower() != "pod"


def supports_rollout_status(kind: str) -> bool:
    return kind.lower() in WORKLOAD_TYPES_WITH_ROLLOUT_STATUS


def clone(resource: Resource) -> Resource:
    """Structural copy; the clone shares no nested dicts or lists."""
    return copy.deepcopy(resource)


# =============================================================================
# Structured values
# =============================================================================


@dataclass
class ExecResult:
    """Outcome of one kubectl invocation."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class ResourceRef:
    """Kind/name/namespace triple identifying a cluster object."""
    type: str
    name: str
    namespace: Optional[str] = None


@dataclass(frozen=True)
class DeleteObject:
    name: str
    kind: str


@dataclass
class DeployResult:
    exec_result: Optional[ExecResult]
    manifest_files: List[str] = field(default_factory=list)


@dataclass
class BlueGreenDeployment:
    deploy_result: DeployResult
    objects: List[Resource] = field(default_factory=list)


@dataclass
class BlueGreenRejectResult:
    delete_result: List[DeleteObject]
    route_result: BlueGreenDeployment


@dataclass
class ManifestSet:
    """Total, disjoint partition of parsed manifest documents."""
    deployment_entities: List[Resource] = field(default_factory=list)
    service_entities: List[Resource] = field(default_factory=list)
    unrouted_service_entities: List[Resource] = field(default_factory=list)
    ingress_entities: List[Resource] = field(default_factory=list)
    other_entities: List[Resource] = field(default_factory=list)
    service_name_map: Dict[str, str] = field(default_factory=dict)

    def all_entities(self) -> List[Resource]:
        return (
            self.deployment_entities
            + self.service_entities
            + self.unrouted_service_entities
            + self.ingress_entities
            + self.other_entities
        )


class TrafficSplitBackend(BaseModel):
    """One weighted backend in permille (0-1000)."""
    service: str
    weight: int = Field(..., ge=0, le=1000)


class TrafficSplitMetadata(BaseModel):
    name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class TrafficSplitSpec(BaseModel):
    service: str
    backends: List[TrafficSplitBackend]

    @field_validator("backends")
    @classmethod
    def validate_backends(cls, v: List[TrafficSplitBackend]) -> List[TrafficSplitBackend]:
        if len(v) != 3:
            raise ValueError(f"TrafficSplit requires exactly 3 backends, got {len(v)}")
        return v


class TrafficSplit(BaseModel):
    """Service-mesh traffic split across stable, baseline and canary services."""

    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(..., alias="apiVersion")
    kind: str = "TrafficSplit"
    metadata: TrafficSplitMetadata
    spec: TrafficSplitSpec

    def weight_for(self, service: str) -> Optional[int]:
        for backend in self.spec.backends:
            if backend.service == service:
                return backend.weight
        return None

    def to_manifest(self) -> Resource:
        return self.model_dump(by_alias=True)
