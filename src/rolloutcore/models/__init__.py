"""
Typed views over Kubernetes manifests used by the rollout strategies.

Resources themselves stay plain ``dict`` documents as parsed from YAML/JSON;
this package adds kind classification, variant naming, and the structured
results that flow between the strategies and the cluster.
"""

from rolloutcore.models.resources import (
    BlueGreenDeployment,
    BlueGreenRejectResult,
    DeleteObject,
    DeployResult,
    ExecResult,
    ManifestSet,
    ResourceRef,
    TrafficSplit,
    TrafficSplitBackend,
)

__all__ = [
    "BlueGreenDeployment",
    "BlueGreenRejectResult",
    "DeleteObject",
    "DeployResult",
    "ExecResult",
    "ManifestSet",
    "ResourceRef",
    "TrafficSplit",
    "TrafficSplitBackend",
]
