"""
In-place edits on manifest documents: replica counts, image pull secrets,
and scrubbing of cluster-assigned fields from fetched objects.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from rolloutcore.errors import InputObjectKindNotDefinedError, NullInputObjectError
from rolloutcore.models.resources import (
    Resource,
    ResourceRef,
    get_kind,
    has_replicas,
    is_workload_entity,
)


def get_replica_count(resource: Optional[Resource]) -> int:
    """Declared replica count, or 0 for kinds without one."""
    if resource is None:
        raise NullInputObjectError()
    kind = resource.get("kind")
    if not kind:
        raise InputObjectKindNotDefinedError()
    spec = resource.get("spec") or {}
    if has_replicas(kind) and "replicas" in spec:
        return spec["replicas"]
    return 0


def set_replica_count(resource: Resource, replicas: int) -> None:
    spec = resource.get("spec")
    if spec is not None and "replicas" in spec:
        spec["replicas"] = replicas


def _pod_spec(resource: Resource) -> Optional[dict]:
    spec = resource.get("spec")
    if not spec:
        return None
    kind = resource["kind"].lower()
    if kind == "pod":
        return spec
    if kind == "cronjob":
        job_spec = (spec.get("jobTemplate") or {}).get("spec") or {}
        return (job_spec.get("template") or {}).get("spec")
    return (spec.get("template") or {}).get("spec")


def get_image_pull_secrets(resource: Resource) -> Optional[List[dict]]:
    pod_spec = _pod_spec(resource)
    if pod_spec is None:
        return None
    return pod_spec.get("imagePullSecrets")


def set_image_pull_secrets(resource: Resource, secrets: List[dict]) -> None:
    pod_spec = _pod_spec(resource)
    if pod_spec is not None:
        pod_spec["imagePullSecrets"] = secrets


def update_image_pull_secrets(
    resource: Resource,
    secret_names: Optional[Sequence[str]],
    override: bool = False,
) -> None:
    """Append (or with ``override`` replace) ``{"name": ...}`` pull-secret refs."""
    if not resource.get("spec") or secret_names is None:
        return
    new_refs = [{"name": name} for name in secret_names]
    if override:
        refs = new_refs
    else:
        refs = list(get_image_pull_secrets(resource) or []) + new_refs
    set_image_pull_secrets(resource, refs)


def update_image_pull_secrets_in_documents(
    documents: Iterable[Optional[Resource]],
    secret_names: Sequence[str],
) -> List[Resource]:
    """Add pull secrets to every workload document; other kinds pass through.

    Empty YAML documents are dropped. A document without a kind raises
    :class:`ResourceKindNotDefinedError`.
    """
    updated = []
    for document in documents:
        if document is None:
            continue
        kind = get_kind(document)
        if secret_names and is_workload_entity(kind):
            update_image_pull_secrets(document, secret_names)
        updated.append(document)
    return updated


def unset_cluster_specific_details(resource: Optional[Resource]) -> None:
    """Reduce metadata to name/labels/annotations and empty the status."""
    if not resource:
        return
    metadata = resource.get("metadata")
    if metadata:
        resource["metadata"] = {
            "annotations": dict(metadata.get("annotations") or {}),
            "labels": dict(metadata.get("labels") or {}),
            "name": metadata.get("name"),
        }
    if resource.get("status"):
        resource["status"] = {}


def get_resources(
    documents: Iterable[Optional[Resource]],
    filter_resource_types: Iterable[str],
) -> List[ResourceRef]:
    """References to every document whose kind is in ``filter_resource_types``."""
    wanted = {t.lower() for t in filter_resource_types}
    refs = []
    for document in documents:
        kind = (document or {}).get("kind") or ""
        if kind.lower() in wanted:
            metadata = document.get("metadata") or {}
            refs.append(ResourceRef(kind, metadata.get("name"), metadata.get("namespace")))
    return refs
