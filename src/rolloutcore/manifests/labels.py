"""
Label and annotation merging for manifest variants.

One merge primitive backs four call sites: object labels, object
annotations, selector labels, and pod-template (spec) labels. The default
merge adds new keys, overwrites colliding keys, and keeps everything else;
``override=True`` replaces the whole map.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from rolloutcore.errors import (
    InputObjectKindNotDefinedError,
    InputObjectMetadataNotDefinedError,
    NullInputObjectError,
)
from rolloutcore.models.resources import Resource, has_pod_template, has_selector, is_service_entity


def merge_labels(
    existing: Optional[Mapping[str, str]],
    new_labels: Mapping[str, str],
    override: bool = False,
) -> Dict[str, str]:
    """Return a fresh map; neither input is mutated."""
    if override:
        return dict(new_labels)
    merged = dict(existing or {})
    merged.update(new_labels)
    return merged


def _require_metadata(resource: Optional[Resource]) -> dict:
    if resource is None:
        raise NullInputObjectError()
    metadata = resource.get("metadata")
    if metadata is None:
        raise InputObjectMetadataNotDefinedError()
    return metadata


def _require_kind(resource: Optional[Resource]) -> str:
    if resource is None:
        raise NullInputObjectError()
    if not resource.get("kind"):
        raise InputObjectKindNotDefinedError()
    return resource["kind"]


def update_object_labels(
    resource: Resource,
    new_labels: Optional[Mapping[str, str]],
    override: bool = False,
) -> None:
    metadata = _require_metadata(resource)
    if new_labels is None:
        return
    metadata["labels"] = merge_labels(metadata.get("labels"), new_labels, override)


def update_object_annotations(
    resource: Resource,
    new_annotations: Optional[Mapping[str, str]],
    override: bool = False,
) -> None:
    metadata = _require_metadata(resource)
    if new_annotations is None:
        return
    metadata["annotations"] = merge_labels(
        metadata.get("annotations"), new_annotations, override
    )


def get_spec_selector_labels(resource: Resource) -> Optional[Dict[str, str]]:
    spec = resource.get("spec") or {}
    if "selector" not in spec:
        return None
    if is_service_entity(resource):
        return spec["selector"]
    return (spec["selector"] or {}).get("matchLabels")


def set_spec_selector_labels(resource: Resource, labels: Mapping[str, str]) -> None:
    spec = resource.get("spec") or {}
    if "selector" not in spec:
        return
    if is_service_entity(resource):
        spec["selector"] = dict(labels)
    else:
        if spec["selector"] is None:
            spec["selector"] = {}
        spec["selector"]["matchLabels"] = dict(labels)


def update_selector_labels(
    resource: Resource,
    new_labels: Optional[Mapping[str, str]],
    override: bool = False,
) -> None:
    """Merge into ``spec.selector`` (services) or ``spec.selector.matchLabels``."""
    kind = _require_kind(resource)
    if new_labels is None:
        return
    if not has_selector(kind):
        return
    existing = get_spec_selector_labels(resource)
    set_spec_selector_labels(resource, merge_labels(existing, new_labels, override))


def _is_bare_pod(kind: str) -> bool:
    # a bare pod carries its own labels instead of a template
    return not has_selector(kind) and not has_pod_template(kind)


def get_spec_labels(resource: Resource) -> Optional[Dict[str, str]]:
    kind = resource["kind"]
    if _is_bare_pod(kind):
        return resource["metadata"].get("labels")
    if not has_pod_template(kind):
        return None
    template = (resource.get("spec") or {}).get("template")
    if template and template.get("metadata"):
        return template["metadata"].get("labels")
    return None


def set_spec_labels(resource: Resource, labels: Mapping[str, str]) -> None:
    kind = resource["kind"]
    if _is_bare_pod(kind):
        resource["metadata"]["labels"] = dict(labels)
        return
    if not has_pod_template(kind):
        return
    template = (resource.get("spec") or {}).get("template")
    if template and "metadata" in template:
        if template["metadata"] is None:
            template["metadata"] = {}
        template["metadata"]["labels"] = dict(labels)


def update_spec_labels(
    resource: Resource,
    new_labels: Optional[Mapping[str, str]],
    override: bool = False,
) -> None:
    """Merge into the pod template labels (or the labels of a bare pod)."""
    _require_kind(resource)
    if new_labels is None:
        return
    existing = get_spec_labels(resource)
    set_spec_labels(resource, merge_labels(existing, new_labels, override))
