"""
Partition manifest documents into workloads, services and the rest.

A service is *routed* when its selector picks out at least one workload in
the same manifest set; routed services get a green counterpart name in the
returned name map.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional

from rolloutcore.models.resources import (
    GREEN_SUFFIX,
    ManifestSet,
    Resource,
    get_kind,
    get_name,
    is_deployment_entity,
    is_ingress_entity,
    is_service_entity,
    with_suffix,
)

logger = logging.getLogger(__name__)


def get_match_labels(workload: Resource) -> Optional[Mapping[str, str]]:
    """Labels a service selector must match to route to ``workload``."""
    if (workload.get("kind") or "").lower() == "pod":
        return (workload.get("metadata") or {}).get("labels")
    selector = (workload.get("spec") or {}).get("selector")
    if isinstance(selector, dict):
        return selector.get("matchLabels")
    return None


def get_service_selector(service: Resource) -> Optional[Mapping[str, str]]:
    return (service.get("spec") or {}).get("selector")


def is_selector_subset(selector: Mapping[str, str], labels: Mapping[str, str]) -> bool:
    """True when every selector key is present in ``labels`` with an equal value.

    Empty values are compared like any other value, never treated as a wildcard.
    """
    for key, value in selector.items():
        if key not in labels or labels[key] != value:
            return False
    return True


def is_service_routed(service: Resource, workloads: Iterable[Resource]) -> bool:
    selector = get_service_selector(service)
    if selector is None:
        return False
    for workload in workloads:
        match_labels = get_match_labels(workload)
        if match_labels is not None and is_selector_subset(selector, match_labels):
            return True
    return False


def classify(documents: Iterable[Optional[Resource]]) -> ManifestSet:
    """Partition parsed documents into a :class:`ManifestSet`.

    Empty YAML documents (``None``) are skipped. Documents without a kind or
    name raise a malformed-resource error.
    """
    manifest_set = ManifestSet()
    workloads: List[Resource] = manifest_set.deployment_entities

    for document in documents:
        if document is None:
            continue
        get_kind(document)
        name = get_name(document)
        if is_deployment_entity(document):
            workloads.append(document)
        elif is_service_entity(document):
            if is_service_routed(document, workloads):
                manifest_set.service_entities.append(document)
                manifest_set.service_name_map[name] = with_suffix(name, GREEN_SUFFIX)
            else:
                manifest_set.unrouted_service_entities.append(document)
        elif is_ingress_entity(document):
            manifest_set.ingress_entities.append(document)
        else:
            manifest_set.other_entities.append(document)

    logger.debug(
        "Classified manifests: %d workloads, %d routed services, %d unrouted services, "
        "%d ingresses, %d other",
        len(manifest_set.deployment_entities),
        len(manifest_set.service_entities),
        len(manifest_set.unrouted_service_entities),
        len(manifest_set.ingress_entities),
        len(manifest_set.other_entities),
    )
    return manifest_set
