"""
Canary variant derivation shared by the pod and SMI backends.

Every variant is a fresh clone of its source; renaming and the
``workflow/version`` label are always applied together.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional

from rolloutcore.errors import RolloutError, ValidationError
from rolloutcore.kubectl import Kubectl, check_for_errors
from rolloutcore.manifests.labels import (
    update_object_annotations,
    update_object_labels,
    update_selector_labels,
    update_spec_labels,
)
from rolloutcore.manifests.update import get_replica_count, set_replica_count
from rolloutcore.models.resources import (
    BASELINE_LABEL_VALUE,
    BASELINE_SUFFIX,
    CANARY_LABEL_VALUE,
    CANARY_SUFFIX,
    CANARY_VERSION_LABEL,
    STABLE_LABEL_VALUE,
    STABLE_SUFFIX,
    DeleteObject,
    Resource,
    clone,
    get_name,
    get_namespace,
    has_replicas,
    is_deployment_entity,
    is_service_entity,
    strip_suffix,
    with_suffix,
)
from rolloutcore.strategies.common import fetch_resource

logger = logging.getLogger(__name__)

_SUFFIX_BY_VARIANT = {
    CANARY_LABEL_VALUE: CANARY_SUFFIX,
    BASELINE_LABEL_VALUE: BASELINE_SUFFIX,
    STABLE_LABEL_VALUE: STABLE_SUFFIX,
}


def get_canary_resource_name(name: str) -> str:
    return with_suffix(name, CANARY_SUFFIX)


def get_baseline_resource_name(name: str) -> str:
    return with_suffix(name, BASELINE_SUFFIX)


def get_stable_resource_name(name: str) -> str:
    return with_suffix(name, STABLE_SUFFIX)


def validate_percentage(percentage: Optional[int], label: str = "Percentage") -> int:
    if percentage is None:
        raise ValidationError(f"{label} is required")
    if percentage < 0 or percentage > 100:
        raise ValidationError(f"{label} must be between 0 and 100")
    return percentage


def calculate_replica_count_for_canary(resource: Resource, percentage: int) -> int:
    """Replicas for ``percentage`` of the declared count, rounded half up."""
    validate_percentage(percentage)
    return int(math.floor(get_replica_count(resource) * percentage / 100 + 0.5))


def add_canary_labels_and_annotations(resource: Resource, variant: str) -> None:
    new_labels = {CANARY_VERSION_LABEL: variant}
    update_object_labels(resource, new_labels)
    update_object_annotations(resource, new_labels)
    update_selector_labels(resource, new_labels)
    if not is_service_entity(resource):
        update_spec_labels(resource, new_labels)


def is_resource_marked_as_stable(resource: Optional[Resource]) -> bool:
    labels = ((resource or {}).get("metadata") or {}).get("labels") or {}
    return labels.get(CANARY_VERSION_LABEL) == STABLE_LABEL_VALUE


def mark_resource_as_stable(resource: Resource) -> Resource:
    if is_resource_marked_as_stable(resource):
        return resource
    marked = clone(resource)
    add_canary_labels_and_annotations(marked, STABLE_LABEL_VALUE)
    return marked


def _new_canary_object(resource: Resource, replicas: Optional[int], variant: str) -> Resource:
    new_object = clone(resource)
    new_object["metadata"]["name"] = with_suffix(get_name(resource), _SUFFIX_BY_VARIANT[variant])
    add_canary_labels_and_annotations(new_object, variant)

    # only overwrite a declared count; a missing key keeps the cluster default
    if replicas is not None and has_replicas(new_object["kind"]):
        set_replica_count(new_object, replicas)
    return new_object


def get_stable_resource(resource: Resource) -> Resource:
    return _new_canary_object(resource, get_replica_count(resource), STABLE_LABEL_VALUE)


def get_new_canary_resource(resource: Resource, replicas: Optional[int] = None) -> Resource:
    return _new_canary_object(resource, replicas, CANARY_LABEL_VALUE)


def get_new_baseline_resource(resource: Resource, replicas: Optional[int] = None) -> Resource:
    return _new_canary_object(resource, replicas, BASELINE_LABEL_VALUE)


def get_baseline_deployment_from_stable_deployment(
    stable: Resource,
    replicas: Optional[int],
) -> Resource:
    """Baseline cloned from a live stable object: ``web-stable`` becomes ``web-baseline``."""
    base_name = strip_suffix(get_name(stable), STABLE_SUFFIX)
    baseline = _new_canary_object(stable, replicas, BASELINE_LABEL_VALUE)
    baseline["metadata"]["name"] = get_baseline_resource_name(base_name)
    return baseline


def delete_canary_deployment(
    kubectl: Kubectl,
    documents: Iterable[Optional[Resource]],
    include_services: bool,
) -> List[DeleteObject]:
    """
    Best-effort delete of canary and baseline variants of every workload.

    Failures (typically: object already gone) are logged and skipped.

    Args:
        kubectl: Cluster interface
        documents: Manifest documents the variants were derived from
        include_services: Also delete canary and baseline services

    Returns:
        Every object a delete was issued for

    Raises:
        RolloutError: If no documents were given
    """
    documents = [d for d in documents if d]
    if not documents:
        raise RolloutError("Manifest files for deleting canary deployment not found")

    deleted: List[DeleteObject] = []
    for document in documents:
        if not (is_deployment_entity(document) or (include_services and is_service_entity(document))):
            continue
        name = get_name(document)
        for variant_name in (get_canary_resource_name(name), get_baseline_resource_name(name)):
            target = DeleteObject(name=variant_name, kind=document["kind"])
            try:
                check_for_errors([kubectl.delete([target.kind, target.name])])
            except Exception as e:
                logger.debug("Ignoring failed delete of %s/%s: %s", target.kind, target.name, e)
            deleted.append(target)
    return deleted


class CanaryStrategy:
    """Workload handling common to both canary backends.

    Per workload: with no ``<name>-stable`` object on the cluster only the
    stable variant is written; otherwise a canary variant plus a baseline
    cloned from the live stable object, both at the canary replica count.
    """

    def __init__(
        self,
        kubectl: Kubectl,
        percentage: Optional[int] = None,
        baseline_and_canary_replicas: Optional[int] = None,
        force: bool = False,
    ):
        if percentage is not None:
            validate_percentage(percentage)
        if baseline_and_canary_replicas is not None:
            validate_percentage(baseline_and_canary_replicas, "Baseline-and-canary-replicas")
        self.kubectl = kubectl
        self.percentage = percentage
        self.baseline_and_canary_replicas = baseline_and_canary_replicas
        self.force = force

    def canary_replica_count(self, workload: Resource) -> int:
        if self.baseline_and_canary_replicas is not None:
            return self.baseline_and_canary_replicas
        return calculate_replica_count_for_canary(workload, validate_percentage(self.percentage))

    def derive_workload_variants(
        self,
        workload: Resource,
        only_deploy_stable: bool = False,
    ) -> List[Resource]:
        """
        Derive the variants to write for one workload.

        Args:
            workload: Workload document from the input manifests
            only_deploy_stable: Skip the cluster probe and return the stable
                variant only

        Returns:
            ``[stable]`` when no ``<name>-stable`` exists on the cluster,
            otherwise ``[canary, baseline]`` at the canary replica count
        """
        name = get_name(workload)
        if only_deploy_stable:
            logger.debug("Creating stable %s %s", workload["kind"], name)
            return [get_stable_resource(workload)]

        namespace = get_namespace(workload)
        stable = fetch_resource(self.kubectl, workload["kind"], get_stable_resource_name(name), namespace)
        if stable is None:
            logger.info("No stable %s for %s found, deploying stable variant only", workload["kind"], name)
            return [get_stable_resource(workload)]

        replicas = self.canary_replica_count(workload)
        logger.debug("Creating canary and baseline objects for %s with %d replicas", name, replicas)
        return [
            get_new_canary_resource(workload, replicas),
            get_baseline_deployment_from_stable_deployment(stable, replicas),
        ]

    def _require_replica_input(self, only_deploy_stable: bool) -> None:
        if not only_deploy_stable and self.baseline_and_canary_replicas is None:
            validate_percentage(self.percentage)

    def cleanup(self, documents: Iterable[Optional[Resource]], include_services: bool = False) -> List[DeleteObject]:
        return delete_canary_deployment(self.kubectl, documents, include_services)
