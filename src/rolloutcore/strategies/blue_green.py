"""
Blue/green rollout with service-selector routing.

The current ("blue") workloads keep their names and carry the
``k8s.deploy.color: None`` label; the new version is deployed as
``<name>-green``. Traffic moves by rewriting routed service selectors.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from rolloutcore.errors import ServicesNotGreenError
from rolloutcore.kubectl import Kubectl, check_for_errors
from rolloutcore.manifests.labels import (
    update_object_labels,
    update_selector_labels,
    update_spec_labels,
)
from rolloutcore.models.resources import (
    BLUE_GREEN_VERSION_LABEL,
    GREEN_LABEL_VALUE,
    GREEN_SUFFIX,
    NONE_LABEL_VALUE,
    BlueGreenDeployment,
    BlueGreenRejectResult,
    DeleteObject,
    ManifestSet,
    Resource,
    clone,
    get_name,
    get_namespace,
    is_service_entity,
    with_suffix,
)
from rolloutcore.strategies.common import deploy_objects, fetch_resource

logger = logging.getLogger(__name__)


def get_blue_green_resource_name(name: str, suffix: str) -> str:
    return with_suffix(name, suffix)


def add_blue_green_labels_and_annotations(resource: Resource, label_value: str) -> None:
    new_labels = {BLUE_GREEN_VERSION_LABEL: label_value}
    update_object_labels(resource, new_labels)
    update_selector_labels(resource, new_labels)
    if not is_service_entity(resource):
        update_spec_labels(resource, new_labels)


def get_new_blue_green_object(resource: Resource, label_value: str) -> Resource:
    """Clone labeled with ``label_value``; only the green variant is renamed."""
    new_object = clone(resource)
    if label_value == GREEN_LABEL_VALUE:
        new_object["metadata"]["name"] = get_blue_green_resource_name(get_name(resource), GREEN_SUFFIX)
    add_blue_green_labels_and_annotations(new_object, label_value)
    return new_object


def get_updated_blue_green_service(service: Resource, label_value: str) -> Resource:
    """Same service name, selector pointed at ``label_value`` workloads."""
    new_object = clone(service)
    add_blue_green_labels_and_annotations(new_object, label_value)
    return new_object


def get_service_spec_label(service: Resource) -> Optional[str]:
    selector = (service.get("spec") or {}).get("selector") or {}
    return selector.get(BLUE_GREEN_VERSION_LABEL)


def deploy_with_label(
    kubectl: Kubectl,
    workloads: Iterable[Resource],
    label_value: str,
    force: bool = False,
) -> BlueGreenDeployment:
    """
    Apply a variant of every workload labeled with ``label_value``.

    Args:
        kubectl: Cluster interface
        workloads: Workload documents to derive variants from
        label_value: ``green`` renames to ``<name>-green``; any other value
            keeps the original name
        force: Apply with --force

    Returns:
        BlueGreenDeployment with the apply result and the derived objects
    """
    new_objects = [get_new_blue_green_object(w, label_value) for w in workloads]
    logger.debug("Deploying %d objects with %s=%s", len(new_objects), BLUE_GREEN_VERSION_LABEL, label_value)
    deploy_result = deploy_objects(kubectl, new_objects, force)
    if deploy_result.exec_result is not None:
        check_for_errors([deploy_result.exec_result])
    return BlueGreenDeployment(deploy_result=deploy_result, objects=new_objects)


def validate_services_state(kubectl: Kubectl, services: Iterable[Resource]) -> bool:
    """
    Check that every live routed service already selects green workloads.

    Args:
        kubectl: Cluster interface used to fetch the live services
        services: Routed services from the manifest set

    Returns:
        True only if every service exists and its selector is green; a
        single non-green or missing service makes the whole set fail
    """
    all_green = True
    for service in services:
        existing = fetch_resource(
            kubectl, service["kind"], get_name(service), get_namespace(service)
        )
        is_green = existing is not None and get_service_spec_label(existing) == GREEN_LABEL_VALUE
        if not is_green:
            logger.info("Service %s is not routed to green", get_name(service))
        all_green = all_green and is_green
    return all_green


def delete_objects(kubectl: Kubectl, delete_list: Iterable[DeleteObject]) -> None:
    for target in delete_list:
        try:
            check_for_errors([kubectl.delete([target.kind, target.name])])
        except Exception as e:
            logger.debug("Failed to delete object %s: %s", target.name, e)


def delete_green_objects(kubectl: Kubectl, to_delete: Iterable[Resource]) -> List[DeleteObject]:
    delete_list = [
        DeleteObject(name=get_blue_green_resource_name(get_name(obj), GREEN_SUFFIX), kind=obj["kind"])
        for obj in to_delete
    ]
    logger.debug("Deleting green objects: %s", [d.name for d in delete_list])
    delete_objects(kubectl, delete_list)
    return delete_list


class BlueGreenServiceStrategy:
    """Blue/green where routed services switch selectors between colors."""

    def __init__(self, kubectl: Kubectl, force: bool = False):
        self.kubectl = kubectl
        self.force = force

    def deploy(self, manifest_set: ManifestSet) -> BlueGreenDeployment:
        """Deploy green workloads, unrouted services and other objects, then route to green."""
        green = deploy_with_label(self.kubectl, manifest_set.deployment_entities, GREEN_LABEL_VALUE, self.force)

        others = (
            manifest_set.unrouted_service_entities
            + manifest_set.ingress_entities
            + manifest_set.other_entities
        )
        other_result = deploy_objects(self.kubectl, others, self.force)
        if other_result.exec_result is not None:
            check_for_errors([other_result.exec_result])

        routed = self.route(GREEN_LABEL_VALUE, manifest_set.service_entities)
        green.deploy_result.manifest_files.extend(other_result.manifest_files)
        green.deploy_result.manifest_files.extend(routed.deploy_result.manifest_files)
        return green

    def route(self, label_value: str, services: Iterable[Resource]) -> BlueGreenDeployment:
        updated = [get_updated_blue_green_service(s, label_value) for s in services]
        result = deploy_objects(self.kubectl, updated, self.force)
        if result.exec_result is not None:
            check_for_errors([result.exec_result])
        return BlueGreenDeployment(deploy_result=result, objects=updated)

    def promote(self, manifest_set: ManifestSet) -> BlueGreenDeployment:
        """Redeploy workloads under their original names once services are green."""
        if not validate_services_state(self.kubectl, manifest_set.service_entities):
            raise ServicesNotGreenError()
        return deploy_with_label(self.kubectl, manifest_set.deployment_entities, NONE_LABEL_VALUE, self.force)

    def finish_promote(self, manifest_set: ManifestSet) -> List[DeleteObject]:
        """Route services back to the promoted workloads and drop the green ones."""
        self.route(NONE_LABEL_VALUE, manifest_set.service_entities)
        return delete_green_objects(self.kubectl, manifest_set.deployment_entities)

    def reject(self, manifest_set: ManifestSet) -> BlueGreenRejectResult:
        route_result = self.route(NONE_LABEL_VALUE, manifest_set.service_entities)
        delete_result = delete_green_objects(self.kubectl, manifest_set.deployment_entities)
        return BlueGreenRejectResult(delete_result=delete_result, route_result=route_result)
