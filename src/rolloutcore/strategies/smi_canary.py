"""
SMI canary: traffic is apportioned by a TrafficSplit object.

Weights are permille (0-1000). For a ramp at ``percentage`` p the stable
service gets ``1000 - 10p`` and baseline and canary split ``10p`` evenly,
so the three weights always sum to 1000.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Iterable, List, Mapping, Optional

from rolloutcore.errors import ValidationError
from rolloutcore.kubectl import (
    ApiVersionCache,
    Kubectl,
    check_for_errors,
    get_traffic_split_api_version,
)
from rolloutcore.manifests.classifier import classify
from rolloutcore.manifests.io import write_manifest_to_file, write_objects_to_file
from rolloutcore.models.resources import (
    TRAFFIC_SPLIT_SUFFIX,
    DeployResult,
    Resource,
    TrafficSplit,
    get_name,
    get_namespace,
    is_service_entity,
    with_suffix,
)
from rolloutcore.strategies.canary import (
    CanaryStrategy,
    get_baseline_resource_name,
    get_canary_resource_name,
    get_new_baseline_resource,
    get_new_canary_resource,
    get_stable_resource,
    get_stable_resource_name,
    validate_percentage,
)
from rolloutcore.strategies.common import deploy_objects, fetch_resource

logger = logging.getLogger(__name__)

TRAFFIC_SPLIT_KIND = "TrafficSplit"
MAX_WEIGHT = 1000


def get_traffic_split_resource_name(name: str) -> str:
    return with_suffix(name, TRAFFIC_SPLIT_SUFFIX)


def compute_traffic_split_weights(percentage: int) -> Dict[str, int]:
    """Stable/baseline/canary weights for a ramp at ``percentage``."""
    validate_percentage(percentage)
    scaled = percentage * 10
    baseline_and_canary = scaled // 2
    return {
        "stable": MAX_WEIGHT - scaled,
        "baseline": baseline_and_canary,
        "canary": baseline_and_canary,
    }


def _is_full_weight(weight) -> bool:
    return weight == MAX_WEIGHT or str(weight) in ("1000", "1000m")


def is_traffic_split_converged(traffic_split: Optional[Resource], service_name: str) -> bool:
    """True when the live split already sends everything to the canary service."""
    if not traffic_split:
        return False
    canary_name = get_canary_resource_name(service_name)
    backends = (traffic_split.get("spec") or {}).get("backends") or []
    return any(
        backend.get("service") == canary_name and _is_full_weight(backend.get("weight"))
        for backend in backends
    )


class SmiCanaryStrategy(CanaryStrategy):
    """Canary with stable/baseline/canary services behind a TrafficSplit."""

    def __init__(
        self,
        kubectl: Kubectl,
        percentage: Optional[int] = None,
        baseline_and_canary_replicas: Optional[int] = None,
        force: bool = False,
        annotations: Optional[Mapping[str, str]] = None,
        api_version_cache: Optional[ApiVersionCache] = None,
    ):
        super().__init__(kubectl, percentage, baseline_and_canary_replicas, force)
        self.annotations = dict(annotations or {})
        self.api_version_cache = api_version_cache or ApiVersionCache()

    def deploy(
        self,
        documents: Iterable[Optional[Resource]],
        only_deploy_stable: bool = False,
    ) -> DeployResult:
        """
        Apply workload variants, then service variants and TrafficSplits.

        Args:
            documents: Parsed manifest documents
            only_deploy_stable: Write stable workloads and services only,
                leaving every TrafficSplit untouched

        Returns:
            DeployResult whose manifest_files cover workloads, services and
            TrafficSplits written in this call
        """
        self._require_replica_input(only_deploy_stable)
        manifest_set = classify(documents)
        if manifest_set.service_entities and not only_deploy_stable:
            validate_percentage(self.percentage)

        workloads: List[Resource] = []
        for workload in manifest_set.deployment_entities:
            workloads.extend(self.derive_workload_variants(workload, only_deploy_stable))

        others = (
            manifest_set.unrouted_service_entities
            + manifest_set.ingress_entities
            + manifest_set.other_entities
        )
        result = deploy_objects(self.kubectl, workloads + others, self.force)
        if result.exec_result is not None:
            check_for_errors([result.exec_result])

        if only_deploy_stable:
            stable_services = [get_stable_resource(s) for s in manifest_set.service_entities]
            stable_result = deploy_objects(self.kubectl, stable_services, self.force)
            if stable_result.exec_result is not None:
                check_for_errors([stable_result.exec_result])
            result.manifest_files.extend(stable_result.manifest_files)
        else:
            result.manifest_files.extend(self.create_canary_services(manifest_set.service_entities))
        return result

    def create_canary_services(self, services: Iterable[Resource]) -> List[str]:
        """
        Write service variants and converge each service's TrafficSplit.

        A service without a stable counterpart gets canary, baseline and
        stable variants plus a split at 0/0/1000. Otherwise the live split
        is left alone when it already routes everything to canary, and
        re-weighted for the configured percentage when it does not.

        Args:
            services: Routed services from the classified manifest set

        Returns:
            Paths of every manifest file applied
        """
        service_objects: List[Resource] = []
        traffic_split_files: List[str] = []

        for service in services:
            name = get_name(service)
            namespace = get_namespace(service)
            logger.debug("Creating services for %s %s", service["kind"], name)
            service_objects.append(get_new_canary_resource(service))
            service_objects.append(get_new_baseline_resource(service))

            stable = fetch_resource(self.kubectl, service["kind"], get_stable_resource_name(name), namespace)
            if stable is None:
                service_objects.append(get_stable_resource(service))
                logger.debug("Creating the traffic object for service %s", name)
                traffic_split_files.append(self.create_traffic_split_manifest_file(name, 0, 0, MAX_WEIGHT))
                continue

            traffic_split = fetch_resource(
                self.kubectl, TRAFFIC_SPLIT_KIND, get_traffic_split_resource_name(name), namespace
            )
            if is_traffic_split_converged(traffic_split, name):
                logger.debug("Traffic split for %s already routes to canary, no update required", name)
                continue

            logger.debug("Stable service present, updating the traffic object for service %s", name)
            traffic_split_files.append(self.update_traffic_split_object(name))

        manifest_files = []
        if service_objects:
            manifest_files = write_objects_to_file(service_objects)
        manifest_files.extend(traffic_split_files)
        if manifest_files:
            check_for_errors([self.kubectl.apply(manifest_files, self.force)])
        return manifest_files

    def update_traffic_split_object(self, service_name: str) -> str:
        weights = compute_traffic_split_weights(validate_percentage(self.percentage))
        logger.debug(
            "Creating the traffic object with canary weight %d, baseline weight %d, stable weight %d",
            weights["canary"],
            weights["baseline"],
            weights["stable"],
        )
        return self.create_traffic_split_manifest_file(
            service_name, weights["stable"], weights["baseline"], weights["canary"]
        )

    def redirect_traffic_to_canary_deployment(self, documents: Iterable[Optional[Resource]]) -> Optional[List[str]]:
        return self.adjust_traffic(documents, 0, MAX_WEIGHT)

    def redirect_traffic_to_stable_deployment(self, documents: Iterable[Optional[Resource]]) -> Optional[List[str]]:
        return self.adjust_traffic(documents, MAX_WEIGHT, 0)

    def adjust_traffic(
        self,
        documents: Iterable[Optional[Resource]],
        stable_weight: int,
        canary_weight: int,
    ) -> Optional[List[str]]:
        """
        Rewrite the TrafficSplit of every service with fixed weights.

        Args:
            documents: Manifest documents; only services are considered
            stable_weight: Permille weight for the stable backend
            canary_weight: Permille weight for the canary backend; baseline
                always gets 0

        Returns:
            Written TrafficSplit files, or None when there were no services
        """
        manifest_files = [
            self.create_traffic_split_manifest_file(get_name(document), stable_weight, 0, canary_weight)
            for document in documents
            if document and is_service_entity(document)
        ]
        if not manifest_files:
            return None
        check_for_errors([self.kubectl.apply(manifest_files, self.force)])
        return manifest_files

    def get_traffic_split_object(
        self,
        service_name: str,
        stable_weight: int,
        baseline_weight: int,
        canary_weight: int,
    ) -> TrafficSplit:
        total = stable_weight + baseline_weight + canary_weight
        if total != MAX_WEIGHT:
            raise ValidationError(f"Traffic split weights for {service_name} sum to {total}, expected {MAX_WEIGHT}")

        api_version = self.api_version_cache.get_or_load(lambda: get_traffic_split_api_version(self.kubectl))
        return TrafficSplit.model_validate({
            "apiVersion": api_version,
            "kind": TRAFFIC_SPLIT_KIND,
            "metadata": {
                "name": get_traffic_split_resource_name(service_name),
                "annotations": self.annotations,
            },
            "spec": {
                "service": service_name,
                "backends": [
                    {"service": get_stable_resource_name(service_name), "weight": stable_weight},
                    {"service": get_baseline_resource_name(service_name), "weight": baseline_weight},
                    {"service": get_canary_resource_name(service_name), "weight": canary_weight},
                ],
            },
        })

    def create_traffic_split_manifest_file(
        self,
        service_name: str,
        stable_weight: int,
        baseline_weight: int,
        canary_weight: int,
    ) -> str:
        traffic_split = self.get_traffic_split_object(service_name, stable_weight, baseline_weight, canary_weight)
        return write_manifest_to_file(
            json.dumps(traffic_split.to_manifest()), TRAFFIC_SPLIT_KIND, service_name
        )
