"""
Stability monitor: decides whether applied resources converged.

Resources are checked one at a time. Rollout-status failures (and pods
ending in ``Failed``) are collected and raised once, as a single
:class:`RolloutStatusError`, after every resource has been checked. Pod and
load-balancer polls are bounded by iteration caps.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Callable, Iterable, List, Optional

from rolloutcore.contracts.timeouts import (
    POD_POLL_INTERVAL_S,
    POD_POLL_ITERATIONS,
    SERVICE_POLL_INTERVAL_S,
    SERVICE_POLL_ITERATIONS,
)
from rolloutcore.errors import RolloutStatusError
from rolloutcore.kubectl import Kubectl, check_for_errors
from rolloutcore.models.resources import ResourceRef, ServiceType, supports_rollout_status

logger = logging.getLogger(__name__)

PENDING_PHASES = ("Pending", "Unknown")


class PodOutcome:
    SUCCEEDED = "succeeded"
    NOT_READY = "not_ready"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    UNKNOWN = "unknown"


def is_pod_ready(pod_status: dict) -> bool:
    """Every container must report ready; no container statuses means not ready."""
    statuses = pod_status.get("containerStatuses")
    if not statuses:
        logger.warning("No container statuses reported")
        return False
    all_ready = True
    for container in statuses:
        if not container.get("ready"):
            logger.info("'%s' status: %s", container.get("name"), json.dumps(container.get("state")))
            all_ready = False
    if not all_ready:
        logger.warning("All containers not in ready state")
    return all_ready


def is_load_balancer_ip_assigned(status: Optional[dict]) -> bool:
    ingress = ((status or {}).get("loadBalancer") or {}).get("ingress")
    return bool(ingress)


class StabilityChecker:
    """Polls the cluster until resources are stable or the caps are reached."""

    def __init__(
        self,
        kubectl: Kubectl,
        pod_poll_interval: float = POD_POLL_INTERVAL_S,
        pod_poll_iterations: int = POD_POLL_ITERATIONS,
        service_poll_interval: float = SERVICE_POLL_INTERVAL_S,
        service_poll_iterations: int = SERVICE_POLL_ITERATIONS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.kubectl = kubectl
        self.pod_poll_interval = pod_poll_interval
        self.pod_poll_iterations = pod_poll_iterations
        self.service_poll_interval = service_poll_interval
        self.service_poll_iterations = service_poll_iterations
        self._sleep = sleep

    def check_manifest_stability(self, resources: Iterable[ResourceRef]) -> None:
        """
        Check every resource in turn and fail once at the end.

        Rollout-status kinds run ``kubectl rollout status``; bare pods are
        polled for phase and readiness; LoadBalancer services are polled for
        an external IP. Diagnostics are described as they are found.

        Args:
            resources: Resources applied by the current action

        Raises:
            RolloutStatusError: Listing every resource whose rollout status
                failed or whose pod ended in ``Failed``
        """
        failed: List[str] = []
        for resource in resources:
            kind = resource.type.lower()

            if supports_rollout_status(kind):
                try:
                    result = self.kubectl.rollout_status(resource.namespace, resource.type, resource.name)
                    check_for_errors([result])
                except Exception as e:
                    logger.error("Rollout of %s/%s failed: %s", resource.type, resource.name, e)
                    self._describe(resource)
                    failed.append(f"{resource.type}/{resource.name}")

            if kind == "pod":
                try:
                    if self.check_pod_status(resource.namespace, resource.name) == PodOutcome.FAILED:
                        failed.append(f"{resource.type}/{resource.name}")
                except Exception as e:
                    logger.warning("Could not determine pod status: %s", e)
                    self._describe(resource)

            if kind == "service":
                try:
                    self._check_service(resource)
                except Exception as e:
                    logger.warning("Could not determine service status of %s: %s", resource.name, e)
                    self._describe(resource)

        if failed:
            raise RolloutStatusError(failed)

    def check_pod_status(self, namespace: Optional[str], pod_name: str) -> str:
        """
        Poll a bare pod until it leaves Pending/Unknown, then classify it.

        At most ``pod_poll_iterations`` polls are made, each preceded by a
        sleep of ``pod_poll_interval`` seconds.

        Args:
            namespace: Pod namespace, or None for the kubectl default
            pod_name: Name of the pod

        Returns:
            One of the :class:`PodOutcome` values
        """
        for _ in range(self.pod_poll_iterations):
            self._sleep(self.pod_poll_interval)
            logger.debug("Polling for pod status: %s", pod_name)
            status = self._get_pod_status(namespace, pod_name)
            if status and status.get("phase") not in PENDING_PHASES:
                break

        status = self._get_pod_status(namespace, pod_name) or {}
        phase = status.get("phase")
        describe_needed = False

        if phase in ("Succeeded", "Running"):
            if is_pod_ready(status):
                logger.info("pod/%s is successfully rolled out", pod_name)
                outcome = PodOutcome.SUCCEEDED
            else:
                outcome = PodOutcome.NOT_READY
                describe_needed = True
        elif phase == "Pending":
            logger.warning("pod/%s rollout status check timed out", pod_name)
            outcome = PodOutcome.TIMED_OUT
            describe_needed = True
        elif phase == "Failed":
            logger.error("pod/%s rollout failed", pod_name)
            outcome = PodOutcome.FAILED
            describe_needed = True
        else:
            logger.warning("pod/%s rollout status: %s", pod_name, phase)
            outcome = PodOutcome.UNKNOWN

        if describe_needed:
            self.kubectl.describe(namespace, "pod", pod_name)
        return outcome

    def wait_for_service_external_ip(self, service: ResourceRef) -> bool:
        """Wait for a LoadBalancer IP; a timeout is logged, never raised."""
        for _ in range(self.service_poll_iterations):
            logger.info("Wait for service ip assignment: %s", service.name)
            self._sleep(self.service_poll_interval)
            status = self._get_service(service).get("status")
            if is_load_balancer_ip_assigned(status):
                logger.info("ServiceExternalIP %s %s", service.name, status["loadBalancer"]["ingress"][0].get("ip"))
                return True
        logger.warning("Wait for service ip assignment timed out %s", service.name)
        return False

    def _check_service(self, service: ResourceRef) -> None:
        live = self._get_service(service)
        if (live.get("spec") or {}).get("type") != ServiceType.LOAD_BALANCER.value:
            return
        status = live.get("status")
        if is_load_balancer_ip_assigned(status):
            logger.info("ServiceExternalIP %s %s", service.name, status["loadBalancer"]["ingress"][0].get("ip"))
        else:
            self.wait_for_service_external_ip(service)

    def _get_pod_status(self, namespace: Optional[str], pod_name: str) -> Optional[dict]:
        result = self.kubectl.get_resource("pod", pod_name, namespace)
        check_for_errors([result])
        return json.loads(result.stdout).get("status")

    def _get_service(self, service: ResourceRef) -> dict:
        result = self.kubectl.get_resource("service", service.name, service.namespace)
        check_for_errors([result])
        return json.loads(result.stdout)

    def _describe(self, resource: ResourceRef) -> None:
        try:
            self.kubectl.describe(resource.namespace, resource.type, resource.name)
        except Exception as e:
            logger.debug("Describe of %s/%s failed: %s", resource.type, resource.name, e)


def check_manifest_stability(kubectl: Kubectl, resources: Iterable[ResourceRef], **kwargs) -> None:
    StabilityChecker(kubectl, **kwargs).check_manifest_stability(resources)
