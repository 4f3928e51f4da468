"""
Rollout orchestration: deploy, promote and reject.

Flow for every action:
    load manifests -> classify / derive variants -> apply -> check stability

The engine owns the traffic-split API version cache, so one engine instance
discovers the version at most once however many services it rolls out.

Example:
    from rolloutcore.actions import RolloutEngine
    from rolloutcore.config import get_config

    engine = RolloutEngine(get_config(strategy="canary", percentage=20))
    engine.run(["manifests/web.yaml"])
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from rolloutcore.config import RolloutConfig
from rolloutcore.contracts.types import (
    Action,
    DeploymentStrategy,
    RouteStrategy,
    TrafficSplitMethod,
)
from rolloutcore.errors import RolloutStatusError, ValidationError
from rolloutcore.kubectl import ApiVersionCache, Kubectl, check_for_errors
from rolloutcore.logger import RolloutLogger
from rolloutcore.manifests.classifier import classify
from rolloutcore.manifests.io import load_manifests
from rolloutcore.manifests.update import get_resources, update_image_pull_secrets_in_documents
from rolloutcore.models.resources import (
    WORKLOAD_TYPES,
    DeployResult,
    Resource,
    ResourceRef,
)
from rolloutcore.stability import StabilityChecker
from rolloutcore.strategies.blue_green import BlueGreenServiceStrategy
from rolloutcore.strategies.canary import CanaryStrategy
from rolloutcore.strategies.common import deploy_objects
from rolloutcore.strategies.pod_canary import PodCanaryStrategy
from rolloutcore.strategies.smi_canary import SmiCanaryStrategy

logger = logging.getLogger(__name__)

STABILITY_RESOURCE_TYPES = sorted(WORKLOAD_TYPES | {"service"})


class RolloutEngine:
    """Runs one rollout action for a configured strategy."""

    def __init__(
        self,
        config: RolloutConfig,
        kubectl: Optional[Kubectl] = None,
        stability: Optional[StabilityChecker] = None,
        events: Optional[RolloutLogger] = None,
        api_version_cache: Optional[ApiVersionCache] = None,
    ):
        self.config = config
        self.kubectl = kubectl or Kubectl(
            kubectl_path=config.kubectl_path,
            namespace=config.namespace,
            ignore_ssl_errors=config.insecure_skip_tls_verify,
            timeout=config.subprocess_timeout_seconds,
        )
        self.stability = stability or StabilityChecker(
            self.kubectl,
            pod_poll_interval=config.pod_poll_interval_seconds,
            pod_poll_iterations=config.pod_poll_iterations,
            service_poll_interval=config.service_poll_interval_seconds,
            service_poll_iterations=config.service_poll_iterations,
        )
        self.events = events or RolloutLogger(namespace=config.namespace, strategy=config.strategy.value)
        self.api_version_cache = api_version_cache or ApiVersionCache()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self, manifest_paths: Sequence[str]):
        if self.config.action == Action.PROMOTE:
            return self.promote(manifest_paths)
        if self.config.action == Action.REJECT:
            return self.reject(manifest_paths)
        return self.deploy(manifest_paths)

    def deploy(self, manifest_paths: Sequence[str]) -> DeployResult:
        if not manifest_paths:
            raise ValidationError("Manifest files not provided")
        self._validate()
        documents = self.load(manifest_paths)
        self.events.log_deploy_started(
            list(manifest_paths),
            percentage=self.config.percentage,
            replicas=self.config.baseline_and_canary_replicas,
        )

        strategy = self.config.strategy
        if strategy == DeploymentStrategy.CANARY:
            result = self._canary_strategy().deploy(documents)
        elif strategy == DeploymentStrategy.BLUE_GREEN:
            green = self._blue_green_strategy().deploy(classify(documents))
            result = green.deploy_result
        else:
            result = deploy_objects(self.kubectl, [d for d in documents if d], self.config.force)
            if result.exec_result is not None:
                check_for_errors([result.exec_result])

        self.events.log_objects_applied(result.manifest_files)
        self._check_stability(result.manifest_files)
        self._annotate(result.manifest_files)
        return result

    def promote(self, manifest_paths: Sequence[str]):
        self._validate()
        documents = self.load(manifest_paths)
        strategy = self.config.strategy

        if strategy == DeploymentStrategy.CANARY:
            canary = self._canary_strategy()
            result = canary.deploy(documents, only_deploy_stable=True)
            self._check_stability(result.manifest_files)
            if isinstance(canary, SmiCanaryStrategy):
                routed = classify(documents).service_entities
                files = canary.redirect_traffic_to_stable_deployment(routed)
                if files:
                    self.events.log_traffic_split_updated(files, stable_weight=1000, canary_weight=0)
            deleted = canary.cleanup(documents, include_services=self._uses_smi())
            self.events.log_cleanup_completed([d.name for d in deleted])
            self.events.log_promoted(result.manifest_files)
            return result

        if strategy == DeploymentStrategy.BLUE_GREEN:
            manifest_set = classify(documents)
            blue_green = self._blue_green_strategy()
            promoted = blue_green.promote(manifest_set)
            self._check_stability(promoted.deploy_result.manifest_files)
            deleted = blue_green.finish_promote(manifest_set)
            self.events.log_cleanup_completed([d.name for d in deleted])
            self.events.log_promoted(promoted.deploy_result.manifest_files)
            return promoted

        raise ValidationError(f"Promote is not supported for the {strategy.value} strategy")

    def reject(self, manifest_paths: Sequence[str]):
        self._validate()
        documents = self.load(manifest_paths)
        strategy = self.config.strategy

        if strategy == DeploymentStrategy.CANARY:
            canary = self._canary_strategy()
            if isinstance(canary, SmiCanaryStrategy):
                routed = classify(documents).service_entities
                files = canary.redirect_traffic_to_stable_deployment(routed)
                if files:
                    self.events.log_traffic_split_updated(files, stable_weight=1000, canary_weight=0)
            deleted = canary.cleanup(documents, include_services=self._uses_smi())
            self.events.log_rejected([d.name for d in deleted])
            return deleted

        if strategy == DeploymentStrategy.BLUE_GREEN:
            rejected = self._blue_green_strategy().reject(classify(documents))
            self.events.log_rejected([d.name for d in rejected.delete_result])
            return rejected

        raise ValidationError(f"Reject is not supported for the {strategy.value} strategy")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def load(self, manifest_paths: Sequence[str]) -> List[Resource]:
        documents = load_manifests(manifest_paths)
        return update_image_pull_secrets_in_documents(documents, self.config.image_pull_secrets)

    def _validate(self) -> None:
        if (
            self.config.strategy == DeploymentStrategy.BLUE_GREEN
            and self.config.route_method != RouteStrategy.SERVICE
        ):
            raise ValidationError(
                f"Route method '{self.config.route_method.value}' is not supported for blue-green"
            )

    def _uses_smi(self) -> bool:
        return self.config.traffic_split_method == TrafficSplitMethod.SMI

    def _canary_strategy(self) -> CanaryStrategy:
        if self._uses_smi():
            return SmiCanaryStrategy(
                self.kubectl,
                percentage=self.config.percentage,
                baseline_and_canary_replicas=self.config.baseline_and_canary_replicas,
                force=self.config.force,
                annotations=self.config.annotations,
                api_version_cache=self.api_version_cache,
            )
        return PodCanaryStrategy(
            self.kubectl,
            percentage=self.config.percentage,
            baseline_and_canary_replicas=self.config.baseline_and_canary_replicas,
            force=self.config.force,
        )

    def _blue_green_strategy(self) -> BlueGreenServiceStrategy:
        return BlueGreenServiceStrategy(self.kubectl, force=self.config.force)

    def _deployed_resources(self, manifest_files: Sequence[str]) -> List[ResourceRef]:
        namespace = self.config.namespace
        refs = get_resources(load_manifests(manifest_files), STABILITY_RESOURCE_TYPES)
        return [ResourceRef(r.type, r.name, r.namespace or namespace) for r in refs]

    def _check_stability(self, manifest_files: Sequence[str]) -> None:
        try:
            self.stability.check_manifest_stability(self._deployed_resources(manifest_files))
        except RolloutStatusError as e:
            self.events.log_stability_failed(e.failed)
            raise

    def _annotate(self, manifest_files: Sequence[str]) -> None:
        if not self.config.annotations:
            return
        workload_types = sorted(WORKLOAD_TYPES)
        for ref in get_resources(load_manifests(manifest_files), workload_types):
            for key, value in self.config.annotations.items():
                result = self.kubectl.annotate(ref.type, ref.name, f"{key}={value}")
                check_for_errors([result], warn_if_error=True)
