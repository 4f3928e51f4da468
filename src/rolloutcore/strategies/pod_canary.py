"""Pod-weighted canary: replica counts alone approximate the traffic share."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from rolloutcore.kubectl import check_for_errors
from rolloutcore.models.resources import DeployResult, Resource, is_deployment_entity
from rolloutcore.strategies.canary import CanaryStrategy
from rolloutcore.strategies.common import deploy_objects

logger = logging.getLogger(__name__)


class PodCanaryStrategy(CanaryStrategy):
    """Writes workload variants; every other document is applied unchanged."""

    def deploy(
        self,
        documents: Iterable[Optional[Resource]],
        only_deploy_stable: bool = False,
    ) -> DeployResult:
        """
        Apply canary variants of every workload plus the remaining documents.

        Args:
            documents: Parsed manifest documents; empty documents are skipped
            only_deploy_stable: Write only the stable variant (used by promote)

        Returns:
            DeployResult with the apply outcome and the written manifest files

        Raises:
            ValidationError: If neither percentage nor replica override is usable
            KubectlError: If the apply fails
        """
        self._require_replica_input(only_deploy_stable)

        workloads: List[Resource] = []
        others: List[Resource] = []
        for document in documents:
            if not document:
                continue
            if is_deployment_entity(document):
                workloads.extend(self.derive_workload_variants(document, only_deploy_stable))
            else:
                others.append(document)

        logger.debug("Deploying %d workload variants and %d other objects", len(workloads), len(others))
        result = deploy_objects(self.kubectl, workloads + others, self.force)
        if result.exec_result is not None:
            check_for_errors([result.exec_result])
        return result
