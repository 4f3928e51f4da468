"""Helpers shared by every strategy: probing the cluster and applying objects."""

from __future__ import annotations

import json
import logging
from typing import Iterable, List, Optional

from rolloutcore.kubectl import Kubectl
from rolloutcore.manifests.io import write_objects_to_file
from rolloutcore.manifests.update import unset_cluster_specific_details
from rolloutcore.models.resources import DeployResult, Resource

logger = logging.getLogger(__name__)


def fetch_resource(
    kubectl: Kubectl,
    kind: str,
    name: str,
    namespace: Optional[str] = None,
) -> Optional[Resource]:
    """Fetch a live object, or ``None`` when it does not exist.

    Any failure to get or parse the object counts as absence; this is how
    a first deploy is told apart from a ramp.

    Args:
        kubectl: Cluster interface
        kind: Resource kind, e.g. ``Deployment``
        name: Object name
        namespace: Namespace override

    Returns:
        The object with cluster-assigned fields removed, or None
    """
    try:
        result = kubectl.get_resource(kind, name, namespace)
    except Exception as e:
        logger.debug("Detected error while fetching %s/%s: %s", kind, name, e)
        return None

    if result is None or result.exit_code != 0 or result.stderr or not result.stdout:
        return None

    try:
        resource = json.loads(result.stdout)
    except ValueError as e:
        logger.debug("Could not parse %s/%s as JSON: %s", kind, name, e)
        return None

    unset_cluster_specific_details(resource)
    return resource


def deploy_objects(
    kubectl: Kubectl,
    objects: Iterable[Resource],
    force: bool = False,
) -> DeployResult:
    """Write ``objects`` to manifest files and apply them in one call."""
    manifest_files: List[str] = write_objects_to_file(objects)
    if not manifest_files:
        return DeployResult(exec_result=None, manifest_files=[])
    exec_result = kubectl.apply(manifest_files, force)
    return DeployResult(exec_result=exec_result, manifest_files=manifest_files)
