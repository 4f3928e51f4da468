"""
Manifest classification and mutation helpers.

Example:
    from rolloutcore.manifests import classify, load_manifests

    manifest_set = classify(load_manifests(["deploy.yaml"]))
    for workload in manifest_set.deployment_entities:
        ...
"""

from rolloutcore.manifests.classifier import (
    classify,
    get_match_labels,
    get_service_selector,
    is_selector_subset,
    is_service_routed,
)
from rolloutcore.manifests.io import load_manifests, write_objects_to_file
from rolloutcore.manifests.labels import (
    merge_labels,
    update_object_annotations,
    update_object_labels,
    update_selector_labels,
    update_spec_labels,
)

__all__ = [
    "classify",
    "get_match_labels",
    "get_service_selector",
    "is_selector_subset",
    "is_service_routed",
    "load_manifests",
    "write_objects_to_file",
    "merge_labels",
    "update_object_annotations",
    "update_object_labels",
    "update_selector_labels",
    "update_spec_labels",
]
