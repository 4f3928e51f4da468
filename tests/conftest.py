"""
Pytest configuration and fixtures for rolloutcore tests.
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional, Tuple

import pytest

from rolloutcore.config import reset_config
from rolloutcore.kubectl import Kubectl
from rolloutcore.manifests.io import load_manifests
from rolloutcore.models.resources import ExecResult


# ============================================================================
# Fake cluster
# ============================================================================


class FakeKubectl(Kubectl):
    """In-memory stand-in for kubectl that records every call."""

    def __init__(self, api_versions: str = "apps/v1\nsplit.smi-spec.io/v1alpha3\nv1\n"):
        super().__init__(namespace="default")
        self.objects: Dict[Tuple[str, str], dict] = {}
        self.api_versions = api_versions
        self.apply_calls: List[Tuple[List[str], bool]] = []
        self.applied: List[dict] = []
        self.deleted: List[Tuple[str, ...]] = []
        self.described: List[Tuple[str, str]] = []
        self.annotated: List[Tuple[str, str, str]] = []
        self.get_calls: List[Tuple[str, str]] = []
        self.api_version_calls = 0
        self.apply_result = ExecResult(0, "configured")
        self.delete_result = ExecResult(0, "deleted")
        self.rollout_results: Dict[str, ExecResult] = {}

    def add(self, obj: dict) -> None:
        self.objects[(obj["kind"].lower(), obj["metadata"]["name"])] = obj

    def applied_names(self) -> List[str]:
        return [o["metadata"]["name"] for o in self.applied]

    def applied_object(self, name: str, kind: Optional[str] = None) -> dict:
        for obj in self.applied:
            if obj["metadata"]["name"] == name and (kind is None or obj["kind"] == kind):
                return obj
        raise KeyError(name)

    def apply(self, config_paths, force=False):
        paths = [config_paths] if isinstance(config_paths, str) else list(config_paths)
        self.apply_calls.append((paths, force))
        self.applied.extend(d for d in load_manifests(paths) if d)
        return self.apply_result

    def get_resource(self, resource_type, name, namespace=None, silent=True):
        self.get_calls.append((resource_type, name))
        obj = self.objects.get((resource_type.lower(), name))
        if obj is None:
            return ExecResult(1, "", f'Error from server (NotFound): {resource_type} "{name}" not found')
        return ExecResult(0, json.dumps(obj))

    def delete(self, args):
        self.deleted.append(tuple(args))
        return self.delete_result

    def describe(self, namespace, resource_type, resource_name, silent=False):
        self.described.append((resource_type, resource_name))
        return ExecResult(0, "described")

    def rollout_status(self, namespace, resource_type, name):
        return self.rollout_results.get(name, ExecResult(0, "successfully rolled out"))

    def annotate(self, resource_type, name, annotation):
        self.annotated.append((resource_type, name, annotation))
        return ExecResult(0)

    def execute(self, args, silent=False, namespaced=True):
        if list(args) == ["api-versions"]:
            self.api_version_calls += 1
            return ExecResult(0, self.api_versions)
        return ExecResult(0)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def manifest_temp_dir(tmp_path, monkeypatch):
    """Write derived manifests into the test's tmp dir."""
    out = tmp_path / "manifests"
    out.mkdir()
    monkeypatch.setenv("ROLLOUTCORE_TEMP_DIR", str(out))
    return out


@pytest.fixture(autouse=True)
def clean_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def kubectl() -> FakeKubectl:
    return FakeKubectl()


# ============================================================================
# Manifest Fixtures
# ============================================================================


def make_deployment(name: str = "web", replicas: int = 10, labels: Optional[dict] = None) -> dict:
    labels = labels or {"app": name}
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "labels": dict(labels)},
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {"containers": [{"name": name, "image": f"registry.example/{name}:v2"}]},
            },
        },
    }


def make_service(name: str = "web", selector: Optional[dict] = None, service_type: str = "ClusterIP") -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name, "labels": {"app": name}},
        "spec": {
            "type": service_type,
            "selector": dict(selector if selector is not None else {"app": name}),
            "ports": [{"port": 80, "targetPort": 8080}],
        },
    }


def make_pod(name: str = "job-runner", labels: Optional[dict] = None) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "labels": dict(labels or {"app": name})},
        "spec": {"containers": [{"name": name, "image": f"registry.example/{name}:v1"}]},
    }


@pytest.fixture
def deployment() -> dict:
    return make_deployment()


@pytest.fixture
def service() -> dict:
    return make_service()
