"""Tests for canary variant derivation and the pod-weighted backend."""

import pytest

from rolloutcore.errors import RolloutError, ValidationError
from rolloutcore.models.resources import ExecResult
from rolloutcore.strategies.canary import (
    calculate_replica_count_for_canary,
    delete_canary_deployment,
    get_baseline_deployment_from_stable_deployment,
    get_new_canary_resource,
    get_stable_resource,
    is_resource_marked_as_stable,
    mark_resource_as_stable,
)
from rolloutcore.strategies.pod_canary import PodCanaryStrategy

from conftest import make_deployment, make_service


def live_stable(name="web", replicas=10):
    stable = get_stable_resource(make_deployment(name, replicas=replicas))
    return stable


class TestReplicaCount:
    def test_twenty_percent_of_ten(self):
        assert calculate_replica_count_for_canary(make_deployment(replicas=10), 20) == 2

    def test_rounds_half_up(self):
        assert calculate_replica_count_for_canary(make_deployment(replicas=5), 50) == 3
        assert calculate_replica_count_for_canary(make_deployment(replicas=3), 50) == 2

    def test_monotonic_in_percentage(self):
        d = make_deployment(replicas=7)
        counts = [calculate_replica_count_for_canary(d, p) for p in range(101)]
        assert counts == sorted(counts)
        assert counts[0] == 0
        assert counts[100] == 7

    def test_out_of_range(self):
        with pytest.raises(ValidationError):
            calculate_replica_count_for_canary(make_deployment(), 101)


class TestVariants:
    def test_canary_variant(self):
        source = make_deployment()
        canary = get_new_canary_resource(source, 2)

        assert canary["metadata"]["name"] == "web-canary"
        assert canary["spec"]["replicas"] == 2
        assert canary["metadata"]["labels"]["workflow/version"] == "canary"
        assert canary["metadata"]["annotations"]["workflow/version"] == "canary"
        assert canary["spec"]["selector"]["matchLabels"]["workflow/version"] == "canary"
        assert canary["spec"]["template"]["metadata"]["labels"]["workflow/version"] == "canary"
        # source untouched
        assert source["metadata"]["name"] == "web"
        assert "workflow/version" not in source["metadata"]["labels"]

    def test_stable_variant_without_replicas_key(self):
        source = make_deployment()
        del source["spec"]["replicas"]
        assert "replicas" not in get_stable_resource(source)["spec"]

    def test_canary_without_replicas_keeps_source_count(self):
        assert get_new_canary_resource(make_deployment(replicas=4))["spec"]["replicas"] == 4

    def test_service_variant_has_no_template(self):
        svc = get_new_canary_resource(make_service())
        assert svc["metadata"]["name"] == "web-canary"
        assert svc["spec"]["selector"] == {"app": "web", "workflow/version": "canary"}
        assert "replicas" not in svc["spec"]

    def test_baseline_from_stable(self):
        baseline = get_baseline_deployment_from_stable_deployment(live_stable(), 2)
        assert baseline["metadata"]["name"] == "web-baseline"
        assert baseline["metadata"]["labels"]["workflow/version"] == "baseline"
        assert baseline["spec"]["selector"]["matchLabels"]["workflow/version"] == "baseline"
        assert baseline["spec"]["replicas"] == 2

    def test_baseline_requires_stable_name(self):
        with pytest.raises(ValueError):
            get_baseline_deployment_from_stable_deployment(make_deployment("web"), 2)

    def test_mark_stable(self):
        d = make_deployment()
        marked = mark_resource_as_stable(d)
        assert is_resource_marked_as_stable(marked)
        assert not is_resource_marked_as_stable(d)
        assert mark_resource_as_stable(marked) is marked


class TestPodCanaryDeploy:
    def test_first_deploy_writes_stable_only(self, kubectl):
        strategy = PodCanaryStrategy(kubectl, percentage=20)
        result = strategy.deploy([make_deployment("web", replicas=10)])

        assert kubectl.applied_names() == ["web-stable"]
        stable = kubectl.applied_object("web-stable")
        assert stable["spec"]["replicas"] == 10
        assert stable["metadata"]["labels"]["workflow/version"] == "stable"
        assert len(result.manifest_files) == 1
        assert ("Deployment", "web-stable") in kubectl.get_calls

    def test_ramp_writes_canary_and_baseline(self, kubectl):
        kubectl.add(live_stable())
        strategy = PodCanaryStrategy(kubectl, percentage=20)
        strategy.deploy([make_deployment("web", replicas=10)])

        assert sorted(kubectl.applied_names()) == ["web-baseline", "web-canary"]
        canary = kubectl.applied_object("web-canary")
        baseline = kubectl.applied_object("web-baseline")
        assert canary["spec"]["replicas"] == 2
        assert baseline["spec"]["replicas"] == 2
        assert canary["spec"]["template"]["spec"]["containers"][0]["image"] == "registry.example/web:v2"
        assert canary["metadata"]["labels"]["workflow/version"] == "canary"
        assert baseline["metadata"]["labels"]["workflow/version"] == "baseline"

    def test_undeclared_replicas_stay_undeclared(self, kubectl):
        source = make_deployment(replicas=10)
        del source["spec"]["replicas"]
        PodCanaryStrategy(kubectl, percentage=20).deploy([source])

        stable = kubectl.applied_object("web-stable")
        assert "replicas" not in stable["spec"]

    def test_ramp_without_declared_replicas(self, kubectl):
        kubectl.add(live_stable())
        source = make_deployment()
        del source["spec"]["replicas"]
        PodCanaryStrategy(kubectl, percentage=20).deploy([source])

        assert "replicas" not in kubectl.applied_object("web-canary")["spec"]

    def test_replica_override(self, kubectl):
        kubectl.add(live_stable())
        PodCanaryStrategy(kubectl, percentage=20, baseline_and_canary_replicas=1).deploy([make_deployment()])
        assert kubectl.applied_object("web-canary")["spec"]["replicas"] == 1

    def test_other_documents_pass_through(self, kubectl):
        config_map = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "web-config"}}
        PodCanaryStrategy(kubectl, percentage=20).deploy([make_deployment(), make_service(), config_map])
        assert kubectl.applied_names() == ["web-stable", "web", "web-config"]

    def test_only_deploy_stable_skips_probe(self, kubectl):
        kubectl.add(live_stable())
        PodCanaryStrategy(kubectl).deploy([make_deployment()], only_deploy_stable=True)
        assert kubectl.applied_names() == ["web-stable"]
        assert kubectl.get_calls == []

    def test_invalid_percentage_raised_before_apply(self, kubectl):
        with pytest.raises(ValidationError):
            PodCanaryStrategy(kubectl, percentage=150)
        with pytest.raises(ValidationError):
            PodCanaryStrategy(kubectl).deploy([make_deployment()])
        assert kubectl.apply_calls == []

    def test_apply_failure_raises(self, kubectl):
        kubectl.apply_result = ExecResult(1, "", "admission webhook denied")
        with pytest.raises(RolloutError):
            PodCanaryStrategy(kubectl, percentage=20).deploy([make_deployment()])


class TestCleanup:
    def test_deletes_canary_and_baseline(self, kubectl):
        deleted = delete_canary_deployment(kubectl, [make_deployment(), make_service()], include_services=False)
        assert [(d.kind, d.name) for d in deleted] == [
            ("Deployment", "web-canary"),
            ("Deployment", "web-baseline"),
        ]
        assert kubectl.deleted == [("Deployment", "web-canary"), ("Deployment", "web-baseline")]

    def test_include_services(self, kubectl):
        deleted = delete_canary_deployment(kubectl, [make_deployment(), make_service()], include_services=True)
        assert len(deleted) == 4

    def test_failures_are_swallowed(self, kubectl):
        kubectl.delete_result = ExecResult(1, "", "NotFound")
        deleted = delete_canary_deployment(kubectl, [make_deployment()], include_services=False)
        assert len(deleted) == 2

    def test_empty_documents_raise(self, kubectl):
        with pytest.raises(RolloutError):
            delete_canary_deployment(kubectl, [None], include_services=False)
