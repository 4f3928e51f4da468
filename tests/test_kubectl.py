"""Tests for the kubectl wrapper."""

import subprocess
import threading
from unittest.mock import MagicMock, patch

import pytest

from rolloutcore.errors import KubectlError, RolloutError
from rolloutcore.kubectl import (
    ApiVersionCache,
    Kubectl,
    check_for_errors,
    get_traffic_split_api_version,
)
from rolloutcore.models.resources import ExecResult


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestCommandLines:
    @patch("rolloutcore.kubectl.subprocess.run")
    def test_apply_joins_files_and_adds_namespace(self, mock_run):
        mock_run.return_value = completed(stdout="deployment.apps/web configured")
        result = Kubectl(namespace="shop").apply(["/tmp/a", "/tmp/b"], force=True)

        assert result.ok
        cmd = mock_run.call_args[0][0]
        assert cmd == ["kubectl", "apply", "-f", "/tmp/a,/tmp/b", "--force", "--namespace", "shop"]

    @patch("rolloutcore.kubectl.subprocess.run")
    def test_get_resource_requests_json(self, mock_run):
        mock_run.return_value = completed(stdout="{}")
        Kubectl(namespace="shop").get_resource("Deployment", "web-stable")
        cmd = mock_run.call_args[0][0]
        assert cmd == ["kubectl", "get", "Deployment/web-stable", "-o", "json", "--namespace", "shop"]

    @patch("rolloutcore.kubectl.subprocess.run")
    def test_no_namespace_flag_when_unset(self, mock_run):
        mock_run.return_value = completed()
        Kubectl().delete(["Deployment/web-canary"])
        assert mock_run.call_args[0][0] == ["kubectl", "delete", "Deployment/web-canary"]

    @patch("rolloutcore.kubectl.subprocess.run")
    def test_insecure_flag(self, mock_run):
        mock_run.return_value = completed()
        Kubectl(ignore_ssl_errors=True).rollout_status(None, "deployment", "web")
        cmd = mock_run.call_args[0][0]
        assert cmd[-1] == "--insecure-skip-tls-verify"
        assert cmd[1:4] == ["rollout", "status", "deployment/web"]

    @patch("rolloutcore.kubectl.subprocess.run")
    def test_annotate_overwrites(self, mock_run):
        mock_run.return_value = completed()
        Kubectl().annotate("deployment", "web", "rollout/run=42")
        assert mock_run.call_args[0][0] == [
            "kubectl", "annotate", "deployment", "web", "rollout/run=42", "--overwrite",
        ]

    @patch("rolloutcore.kubectl.subprocess.run")
    def test_file_annotate_and_label(self, mock_run):
        mock_run.return_value = completed()
        kubectl = Kubectl(namespace="shop")

        kubectl.annotate_files(["/tmp/a", "/tmp/b"], "rollout/run=42")
        assert mock_run.call_args[0][0] == [
            "kubectl", "annotate", "-f", "/tmp/a,/tmp/b", "rollout/run=42", "--overwrite", "--namespace", "shop",
        ]

        kubectl.label_files("/tmp/a", ["team=payments", "tier=web"])
        assert mock_run.call_args[0][0] == [
            "kubectl", "label", "-f", "/tmp/a", "team=payments", "tier=web", "--overwrite", "--namespace", "shop",
        ]

    @patch("rolloutcore.kubectl.subprocess.run")
    def test_api_versions_not_namespaced(self, mock_run):
        mock_run.return_value = completed(stdout="v1\n")
        Kubectl(namespace="shop").execute(["api-versions"], silent=True, namespaced=False)
        assert mock_run.call_args[0][0] == ["kubectl", "api-versions"]

    @patch("rolloutcore.kubectl.subprocess.run")
    def test_missing_binary_raises(self, mock_run):
        mock_run.side_effect = FileNotFoundError("kubectl")
        with pytest.raises(KubectlError) as exc_info:
            Kubectl().get_all_pods()
        assert exc_info.value.returncode == 127

    @patch("rolloutcore.kubectl.subprocess.run")
    def test_timeout_returns_failed_result(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="kubectl", timeout=1)
        result = Kubectl(timeout=1).get_all_pods()
        assert result.exit_code == -1
        assert not result.ok


class TestCheckForErrors:
    def test_all_ok(self):
        check_for_errors([ExecResult(0, "ok"), ExecResult(0, "ok", "warning: deprecated")])

    def test_non_zero_raises(self):
        with pytest.raises(KubectlError) as exc_info:
            check_for_errors([ExecResult(0), ExecResult(1, "", "forbidden")])
        assert "forbidden" in str(exc_info.value)

    def test_none_result_raises(self):
        with pytest.raises(KubectlError):
            check_for_errors([None])

    def test_warn_only(self):
        check_for_errors([ExecResult(1, "", "forbidden")], warn_if_error=True)


class TestApiVersion:
    def test_first_matching_version(self):
        kubectl = MagicMock()
        kubectl.execute.return_value = ExecResult(
            0, "apps/v1\nsplit.smi-spec.io/v1alpha2\nsplit.smi-spec.io/v1alpha3\n"
        )
        assert get_traffic_split_api_version(kubectl) == "split.smi-spec.io/v1alpha2"
        kubectl.execute.assert_called_once_with(["api-versions"], silent=True, namespaced=False)

    def test_missing_version_raises(self):
        kubectl = MagicMock()
        kubectl.execute.return_value = ExecResult(0, "apps/v1\nv1\n")
        with pytest.raises(RolloutError):
            get_traffic_split_api_version(kubectl)

    def test_cache_loads_once(self):
        cache = ApiVersionCache()
        loader = MagicMock(return_value="split.smi-spec.io/v1alpha3")
        assert cache.value is None
        assert cache.get_or_load(loader) == "split.smi-spec.io/v1alpha3"
        assert cache.get_or_load(loader) == "split.smi-spec.io/v1alpha3"
        assert loader.call_count == 1

    def test_cache_concurrent_first_reads(self):
        cache = ApiVersionCache()
        loader = MagicMock(return_value="split.smi-spec.io/v1alpha3")
        threads = [threading.Thread(target=cache.get_or_load, args=(loader,)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert loader.call_count == 1
        assert cache.value == "split.smi-spec.io/v1alpha3"
