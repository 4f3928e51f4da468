"""
Cluster Control Interface backed by the kubectl binary.

Every call is synchronous: one kubectl process runs to completion before
the next is issued. Namespace-scoped calls append ``--namespace`` when a
namespace is known.

Example:
    kubectl = Kubectl(namespace="shop")
    result = kubectl.apply(["/tmp/Deployment_web-canary_1"], force=False)
    check_for_errors([result])
"""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import Callable, Iterable, List, Optional, Sequence, Union

from rolloutcore.contracts.timeouts import SUBPROCESS_DEFAULT_TIMEOUT_S
from rolloutcore.errors import KubectlError, RolloutError
from rolloutcore.models.resources import ExecResult

logger = logging.getLogger(__name__)

TRAFFIC_SPLIT_API_GROUP = "split.smi-spec.io"


class Kubectl:
    """Thin wrapper around ``kubectl`` returning :class:`ExecResult` values."""

    def __init__(
        self,
        kubectl_path: str = "kubectl",
        namespace: Optional[str] = None,
        ignore_ssl_errors: bool = False,
        timeout: float = SUBPROCESS_DEFAULT_TIMEOUT_S,
    ):
        self.kubectl_path = kubectl_path
        self.namespace = namespace
        self.ignore_ssl_errors = ignore_ssl_errors
        self.timeout = timeout

    def apply(self, config_paths: Union[str, Sequence[str]], force: bool = False) -> ExecResult:
        if isinstance(config_paths, str):
            config_paths = [config_paths]
        args = ["apply", "-f", ",".join(config_paths)]
        if force:
            args.append("--force")
        return self._execute(args + self._namespace_args())

    def describe(
        self,
        namespace: Optional[str],
        resource_type: str,
        resource_name: str,
        silent: bool = False,
    ) -> ExecResult:
        args = ["describe"]
        if namespace:
            args += ["--namespace", namespace]
        args += [resource_type, resource_name]
        return self._execute(args, silent=silent)

    def get_resource(
        self,
        resource_type: str,
        name: str,
        namespace: Optional[str] = None,
        silent: bool = True,
    ) -> ExecResult:
        args = ["get", f"{resource_type}/{name}", "-o", "json"]
        return self._execute(args + self._namespace_args(namespace), silent=silent)

    def get_all_pods(self) -> ExecResult:
        return self._execute(["get", "pods", "-o", "json"] + self._namespace_args(), silent=True)

    def rollout_status(
        self,
        namespace: Optional[str],
        resource_type: str,
        name: str,
    ) -> ExecResult:
        args = ["rollout", "status", f"{resource_type}/{name}"]
        return self._execute(args + self._namespace_args(namespace))

    def delete(self, args: Union[str, Sequence[str]]) -> ExecResult:
        if isinstance(args, str):
            args = [args]
        return self._execute(["delete", *args] + self._namespace_args())

    def annotate(self, resource_type: str, name: str, annotation: str) -> ExecResult:
        args = ["annotate", resource_type, name, annotation, "--overwrite"]
        return self._execute(args + self._namespace_args())

    def annotate_files(self, files: Union[str, Sequence[str]], annotation: str) -> ExecResult:
        if not isinstance(files, str):
            files = ",".join(files)
        args = ["annotate", "-f", files, annotation, "--overwrite"]
        return self._execute(args + self._namespace_args())

    def label_files(self, files: Union[str, Sequence[str]], labels: Sequence[str]) -> ExecResult:
        if not isinstance(files, str):
            files = ",".join(files)
        args = ["label", "-f", files, *labels, "--overwrite"]
        return self._execute(args + self._namespace_args())

    def execute(self, args: Sequence[str], silent: bool = False, namespaced: bool = True) -> ExecResult:
        extra = self._namespace_args() if namespaced else []
        return self._execute(list(args) + extra, silent=silent)

    def _namespace_args(self, namespace: Optional[str] = None) -> List[str]:
        namespace = namespace or self.namespace
        return ["--namespace", namespace] if namespace else []

    def _execute(self, args: List[str], silent: bool = False) -> ExecResult:
        if self.ignore_ssl_errors:
            args = args + ["--insecure-skip-tls-verify"]
        cmd = [self.kubectl_path] + args
        logger.debug("Running: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise KubectlError(cmd, 127, stderr=str(e), context="kubectl not found in PATH") from e
        except subprocess.TimeoutExpired:
            logger.warning("kubectl timed out after %ss: %s", self.timeout, " ".join(cmd))
            return ExecResult(exit_code=-1, stderr=f"Timed out after {self.timeout}s")

        result = ExecResult(exit_code=proc.returncode, stdout=proc.stdout or "", stderr=proc.stderr or "")
        if not silent and result.stdout:
            logger.info(result.stdout.rstrip())
        return result


def check_for_errors(results: Iterable[Optional[ExecResult]], warn_if_error: bool = False) -> None:
    """Raise on any non-zero exit; stderr from successful runs is only logged."""
    failures = []
    for result in results:
        if result is None or result.exit_code != 0:
            failures.append(result)
        elif result.stderr:
            logger.warning(result.stderr.strip())

    if not failures:
        return

    stderr = "\n".join((r.stderr if r else "no result").strip() for r in failures)
    if warn_if_error:
        logger.warning(stderr)
        return
    first = failures[0]
    raise KubectlError(
        ["kubectl"],
        first.exit_code if first else -1,
        stdout=first.stdout if first else "",
        stderr=stderr,
    )


class ApiVersionCache:
    """Write-once cache for a discovered API version.

    The loader runs at most once per instance; later readers get the stored
    value. Guarded by a lock so concurrent first reads still load once.
    """

    def __init__(self) -> None:
        self._value: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def value(self) -> Optional[str]:
        return self._value

    def get_or_load(self, loader: Callable[[], str]) -> str:
        if self._value is not None:
            return self._value
        with self._lock:
            if self._value is None:
                self._value = loader()
            return self._value


def get_traffic_split_api_version(kubectl: Kubectl) -> str:
    """First ``split.smi-spec.io/*`` entry reported by ``kubectl api-versions``."""
    result = kubectl.execute(["api-versions"], silent=True, namespaced=False)
    check_for_errors([result])
    for line in result.stdout.splitlines():
        version = line.strip()
        if version.startswith(TRAFFIC_SPLIT_API_GROUP):
            return version
    raise RolloutError("Unable to find traffic split api version")
