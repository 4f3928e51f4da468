"""
Error taxonomy for rollout operations.

Malformed input and cluster command failures are raised; expected absence
of a cluster object (first deploy, missing traffic split) is returned as
``None`` by the fetch helpers and never raised.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class RolloutError(Exception):
    """Base class for all rollout failures."""


class MalformedResourceError(RolloutError):
    """A manifest document is missing a required field."""


class NullInputObjectError(MalformedResourceError):
    def __init__(self, message: str = "Null inputObject"):
        super().__init__(message)


class ResourceKindNotDefinedError(MalformedResourceError):
    def __init__(self, message: str = "Resource kind not defined"):
        super().__init__(message)


class InputObjectKindNotDefinedError(MalformedResourceError):
    def __init__(self, message: str = "Input object kind not defined"):
        super().__init__(message)


class InputObjectMetadataNotDefinedError(MalformedResourceError):
    def __init__(self, message: str = "Input object metadata not defined"):
        super().__init__(message)


class ValidationError(RolloutError):
    """Invalid engine input, raised before any cluster mutation."""


class KubectlError(RolloutError):
    """Rich error for kubectl failures with context."""

    def __init__(
        self,
        cmd: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        context: str = "",
    ):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []
        if self.context:
            parts.append(self.context)
        parts.append(f"Command: {' '.join(self.cmd)}")
        parts.append(f"Exit code: {self.returncode}")
        if self.stderr:
            parts.append(f"Error: {self.stderr.strip()}")
        if self.stdout and self.returncode != 0:
            parts.append(f"Output: {self.stdout.strip()}")
        return "\n".join(parts)


class RolloutStatusError(RolloutError):
    """One or more workloads failed their rollout-status check."""

    def __init__(self, failed: Optional[List[str]] = None):
        self.failed = failed or []
        message = "Rollout status error"
        if self.failed:
            message = f"{message}: {', '.join(self.failed)}"
        super().__init__(message)


class ServicesNotGreenError(RolloutError):
    """Routed services are not pointing at the green variant."""

    def __init__(self, message: str = "Found services not in green state, promotion aborted"):
        super().__init__(message)
