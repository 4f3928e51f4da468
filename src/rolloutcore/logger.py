"""
Structured logging for rollout events.

Outputs one JSON line per state-changing rollout event so deploy history
can be queried from a log store. Diagnostic chatter goes through the
regular module loggers; only the events below are emitted here.

Logged events:
- rollout.deploy_started
- rollout.objects_applied
- rollout.traffic_split_updated
- rollout.stability_failed
- rollout.promoted
- rollout.rejected
- rollout.cleanup_completed

Usage:
    from rolloutcore.logger import RolloutLogger

    logger = RolloutLogger(namespace="shop", strategy="canary")
    logger.log_deploy_started(manifests=["web.yaml"], percentage=20)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Structured event logger
_event_logger = logging.getLogger("rolloutcore.rollout")
_event_logger.setLevel(logging.INFO)

# Default handler outputs JSON to stdout
if not _event_logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    _event_logger.addHandler(handler)
    _event_logger.propagate = False


def configure_logging(level: str = "info", fmt: str = "text") -> None:
    """Configure the root handler for module loggers."""
    if fmt == "json":
        formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"logger": "%(name)s", "message": "%(message)s"}'
        )
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root = logging.getLogger()
    root.setLevel(level.upper())
    if not root.handlers:
        root.addHandler(logging.StreamHandler(sys.stderr))
    for h in root.handlers:
        h.setFormatter(formatter)


class RolloutLogger:
    """
    Structured logger for rollout events.

    Each entry carries the service, namespace and strategy so entries from
    many rollouts can be filtered apart.
    """

    def __init__(
        self,
        namespace: Optional[str] = None,
        strategy: str = "basic",
        service_name: str = "rolloutcore",
        extra_labels: Optional[Dict[str, str]] = None,
    ):
        self.namespace = namespace
        self.strategy = strategy
        self.service_name = service_name
        self.extra_labels = extra_labels or {}
        self._logger = _event_logger

    def _emit(self, event: str, level: str = "info", **extra_fields: Any) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "service": self.service_name,
            "namespace": self.namespace,
            "strategy": self.strategy,
        }
        entry.update({k: v for k, v in extra_fields.items() if v is not None})
        if self.extra_labels:
            entry["labels"] = self.extra_labels

        log_line = json.dumps(entry, default=str)

        if level == "error":
            self._logger.error(log_line)
        elif level == "warn":
            self._logger.warning(log_line)
        else:
            self._logger.info(log_line)

    def log_deploy_started(
        self,
        manifests: List[str],
        action: str = "deploy",
        percentage: Optional[int] = None,
        replicas: Optional[int] = None,
    ) -> None:
        self._emit(
            "rollout.deploy_started",
            action=action,
            manifests=manifests,
            percentage=percentage,
            replicas=replicas,
        )

    def log_objects_applied(self, manifest_files: List[str]) -> None:
        self._emit("rollout.objects_applied", manifest_files=manifest_files, count=len(manifest_files))

    def log_traffic_split_updated(self, manifest_files: List[str], stable_weight: Optional[int] = None,
                                  canary_weight: Optional[int] = None) -> None:
        self._emit(
            "rollout.traffic_split_updated",
            manifest_files=manifest_files,
            stable_weight=stable_weight,
            canary_weight=canary_weight,
        )

    def log_stability_failed(self, failed: List[str]) -> None:
        self._emit("rollout.stability_failed", level="error", failed=failed)

    def log_promoted(self, objects: Optional[List[str]] = None) -> None:
        self._emit("rollout.promoted", objects=objects)

    def log_rejected(self, deleted: Optional[List[str]] = None) -> None:
        self._emit("rollout.rejected", level="warn", deleted=deleted)

    def log_cleanup_completed(self, deleted: List[str]) -> None:
        self._emit("rollout.cleanup_completed", deleted=deleted, count=len(deleted))
