"""
Manifest file collaborator: YAML loading and temp-file writing.

Strategies work on parsed documents; kubectl only takes file paths, so every
derived object is written to its own JSON file under the temp directory
before being applied.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import yaml

from rolloutcore.models.resources import Resource

logger = logging.getLogger(__name__)


def get_temp_directory() -> str:
    return os.environ.get("ROLLOUTCORE_TEMP_DIR") or tempfile.gettempdir()


def load_manifests(file_paths: Sequence[str]) -> List[Optional[Resource]]:
    """All documents across ``file_paths``, in file then document order."""
    documents: List[Optional[Resource]] = []
    for file_path in file_paths:
        with open(file_path, encoding="utf-8") as f:
            documents.extend(yaml.safe_load_all(f))
    return documents


def _manifest_file_name(kind: str, name: str) -> str:
    stamp = time.time_ns()
    return str(Path(get_temp_directory()) / f"{kind}_{name}_{stamp}_{uuid.uuid4().hex[:8]}")


def write_manifest_to_file(content: str, kind: str, name: str) -> str:
    file_name = _manifest_file_name(kind, name)
    Path(file_name).write_text(content, encoding="utf-8")
    return file_name


def write_objects_to_file(objects: Iterable[Resource]) -> List[str]:
    """Write each object to its own file; objects without a name are skipped."""
    paths = []
    for obj in objects:
        name = (obj.get("metadata") or {}).get("name")
        if not name:
            logger.debug("Input object is not a proper K8s resource object: %s", obj)
            continue
        paths.append(write_manifest_to_file(json.dumps(obj), obj.get("kind", ""), name))
    return paths
