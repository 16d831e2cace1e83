"""
Filesystem Model Artifacts Repository - Infrastructure Layer

This module implements the ModelArtifactsRepository interface on top of a
local directory. Every artifact is a ``<key>.bin`` file with a JSON
``<key>.meta.json`` sidecar. Writes go to a temporary file in the same
directory and are moved into place with ``os.replace``, so a reader never
observes a partially written model.
"""

import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote, unquote

from dispatch_telemetry.domain.entities.errors import ModelPersistenceError
from dispatch_telemetry.domain.repositories.model_artifacts_repository import (
    IModelArtifactsRepository,
    ModelArtifact,
)
from dispatch_telemetry.shared import get_logger

logger = get_logger(__name__)

_CONTENT_SUFFIX = ".bin"
_METADATA_SUFFIX = ".meta.json"


def _atomic_write(target: Path, payload: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class FileSystemModelArtifactsRepository(IModelArtifactsRepository):
    """Directory-backed implementation of the ModelArtifactsRepository."""

    def __init__(self, storage_path: Union[str, Path]):
        """
        Initialize the repository.

        Args:
            storage_path: Directory holding the artifacts; created on first write
        """
        self.storage_path = Path(storage_path)
        self._lock = threading.Lock()

    def _content_path(self, artifact_key: str) -> Path:
        return self.storage_path / f"{quote(artifact_key, safe='')}{_CONTENT_SUFFIX}"

    def _metadata_path(self, artifact_key: str) -> Path:
        return self.storage_path / f"{quote(artifact_key, safe='')}{_METADATA_SUFFIX}"

    def save_artifact(
        self,
        artifact_key: str,
        content: bytes,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Save an artifact, replacing any previous version.

        Raises:
            ModelPersistenceError: If the files cannot be written
        """
        file_metadata = {
            "artifact_key": artifact_key,
            "size": len(content),
            "saved_at": datetime.now(timezone.utc).isoformat(),
            **(metadata or {}),
        }
        target = self._content_path(artifact_key)

        try:
            with self._lock:
                self.storage_path.mkdir(parents=True, exist_ok=True)
                _atomic_write(target, content)
                _atomic_write(
                    self._metadata_path(artifact_key),
                    json.dumps(file_metadata, indent=2, default=str).encode("utf-8"),
                )
        except OSError as e:
            logger.error(
                "artifacts.save_failed",
                artifact_key=artifact_key,
                path=str(target),
                error=str(e),
            )
            raise ModelPersistenceError(
                f"Failed to save artifact {artifact_key}: {e}",
                {"artifact_key": artifact_key},
            ) from e

        logger.info(
            "artifacts.saved",
            artifact_key=artifact_key,
            path=str(target),
            size_bytes=len(content),
        )
        return str(target)

    def get_artifact(self, artifact_key: str) -> Optional[ModelArtifact]:
        content_path = self._content_path(artifact_key)
        if not content_path.exists():
            logger.debug("artifacts.not_found", artifact_key=artifact_key)
            return None

        try:
            content = content_path.read_bytes()
            metadata_path = self._metadata_path(artifact_key)
            metadata = (
                json.loads(metadata_path.read_text(encoding="utf-8"))
                if metadata_path.exists()
                else {}
            )
        except (OSError, ValueError) as e:
            logger.error(
                "artifacts.read_failed", artifact_key=artifact_key, error=str(e)
            )
            raise ModelPersistenceError(
                f"Failed to read artifact {artifact_key}: {e}",
                {"artifact_key": artifact_key},
            ) from e

        return ModelArtifact(
            artifact_key=artifact_key,
            content=content,
            metadata=metadata,
            location=str(content_path),
        )

    def delete_artifact(self, artifact_key: str) -> bool:
        with self._lock:
            content_path = self._content_path(artifact_key)
            existed = content_path.exists()
            for path in (content_path, self._metadata_path(artifact_key)):
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
        if existed:
            logger.info("artifacts.deleted", artifact_key=artifact_key)
        return existed

    def list_artifacts(self) -> List[str]:
        if not self.storage_path.is_dir():
            return []
        return sorted(
            unquote(path.name[: -len(_CONTENT_SUFFIX)])
            for path in self.storage_path.iterdir()
            if path.name.endswith(_CONTENT_SUFFIX) and not path.name.startswith(".")
        )

    def clear(self) -> int:
        deleted = 0
        for artifact_key in self.list_artifacts():
            if self.delete_artifact(artifact_key):
                deleted += 1
        logger.info("artifacts.cleared", deleted=deleted)
        return deleted
