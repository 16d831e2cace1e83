"""
Model Artifacts Repository Interface

This module defines the interface for model artifact storage following
the repository pattern. Trained models are opaque serialized blobs keyed by
a name; the storage backend decides where and how the bytes live.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class ModelArtifact:
    """Represents a stored model artifact with its metadata."""

    def __init__(
        self,
        artifact_key: str,
        content: bytes,
        metadata: Optional[Dict[str, Any]] = None,
        location: Optional[str] = None,
    ):
        """
        Initialize a model artifact.

        Args:
            artifact_key: Key the artifact was saved under
            content: Serialized model bytes
            metadata: Additional metadata saved next to the artifact
            location: Where the backend keeps the artifact, if meaningful
        """
        self.artifact_key = artifact_key
        self.content = content
        self.metadata = metadata or {}
        self.location = location


class IModelArtifactsRepository(ABC):
    """Interface for Model Artifacts repository implementations."""

    @abstractmethod
    def save_artifact(
        self,
        artifact_key: str,
        content: bytes,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Save (or replace) an artifact.

        Returns:
            Location identifier of the saved artifact
        """
        pass

    @abstractmethod
    def get_artifact(self, artifact_key: str) -> Optional[ModelArtifact]:
        """Retrieve an artifact, or None if it does not exist."""
        pass

    @abstractmethod
    def delete_artifact(self, artifact_key: str) -> bool:
        """
        Delete an artifact.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    def list_artifacts(self) -> List[str]:
        """List the keys of every stored artifact."""
        pass

    @abstractmethod
    def clear(self) -> int:
        """
        Delete every artifact.

        Returns:
            Number of artifacts deleted
        """
        pass
