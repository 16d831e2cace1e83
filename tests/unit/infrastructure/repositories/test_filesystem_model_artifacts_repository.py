from __future__ import annotations

import os
from pathlib import Path

import pytest

from dispatch_telemetry.domain.entities.errors import ModelPersistenceError
from dispatch_telemetry.infrastructure.repositories.filesystem_model_artifacts_repository import (
    FileSystemModelArtifactsRepository,
)


@pytest.fixture()
def repository(tmp_path: Path) -> FileSystemModelArtifactsRepository:
    return FileSystemModelArtifactsRepository(tmp_path / "artifacts")


def test_save_and_get_artifact_roundtrip(
    repository: FileSystemModelArtifactsRepository,
) -> None:
    location = repository.save_artifact("regression", b"model-bytes", {"version": 2})

    artifact = repository.get_artifact("regression")

    assert artifact is not None
    assert artifact.content == b"model-bytes"
    assert artifact.metadata["version"] == 2
    assert artifact.metadata["size"] == len(b"model-bytes")
    assert artifact.location == location
    assert Path(location).exists()


def test_save_replaces_existing_artifact_without_leftovers(
    repository: FileSystemModelArtifactsRepository,
) -> None:
    repository.save_artifact("regression", b"first")
    repository.save_artifact("regression", b"second")

    artifact = repository.get_artifact("regression")

    assert artifact is not None and artifact.content == b"second"
    leftovers = [p for p in repository.storage_path.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


def test_missing_artifact_returns_none(
    repository: FileSystemModelArtifactsRepository,
) -> None:
    assert repository.get_artifact("missing") is None
    assert repository.list_artifacts() == []


def test_keys_with_path_separators_stay_in_storage_dir(
    repository: FileSystemModelArtifactsRepository,
) -> None:
    repository.save_artifact("service/latency p95", b"x")

    assert repository.list_artifacts() == ["service/latency p95"]
    assert all(p.parent == repository.storage_path for p in repository.storage_path.iterdir())


def test_delete_and_clear(repository: FileSystemModelArtifactsRepository) -> None:
    repository.save_artifact("a", b"1")
    repository.save_artifact("b", b"2")
    repository.save_artifact("c", b"3")

    assert repository.delete_artifact("a") is True
    assert repository.delete_artifact("a") is False
    assert repository.list_artifacts() == ["b", "c"]
    assert repository.clear() == 2
    assert repository.list_artifacts() == []


def test_failed_write_raises_persistence_error_and_keeps_previous(
    repository: FileSystemModelArtifactsRepository, monkeypatch
) -> None:
    repository.save_artifact("regression", b"stable")

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", failing_replace)

    with pytest.raises(ModelPersistenceError):
        repository.save_artifact("regression", b"broken")

    monkeypatch.undo()
    artifact = repository.get_artifact("regression")
    assert artifact is not None and artifact.content == b"stable"
    assert not any(p.name.endswith(".tmp") for p in repository.storage_path.iterdir())
