from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from story_chain.adapters.artifact_store import ArtifactStore
from story_chain.domain.errors import ArtifactError, PersistenceFailure
from story_chain.domain.models import Artifact, ArtifactType


def test_create_reload_update_and_filter(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    store.create_artifact("lighthouse", "title: Lighthouse", ArtifactType.PREMISE)
    store.create_artifact(
        "mara-arc",
        "Mara learns to trust.",
        ArtifactType.CHARACTER_ARC,
        metadata={"character": "Mara Quill"},
    )

    reloaded = ArtifactStore(tmp_path)
    assert reloaded.load_from_dir() == 2
    artifact = reloaded.get_artifact("lighthouse")
    assert artifact is not None
    assert artifact.content == "title: Lighthouse"
    assert artifact.artifact_type is ArtifactType.PREMISE

    reloaded.update_artifact(artifact.model_copy(update={"content": "title: Updated"}))
    fresh = ArtifactStore(tmp_path)
    fresh.load_from_dir()
    updated = fresh.get_artifact("lighthouse")
    assert updated is not None and updated.content == "title: Updated"

    premises = fresh.get_artifacts_by_type(ArtifactType.PREMISE)
    assert [item.id for item in premises] == ["lighthouse"]
    arc = fresh.get_artifact("mara-arc")
    assert arc is not None and arc.metadata == {"character": "Mara Quill"}
    assert fresh.get_artifacts_by_type(ArtifactType.WORLD_BUILDING) == []
    assert fresh.get_artifact("missing") is None


def test_artifact_file_format(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    store.create_artifact("harbour", "Fog every night.", ArtifactType.WORLD_BUILDING)

    payload = json.loads((tmp_path / "harbour.json").read_text(encoding="utf-8"))
    assert payload == {
        "id": "harbour",
        "content": "Fog every night.",
        "artifact_type": "world_building",
        "custom_type": "",
        "metadata": {},
    }


def test_custom_artifacts_are_filtered_by_name(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    store.create_artifact("tides", "High at dawn.", ArtifactType.CUSTOM, custom_type="almanac")
    store.create_artifact("songs", "Sea shanties.", ArtifactType.CUSTOM, custom_type="music")

    assert len(store.get_artifacts_by_type(ArtifactType.CUSTOM)) == 2
    almanac = store.get_artifacts_by_type(ArtifactType.CUSTOM, "almanac")
    assert [item.id for item in almanac] == ["tides"]

    with pytest.raises(ArtifactError, match="custom_type"):
        store.create_artifact("bare", "x", ArtifactType.CUSTOM)
    with pytest.raises(ArtifactError):
        store.create_artifact("outline", "x", ArtifactType.PLOT_OUTLINE, custom_type="almanac")


def test_load_from_missing_dir_creates_it(tmp_path: Path) -> None:
    artifact_dir = tmp_path / "artifacts"
    store = ArtifactStore(artifact_dir)
    assert store.load_from_dir() == 0
    assert artifact_dir.is_dir()
    assert len(store) == 0


def test_load_skips_non_json_and_rejects_invalid_files(tmp_path: Path) -> None:
    (tmp_path / "lighthouse.yaml").write_text("title: Lighthouse\n", encoding="utf-8")
    store = ArtifactStore(tmp_path)
    assert store.load_from_dir() == 0

    (tmp_path / "broken.json").write_text('{"id": "broken"}', encoding="utf-8")
    with pytest.raises(ArtifactError, match="broken.json"):
        store.load_from_dir()


def test_ids_cannot_escape_the_artifact_dir(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path / "artifacts")
    with pytest.raises(ArtifactError):
        store.create_artifact("../outside", "x", ArtifactType.PREMISE)
    assert not (tmp_path / "outside.json").exists()
    with pytest.raises(ValidationError):
        Artifact(id="a/b", content="x", artifact_type=ArtifactType.PREMISE)


def test_write_errors_raise_persistence_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = ArtifactStore(blocker)

    with pytest.raises(PersistenceFailure, match="Could not write artifact"):
        store.create_artifact("lighthouse", "x", ArtifactType.PREMISE)
    assert "lighthouse" not in store
