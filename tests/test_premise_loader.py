from __future__ import annotations

from pathlib import Path

import pytest

from story_chain.adapters.artifact_store import ArtifactStore
from story_chain.adapters.premise_loader import (
    load_premise,
    premise_from_artifact,
    premise_from_mapping,
    resolve_premise_path,
)
from story_chain.domain.errors import PremiseError
from story_chain.domain.models import ArtifactType

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def test_load_yaml_fixture_normalizes_premise() -> None:
    premise = load_premise(FIXTURES / "premise.yaml")
    assert premise.title == "The Lamplighter's Ledger"
    assert premise.themes == ("memory", "trust")
    assert premise.character_names() == ["Mara Quill"]
    assert len(premise.plot_elements) == 2
    assert premise.premise.startswith("When the lighthouse ledger")


def test_resolve_bare_name_under_artifact_dir(tmp_path: Path) -> None:
    artifact_dir = tmp_path / "artifacts"
    artifact_dir.mkdir()
    target = artifact_dir / "harbour.yml"
    target.write_text("title: Harbour\n", encoding="utf-8")

    assert resolve_premise_path("harbour", artifact_dir) == target
    assert resolve_premise_path(str(target), tmp_path / "elsewhere") == target
    with pytest.raises(PremiseError, match="not found"):
        resolve_premise_path("missing", artifact_dir)


def test_load_json_premise(tmp_path: Path) -> None:
    path = tmp_path / "premise.json"
    path.write_text(
        '{"title": "Harbour", "premise": "The tide forgets.", "themes": ["tides"]}',
        encoding="utf-8",
    )
    premise = load_premise(path)
    assert premise.title == "Harbour"
    assert premise.themes == ("tides",)


def test_invalid_premise_files_raise_premise_error(tmp_path: Path) -> None:
    with pytest.raises(PremiseError, match="Could not read"):
        load_premise(tmp_path / "absent.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("title: [unclosed\n", encoding="utf-8")
    with pytest.raises(PremiseError, match="could not be parsed"):
        load_premise(broken)

    listing = tmp_path / "listing.yaml"
    listing.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(PremiseError, match="mapping"):
        load_premise(listing)


def test_validation_errors_are_wrapped() -> None:
    with pytest.raises(PremiseError, match="is invalid"):
        premise_from_mapping({"title": "Harbour", "premise": "p", "unknown_field": 1})


def test_premise_artifact_is_unwrapped(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    store.create_artifact(
        "harbour",
        (FIXTURES / "premise.yaml").read_text(encoding="utf-8"),
        ArtifactType.PREMISE,
    )

    premise = load_premise(resolve_premise_path("harbour", tmp_path))

    assert premise.title == "The Lamplighter's Ledger"
    assert premise.character_names() == ["Mara Quill"]


def test_non_premise_artifact_is_rejected(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    artifact = store.create_artifact("arc", "Mara learns to trust.", ArtifactType.CHARACTER_ARC)

    with pytest.raises(PremiseError, match="not a premise"):
        premise_from_artifact(artifact)
    with pytest.raises(PremiseError, match="not a premise"):
        load_premise(tmp_path / "arc.json")
