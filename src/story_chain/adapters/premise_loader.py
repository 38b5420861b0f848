"""Premise loading from YAML or JSON files and Premise artifacts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from story_chain.adapters.artifact_store import (
    DEFAULT_ARTIFACT_DIR,
    artifact_from_payload,
    is_artifact_payload,
)
from story_chain.domain.errors import ArtifactError, PremiseError
from story_chain.domain.models import Artifact, ArtifactType, Premise

_SUFFIXES = (".yaml", ".yml", ".json")


def resolve_premise_path(reference: str, artifact_dir: Path = DEFAULT_ARTIFACT_DIR) -> Path:
    """Resolve a path, or a bare premise name under the artifact directory."""
    candidate = Path(reference)
    if candidate.is_file():
        return candidate
    for suffix in _SUFFIXES:
        named = artifact_dir / f"{reference}{suffix}"
        if named.is_file():
            return named
    raise PremiseError(
        f"Premise '{reference}' not found as a file or under {artifact_dir} "
        f"(tried {', '.join(_SUFFIXES)})."
    )


def load_premise(path: Path) -> Premise:
    """Load and validate a premise file.

    A JSON file holding a stored Premise artifact is unwrapped and its content
    parsed as the premise document.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PremiseError(f"Could not read premise file {path}: {exc}") from exc

    payload = _parse_document(raw, source=str(path), as_json=path.suffix.lower() == ".json")
    if is_artifact_payload(payload):
        try:
            artifact = artifact_from_payload(payload, source=str(path))
        except ArtifactError as exc:
            raise PremiseError(str(exc)) from exc
        return premise_from_artifact(artifact)
    return premise_from_mapping(payload, source=str(path))


def premise_from_artifact(artifact: Artifact) -> Premise:
    if artifact.artifact_type is not ArtifactType.PREMISE:
        raise PremiseError(
            f"Artifact '{artifact.id}' is a {artifact.artifact_type.value} artifact, not a premise."
        )
    source = f"artifact '{artifact.id}'"
    return premise_from_mapping(_parse_document(artifact.content, source=source), source=source)


def premise_from_mapping(payload: Any, *, source: str = "<memory>") -> Premise:
    if not isinstance(payload, dict):
        raise PremiseError(f"Premise {source} must be a mapping at the top level.")
    try:
        return Premise.model_validate(payload)
    except ValidationError as exc:
        raise PremiseError(f"Premise {source} is invalid: {exc}") from exc


def _parse_document(raw: str, *, source: str, as_json: bool = False) -> Any:
    try:
        if as_json:
            return json.loads(raw)
        return yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise PremiseError(f"Premise {source} could not be parsed: {exc}") from exc
