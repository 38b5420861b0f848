"""Typed story artifacts persisted as one JSON file per artifact."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from story_chain.adapters.chain_store import write_json_atomic
from story_chain.domain.errors import ArtifactError, PersistenceFailure
from story_chain.domain.models import Artifact, ArtifactType

DEFAULT_ARTIFACT_DIR = Path("artifacts")

logger = logging.getLogger(__name__)


def is_artifact_payload(payload: object) -> bool:
    return isinstance(payload, dict) and "artifact_type" in payload


def artifact_from_payload(payload: object, *, source: str = "<memory>") -> Artifact:
    try:
        return Artifact.model_validate(payload)
    except ValidationError as exc:
        raise ArtifactError(f"Artifact {source} is invalid: {exc}") from exc


class ArtifactStore:
    """In-memory index of artifacts backed by ``<artifact_dir>/<id>.json`` files.

    Writes go to disk immediately; ``load_from_dir`` picks up files written by
    other processes or by hand.
    """

    def __init__(self, artifact_dir: Path = DEFAULT_ARTIFACT_DIR) -> None:
        self._artifact_dir = artifact_dir
        self._artifacts: dict[str, Artifact] = {}

    @property
    def artifact_dir(self) -> Path:
        return self._artifact_dir

    def __len__(self) -> int:
        return len(self._artifacts)

    def __contains__(self, artifact_id: object) -> bool:
        return artifact_id in self._artifacts

    def path_for(self, artifact_id: str) -> Path:
        return self._artifact_dir / f"{artifact_id}.json"

    def load_from_dir(self) -> int:
        """Load every ``*.json`` artifact file, creating the directory if missing.

        Returns the number of files loaded. Premise YAML files and other
        non-JSON files in the directory are ignored.
        """
        try:
            if not self._artifact_dir.exists():
                self._artifact_dir.mkdir(parents=True, exist_ok=True)
                return 0
            paths = sorted(self._artifact_dir.glob("*.json"))
        except OSError as exc:
            raise PersistenceFailure(
                f"Could not read artifact directory {self._artifact_dir}: {exc}"
            ) from exc

        loaded = 0
        for path in paths:
            if not path.is_file():
                continue
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise PersistenceFailure(f"Could not read artifact {path}: {exc}") from exc
            try:
                artifact = Artifact.model_validate_json(raw)
            except ValidationError as exc:
                raise ArtifactError(f"Artifact file {path} is invalid: {exc}") from exc
            self._artifacts[artifact.id] = artifact
            loaded += 1
        logger.info("artifacts.loaded dir=%s count=%s", self._artifact_dir, loaded)
        return loaded

    def save_artifact(self, artifact: Artifact) -> Path:
        path = self.path_for(artifact.id)
        write_json_atomic(path, artifact.model_dump(mode="json"), label="artifact")
        return path

    def get_artifact(self, artifact_id: str) -> Artifact | None:
        return self._artifacts.get(artifact_id)

    def update_artifact(self, artifact: Artifact) -> Artifact:
        """Store ``artifact`` under its id, replacing any earlier version."""
        self.save_artifact(artifact)
        self._artifacts[artifact.id] = artifact
        logger.info("artifacts.saved id=%s type=%s", artifact.id, artifact.artifact_type.value)
        return artifact

    def create_artifact(
        self,
        artifact_id: str,
        content: str,
        artifact_type: ArtifactType,
        *,
        custom_type: str = "",
        metadata: dict[str, str] | None = None,
    ) -> Artifact:
        artifact = artifact_from_payload(
            {
                "id": artifact_id,
                "content": content,
                "artifact_type": artifact_type,
                "custom_type": custom_type,
                "metadata": dict(metadata or {}),
            },
            source=artifact_id,
        )
        return self.update_artifact(artifact)

    def get_artifacts_by_type(
        self, artifact_type: ArtifactType, custom_type: str | None = None
    ) -> list[Artifact]:
        """Artifacts of one type in id order; ``custom_type`` narrows custom ones."""
        return [
            artifact
            for artifact_id, artifact in sorted(self._artifacts.items())
            if artifact.artifact_type is artifact_type
            and (custom_type is None or artifact.custom_type == custom_type)
        ]
