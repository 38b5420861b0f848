"""Core story domain models."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PremiseModel(BaseModel):
    """Immutable model configuration used by premise contracts."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)


def _dedupe_ordered(values: Iterable[str]) -> tuple[str, ...]:
    deduped: list[str] = []
    seen: set[str] = set()
    for value in values:
        normalized = value.strip()
        if not normalized:
            continue
        if normalized.lower() in seen:
            continue
        seen.add(normalized.lower())
        deduped.append(normalized)
    return tuple(deduped)


class PremiseCharacter(PremiseModel):
    """A principal character and the arc the story should carry them through."""

    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=4000)
    arc: str = Field(default="", max_length=4000)


class Premise(PremiseModel):
    """Structured seed description that every generated scene must respect."""

    title: str = Field(min_length=1, max_length=300)
    genre: str = Field(default="", max_length=200)
    setting: str = Field(default="", max_length=4000)
    time_period: str = Field(default="", max_length=300)
    premise: str = Field(min_length=1, max_length=8000)
    characters: tuple[PremiseCharacter, ...] = ()
    themes: tuple[str, ...] = ()
    plot_elements: tuple[str, ...] = ()

    @field_validator("themes")
    @classmethod
    def _normalize_themes(cls, values: tuple[str, ...]) -> tuple[str, ...]:
        return _dedupe_ordered(values)

    @field_validator("plot_elements")
    @classmethod
    def _normalize_plot_elements(cls, values: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(value.strip() for value in values if value.strip())

    @model_validator(mode="after")
    def _validate_characters(self) -> Premise:
        names = [character.name.lower() for character in self.characters]
        if len(names) != len(set(names)):
            raise ValueError("Character names must be unique.")
        return self

    def character_names(self) -> list[str]:
        return [character.name for character in self.characters]


@dataclass(frozen=True)
class StoryNode:
    """One generated scene and its links to neighbouring scenes."""

    id: str
    content: str
    reasoning: str
    predecessor: str | None = None
    successor: str | None = None


@dataclass(frozen=True)
class InferenceOptions:
    """Model identifier and sampling parameters for one inference call."""

    model: str
    temperature: float | None = None
    top_p: float | None = None
    num_predict: int | None = None
    seed: int | None = None

    def sampling_payload(self) -> dict[str, float | int]:
        payload: dict[str, float | int] = {}
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.top_p is not None:
            payload["top_p"] = self.top_p
        if self.num_predict is not None:
            payload["num_predict"] = self.num_predict
        if self.seed is not None:
            payload["seed"] = self.seed
        return payload


class ArtifactType(str, Enum):
    """Kinds of supporting material kept beside a story."""

    PREMISE = "premise"
    CHARACTER_ARC = "character_arc"
    PLOT_OUTLINE = "plot_outline"
    WORLD_BUILDING = "world_building"
    CUSTOM = "custom"


class Artifact(BaseModel):
    """One stored artifact; ``custom_type`` names the kind when the type is custom."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)

    id: str = Field(min_length=1, max_length=200, pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
    content: str
    artifact_type: ArtifactType
    custom_type: str = Field(default="", max_length=200)
    metadata: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_custom_type(self) -> Artifact:
        if self.artifact_type is ArtifactType.CUSTOM and not self.custom_type:
            raise ValueError("Custom artifacts need a custom_type name.")
        if self.artifact_type is not ArtifactType.CUSTOM and self.custom_type:
            raise ValueError("custom_type is only allowed on custom artifacts.")
        return self
