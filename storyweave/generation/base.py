"""Scene generator contract.

A scene generator turns a SceneRequest into either a StructuredScene (for
the opening and continuation stages) or a ChoiceSet (for the choices
stage). Generators may raise anything; the chain treats every exception as
"skip this backend".
"""

from __future__ import annotations

from typing import Literal, Protocol

from pydantic import BaseModel, Field

from storyweave.models import (
    AccuracyMode,
    Character,
    Choice,
    ChoiceSet,
    HistoricalEvent,
    NodeMetadata,
    StructuredScene,
)

Stage = Literal["opening", "continuation", "choices"]


class SceneRequest(BaseModel):
    """Everything a generator may use to write the next beat."""

    stage: Stage
    character: Character
    accuracy: AccuracyMode
    year: str | None = None
    location: str | None = None
    situation: str | None = None
    event: HistoricalEvent | None = None
    node_text: str | None = None
    node_metadata: NodeMetadata | None = None
    choice: Choice | None = None
    attributes: dict[str, int] = Field(default_factory=dict)
    relationships: dict[str, int] = Field(default_factory=dict)
    previous_choices: list[str] = Field(default_factory=list)


class SceneGenerator(Protocol):
    name: str

    async def generate_scene(self, request: SceneRequest) -> StructuredScene: ...

    async def generate_choices(self, request: SceneRequest) -> ChoiceSet: ...
