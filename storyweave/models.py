"""Core domain models.

The engine, the generators and the store all exchange these types.
Pydantic is used for validation and serialisation at every data boundary:
storylines are persisted with model_dump_json() and reloaded with
model_validate_json(), and generator output is validated against
StructuredScene / ChoiceSet before it is allowed into the graph.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

CharacterType = Literal["historical", "custom"]
AccuracyMode = Literal["accurate", "creative"]
HistoricalAccuracy = Literal["accurate", "somewhat-accurate", "creative"]

NodeKind = Literal[
    "narration",
    "dialogue",
    "thought",
    "historical-fact",
    "decision-point",
]

EmotionalTone = Literal["neutral", "tense", "hopeful", "somber", "triumphant"]

ATTRIBUTE_RANGE = (0, 100)
RELATIONSHIP_RANGE = (-100, 100)
DEFAULT_ATTRIBUTE = 50
DEFAULT_RELATIONSHIP = 0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


def clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Characters (read-only to the engine)
# ---------------------------------------------------------------------------

class HistoricalEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str
    title: str
    description: str
    significance: str = ""


class Character(BaseModel):
    """A playable figure, either from the historical roster or user-made."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: CharacterType
    name: str
    era: str
    traits: list[str] = Field(default_factory=list)
    biography: str | None = None
    background: str | None = None
    key_events: list[HistoricalEvent] = Field(default_factory=list)
    created: datetime | None = None

    @property
    def summary_text(self) -> str:
        return self.biography or self.background or ""


# ---------------------------------------------------------------------------
# Graph: nodes, choices, successor binding
# ---------------------------------------------------------------------------

class Unresolved(BaseModel):
    """The choice has never been taken; no successor exists yet."""

    state: Literal["unresolved"] = "unresolved"


class ResolvedTo(BaseModel):
    """The choice was taken once and permanently leads to node_id."""

    state: Literal["resolved"] = "resolved"
    node_id: str


Successor = Annotated[Unresolved | ResolvedTo, Field(discriminator="state")]


class Consequences(BaseModel):
    immediate: str | None = None
    long_term: str | None = None
    affects_relationships: dict[str, int] = Field(default_factory=dict)
    affects_attributes: dict[str, int] = Field(default_factory=dict)


class Choice(BaseModel):
    id: str = Field(default_factory=new_id)
    text: str
    impact: str = ""
    historical_accuracy: HistoricalAccuracy = "somewhat-accurate"
    consequences: Consequences = Field(default_factory=Consequences)
    leads_to: Successor = Field(default_factory=Unresolved)

    @property
    def successor_id(self) -> str | None:
        if isinstance(self.leads_to, ResolvedTo):
            return self.leads_to.node_id
        return None

    def bind(self, node_id: str) -> None:
        """Bind the successor. A choice leads to exactly one node, forever."""
        current = self.successor_id
        if current is not None and current != node_id:
            raise ValueError(
                f"Choice {self.id} already leads to {current}, cannot rebind to {node_id}"
            )
        self.leads_to = ResolvedTo(node_id=node_id)


class NodeMetadata(BaseModel):
    location: str | None = None
    year: str | None = None
    historical_event: str | None = None
    emotional_tone: EmotionalTone | None = None
    is_key_moment: bool = False
    is_ending: bool = False
    contextual_background: str | None = None


class StoryNode(BaseModel):
    """One narrative beat.

    choices is None until a choice set has been generated for the node;
    an empty list marks a terminal node.
    """

    id: str = Field(default_factory=new_id)
    text: str = Field(min_length=1)
    kind: NodeKind = "narration"
    speaker: str | None = None
    created: datetime = Field(default_factory=utcnow)
    choices: list[Choice] | None = None
    metadata: NodeMetadata = Field(default_factory=NodeMetadata)

    def find_choice(self, choice_id: str) -> Choice | None:
        for choice in self.choices or []:
            if choice.id == choice_id:
                return choice
        return None


# ---------------------------------------------------------------------------
# Player context
# ---------------------------------------------------------------------------

class ChoiceRecord(BaseModel):
    choice_id: str
    choice_text: str
    node_id: str
    timestamp: datetime = Field(default_factory=utcnow)


class StoryContext(BaseModel):
    """Mutable player state threaded through a storyline."""

    character_id: str
    character_type: CharacterType
    accuracy: AccuracyMode
    previous_nodes: list[str] = Field(default_factory=list)
    previous_choices: list[ChoiceRecord] = Field(default_factory=list)
    current_year: str | None = None
    current_location: str | None = None
    current_situation: str | None = None
    attributes: dict[str, int] = Field(default_factory=dict)
    relationships: dict[str, int] = Field(default_factory=dict)
    visited_events: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _clamp_and_dedup(self) -> StoryContext:
        self.attributes = {k: clamp(v, ATTRIBUTE_RANGE) for k, v in self.attributes.items()}
        self.relationships = {
            k: clamp(v, RELATIONSHIP_RANGE) for k, v in self.relationships.items()
        }
        self.visited_events = list(dict.fromkeys(self.visited_events))
        return self

    def adjust_attribute(self, name: str, delta: int) -> int:
        value = clamp(self.attributes.get(name, DEFAULT_ATTRIBUTE) + delta, ATTRIBUTE_RANGE)
        self.attributes[name] = value
        return value

    def adjust_relationship(self, name: str, delta: int) -> int:
        value = clamp(
            self.relationships.get(name, DEFAULT_RELATIONSHIP) + delta, RELATIONSHIP_RANGE
        )
        self.relationships[name] = value
        return value

    def apply_consequences(self, consequences: Consequences) -> None:
        for name, delta in consequences.affects_attributes.items():
            self.adjust_attribute(name, delta)
        for name, delta in consequences.affects_relationships.items():
            self.adjust_relationship(name, delta)

    def record_choice(self, node_id: str, choice: Choice) -> None:
        self.previous_nodes.append(node_id)
        self.previous_choices.append(
            ChoiceRecord(choice_id=choice.id, choice_text=choice.text, node_id=node_id)
        )

    def observe(self, node: StoryNode) -> None:
        """Carry the node's setting into the context and note key events."""
        meta = node.metadata
        if meta.year:
            self.current_year = meta.year
        if meta.location:
            self.current_location = meta.location
        if meta.historical_event and meta.is_key_moment:
            if meta.historical_event not in self.visited_events:
                self.visited_events.append(meta.historical_event)


# ---------------------------------------------------------------------------
# Storyline
# ---------------------------------------------------------------------------

class CharacterSummary(BaseModel):
    id: str
    type: CharacterType
    name: str


class Storyline(BaseModel):
    """The persisted graph plus player context for one playthrough."""

    id: str = Field(default_factory=new_id)
    title: str
    character: CharacterSummary
    nodes: dict[str, StoryNode]
    start_node_id: str
    context: StoryContext
    created: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_graph(self) -> Storyline:
        if self.start_node_id not in self.nodes:
            raise ValueError(f"start node {self.start_node_id} is not in the graph")
        for node in self.nodes.values():
            for choice in node.choices or []:
                target = choice.successor_id
                if target is not None and target not in self.nodes:
                    raise ValueError(
                        f"choice {choice.id} on node {node.id} leads to missing node {target}"
                    )
        if len(self.context.previous_nodes) != len(self.context.previous_choices):
            raise ValueError("previous_nodes and previous_choices are out of step")
        return self

    @property
    def start_node(self) -> StoryNode:
        return self.nodes[self.start_node_id]

    def summary(self) -> StorylineSummary:
        return StorylineSummary(
            id=self.id,
            title=self.title,
            character=self.character,
            created=self.created,
            last_updated=self.last_updated,
        )


class StorylineSummary(BaseModel):
    """Index entry for the saved-storylines list."""

    id: str
    title: str
    character: CharacterSummary
    created: datetime
    last_updated: datetime


# ---------------------------------------------------------------------------
# Generator output
# ---------------------------------------------------------------------------

class SceneFragment(BaseModel):
    kind: NodeKind = "narration"
    text: str = Field(min_length=1)
    speaker: str | None = None


class StructuredScene(BaseModel):
    """What a scene generator returns: ordered fragments plus setting."""

    fragments: list[SceneFragment] = Field(min_length=1)
    year: str | None = None
    location: str | None = None
    historical_event: str | None = None
    emotional_tone: EmotionalTone | None = None
    is_key_moment: bool = False
    is_ending: bool = False
    contextual_background: str | None = None

    def to_node(self) -> StoryNode:
        """Collapse the fragments into a single node.

        Narration fragments are joined with blank lines; with no narration
        the first fragment carries the node (and its kind and speaker).
        """
        narration = [f.text for f in self.fragments if f.kind == "narration"]
        if narration:
            text, kind, speaker = "\n\n".join(narration), "narration", None
        else:
            first = self.fragments[0]
            text, kind, speaker = first.text, first.kind, first.speaker
        return StoryNode(
            text=text,
            kind=kind,
            speaker=speaker,
            metadata=NodeMetadata(
                location=self.location,
                year=self.year,
                historical_event=self.historical_event,
                emotional_tone=self.emotional_tone,
                is_key_moment=self.is_key_moment,
                is_ending=self.is_ending,
                contextual_background=self.contextual_background,
            ),
        )


class ChoiceDraft(BaseModel):
    text: str = Field(min_length=1)
    impact: str = ""
    historical_accuracy: HistoricalAccuracy = "somewhat-accurate"
    consequences: Consequences = Field(default_factory=Consequences)

    def to_choice(self) -> Choice:
        return Choice(
            text=self.text,
            impact=self.impact,
            historical_accuracy=self.historical_accuracy,
            consequences=self.consequences.model_copy(deep=True),
        )


class ChoiceSet(BaseModel):
    choices: list[ChoiceDraft] = Field(min_length=1)
