"""Derived progress values — computed on demand, never persisted.

Everything here is a pure function of a Storyline:

    current_node_id     node reached by the last recorded choice, else start
    is_complete         current node is an ending or has an empty choice set
    completion_percent  100 when complete, else choices/target capped at 99
    achievements        fixed rule table over visited events, attributes, history
    player_stats        display rows for the five base attributes
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel

from storyweave.models import ChoiceRecord, StoryContext, Storyline

DEFAULT_CHOICE_TARGET = 20


def current_node_id(storyline: Storyline) -> str:
    """Node the player is standing on: the target of the latest bound choice."""
    for record in reversed(storyline.context.previous_choices):
        node = storyline.nodes.get(record.node_id)
        choice = node.find_choice(record.choice_id) if node else None
        target = choice.successor_id if choice else None
        if target is not None and target in storyline.nodes:
            return target
    return storyline.start_node_id


def is_complete(storyline: Storyline) -> bool:
    node = storyline.nodes[current_node_id(storyline)]
    return node.metadata.is_ending or node.choices == []


def completion_percent(storyline: Storyline, choice_target: int = DEFAULT_CHOICE_TARGET) -> int:
    if is_complete(storyline):
        return 100
    made = len(storyline.context.previous_choices)
    return min(round(made / max(choice_target, 1) * 100), 99)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------

class Achievement(BaseModel):
    id: str
    title: str
    description: str

    @property
    def label(self) -> str:
        return f"{self.title}: {self.description}"


@dataclass(frozen=True)
class AchievementRule:
    id: str
    title: str
    description: str
    character: str | None
    test: Callable[[StoryContext], bool]


def _visited(fragment: str) -> Callable[[StoryContext], bool]:
    return lambda ctx: any(fragment in event for event in ctx.visited_events)


def _attribute_above(name: str, threshold: int) -> Callable[[StoryContext], bool]:
    return lambda ctx: ctx.attributes.get(name, 0) > threshold


def _nodes_at_least(count: int) -> Callable[[StoryContext], bool]:
    return lambda ctx: len(ctx.previous_nodes) >= count


ACHIEVEMENT_RULES: list[AchievementRule] = [
    AchievementRule(
        "pivotal-moment", "Pivotal Moment",
        "Experienced the train incident in South Africa",
        "Mahatma Gandhi", _visited("Train Incident"),
    ),
    AchievementRule(
        "unwavering-spirit", "Unwavering Spirit",
        "Demonstrated exceptional determination",
        "Mahatma Gandhi", _attribute_above("resolve", 80),
    ),
    AchievementRule(
        "scientific-brilliance", "Scientific Brilliance",
        "Demonstrated exceptional scientific intellect",
        "Marie Curie", _attribute_above("intellect", 80),
    ),
    AchievementRule(
        "great-emancipator", "Great Emancipator",
        "Took steps toward abolishing slavery",
        "Abraham Lincoln", _visited("Emancipation"),
    ),
    AchievementRule(
        "journey-begun", "Journey Begun",
        "Experienced 5 story moments",
        None, _nodes_at_least(5),
    ),
    AchievementRule(
        "historian", "Historian",
        "Experienced 10 story moments",
        None, _nodes_at_least(10),
    ),
]


def achievements(storyline: Storyline) -> list[Achievement]:
    unlocked = []
    for rule in ACHIEVEMENT_RULES:
        if rule.character is not None and rule.character != storyline.character.name:
            continue
        if rule.test(storyline.context):
            unlocked.append(
                Achievement(id=rule.id, title=rule.title, description=rule.description)
            )
    return unlocked


# ---------------------------------------------------------------------------
# Display views
# ---------------------------------------------------------------------------

class PlayerStat(BaseModel):
    name: str
    value: int
    icon: str
    description: str


# attribute key → (display name, icon, description)
STAT_DISPLAY: dict[str, tuple[str, str, str]] = {
    "influence": ("Influence", "people", "Your ability to impact others and events around you"),
    "resolve": ("Resolve", "shield", "Your determination and strength of will"),
    "intellect": ("Intellect", "brain", "Your mental capacity and problem-solving ability"),
    "charisma": ("Charisma", "chatbubbles", "Your personal charm and persuasiveness"),
    "compassion": ("Compassion", "heart", "Your empathy and care for others"),
}


def player_stats(storyline: Storyline) -> list[PlayerStat]:
    attributes = storyline.context.attributes
    return [
        PlayerStat(name=name, value=attributes[key], icon=icon, description=description)
        for key, (name, icon, description) in STAT_DISPLAY.items()
        if key in attributes
    ]


def relationship_list(storyline: Storyline) -> list[dict[str, int | str]]:
    return [{"name": k, "value": v} for k, v in storyline.context.relationships.items()]


class StoryProgress(BaseModel):
    """Snapshot of where the player stands in a storyline."""

    storyline_id: str
    current_node_id: str
    visited_nodes: list[str]
    choice_history: list[ChoiceRecord]
    attributes: dict[str, int]
    relationships: dict[str, int]
    achievements: list[Achievement]
    completion_percent: int
    is_complete: bool


def build_progress(
    storyline: Storyline, choice_target: int = DEFAULT_CHOICE_TARGET
) -> StoryProgress:
    ctx = storyline.context
    current = current_node_id(storyline)
    return StoryProgress(
        storyline_id=storyline.id,
        current_node_id=current,
        visited_nodes=[*ctx.previous_nodes, current],
        choice_history=[r.model_copy() for r in ctx.previous_choices],
        attributes=dict(ctx.attributes),
        relationships=dict(ctx.relationships),
        achievements=achievements(storyline),
        completion_percent=completion_percent(storyline, choice_target),
        is_complete=is_complete(storyline),
    )
