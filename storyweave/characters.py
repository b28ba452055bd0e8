"""Character lookup — the built-in roster plus user-made characters.

The engine only needs the CharacterProvider protocol:

    async def get_historical(self, character_id: str) -> Character: ...
    async def get_custom(self, character_id: str) -> Character: ...

Both raise NotFound for unknown ids.

CharacterCatalog is the production implementation. Historical figures come
from roster.HISTORICAL_CHARACTERS; custom characters are persisted as one
JSON list under the "custom_characters" key of a KeyValueStore.

The module also holds the small lookup tables used to seed a storyline from
a character: trait keyword → attribute, era → year, era → location.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from storyweave.errors import NotFound, StorageFailure
from storyweave.models import (
    ATTRIBUTE_RANGE,
    DEFAULT_ATTRIBUTE,
    Character,
    CharacterType,
    HistoricalEvent,
    clamp,
    utcnow,
)
from storyweave.roster import HISTORICAL_CHARACTERS
from storyweave.store import KeyValueStore

logger = logging.getLogger(__name__)

CUSTOM_CHARACTERS_KEY = "custom_characters"

BASE_ATTRIBUTES = ("influence", "resolve", "intellect", "charisma", "compassion")

TRAIT_ATTRIBUTES: dict[str, str] = {
    "determined": "resolve",
    "resilient": "resolve",
    "principled": "resolve",
    "intelligent": "intellect",
    "analytical": "intellect",
    "brilliant": "intellect",
    "charismatic": "charisma",
    "diplomatic": "charisma",
    "inspiring": "charisma",
    "compassionate": "compassion",
    "spiritual": "compassion",
    "empathetic": "compassion",
    "influential": "influence",
    "powerful": "influence",
    "strategic": "influence",
}

# Checked in order; the first era substring that matches wins.
ERA_YEARS: list[tuple[str, str]] = [
    ("Ancient", "500 BCE"),
    ("Medieval", "1200 CE"),
    ("Renaissance", "1500 CE"),
    ("19th Century", "1850 CE"),
    ("20th Century", "1920 CE"),
]

ERA_LOCATIONS: list[tuple[str, str]] = [
    ("Ancient", "Rome"),
    ("Medieval", "a European kingdom"),
    ("Renaissance", "Florence"),
    ("19th Century", "London"),
    ("20th Century", "New York"),
]

EVENT_LOCATIONS = ("India", "America", "England", "France", "Germany", "Russia", "China", "Japan")

UNKNOWN_YEAR = "unknown year"
UNKNOWN_LOCATION = "unknown location"

_YEAR_RE = re.compile(r"\d{4}")

_custom_adapter = TypeAdapter(list[Character])


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

def initial_attributes(traits: list[str], bonus: int = 20) -> dict[str, int]:
    """Five base attributes at 50, each recognised trait keyword adding bonus."""
    attributes = {name: DEFAULT_ATTRIBUTE for name in BASE_ATTRIBUTES}
    for trait in traits:
        attribute = TRAIT_ATTRIBUTES.get(trait.strip().lower())
        if attribute:
            attributes[attribute] = clamp(attributes[attribute] + bonus, ATTRIBUTE_RANGE)
    return attributes


def event_year(date: str) -> int | None:
    """First 4-digit run in a date string, or None if undated."""
    m = _YEAR_RE.search(date)
    return int(m.group(0)) if m else None


def event_year_label(date: str) -> str:
    """The year to show for an event: its first 4-digit run, else the raw date."""
    m = _YEAR_RE.search(date)
    return m.group(0) if m else date


def earliest_event(events: list[HistoricalEvent]) -> HistoricalEvent | None:
    """Chronologically earliest event. Undated events sort first; ties keep list order."""
    if not events:
        return None

    def key(event: HistoricalEvent) -> tuple[bool, int]:
        year = event_year(event.date)
        return (year is not None, year or 0)

    return min(events, key=key)


def era_year(era: str) -> str:
    m = _YEAR_RE.search(era)
    if m:
        return m.group(0)
    for needle, year in ERA_YEARS:
        if needle in era:
            return year
    return UNKNOWN_YEAR


def era_location(era: str) -> str:
    for needle, location in ERA_LOCATIONS:
        if needle in era:
            return location
    return UNKNOWN_LOCATION


def event_location(event: HistoricalEvent) -> str:
    for location in EVENT_LOCATIONS:
        if location in event.description or location in event.title:
            return location
    return UNKNOWN_LOCATION


# ---------------------------------------------------------------------------
# Provider protocol + catalog
# ---------------------------------------------------------------------------

class CharacterProvider(Protocol):
    async def get_historical(self, character_id: str) -> Character: ...

    async def get_custom(self, character_id: str) -> Character: ...


async def get_character(
    provider: CharacterProvider, character_id: str, character_type: CharacterType
) -> Character:
    if character_type == "historical":
        return await provider.get_historical(character_id)
    return await provider.get_custom(character_id)


class CharacterCatalog:
    """Historical roster plus custom characters stored in a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        historical: dict[str, Character] | None = None,
    ) -> None:
        self._store = store
        self._historical = dict(HISTORICAL_CHARACTERS if historical is None else historical)

    # ── Historical ───────────────────────────────────────

    async def get_historical(self, character_id: str) -> Character:
        character = self._historical.get(character_id)
        if character is None:
            raise NotFound(f"Historical character {character_id} not found")
        return character

    async def list_historical(self) -> list[Character]:
        return list(self._historical.values())

    async def search_historical(self, query: str) -> list[Character]:
        """Case-insensitive match on name, era, traits or biography. Blank query returns all."""
        characters = await self.list_historical()
        needle = query.strip().lower()
        if not needle:
            return characters
        return [
            c for c in characters
            if needle in c.name.lower()
            or needle in c.era.lower()
            or any(needle in t.lower() for t in c.traits)
            or needle in (c.biography or "").lower()
        ]

    async def filter_by_era(self, era: str) -> list[Character]:
        characters = await self.list_historical()
        if era == "all":
            return characters
        return [c for c in characters if era.lower() in c.era.lower()]

    # ── Custom ───────────────────────────────────────────

    async def list_custom(self) -> list[Character]:
        raw = await self._store.get(CUSTOM_CHARACTERS_KEY)
        if not raw:
            return []
        try:
            return _custom_adapter.validate_json(raw)
        except ValidationError as e:
            raise StorageFailure(f"Custom characters are corrupt: {e}") from e

    async def get_custom(self, character_id: str) -> Character:
        for character in await self.list_custom():
            if character.id == character_id:
                return character
        raise NotFound(f"Custom character {character_id} not found")

    async def create_custom(
        self, name: str, era: str, background: str, traits: list[str]
    ) -> Character:
        characters = await self.list_custom()
        taken = {c.id for c in characters}
        stamp = int(time.time() * 1000)
        while f"custom-{stamp}" in taken:
            stamp += 1
        character = Character(
            id=f"custom-{stamp}",
            kind="custom",
            name=name,
            era=era,
            background=background,
            traits=traits,
            created=utcnow(),
        )
        characters.append(character)
        await self._write_custom(characters)
        logger.info("Created custom character %s (%s)", character.id, name)
        return character

    async def update_custom(self, character: Character) -> Character:
        """Replace a stored custom character, keeping its original creation time."""
        characters = await self.list_custom()
        for i, existing in enumerate(characters):
            if existing.id == character.id:
                updated = character.model_copy(
                    update={"kind": "custom", "created": existing.created}
                )
                characters[i] = updated
                await self._write_custom(characters)
                return updated
        raise NotFound(f"Custom character {character.id} not found")

    async def delete_custom(self, character_id: str) -> bool:
        characters = await self.list_custom()
        remaining = [c for c in characters if c.id != character_id]
        if len(remaining) == len(characters):
            return False
        await self._write_custom(remaining)
        logger.info("Deleted custom character %s", character_id)
        return True

    async def _write_custom(self, characters: list[Character]) -> None:
        await self._store.set(
            CUSTOM_CHARACTERS_KEY,
            json.dumps([c.model_dump(mode="json") for c in characters], indent=2),
        )
