"""Storyline engine — owns the story graph and the player context.

A storyline is a graph of StoryNodes joined by Choices. Nodes are generated
lazily: a node's choice set is generated the first time someone asks for
it, and a choice's successor is generated the first time it is taken.
After that both are fixed, so replaying a choice is a pure read.

Every mutating operation follows the same shape:

    1. read the cached (or stored) storyline
    2. build a SceneRequest and await the generator chain
    3. re-read the storyline; if another call already did the work, use its
       result and discard ours
    4. apply the change to a deep copy, persist it, then swap it into the
       cache

so a failed write or an abandoned call never leaves a half-applied change
in the cache, and callers always receive copies they cannot use to alter
engine state.

Both caches (storyline by id, storyline id by character and mode) can be
dropped at any time; the store is authoritative.
"""

from __future__ import annotations

import logging

from storyweave import progress
from storyweave.characters import (
    CharacterProvider,
    earliest_event,
    era_location,
    era_year,
    event_location,
    event_year_label,
    get_character,
    initial_attributes,
)
from storyweave.errors import NotFound, StorylineClosed
from storyweave.generation import SceneGeneratorChain, SceneRequest
from storyweave.models import (
    AccuracyMode,
    Character,
    CharacterSummary,
    CharacterType,
    Choice,
    StoryContext,
    Storyline,
    StorylineSummary,
    StoryNode,
    utcnow,
)
from storyweave.storage import StorylineRepository
from storyweave.store import KeyValueStore

logger = logging.getLogger(__name__)

CharacterKey = tuple[CharacterType, str, AccuracyMode]


class StorylineEngine:
    def __init__(
        self,
        store: KeyValueStore,
        characters: CharacterProvider,
        generators: SceneGeneratorChain | None = None,
        choice_target: int = progress.DEFAULT_CHOICE_TARGET,
        trait_bonus: int = 20,
    ) -> None:
        self._repo = StorylineRepository(store)
        self._characters = characters
        self._generators = generators or SceneGeneratorChain()
        self.choice_target = choice_target
        self.trait_bonus = trait_bonus
        self._storylines: dict[str, Storyline] = {}
        self._by_character: dict[CharacterKey, str] = {}

    def drop_caches(self) -> None:
        self._storylines.clear()
        self._by_character.clear()

    # ------------------------------------------------------------------
    # Internal cache + persistence
    # ------------------------------------------------------------------

    async def _load(self, storyline_id: str) -> Storyline:
        """The engine's own instance. Never hand it out; copy first."""
        cached = self._storylines.get(storyline_id)
        if cached is not None:
            logger.debug("storyline cache hit id=%s", storyline_id)
            return cached
        storyline = await self._repo.load(storyline_id)
        self._storylines[storyline_id] = storyline
        return storyline

    async def _commit(self, storyline: Storyline) -> None:
        storyline.last_updated = utcnow()
        await self._repo.save(storyline)
        self._storylines[storyline.id] = storyline

    async def _character_for(self, storyline: Storyline) -> Character:
        summary = storyline.character
        try:
            return await get_character(self._characters, summary.id, summary.type)
        except NotFound:
            logger.warning(
                "Character %s (%s) is gone, continuing storyline %s from its summary",
                summary.id, summary.type, storyline.id,
            )
            return Character(id=summary.id, kind=summary.type, name=summary.name, era="")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _opening_request(
        self,
        character: Character,
        accuracy: AccuracyMode,
        attributes: dict[str, int],
    ) -> SceneRequest:
        event = earliest_event(character.key_events) if character.kind == "historical" else None
        if event is not None:
            year, location = event_year_label(event.date), event_location(event)
        else:
            year, location = era_year(character.era), era_location(character.era)
        return SceneRequest(
            stage="opening",
            character=character,
            accuracy=accuracy,
            year=year,
            location=location,
            event=event,
            attributes=dict(attributes),
        )

    def _node_request(
        self,
        stage: str,
        storyline: Storyline,
        character: Character,
        node: StoryNode,
        choice: Choice | None = None,
    ) -> SceneRequest:
        ctx = storyline.context
        return SceneRequest(
            stage=stage,
            character=character,
            accuracy=ctx.accuracy,
            year=ctx.current_year,
            location=ctx.current_location,
            situation=ctx.current_situation,
            node_text=node.text,
            node_metadata=node.metadata.model_copy(),
            choice=choice.model_copy(deep=True) if choice else None,
            attributes=dict(ctx.attributes),
            relationships=dict(ctx.relationships),
            previous_choices=[r.choice_text for r in ctx.previous_choices],
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_or_resume(
        self,
        character_id: str,
        character_type: CharacterType,
        accuracy: AccuracyMode,
        existing_storyline_id: str | None = None,
    ) -> Storyline:
        """Return the storyline to play for a character and accuracy mode.

        An existing_storyline_id that is found is returned unchanged; one that
        is not found falls through to the per-character cache and then to
        creating a new storyline.
        """
        if existing_storyline_id:
            try:
                return (await self._load(existing_storyline_id)).model_copy(deep=True)
            except NotFound:
                logger.info(
                    "Storyline %s not found, starting a new one", existing_storyline_id
                )

        key: CharacterKey = (character_type, character_id, accuracy)
        cached_id = self._by_character.get(key)
        if cached_id is not None:
            try:
                return (await self._load(cached_id)).model_copy(deep=True)
            except NotFound:
                del self._by_character[key]

        character = await get_character(self._characters, character_id, character_type)
        attributes = initial_attributes(character.traits, self.trait_bonus)
        scene = await self._generators.scene(
            self._opening_request(character, accuracy, attributes)
        )
        start = scene.to_node()

        storyline = Storyline(
            title=f"{character.name}'s Journey",
            character=CharacterSummary(id=character_id, type=character_type, name=character.name),
            nodes={start.id: start},
            start_node_id=start.id,
            context=StoryContext(
                character_id=character_id,
                character_type=character_type,
                accuracy=accuracy,
                current_year=start.metadata.year,
                current_location=start.metadata.location,
                attributes=attributes,
            ),
        )
        await self._commit(storyline)
        self._by_character[key] = storyline.id
        logger.info(
            "Created storyline %s for %s (%s, %s)",
            storyline.id, character.name, character_type, accuracy,
        )
        return storyline.model_copy(deep=True)

    async def choices_for(self, node_id: str, storyline_id: str) -> list[Choice]:
        """Choice set of a node, generating and persisting it on first request."""
        storyline = await self._load(storyline_id)
        node = storyline.nodes.get(node_id)
        if node is None:
            raise NotFound(f"Node {node_id} not found in storyline {storyline_id}")
        if node.choices is not None:
            return [c.model_copy(deep=True) for c in node.choices]

        if node.metadata.is_ending:
            choices: list[Choice] = []
        else:
            character = await self._character_for(storyline)
            choice_set = await self._generators.choices(
                self._node_request("choices", storyline, character, node)
            )
            choices = [draft.to_choice() for draft in choice_set.choices]

        latest = await self._load(storyline_id)
        existing = latest.nodes[node_id].choices
        if existing is not None:
            logger.debug("choices for node %s were generated concurrently, discarding ours", node_id)
            return [c.model_copy(deep=True) for c in existing]

        working = latest.model_copy(deep=True)
        working.nodes[node_id].choices = choices
        await self._commit(working)
        return [c.model_copy(deep=True) for c in choices]

    async def apply_choice(
        self, choice_id: str, current_node_id: str, storyline_id: str
    ) -> StoryNode:
        """Take a choice and return the node it leads to.

        A choice that was taken before returns its bound node without
        generating anything or touching the context.
        """
        storyline = await self._load(storyline_id)
        node = storyline.nodes.get(current_node_id)
        if node is None:
            raise NotFound(f"Node {current_node_id} not found in storyline {storyline_id}")
        choice = node.find_choice(choice_id)
        if choice is None:
            raise NotFound(f"Choice {choice_id} not found on node {current_node_id}")

        target = choice.successor_id
        if target is not None and target in storyline.nodes:
            logger.debug("choice %s already leads to %s", choice_id, target)
            return storyline.nodes[target].model_copy(deep=True)
        if progress.is_complete(storyline):
            raise StorylineClosed(f"Storyline {storyline_id} has already ended")

        # Generation input reflects the choice already applied
        draft = storyline.model_copy(deep=True)
        draft.context.record_choice(current_node_id, choice)
        draft.context.apply_consequences(choice.consequences)
        character = await self._character_for(storyline)
        scene = await self._generators.scene(
            self._node_request("continuation", draft, character, node, choice)
        )
        next_node = scene.to_node()

        latest = await self._load(storyline_id)
        latest_choice = latest.nodes[current_node_id].find_choice(choice_id)
        bound = latest_choice.successor_id if latest_choice else None
        if bound is not None and bound in latest.nodes:
            logger.debug("choice %s was bound concurrently, discarding generated node", choice_id)
            return latest.nodes[bound].model_copy(deep=True)

        working = latest.model_copy(deep=True)
        ctx = working.context
        working_choice = working.nodes[current_node_id].find_choice(choice_id)
        ctx.record_choice(current_node_id, working_choice)
        ctx.apply_consequences(working_choice.consequences)
        working.nodes[next_node.id] = next_node
        working_choice.bind(next_node.id)
        ctx.observe(next_node)
        await self._commit(working)
        logger.debug(
            "storyline %s: %s --%s--> %s", storyline_id, current_node_id, choice_id, next_node.id
        )
        return next_node.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Persistence pass-throughs
    # ------------------------------------------------------------------

    async def get_storyline(self, storyline_id: str) -> Storyline:
        return (await self._load(storyline_id)).model_copy(deep=True)

    async def save_storyline(self, storyline_id: str, title: str | None = None) -> Storyline:
        working = (await self._load(storyline_id)).model_copy(deep=True)
        if title:
            working.title = title
        await self._commit(working)
        return working.model_copy(deep=True)

    async def delete_storyline(self, storyline_id: str) -> bool:
        existed = await self._repo.delete(storyline_id)
        self._storylines.pop(storyline_id, None)
        for key, cached_id in list(self._by_character.items()):
            if cached_id == storyline_id:
                del self._by_character[key]
        if existed:
            logger.info("Deleted storyline %s", storyline_id)
        return existed

    async def list_storylines(self) -> list[StorylineSummary]:
        return await self._repo.list_summaries()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    async def transcript(self, storyline_id: str) -> str:
        """Markdown transcript of the path the player took."""
        storyline = await self._load(storyline_id)
        ctx = storyline.context
        name = storyline.character.name
        path = [*ctx.previous_nodes, progress.current_node_id(storyline)]

        parts = [f"# {storyline.title}", f"Character: {name}"]
        for i, node_id in enumerate(path):
            node = storyline.nodes.get(node_id)
            if node is None:
                continue
            meta = node.metadata
            if meta.location or meta.year:
                header = " ".join(
                    p for p in (meta.location, f"({meta.year})" if meta.year else None) if p
                )
                parts.append(f"**{header}**")
            parts.append(node.text)
            if i < len(ctx.previous_choices):
                parts.append(f"*{name} decided to: {ctx.previous_choices[i].choice_text}*")
        return "\n\n".join(parts) + "\n"

    def is_complete(self, storyline: Storyline) -> bool:
        return progress.is_complete(storyline)

    def completion_percent(self, storyline: Storyline) -> int:
        return progress.completion_percent(storyline, self.choice_target)

    def achievements(self, storyline: Storyline) -> list[progress.Achievement]:
        return progress.achievements(storyline)
