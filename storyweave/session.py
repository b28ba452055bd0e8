"""Session controller — the single active storyline a UI is showing.

StorySession keeps the active storyline id, the active node id and the
nodes visited in this session. Each operation awaits the engine, and only
when everything succeeded does it move the active pointers and emit
events. Failures become an ERROR event and leave the pointers where they
were.

One operation runs at a time. cancel() abandons it: the engine work is
cancelled (so nothing is committed if generation was still running) and a
result that arrives anyway is ignored because the session epoch moved on.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from storyweave import progress as story_progress
from storyweave.characters import CharacterProvider, get_character
from storyweave.engine import StorylineEngine
from storyweave.errors import NotFound, StorylineError
from storyweave.events import EventBus, EventHandler, EventType
from storyweave.models import (
    AccuracyMode,
    CharacterType,
    Choice,
    Storyline,
    StorylineSummary,
    StoryNode,
)
from storyweave.visuals import (
    AvatarService,
    EnvironmentService,
    VisualAssets,
    placeholder_avatar,
    placeholder_environment,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorySession:
    def __init__(
        self,
        engine: StorylineEngine,
        characters: CharacterProvider,
        avatars: AvatarService | None = None,
        environments: EnvironmentService | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.engine = engine
        self.characters = characters
        self.avatars = avatars
        self.environments = environments
        self.events = events or EventBus()
        self.storyline_id: str | None = None
        self.node_id: str | None = None
        self.history: list[str] = []
        self.loading = False
        self._epoch = 0
        self._inflight: asyncio.Future | None = None

    def subscribe(self, event_type: EventType, handler: EventHandler) -> Callable[[], None]:
        return self.events.subscribe(event_type, handler)

    # ------------------------------------------------------------------
    # Operation plumbing
    # ------------------------------------------------------------------

    def _set_loading(self, loading: bool) -> None:
        if self.loading != loading:
            self.loading = loading
            self.events.emit(EventType.LOADING_CHANGED, self.storyline_id or "", loading=loading)

    def _begin(self) -> int:
        self._epoch += 1
        self._set_loading(True)
        return self._epoch

    def _finish(self, epoch: int) -> None:
        if epoch == self._epoch:
            self._set_loading(False)

    def _fail(self, operation: str, error: Exception) -> None:
        logger.warning("Session %s failed: %s", operation, error)
        self.events.emit(
            EventType.ERROR,
            self.storyline_id or "",
            operation=operation,
            message=str(error),
            error=error,
        )

    async def _perform(self, operation: str, work: Awaitable[T]) -> tuple[bool, T | None]:
        """Run engine work under the current epoch.

        Returns (True, result) when the work finished and is still current,
        (False, None) when it failed or was abandoned.
        """
        epoch = self._begin()
        task = asyncio.ensure_future(work)
        self._inflight = task
        try:
            result = await task
        except asyncio.CancelledError:
            if epoch == self._epoch:
                raise
            logger.debug("Session %s abandoned", operation)
            return False, None
        except StorylineError as e:
            if epoch == self._epoch:
                self._fail(operation, e)
            return False, None
        finally:
            if self._inflight is task:
                self._inflight = None
            self._finish(epoch)
        if epoch != self._epoch:
            logger.debug("Session %s finished after being abandoned, ignoring result", operation)
            return False, None
        return True, result

    def cancel(self) -> None:
        """Abandon the in-flight operation, if any."""
        self._epoch += 1
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None
        self._set_loading(False)

    def _activate(self, storyline: Storyline, node: StoryNode, choices: list[Choice]) -> None:
        self.storyline_id = storyline.id
        self.node_id = node.id
        sid = storyline.id
        self.events.emit(EventType.NODE_CHANGED, sid, node=node)
        self.events.emit(EventType.CHOICES_CHANGED, sid, choices=choices)
        self.events.emit(
            EventType.PROGRESS_CHANGED,
            sid,
            progress=story_progress.build_progress(storyline, self.engine.choice_target),
        )

    # ------------------------------------------------------------------
    # Play
    # ------------------------------------------------------------------

    async def _open(
        self, storyline: Storyline, node_id: str
    ) -> tuple[Storyline, StoryNode, list[Choice]]:
        choices = await self.engine.choices_for(node_id, storyline.id)
        storyline = await self.engine.get_storyline(storyline.id)
        return storyline, storyline.nodes[node_id], choices

    async def _start_work(
        self,
        character_id: str,
        character_type: CharacterType,
        accuracy: AccuracyMode,
        resume_id: str | None,
    ) -> tuple[Storyline, StoryNode, list[Choice]]:
        storyline = await self.engine.create_or_resume(
            character_id, character_type, accuracy, resume_id
        )
        return await self._open(storyline, storyline.start_node_id)

    async def start(
        self,
        character_id: str,
        character_type: CharacterType,
        accuracy: AccuracyMode,
        resume_id: str | None = None,
    ) -> bool:
        """Begin (or pick up) the storyline for a character and accuracy mode.

        The session always opens on the start node. Use resume() to stand
        where the player left off.
        """
        ok, result = await self._perform(
            "start", self._start_work(character_id, character_type, accuracy, resume_id)
        )
        if not ok:
            return False
        storyline, node, choices = result
        self.history = [node.id]
        self._activate(storyline, node, choices)
        return True

    async def _choose_work(
        self, choice_id: str, node_id: str, storyline_id: str
    ) -> tuple[Storyline, StoryNode, list[Choice]]:
        node = await self.engine.apply_choice(choice_id, node_id, storyline_id)
        choices = await self.engine.choices_for(node.id, storyline_id)
        storyline = await self.engine.get_storyline(storyline_id)
        return storyline, node, choices

    async def choose(self, choice_id: str) -> bool:
        if self.storyline_id is None or self.node_id is None:
            self._fail("choose", NotFound("No active storyline"))
            return False
        ok, result = await self._perform(
            "choose", self._choose_work(choice_id, self.node_id, self.storyline_id)
        )
        if not ok:
            return False
        storyline, node, choices = result
        self.history.append(node.id)
        self._activate(storyline, node, choices)
        return True

    async def load_visuals(self, node_id: str | None = None) -> VisualAssets | None:
        """Avatar and backdrop for a node (default: the active one).

        Runs outside the operation epoch and never changes session state.
        """
        if self.storyline_id is None:
            self._fail("load_visuals", NotFound("No active storyline"))
            return None
        try:
            storyline = await self.engine.get_storyline(self.storyline_id)
        except StorylineError as e:
            self._fail("load_visuals", e)
            return None
        node = storyline.nodes.get(node_id or self.node_id or storyline.start_node_id)
        if node is None:
            self._fail("load_visuals", NotFound(f"Node {node_id} not found"))
            return None

        summary = storyline.character
        try:
            character = await get_character(self.characters, summary.id, summary.type)
            era, description = character.era, ", ".join(character.traits)
        except NotFound:
            era, description = "", ""

        ctx, meta = storyline.context, node.metadata
        location = meta.location or ctx.current_location or "unknown location"
        year = meta.year or ctx.current_year or "unknown year"
        situation = meta.historical_event or ctx.current_situation or "a pivotal moment"

        async def avatar() -> str:
            if self.avatars is None:
                return placeholder_avatar(summary.name)
            return await self.avatars.avatar(summary.name, era, description)

        async def environment() -> str:
            if self.environments is None:
                return placeholder_environment(location)
            return await self.environments.environment(location, year, situation)

        avatar_uri, environment_uri = await asyncio.gather(avatar(), environment())
        return VisualAssets(avatar=avatar_uri, environment=environment_uri)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save(self, title: str | None = None) -> bool:
        """Persist the active storyline, optionally retitled.

        Refused while another operation is in flight.
        """
        if self.storyline_id is None:
            self._fail("save", NotFound("No active storyline"))
            return False
        if self.loading:
            self._fail("save", StorylineError("Another operation is still running"))
            return False
        try:
            await self.engine.save_storyline(self.storyline_id, title)
        except StorylineError as e:
            self._fail("save", e)
            return False
        return True

    async def _resume_work(self, storyline_id: str) -> tuple[Storyline, StoryNode, list[Choice]]:
        storyline = await self.engine.get_storyline(storyline_id)
        return await self._open(storyline, story_progress.current_node_id(storyline))

    async def resume(self, storyline_id: str) -> bool:
        """Load a saved storyline and stand on the node its last choice led to."""
        ok, result = await self._perform("resume", self._resume_work(storyline_id))
        if not ok:
            return False
        storyline, node, choices = result
        self.history = [*storyline.context.previous_nodes, node.id]
        self._activate(storyline, node, choices)
        return True

    async def list_storylines(self) -> list[StorylineSummary]:
        try:
            return await self.engine.list_storylines()
        except StorylineError as e:
            self._fail("list", e)
            return []

    async def delete(self, storyline_id: str) -> bool:
        try:
            existed = await self.engine.delete_storyline(storyline_id)
        except StorylineError as e:
            self._fail("delete", e)
            return False
        if storyline_id == self.storyline_id:
            self.storyline_id = None
            self.node_id = None
            self.history = []
            self.events.emit(EventType.NODE_CHANGED, storyline_id, node=None)
            self.events.emit(EventType.CHOICES_CHANGED, storyline_id, choices=[])
        return existed

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    async def _active(self, operation: str) -> Storyline | None:
        if self.storyline_id is None:
            return None
        try:
            return await self.engine.get_storyline(self.storyline_id)
        except StorylineError as e:
            self._fail(operation, e)
            return None

    async def progress(self) -> story_progress.StoryProgress | None:
        storyline = await self._active("progress")
        if storyline is None:
            return None
        return story_progress.build_progress(storyline, self.engine.choice_target)

    async def player_stats(self) -> list[story_progress.PlayerStat]:
        storyline = await self._active("player_stats")
        return story_progress.player_stats(storyline) if storyline else []

    async def relationships(self) -> list[dict[str, Any]]:
        storyline = await self._active("relationships")
        return story_progress.relationship_list(storyline) if storyline else []

    async def transcript(self) -> str | None:
        if self.storyline_id is None:
            return None
        try:
            return await self.engine.transcript(self.storyline_id)
        except StorylineError as e:
            self._fail("transcript", e)
            return None
