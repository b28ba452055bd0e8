"""Storyline persistence on top of a KeyValueStore.

Key layout:

    storyline_{id}     ← full Storyline JSON
    storyline_list     ← list of StorylineSummary, most recently updated first

Every save rewrites the storyline entry, then upserts its summary into the
index and resorts the index by last_updated (descending). A save whose
index write fails restores the entry it overwrote.
"""

from __future__ import annotations

import json
import logging

from pydantic import TypeAdapter, ValidationError

from storyweave.errors import NotFound, StorageFailure
from storyweave.models import Storyline, StorylineSummary
from storyweave.store import KeyValueStore

logger = logging.getLogger(__name__)

INDEX_KEY = "storyline_list"

_index_adapter = TypeAdapter(list[StorylineSummary])


def storyline_key(storyline_id: str) -> str:
    return f"storyline_{storyline_id}"


class StorylineRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Storylines
    # ------------------------------------------------------------------

    async def load(self, storyline_id: str) -> Storyline:
        raw = await self._store.get(storyline_key(storyline_id))
        if raw is None:
            raise NotFound(f"Storyline {storyline_id} not found")
        try:
            return Storyline.model_validate_json(raw)
        except ValidationError as e:
            raise StorageFailure(f"Storyline {storyline_id} is corrupt: {e}") from e

    async def save(self, storyline: Storyline) -> None:
        """Write the entry, then the index.

        If the index write fails the previous entry is put back (or the new
        one removed), so a failed save leaves nothing behind.
        """
        key = storyline_key(storyline.id)
        previous = await self._store.get(key)
        await self._store.set(key, storyline.model_dump_json())
        try:
            await self._upsert_index(storyline.summary())
        except StorageFailure:
            try:
                if previous is None:
                    await self._store.remove(key)
                else:
                    await self._store.set(key, previous)
            except StorageFailure as e:
                logger.error("Could not roll back storyline %s: %s", storyline.id, e)
            raise

    async def delete(self, storyline_id: str) -> bool:
        """Remove the storyline and its index entry. Returns False if it was unknown."""
        key = storyline_key(storyline_id)
        existed = await self._store.get(key) is not None
        await self._store.remove(key)
        index = await self.list_summaries()
        remaining = [s for s in index if s.id != storyline_id]
        if len(remaining) != len(index):
            existed = True
            await self._write_index(remaining)
        return existed

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    async def list_summaries(self) -> list[StorylineSummary]:
        raw = await self._store.get(INDEX_KEY)
        if not raw:
            return []
        try:
            return _index_adapter.validate_json(raw)
        except ValidationError as e:
            raise StorageFailure(f"Storyline index is corrupt: {e}") from e

    async def _upsert_index(self, summary: StorylineSummary) -> None:
        index = await self.list_summaries()
        for i, existing in enumerate(index):
            if existing.id == summary.id:
                index[i] = summary
                break
        else:
            index.append(summary)
        index.sort(key=lambda s: s.last_updated, reverse=True)
        await self._write_index(index)

    async def _write_index(self, index: list[StorylineSummary]) -> None:
        await self._store.set(
            INDEX_KEY, json.dumps([s.model_dump(mode="json") for s in index], indent=2)
        )
