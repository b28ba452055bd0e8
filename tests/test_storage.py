"""Tests for storyweave.storage — StorylineRepository."""

from datetime import datetime, timedelta, timezone

import pytest

from storyweave.errors import NotFound, StorageFailure
from storyweave.models import CharacterSummary, StoryContext, Storyline, StoryNode
from storyweave.storage import INDEX_KEY, StorylineRepository, storyline_key
from storyweave.store import MemoryStore


def _storyline(title: str = "Gandhi's Journey", updated: datetime | None = None) -> Storyline:
    start = StoryNode(text="The train pulls into Pietermaritzburg.")
    kwargs = {"last_updated": updated} if updated else {}
    return Storyline(
        title=title,
        character=CharacterSummary(id="1", type="historical", name="Mahatma Gandhi"),
        nodes={start.id: start},
        start_node_id=start.id,
        context=StoryContext(character_id="1", character_type="historical", accuracy="accurate"),
        **kwargs,
    )


@pytest.fixture
def repo(store: MemoryStore) -> StorylineRepository:
    return StorylineRepository(store)


async def test_save_then_load(repo: StorylineRepository, store: MemoryStore) -> None:
    s = _storyline()
    await repo.save(s)
    assert storyline_key(s.id) in store.data
    loaded = await repo.load(s.id)
    assert loaded.model_dump() == s.model_dump()


async def test_load_unknown_raises_not_found(repo: StorylineRepository) -> None:
    with pytest.raises(NotFound):
        await repo.load("missing")


async def test_index_sorted_most_recent_first(repo: StorylineRepository) -> None:
    now = datetime.now(timezone.utc)
    old = _storyline("Old", now - timedelta(days=2))
    new = _storyline("New", now)
    mid = _storyline("Mid", now - timedelta(days=1))
    for s in (old, new, mid):
        await repo.save(s)
    assert [s.title for s in await repo.list_summaries()] == ["New", "Mid", "Old"]


async def test_resave_replaces_index_entry(repo: StorylineRepository) -> None:
    s = _storyline()
    await repo.save(s)
    s.title = "Renamed"
    await repo.save(s)
    summaries = await repo.list_summaries()
    assert len(summaries) == 1
    assert summaries[0].title == "Renamed"


async def test_empty_index(repo: StorylineRepository) -> None:
    assert await repo.list_summaries() == []


async def test_delete(repo: StorylineRepository, store: MemoryStore) -> None:
    s = _storyline()
    await repo.save(s)
    assert await repo.delete(s.id) is True
    assert storyline_key(s.id) not in store.data
    assert await repo.list_summaries() == []
    with pytest.raises(NotFound):
        await repo.load(s.id)
    assert await repo.delete(s.id) is False


async def test_delete_keeps_other_storylines(repo: StorylineRepository) -> None:
    a, b = _storyline("A"), _storyline("B")
    await repo.save(a)
    await repo.save(b)
    await repo.delete(a.id)
    assert [x.id for x in await repo.list_summaries()] == [b.id]
    assert (await repo.load(b.id)).title == "B"


async def test_corrupt_storyline_raises_storage_failure(store: MemoryStore) -> None:
    store.data[storyline_key("bad")] = '{"title": "no graph"}'
    with pytest.raises(StorageFailure):
        await StorylineRepository(store).load("bad")


async def test_corrupt_index_raises_storage_failure(store: MemoryStore) -> None:
    store.data[INDEX_KEY] = "not json"
    with pytest.raises(StorageFailure):
        await StorylineRepository(store).list_summaries()


async def test_works_on_file_store(file_store) -> None:
    repo = StorylineRepository(file_store)
    s = _storyline()
    await repo.save(s)
    assert (await StorylineRepository(file_store).load(s.id)).id == s.id


class IndexlessStore(MemoryStore):
    """MemoryStore that refuses to write the storyline index."""

    async def set(self, key: str, value: str) -> None:
        if key == INDEX_KEY:
            raise StorageFailure("index is read-only")
        await super().set(key, value)


async def test_failed_index_write_removes_new_entry() -> None:
    store = IndexlessStore()
    s = _storyline()
    with pytest.raises(StorageFailure, match="read-only"):
        await StorylineRepository(store).save(s)
    assert storyline_key(s.id) not in store.data


async def test_failed_index_write_restores_previous_entry() -> None:
    store = IndexlessStore()
    s = _storyline("First title")
    store.data[storyline_key(s.id)] = s.model_dump_json()
    s.title = "Second title"
    with pytest.raises(StorageFailure):
        await StorylineRepository(store).save(s)
    loaded = await StorylineRepository(store).load(s.id)
    assert loaded.title == "First title"
