from pathlib import Path

import pytest

from storyweave.characters import CharacterCatalog
from storyweave.engine import StorylineEngine
from storyweave.events import EventBus
from storyweave.session import StorySession
from storyweave.store import JsonFileStore, MemoryStore


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def file_store(tmp_path: Path) -> JsonFileStore:
    """Store on disk under a per-test directory."""
    return JsonFileStore(tmp_path / "data")


@pytest.fixture
def catalog(store: MemoryStore) -> CharacterCatalog:
    return CharacterCatalog(store)


@pytest.fixture
def engine(store: MemoryStore, catalog: CharacterCatalog) -> StorylineEngine:
    """Engine with no scene backends: every scene comes from the rule-based fallback."""
    return StorylineEngine(store, catalog)


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def session(engine: StorylineEngine, catalog: CharacterCatalog, events: EventBus) -> StorySession:
    return StorySession(engine, catalog, events=events)
