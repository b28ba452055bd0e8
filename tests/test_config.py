"""Tests for storyweave.config."""

import json

import pytest

from storyweave.config import CONFIG_KEY, get_config, update_config
from storyweave.errors import StorageFailure
from storyweave.store import MemoryStore


async def test_defaults(store: MemoryStore):
    config = await get_config(store)
    assert config["scene_backends"] == []
    assert config["generation_timeout"] == 60.0
    assert config["choice_target"] == 20
    assert config["trait_bonus"] == 20
    assert config["visuals"]["api_key"] == ""


async def test_defaults_are_not_shared(store: MemoryStore):
    config = await get_config(store)
    config["visuals"]["api_key"] = "leaked"
    config["scene_backends"].append({"provider_url": "x"})
    fresh = await get_config(store)
    assert fresh["visuals"]["api_key"] == ""
    assert fresh["scene_backends"] == []


async def test_update_persists(store: MemoryStore):
    backends = [{"name": "local", "provider_url": "http://localhost:5001"}]
    updated = await update_config(store, {"scene_backends": backends, "choice_target": 10})
    assert updated["scene_backends"] == backends
    assert json.loads(store.data[CONFIG_KEY])["choice_target"] == 10
    assert (await get_config(store))["choice_target"] == 10


async def test_scene_backends_replaced_wholesale(store: MemoryStore):
    await update_config(store, {"scene_backends": [{"provider_url": "a"}, {"provider_url": "b"}]})
    config = await update_config(store, {"scene_backends": [{"provider_url": "c"}]})
    assert config["scene_backends"] == [{"provider_url": "c"}]


async def test_visuals_merged_key_by_key(store: MemoryStore):
    await update_config(store, {"visuals": {"api_key": "secret"}})
    config = await update_config(store, {"visuals": {"model_version": "sdxl-2"}})
    assert config["visuals"]["api_key"] == "secret"
    assert config["visuals"]["model_version"] == "sdxl-2"
    assert config["visuals"]["provider_url"].startswith("https://")


async def test_unknown_keys_ignored(store: MemoryStore):
    config = await update_config(store, {"theme": "dark"})
    assert "theme" not in config


async def test_invalid_json(store: MemoryStore):
    store.data[CONFIG_KEY] = "{not json"
    with pytest.raises(StorageFailure):
        await get_config(store)
