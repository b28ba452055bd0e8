"""Global configuration (scene backends, generation limits, visuals).

Stored as one JSON object under the "config" key of the KeyValueStore.
Reads return defaults merged with the stored values.
"""

from __future__ import annotations

import copy
import json
from typing import Any

from storyweave.errors import StorageFailure
from storyweave.store import KeyValueStore

CONFIG_KEY = "config"

_CONFIG_DEFAULTS: dict[str, Any] = {
    # Ordered list of LLM connections:
    # {"name", "provider_url", "provider_format", "api_key", "model", "timeout"}
    "scene_backends": [],
    "generation_timeout": 60.0,
    "choice_target": 20,
    "trait_bonus": 20,
    "visuals": {
        "provider_url": "https://api.replicate.com/v1/predictions",
        "api_key": "",
        "model_version": "stable-diffusion-xl-1024-v1-0",
    },
}

_SCALAR_KEYS = ("generation_timeout", "choice_target", "trait_bonus")


async def _read_stored(store: KeyValueStore) -> dict[str, Any]:
    raw = await store.get(CONFIG_KEY)
    if not raw:
        return {}
    try:
        stored = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageFailure(f"Config is not valid JSON: {e}") from e
    return stored if isinstance(stored, dict) else {}


def _merge(config: dict[str, Any], fields: dict[str, Any]) -> None:
    if "scene_backends" in fields:
        config["scene_backends"] = list(fields["scene_backends"])
    for key in _SCALAR_KEYS:
        if key in fields:
            config[key] = fields[key]
    if isinstance(fields.get("visuals"), dict):
        config["visuals"].update(fields["visuals"])


async def get_config(store: KeyValueStore) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = copy.deepcopy(_CONFIG_DEFAULTS)
    _merge(config, await _read_stored(store))
    return config


async def update_config(store: KeyValueStore, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config.

    scene_backends is replaced wholesale; visuals is merged key by key.
    """
    config = await get_config(store)
    _merge(config, fields)
    await store.set(CONFIG_KEY, json.dumps(config, indent=2))
    return config
