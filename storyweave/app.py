import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from storyweave.characters import CharacterCatalog
from storyweave.config import get_config
from storyweave.engine import StorylineEngine
from storyweave.events import EventBus
from storyweave.generation import LLMSceneGenerator, SceneGeneratorChain
from storyweave.llm import HttpLLM
from storyweave.session import StorySession
from storyweave.store import JsonFileStore, KeyValueStore
from storyweave.visuals import AvatarService, EnvironmentService, HttpImageGenerator

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def build_generators(config: dict[str, Any]) -> SceneGeneratorChain:
    """One LLMSceneGenerator per configured backend, in configured order."""
    backends = []
    for conn in config["scene_backends"]:
        llm = HttpLLM(
            provider_url=conn["provider_url"],
            api_key=conn.get("api_key", ""),
            provider_format=conn.get("provider_format", "koboldcpp"),
            model=conn.get("model", ""),
            timeout=conn.get("timeout", 120.0),
        )
        backends.append(LLMSceneGenerator(llm, name=conn.get("name") or conn["provider_url"]))
    return SceneGeneratorChain(backends, timeout=config["generation_timeout"])


async def create_session(
    data_dir: Path | None = None,
    store: KeyValueStore | None = None,
    events: EventBus | None = None,
) -> StorySession:
    if store is None:
        resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
        store = JsonFileStore(resolved)
    config = await get_config(store)

    characters = CharacterCatalog(store)
    engine = StorylineEngine(
        store,
        characters,
        build_generators(config),
        choice_target=config["choice_target"],
        trait_bonus=config["trait_bonus"],
    )

    visuals = config["visuals"]
    api_key = visuals.get("api_key") or os.getenv("IMAGE_API_KEY", "")
    images = None
    if api_key:
        images = HttpImageGenerator(
            api_key,
            provider_url=visuals["provider_url"],
            model_version=visuals["model_version"],
        )
    logger.info(
        "Session ready: %d scene backend(s), images %s",
        len(config["scene_backends"]), "on" if images else "off",
    )
    return StorySession(
        engine,
        characters,
        avatars=AvatarService(store, images),
        environments=EnvironmentService(store, images),
        events=events,
    )
