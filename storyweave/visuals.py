"""Character avatars and scene backdrops.

An ImageGenerator turns a prompt into an image URI. AvatarService and
EnvironmentService wrap one with a store-backed cache and never fail:
any generator error (or no generator at all) yields a placeholder URI.
Placeholders are not cached, so a later call can still get a real image.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

import httpx
from pydantic import BaseModel

from storyweave.errors import StorageFailure
from storyweave.store import KeyValueStore

logger = logging.getLogger(__name__)

AVATAR_NEGATIVE = "deformed, distorted, modern clothing, anachronistic"
ENVIRONMENT_NEGATIVE = "people, faces, text, modern buildings, cars, anachronistic elements"

PLACEHOLDER_ENVIRONMENTS = [
    ("India", "https://via.placeholder.com/800x400?text=Historical+India"),
    ("South Africa", "https://via.placeholder.com/800x400?text=South+Africa"),
    ("Washington", "https://via.placeholder.com/800x400?text=Washington"),
    ("Paris", "https://via.placeholder.com/800x400?text=Paris"),
]
PLACEHOLDER_SCENE = "https://via.placeholder.com/800x400?text=Historical+Scene"

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9]+")


def _slug(text: str) -> str:
    return _UNSAFE_RE.sub("_", text).strip("_")


class VisualError(RuntimeError):
    """Raised when the image backend cannot produce an image."""


class ImageGenerator(Protocol):
    async def __call__(self, prompt: str, negative_prompt: str) -> str: ...


class VisualAssets(BaseModel):
    avatar: str
    environment: str


# ---------------------------------------------------------------------------
# HttpImageGenerator — prediction API over HTTP
# ---------------------------------------------------------------------------

class HttpImageGenerator:
    """Posts a prediction request and returns the first output URI.

    Request:  {"version": ..., "input": {"prompt", "negative_prompt", "num_outputs": 1}}
    Response: {"output": ["https://..."]}
    """

    def __init__(
        self,
        api_key: str,
        provider_url: str = "https://api.replicate.com/v1/predictions",
        model_version: str = "stable-diffusion-xl-1024-v1-0",
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._url = provider_url
        self._version = model_version
        self._timeout = timeout

    async def __call__(self, prompt: str, negative_prompt: str) -> str:
        body = {
            "version": self._version,
            "input": {"prompt": prompt, "negative_prompt": negative_prompt, "num_outputs": 1},
        }
        headers = {
            "Authorization": f"Token {self._api_key}",
            "Content-Type": "application/json",
        }
        logger.debug("image request url=%s prompt_len=%d", self._url, len(prompt))
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=body, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise VisualError(f"Image backend returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise VisualError(f"Image backend request failed: {e}") from e

        try:
            output = resp.json().get("output")
        except (ValueError, AttributeError) as e:
            raise VisualError("Image backend returned an unexpected body") from e
        if not output or not isinstance(output[0], str):
            raise VisualError("Image backend returned no output")
        return output[0]


# ---------------------------------------------------------------------------
# Cached services with placeholder fallback
# ---------------------------------------------------------------------------

class _CachedVisuals:
    def __init__(self, store: KeyValueStore, generator: ImageGenerator | None = None) -> None:
        self._store = store
        self._generator = generator

    async def _cached_or_generate(
        self, key: str, prompt: str, negative: str, placeholder: str
    ) -> str:
        try:
            cached = await self._store.get(key)
        except StorageFailure as e:
            logger.warning("Cannot read visual cache %s: %s", key, e)
            cached = None
        if cached:
            return cached
        if self._generator is None:
            return placeholder
        try:
            uri = await self._generator(prompt, negative)
        except Exception as e:
            logger.warning("Image generation failed for %s, using placeholder: %s", key, e)
            return placeholder
        try:
            await self._store.set(key, uri)
        except StorageFailure as e:
            logger.warning("Cannot write visual cache %s: %s", key, e)
        return uri


class AvatarService(_CachedVisuals):
    async def avatar(self, name: str, era: str, description: str) -> str:
        prompt = f"Portrait of {name}, {era}, {description}, detailed, realistic, historical figure"
        key = f"avatar_{_slug(name).lower()}"
        return await self._cached_or_generate(key, prompt, AVATAR_NEGATIVE, placeholder_avatar(name))


class EnvironmentService(_CachedVisuals):
    async def environment(self, location: str, year: str, situation: str) -> str:
        prompt = (
            f"Historical scene of {location} during {year}, {situation}, "
            f"wide view, detailed, historical setting"
        )
        key = f"env_{_slug(location)}_{_slug(year)}"
        return await self._cached_or_generate(
            key, prompt, ENVIRONMENT_NEGATIVE, placeholder_environment(location)
        )


def placeholder_avatar(name: str) -> str:
    return f"https://via.placeholder.com/150?text={name[:1]}"


def placeholder_environment(location: str) -> str:
    for needle, uri in PLACEHOLDER_ENVIRONMENTS:
        if needle in location:
            return uri
    return PLACEHOLDER_SCENE
