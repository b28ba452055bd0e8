"""LLM-backed scene generator.

Renders a Handlebars prompt for the request stage, sends it to an LLM and
validates the JSON object in the reply against StructuredScene / ChoiceSet.
Replies are often wrapped in markdown fences or surrounded by prose, so the
first {...} span is extracted when the whole reply does not parse.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ValidationError

from storyweave.errors import ValidationFailure
from storyweave.generation.base import SceneRequest
from storyweave.llm import LLM
from storyweave.models import ChoiceSet, StructuredScene
from storyweave.prompts import DEFAULT_TEMPLATES, build_context, render_prompt

logger = logging.getLogger(__name__)

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json(text: str) -> dict[str, Any]:
    """Parse the JSON object in an LLM reply, stripping markdown fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        m = _OBJECT_RE.search(cleaned)
        if not m:
            raise ValidationFailure("LLM reply contains no JSON object")
        try:
            data = json.loads(m.group(0))
        except json.JSONDecodeError as e:
            raise ValidationFailure(f"LLM reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValidationFailure("LLM reply is not a JSON object")
    return data


class LLMSceneGenerator:
    """Scene generator that asks an LLM for structured JSON."""

    def __init__(
        self,
        llm: LLM,
        name: str = "llm",
        templates: dict[str, str] | None = None,
    ) -> None:
        self.name = name
        self._llm = llm
        self._templates = {**DEFAULT_TEMPLATES, **(templates or {})}

    async def _ask(self, request: SceneRequest, model: type[BaseModel]) -> Any:
        prompt = render_prompt(self._templates[request.stage], build_context(request))
        text = await self._llm(request.stage, prompt)
        data = extract_json(text)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ValidationFailure(
                f"{self.name}: malformed {request.stage} payload: {e.error_count()} errors"
            ) from e

    async def generate_scene(self, request: SceneRequest) -> StructuredScene:
        return await self._ask(request, StructuredScene)

    async def generate_choices(self, request: SceneRequest) -> ChoiceSet:
        return await self._ask(request, ChoiceSet)
