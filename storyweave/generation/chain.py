"""Priority chain of scene generators ending in the rule-based fallback.

Backends are tried in order. A backend that raises, times out or returns
a malformed payload is logged and skipped; the first well-formed result
wins. The fallback runs when every backend was skipped (or none are
configured), so the chain as a whole never fails.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from storyweave.generation.base import SceneGenerator, SceneRequest
from storyweave.generation.fallback import RuleBasedGenerator
from storyweave.models import ChoiceSet, StructuredScene

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class SceneGeneratorChain:
    def __init__(
        self,
        backends: Sequence[SceneGenerator] = (),
        fallback: RuleBasedGenerator | None = None,
        timeout: float | None = 60.0,
    ) -> None:
        self.backends = list(backends)
        self.fallback = fallback or RuleBasedGenerator()
        self.timeout = timeout

    async def _first(
        self,
        request: SceneRequest,
        model: type[M],
        call: Callable[[SceneGenerator], Awaitable[Any]],
    ) -> M:
        for backend in self.backends:
            name = getattr(backend, "name", type(backend).__name__)
            try:
                result = await asyncio.wait_for(call(backend), timeout=self.timeout)
                result = model.model_validate(
                    result if isinstance(result, dict) else result.model_dump()
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Scene backend %s timed out after %ss (stage=%s), trying next",
                    name, self.timeout, request.stage,
                )
                continue
            except ValidationError as e:
                logger.warning(
                    "Scene backend %s returned a malformed %s (stage=%s): %s, trying next",
                    name, model.__name__, request.stage, e,
                )
                continue
            except Exception as e:
                logger.warning(
                    "Scene backend %s failed (stage=%s): %s, trying next",
                    name, request.stage, e,
                )
                continue
            logger.debug("Scene backend %s served stage=%s", name, request.stage)
            return result
        logger.debug("Using rule-based fallback for stage=%s", request.stage)
        return await call(self.fallback)

    async def scene(self, request: SceneRequest) -> StructuredScene:
        return await self._first(request, StructuredScene, lambda g: g.generate_scene(request))

    async def choices(self, request: SceneRequest) -> ChoiceSet:
        return await self._first(request, ChoiceSet, lambda g: g.generate_choices(request))
