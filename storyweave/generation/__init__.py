from storyweave.generation.base import SceneGenerator, SceneRequest, Stage
from storyweave.generation.chain import SceneGeneratorChain
from storyweave.generation.fallback import RuleBasedGenerator
from storyweave.generation.llm_backend import LLMSceneGenerator, extract_json

__all__ = [
    "LLMSceneGenerator",
    "RuleBasedGenerator",
    "SceneGenerator",
    "SceneGeneratorChain",
    "SceneRequest",
    "Stage",
    "extract_json",
]
