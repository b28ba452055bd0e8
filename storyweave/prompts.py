"""Handlebars prompt rendering for scene generation."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import pybars

if TYPE_CHECKING:
    from storyweave.generation.base import SceneRequest


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_take(this, options, items, count):
    """{{#take array N}}...{{/take}} — iterate over the first N items."""
    result = []
    for item in list(items)[:int(count)]:
        result.extend(options["fn"](item))
    return result


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}} — iterate over the last N items."""
    result = []
    for item in list(items)[-int(count):]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "take": _helper_take,
    "last": _helper_last,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return compiled(context, helpers=_HELPERS)
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Default templates ────────────────────────────────────

_PREAMBLE = """You are the narrator of an interactive historical fiction story.
The player is {{{char.name}}}, a {{{char.traits}}} figure of the {{{char.era}}}.
{{#if char.summary}}{{{char.summary}}}
{{/if}}{{#if is_accurate}}Stay faithful to the historical record.{{else}}You may take creative liberties with history while keeping the period believable.{{/if}}
"""

_SCENE_FORMAT = """
Reply with a single JSON object and nothing else:
{ "fragments": [ { "kind": "narration", "text": "...", "speaker": null } ],
  "year": "...", "location": "...", "historical_event": "...",
  "emotional_tone": "neutral|tense|hopeful|somber|triumphant",
  "is_key_moment": false, "is_ending": false, "contextual_background": "..." }
Fragment kinds: narration, dialogue, thought, historical-fact, decision-point.
Write in the second person, 100 to 200 words."""

OPENING_TEMPLATE = _PREAMBLE + """
Write the opening scene of the story{{#if year}}, set in {{{year}}}{{/if}}{{#if location}} in {{{location}}}{{/if}}.
{{#if event}}The scene depicts: {{{event.title}}} ({{{event.date}}}). {{{event.description}}}
{{#if event.significance}}Why it matters: {{{event.significance}}}
{{/if}}{{else}}Show an ordinary day in the life of the character that leads to an important decision.
{{/if}}""" + _SCENE_FORMAT

CONTINUATION_TEMPLATE = _PREAMBLE + """
Story so far, current scene{{#if year}} ({{{year}}}{{#if location}}, {{{location}}}{{/if}}){{/if}}:
{{{node.text}}}

{{#if previous_choices}}Earlier decisions:
{{#last previous_choices 5}}- {{{this}}}
{{/last}}{{/if}}The player decided to: {{{choice.text}}}
{{#if choice.immediate}}Immediate consequence: {{{choice.immediate}}}
{{/if}}{{#if choice.long_term}}Long-term consequence: {{{choice.long_term}}}
{{/if}}
Current attributes: {{#each attributes}}{{{name}}} {{{value}}}; {{/each}}
{{#if relationships}}Relationships: {{#each relationships}}{{{name}}} {{{value}}}; {{/each}}
{{/if}}
Write the next scene showing the result of this decision.""" + _SCENE_FORMAT

CHOICES_TEMPLATE = _PREAMBLE + """
Current scene{{#if year}} ({{{year}}}{{#if location}}, {{{location}}}{{/if}}){{/if}}:
{{{node.text}}}

Offer the player three distinct decisions for this moment.
Reply with a single JSON object and nothing else:
{ "choices": [ { "text": "...", "impact": "...",
  "historical_accuracy": "accurate|somewhat-accurate|creative",
  "consequences": { "immediate": "...", "long_term": "...",
    "affects_attributes": { "resolve": 5 },
    "affects_relationships": { "British Authorities": -5 } } } ] }
Attribute names: influence, resolve, intellect, charisma, compassion.
Keep each delta between -10 and 10."""

DEFAULT_TEMPLATES: dict[str, str] = {
    "opening": OPENING_TEMPLATE,
    "continuation": CONTINUATION_TEMPLATE,
    "choices": CHOICES_TEMPLATE,
}


def build_context(request: SceneRequest) -> dict[str, Any]:
    """Assemble template variables from a scene request.

    Returns a dict suitable for passing to render_prompt(). Nested objects
    (char, event, node, choice) keep Handlebars paths short.
    """
    character = request.character
    ctx: dict[str, Any] = {
        "stage": request.stage,
        "char": {
            "name": character.name,
            "era": character.era,
            "traits": ", ".join(character.traits) or "remarkable",
            "summary": character.summary_text,
        },
        "accuracy": request.accuracy,
        "is_accurate": request.accuracy == "accurate",
        "year": request.year or "",
        "location": request.location or "",
        "situation": request.situation or "",
        "attributes": [{"name": k, "value": v} for k, v in request.attributes.items()],
        "relationships": [{"name": k, "value": v} for k, v in request.relationships.items()],
        "previous_choices": list(request.previous_choices),
    }

    # ── event (seed event for the opening scene) ──
    if request.event is not None:
        ctx["event"] = request.event.model_dump()

    # ── node (scene the player is looking at) ──
    if request.node_text is not None:
        ctx["node"] = {"text": request.node_text}
        if request.node_metadata is not None:
            ctx["node"]["event"] = request.node_metadata.historical_event or ""
            ctx["node"]["tone"] = request.node_metadata.emotional_tone or ""

    # ── choice (decision just taken) ──
    if request.choice is not None:
        ctx["choice"] = {
            "text": request.choice.text,
            "immediate": request.choice.consequences.immediate or "",
            "long_term": request.choice.consequences.long_term or "",
        }

    return ctx
