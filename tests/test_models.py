"""Tests for storyweave.models."""

import pytest
from pydantic import ValidationError

from storyweave.models import (
    CharacterSummary,
    Choice,
    ChoiceDraft,
    ChoiceRecord,
    Consequences,
    NodeMetadata,
    ResolvedTo,
    SceneFragment,
    StoryContext,
    Storyline,
    StoryNode,
    StructuredScene,
    Unresolved,
)


def _context(**kwargs) -> StoryContext:
    return StoryContext(
        character_id="1", character_type="historical", accuracy="accurate", **kwargs
    )


class TestChoice:
    def test_starts_unresolved(self) -> None:
        c = Choice(text="Wait")
        assert isinstance(c.leads_to, Unresolved)
        assert c.successor_id is None

    def test_bind_sets_successor(self) -> None:
        c = Choice(text="Wait")
        c.bind("n2")
        assert isinstance(c.leads_to, ResolvedTo)
        assert c.successor_id == "n2"

    def test_rebind_same_node_is_allowed(self) -> None:
        c = Choice(text="Wait")
        c.bind("n2")
        c.bind("n2")
        assert c.successor_id == "n2"

    def test_rebind_other_node_rejected(self) -> None:
        c = Choice(text="Wait")
        c.bind("n2")
        with pytest.raises(ValueError):
            c.bind("n3")
        assert c.successor_id == "n2"

    def test_successor_survives_json_roundtrip(self) -> None:
        c = Choice(text="Wait")
        c.bind("n2")
        restored = Choice.model_validate_json(c.model_dump_json())
        assert restored.successor_id == "n2"
        assert Choice.model_validate_json(Choice(text="x").model_dump_json()).successor_id is None

    def test_invalid_accuracy_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Choice(text="x", historical_accuracy="made-up")


class TestStoryNode:
    def test_empty_text_rejected(self) -> None:
        with pytest.raises(ValidationError):
            StoryNode(text="")

    def test_choices_default_to_not_generated(self) -> None:
        assert StoryNode(text="x").choices is None

    def test_find_choice(self) -> None:
        c = Choice(text="Go")
        node = StoryNode(text="x", choices=[c])
        assert node.find_choice(c.id) is c
        assert node.find_choice("missing") is None
        assert StoryNode(text="x").find_choice(c.id) is None


class TestStoryContext:
    def test_clamped_on_load(self) -> None:
        ctx = _context(attributes={"resolve": 250, "influence": -3}, relationships={"Crown": -500})
        assert ctx.attributes == {"resolve": 100, "influence": 0}
        assert ctx.relationships == {"Crown": -100}

    def test_visited_events_deduplicated_on_load(self) -> None:
        ctx = _context(visited_events=["A", "B", "A"])
        assert ctx.visited_events == ["A", "B"]

    def test_repeated_deltas_stay_in_range(self) -> None:
        ctx = _context(attributes={"resolve": 50})
        for _ in range(10):
            ctx.adjust_attribute("resolve", 20)
        assert ctx.attributes["resolve"] == 100
        for _ in range(10):
            ctx.adjust_relationship("Crown", -30)
        assert ctx.relationships["Crown"] == -100

    def test_missing_values_use_defaults(self) -> None:
        ctx = _context()
        assert ctx.adjust_attribute("intellect", 5) == 55
        assert ctx.adjust_relationship("Pierre", 8) == 8

    def test_apply_consequences(self) -> None:
        ctx = _context(attributes={"resolve": 90})
        ctx.apply_consequences(
            Consequences(
                affects_attributes={"resolve": 10, "influence": 5},
                affects_relationships={"Scientific Community": 8},
            )
        )
        assert ctx.attributes == {"resolve": 100, "influence": 55}
        assert ctx.relationships == {"Scientific Community": 8}

    def test_record_choice_keeps_lists_in_step(self) -> None:
        ctx = _context()
        c = Choice(text="Refuse")
        ctx.record_choice("n1", c)
        assert ctx.previous_nodes == ["n1"]
        assert ctx.previous_choices[0].choice_id == c.id
        assert ctx.previous_choices[0].choice_text == "Refuse"
        assert ctx.previous_choices[0].node_id == "n1"

    def test_observe_updates_setting_and_key_events(self) -> None:
        ctx = _context(current_year="1890")
        node = StoryNode(
            text="x",
            metadata=NodeMetadata(
                year="1893", location="Durban", historical_event="Arrival", is_key_moment=True
            ),
        )
        ctx.observe(node)
        ctx.observe(node)
        assert ctx.current_year == "1893"
        assert ctx.current_location == "Durban"
        assert ctx.visited_events == ["Arrival"]

    def test_observe_ignores_events_that_are_not_key_moments(self) -> None:
        ctx = _context()
        ctx.observe(StoryNode(text="x", metadata=NodeMetadata(historical_event="Lunch")))
        assert ctx.visited_events == []
        assert ctx.current_year is None


class TestStoryline:
    def _nodes(self) -> tuple[StoryNode, StoryNode]:
        start = StoryNode(text="start", choices=[Choice(text="go")])
        nxt = StoryNode(text="next")
        return start, nxt

    def test_valid_graph(self) -> None:
        start, nxt = self._nodes()
        start.choices[0].bind(nxt.id)
        s = Storyline(
            title="T",
            character=CharacterSummary(id="1", type="historical", name="N"),
            nodes={start.id: start, nxt.id: nxt},
            start_node_id=start.id,
            context=_context(),
        )
        assert s.start_node.id == start.id
        summary = s.summary()
        assert summary.id == s.id
        assert summary.character.name == "N"

    def test_start_node_must_exist(self) -> None:
        start, _ = self._nodes()
        with pytest.raises(ValidationError):
            Storyline(
                title="T",
                character=CharacterSummary(id="1", type="historical", name="N"),
                nodes={start.id: start},
                start_node_id="nope",
                context=_context(),
            )

    def test_dangling_successor_rejected(self) -> None:
        start, _ = self._nodes()
        start.choices[0].bind("ghost")
        with pytest.raises(ValidationError):
            Storyline(
                title="T",
                character=CharacterSummary(id="1", type="historical", name="N"),
                nodes={start.id: start},
                start_node_id=start.id,
                context=_context(),
            )

    def test_history_lists_must_match(self) -> None:
        start, _ = self._nodes()
        with pytest.raises(ValidationError):
            Storyline(
                title="T",
                character=CharacterSummary(id="1", type="historical", name="N"),
                nodes={start.id: start},
                start_node_id=start.id,
                context=_context(
                    previous_nodes=[start.id, start.id],
                    previous_choices=[
                        ChoiceRecord(choice_id="c", choice_text="go", node_id=start.id)
                    ],
                ),
            )


class TestStructuredScene:
    def test_requires_a_fragment(self) -> None:
        with pytest.raises(ValidationError):
            StructuredScene(fragments=[])

    def test_narration_fragments_are_joined(self) -> None:
        scene = StructuredScene(
            fragments=[
                SceneFragment(text="First."),
                SceneFragment(kind="dialogue", text="Hello.", speaker="Kasturba"),
                SceneFragment(text="Second."),
            ],
            year="1893",
            is_key_moment=True,
        )
        node = scene.to_node()
        assert node.text == "First.\n\nSecond."
        assert node.kind == "narration"
        assert node.metadata.year == "1893"
        assert node.metadata.is_key_moment is True
        assert node.choices is None

    def test_dialogue_only_keeps_speaker(self) -> None:
        scene = StructuredScene(
            fragments=[SceneFragment(kind="dialogue", text="Move!", speaker="Official")]
        )
        node = scene.to_node()
        assert node.kind == "dialogue"
        assert node.speaker == "Official"
        assert node.text == "Move!"


class TestChoiceDraft:
    def test_to_choice_is_unresolved_with_fresh_id(self) -> None:
        draft = ChoiceDraft(
            text="Refuse",
            historical_accuracy="accurate",
            consequences=Consequences(affects_attributes={"resolve": 10}),
        )
        a, b = draft.to_choice(), draft.to_choice()
        assert a.id != b.id
        assert a.successor_id is None
        assert a.consequences.affects_attributes == {"resolve": 10}
        a.consequences.affects_attributes["resolve"] = 0
        assert draft.consequences.affects_attributes == {"resolve": 10}
