"""Deterministic rule-based scene generator.

The last link of every generator chain. It never raises: a small set of
known (character, event) moments get hand-authored scenes and choice sets,
everything else gets a generic scene built from the character's name, era
and the text of the choice just taken.

Authored choice sets only apply to the opening decision of a storyline
(no choices made yet); later decisions always get the generic set so the
player is never offered the same authored dilemma twice.
"""

from __future__ import annotations

import logging

from storyweave.characters import (
    era_location,
    era_year,
    event_location,
    event_year_label,
)
from storyweave.generation.base import SceneRequest
from storyweave.models import (
    AccuracyMode,
    ChoiceDraft,
    ChoiceSet,
    Consequences,
    SceneFragment,
    StructuredScene,
)

logger = logging.getLogger(__name__)


def _scene(text: str, **metadata) -> StructuredScene:
    return StructuredScene(fragments=[SceneFragment(text=text)], **metadata)


def _draft(text: str, impact: str, accuracy: str, **consequences) -> ChoiceDraft:
    return ChoiceDraft(
        text=text,
        impact=impact,
        historical_accuracy=accuracy,
        consequences=Consequences(**consequences),
    )


# ---------------------------------------------------------------------------
# Authored openings
# ---------------------------------------------------------------------------

def _gandhi_train_incident() -> StructuredScene:
    return _scene(
        "South Africa, 1893. You are Mohandas Gandhi, a 24-year-old lawyer who has "
        "recently arrived in South Africa to work on a legal case. The train to Pretoria "
        "stops at Pietermaritzburg station. Despite having a first-class ticket, a railway "
        "official orders you to move to the third-class carriage.",
        year="1893",
        location="Pietermaritzburg, South Africa",
        historical_event="Train Incident in South Africa",
        emotional_tone="tense",
        is_key_moment=True,
        contextual_background=(
            "This incident was a turning point that began to awaken Gandhi to social "
            "injustice and inspired his transformation into an activist."
        ),
    )


def _curie_moves_to_paris() -> StructuredScene:
    return _scene(
        "Paris, 1891. You are Marie Skłodowska, a determined young woman who has just "
        "arrived in Paris to pursue your studies at the University of Paris. After years "
        "of working as a governess to save money and facing the limitations imposed on "
        "women's education in Poland, you finally have the opportunity to follow your "
        "scientific passions. The city buzzes with intellectual energy, but as a foreign "
        "woman in the male-dominated world of science, you know you will face significant "
        "challenges.",
        year="1891",
        location="Paris, France",
        historical_event="Marie Curie Moves to Paris",
        emotional_tone="hopeful",
        is_key_moment=True,
        contextual_background=(
            "Women were rare in scientific fields at this time, and Marie's move to Paris "
            "was crucial for her scientific career, as she had limited opportunities for "
            "advanced education in Poland."
        ),
    )


def _lincoln_civil_war() -> StructuredScene:
    return _scene(
        "Washington D.C., 1861. You are Abraham Lincoln, newly inaugurated as the 16th "
        "President of the United States during the nation's greatest crisis. Seven "
        "Southern states have already seceded from the Union, and more threaten to "
        "follow. The fate of the nation rests on your shoulders as tensions escalate "
        "toward armed conflict. Your advisors are divided on how to respond to the "
        "rebellion, and every decision you make will have profound consequences for the "
        "future of the country.",
        year="1861",
        location="Washington D.C., United States",
        historical_event="Beginning of the American Civil War",
        emotional_tone="tense",
        is_key_moment=True,
        contextual_background=(
            "Lincoln became president just as the nation was splitting apart over the "
            "issues of states' rights and slavery, leading to the deadliest conflict in "
            "American history."
        ),
    )


# (character name, substring of the seed event title)
AUTHORED_OPENINGS = [
    ("Mahatma Gandhi", "Train Incident", _gandhi_train_incident),
    ("Marie Curie", "Moved to Paris", _curie_moves_to_paris),
    ("Abraham Lincoln", "Civil War", _lincoln_civil_war),
]


# ---------------------------------------------------------------------------
# Authored choice sets
# ---------------------------------------------------------------------------

def _gandhi_train_choices() -> list[ChoiceDraft]:
    return [
        _draft(
            "Comply with the official and move to the third-class carriage",
            "Avoid immediate conflict but feel the burn of injustice",
            "somewhat-accurate",
            immediate="You quietly move to the third-class carriage, avoiding confrontation",
            long_term="The humiliation deepens your resolve to fight systematic discrimination",
            affects_attributes={"resolve": 5, "influence": -2},
        ),
        _draft(
            "Refuse to move, citing your valid first-class ticket",
            "Stand up for your rights at personal risk",
            "accurate",
            immediate="You are forcibly removed from the train",
            long_term="This pivotal experience shapes your commitment to civil resistance",
            affects_attributes={"resolve": 10, "influence": 5},
        ),
        _draft(
            "Attempt to reason calmly with the official about your legal rights",
            "Seek understanding while maintaining dignity",
            "somewhat-accurate",
            immediate="The official listens briefly but insists you must move",
            long_term="You begin formulating ideas about peaceful resistance",
            affects_attributes={"intellect": 5, "charisma": 3},
        ),
    ]


def _curie_paris_choices() -> list[ChoiceDraft]:
    return [
        _draft(
            "Focus entirely on your studies in physics",
            "Prioritize academic excellence in your primary field",
            "somewhat-accurate",
            immediate="You excel in your physics courses",
            long_term="Your dedication to physics provides a strong foundation for your future work",
            affects_attributes={"intellect": 8, "resolve": 5},
        ),
        _draft(
            "Divide your attention between physics and chemistry",
            "Develop an interdisciplinary approach to science",
            "accurate",
            immediate="You make connections between the fields that others miss",
            long_term="This interdisciplinary knowledge becomes crucial in your radioactivity research",
            affects_attributes={"intellect": 10, "resolve": 3},
        ),
        _draft(
            "Seek a mentor to guide your scientific career",
            "Form important professional relationships",
            "somewhat-accurate",
            immediate="You connect with established scientists in Paris",
            long_term="These connections help advance your research",
            affects_relationships={"Scientific Community": 8},
            affects_attributes={"influence": 5},
        ),
    ]


def _lincoln_civil_war_choices() -> list[ChoiceDraft]:
    return [
        _draft(
            "Prioritize preserving the Union above all else",
            "Focus on military strategy to defeat the Confederacy",
            "accurate",
            immediate="You rally Northern support for the war effort",
            long_term="Your single-minded focus helps prevent the permanent division of the country",
            affects_attributes={"resolve": 8, "influence": 5},
        ),
        _draft(
            "Make abolition of slavery the central war aim",
            "Transform the conflict into a moral crusade against slavery",
            "accurate",
            immediate="This polarizes opinion but energizes abolitionists",
            long_term="The war gains a powerful moral dimension",
            affects_attributes={"compassion": 10, "charisma": 5},
        ),
        _draft(
            "Seek diplomatic solutions to end the conflict quickly",
            "Attempt to reduce bloodshed through negotiation",
            "creative",
            immediate="Negotiation attempts are viewed skeptically by both sides",
            long_term="History remembers your peace efforts, but with mixed results",
            affects_attributes={"charisma": 3, "influence": -5},
        ),
    ]


def generic_choices(accuracy: AccuracyMode) -> list[ChoiceDraft]:
    return [
        _draft(
            "Take a cautious, measured approach",
            "Minimize risk but potentially miss opportunities",
            "somewhat-accurate",
            immediate="You proceed carefully and avoid immediate danger",
            long_term="Your cautious approach builds a reputation for reliability",
            affects_attributes={"resolve": 3, "influence": -2},
        ),
        _draft(
            "Take bold, decisive action",
            "Potentially create significant change at personal risk",
            "somewhat-accurate" if accuracy == "accurate" else "creative",
            immediate="Your bold move attracts immediate attention",
            long_term="Your willingness to take risks becomes well-known",
            affects_attributes={"resolve": 8, "influence": 5},
        ),
        _draft(
            "Seek advice and build consensus before acting",
            "Gain support but delay immediate action",
            "somewhat-accurate",
            immediate="You gather valuable perspectives but progress is slow",
            long_term="You develop a network of allies for future challenges",
            affects_attributes={"charisma": 5, "influence": 3},
        ),
    ]


def _authored_choices(request: SceneRequest) -> list[ChoiceDraft] | None:
    if request.previous_choices:
        return None
    name = request.character.name
    meta = request.node_metadata
    event = (meta.historical_event if meta else None) or ""
    year = (meta.year if meta else None) or ""
    if name == "Mahatma Gandhi" and "Train Incident" in event:
        return _gandhi_train_choices()
    if name == "Marie Curie" and "1891" in year:
        return _curie_paris_choices()
    if name == "Abraham Lincoln" and "Civil War" in event:
        return _lincoln_civil_war_choices()
    return None


# ---------------------------------------------------------------------------
# Authored continuations
# ---------------------------------------------------------------------------

def _gandhi_refuses() -> StructuredScene:
    return _scene(
        "\"I have a first-class ticket and the right to be here,\" you state firmly, "
        "showing your ticket. The railway official's face hardens. He calls for a police "
        "constable who forcibly removes you from the train. You're thrown off with your "
        "belongings. As the train departs, you're left alone on the cold platform at "
        "Pietermaritzburg station. Sitting in the waiting room through the freezing night, "
        "you contemplate the injustice of racial prejudice. A transformative realization "
        "begins to form in your mind.",
        year="1893",
        location="Pietermaritzburg Station, South Africa",
        historical_event="Train Incident in South Africa",
        emotional_tone="somber",
        is_key_moment=True,
        contextual_background=(
            "This night spent in the cold waiting room was later described by Gandhi as the "
            "most creative night of his life, when he decided to fight against racial "
            "prejudice."
        ),
    )


def _gandhi_complies() -> StructuredScene:
    return _scene(
        "You reluctantly gather your belongings and move to the third-class carriage, "
        "feeling a deep sense of humiliation but avoiding immediate conflict. The cramped, "
        "uncomfortable carriage is a stark contrast to your first-class seat. As you sit "
        "among the other Indian passengers, you observe their resigned expressions, "
        "suggesting this treatment is all too familiar. Throughout the journey, the burning "
        "sense of injustice grows within you, and you begin to contemplate the systematic "
        "discrimination faced by Indians in South Africa.",
        year="1893",
        location="Train to Pretoria, South Africa",
        historical_event="Train Incident in South Africa",
        emotional_tone="somber",
        is_key_moment=False,
        contextual_background=(
            "While Gandhi historically was removed from the train, this alternative explores "
            "how the experience of discrimination might still have affected him even if he "
            "had complied."
        ),
    )


def _gandhi_reasons() -> StructuredScene:
    return _scene(
        "You attempt to reason with the official, calmly explaining that you have a valid "
        "first-class ticket and the legal right to travel in the carriage. The official "
        "listens impassively but remains unmoved. \"The rules are different in this "
        "country,\" he states coldly. \"Indians travel third-class.\" Despite your logical "
        "arguments and appeals to fairness, the conversation ends with you being given an "
        "ultimatum: move to third-class or be removed from the train.",
        year="1893",
        location="Train at Pietermaritzburg Station, South Africa",
        historical_event="Train Incident in South Africa",
        emotional_tone="tense",
        is_key_moment=False,
        contextual_background=(
            "Gandhi's experience with discrimination in South Africa would eventually lead "
            "him to develop his philosophy of satyagraha (truth-force), based on nonviolent "
            "resistance to injustice."
        ),
    )


def _curie_divides_attention() -> StructuredScene:
    return _scene(
        "You decide to pursue both physics and chemistry, recognizing the valuable "
        "connections between the fields. Despite the heavy workload, you excel in your "
        "studies, fueled by your passion for science. During a physics lecture, you're "
        "introduced to the concept of magnetism and electricity, while your chemistry "
        "courses delve into atomic theory. Late at night, studying in your small, cold "
        "apartment, you begin to see connections that your peers miss. \"The properties of "
        "elements and the forces that govern them are interconnected,\" you note in your "
        "journal.",
        year="1891",
        location="University of Paris, France",
        emotional_tone="hopeful",
        is_key_moment=True,
        contextual_background=(
            "This interdisciplinary approach would later prove crucial in Marie Curie's "
            "groundbreaking work on radioactivity."
        ),
    )


# (character name, node event substring, node year substring, choice text substring)
AUTHORED_CONTINUATIONS = [
    ("Mahatma Gandhi", "Train Incident", None, "Refuse to move", _gandhi_refuses),
    ("Mahatma Gandhi", "Train Incident", None, "Comply with the official", _gandhi_complies),
    ("Mahatma Gandhi", "Train Incident", None, "reason calmly", _gandhi_reasons),
    ("Marie Curie", None, "1891", "Divide your attention", _curie_divides_attention),
]


def _authored_continuation(request: SceneRequest) -> StructuredScene | None:
    if request.choice is None:
        return None
    meta = request.node_metadata
    event = (meta.historical_event if meta else None) or ""
    year = (meta.year if meta else None) or ""
    for name, event_part, year_part, choice_part, build in AUTHORED_CONTINUATIONS:
        if request.character.name != name:
            continue
        if event_part is not None and event_part not in event:
            continue
        if year_part is not None and year_part not in year:
            continue
        if choice_part in request.choice.text:
            return build()
    return None


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class RuleBasedGenerator:
    """Total scene generator. Never raises for a well-formed request."""

    name = "fallback"

    async def generate_scene(self, request: SceneRequest) -> StructuredScene:
        if request.stage == "continuation":
            return self.continuation(request)
        return self.opening(request)

    async def generate_choices(self, request: SceneRequest) -> ChoiceSet:
        drafts = _authored_choices(request)
        if drafts is None:
            drafts = generic_choices(request.accuracy)
        return ChoiceSet(choices=drafts)

    def opening(self, request: SceneRequest) -> StructuredScene:
        character = request.character
        event = request.event
        if event is not None:
            for name, title_part, build in AUTHORED_OPENINGS:
                if character.name == name and title_part in event.title:
                    logger.debug("fallback authored opening for %s", name)
                    return build()
            year = request.year or event_year_label(event.date)
            location = request.location or event_location(event)
            return _scene(
                f"{location}, {year}. You are {character.name}, and you find yourself at a "
                f"pivotal moment. {event.description}",
                year=year,
                location=location,
                historical_event=event.title,
                emotional_tone="neutral",
                is_key_moment=True,
                contextual_background=event.significance or "This is an important historical moment.",
            )

        year = request.year or era_year(character.era)
        location = request.location or era_location(character.era)
        traits = ", ".join(character.traits) or "remarkable"
        return _scene(
            f"{location}, {year}. You are {character.name}, a {traits} individual living in "
            f"the {character.era}. Today, you face important decisions that will shape your "
            f"future and potentially history itself.",
            year=year,
            location=location,
            emotional_tone="neutral",
            is_key_moment=False,
            contextual_background=(
                f"The {character.era} was a time of significant changes and challenges."
            ),
        )

    def continuation(self, request: SceneRequest) -> StructuredScene:
        authored = _authored_continuation(request)
        if authored is not None:
            return authored

        meta = request.node_metadata
        choice_text = request.choice.text if request.choice else "press on"
        immediate = request.choice.consequences.immediate if request.choice else None
        long_term = request.choice.consequences.long_term if request.choice else None
        location = (meta.location if meta else None) or request.location
        year = (meta.year if meta else None) or request.year
        return _scene(
            f"Following your decision to {choice_text.lower()}, "
            f"{immediate or 'you face new challenges and opportunities'}. "
            f"{location or 'Your surroundings'} seem to respond to your choice, as if "
            f"history itself is being shaped by your actions.",
            year=year,
            location=location,
            emotional_tone="neutral",
            is_key_moment=False,
            contextual_background=long_term or "The consequences of this choice will echo through time.",
        )
