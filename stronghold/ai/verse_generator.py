from __future__ import annotations

import json
import logging
from typing import Dict

from pydantic import ValidationError

from stronghold.ai.client import GenerateFn
from stronghold.ai.workout_generator import strip_code_fences
from stronghold.models.checkin import BibleVerse, CheckIn

logger = logging.getLogger(__name__)

VERSE_SYSTEM_PROMPT = """You are a pastoral care assistant helping select meaningful Bible verses for daily encouragement.

Select ONE verse that genuinely speaks to the user's current mental and emotional state.
Use the exact verse text and the correct reference.

Respond ONLY with valid JSON. No markdown, no explanation.
"""

DEFAULT_VERSE = BibleVerse(
    reference="Philippians 4:13",
    text="I can do all things through Christ who strengthens me.",
    reason="A reminder of God's strength in all circumstances",
)

FALLBACK_VERSES: Dict[str, BibleVerse] = {
    "peaceful": BibleVerse(
        reference="Psalm 46:10",
        text="Be still, and know that I am God.",
        reason="Rest in God's presence during this peaceful state",
    ),
    "anxious": BibleVerse(
        reference="Philippians 4:6-7",
        text=(
            "Do not be anxious about anything, but in every situation, by prayer and petition, "
            "with thanksgiving, present your requests to God. And the peace of God, which "
            "transcends all understanding, will guard your hearts and your minds in Christ Jesus."
        ),
        reason="God's peace guards your anxious heart",
    ),
    "frustrated": BibleVerse(
        reference="Psalm 34:18",
        text="The Lord is close to the brokenhearted and saves those who are crushed in spirit.",
        reason="God is near even in frustration",
    ),
    "sad": BibleVerse(
        reference="Psalm 30:5",
        text="Weeping may stay for the night, but rejoicing comes in the morning.",
        reason="Hope that joy will return",
    ),
    "joyful": BibleVerse(
        reference="Psalm 118:24",
        text="This is the day that the Lord has made; let us rejoice and be glad in it.",
        reason="Celebrate today with gratitude",
    ),
    "numb": BibleVerse(
        reference="Psalm 42:11",
        text=(
            "Why, my soul, are you downcast? Why so disturbed within me? Put your hope in God, "
            "for I will yet praise him, my Savior and my God."
        ),
        reason="Even when numb, hope remains in God",
    ),
}


def _stress_label(stress: int) -> str:
    if stress > 7:
        return "high"
    if stress > 4:
        return "moderate"
    return "low"


def build_verse_prompt(check_in: CheckIn) -> str:
    mental = check_in.mental
    emotional = check_in.emotional
    return (
        "Select a Bible verse for today based on this state:\n\n"
        f"MENTAL STATE:\n- State: {mental.state}\n"
        f"- Stress level: {mental.stress}/10 ({_stress_label(mental.stress)})\n"
        f"- Mental clarity: {mental.clarity}/10\n\n"
        f"EMOTIONAL STATE:\n- Primary emotion: {emotional.primary}\n"
        f"- Intensity: {emotional.intensity}/10\n\n"
        'Respond with {"reference": "<Book Chapter:Verse>", "text": "<verse>", '
        '"reason": "<one sentence>"}'
    )


def parse_verse_response(text: str) -> BibleVerse:
    """Parse a verse reply; anything unusable yields the default verse."""
    try:
        return BibleVerse.model_validate(json.loads(strip_code_fences(text)))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.warning("[parse_verse_response] unusable verse reply error=%s", exc)
        return DEFAULT_VERSE


def fallback_verse(emotion: str) -> BibleVerse:
    return FALLBACK_VERSES.get(emotion, DEFAULT_VERSE)


class VerseGenerator:
    def __init__(self, generate: GenerateFn) -> None:
        self.generate = generate

    def generate_verse(self, check_in: CheckIn) -> BibleVerse:
        try:
            raw = self.generate(build_verse_prompt(check_in))
        except Exception as exc:
            logger.error("[generate_verse] generate failed check_in_id=%s error=%s", check_in.id, exc)
            return fallback_verse(check_in.emotional.primary)
        return parse_verse_response(raw)
