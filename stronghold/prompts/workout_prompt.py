from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Optional

from stronghold.catalog.catalog import AVAILABLE_EQUIPMENT
from stronghold.models.checkin import CheckIn

WORKOUT_SYSTEM_PROMPT = """You are an expert fitness coach specializing in adaptive training for adults with joint issues.

Generate a safe, effective workout in JSON format based on the daily check-in.
Safety first. Adapt to the day's state. Always offer joint-friendly modifications.
Rowing is useful both as cardio and for stress relief.

Respond ONLY with valid JSON. No markdown, no explanation, just the JSON object.
"""

WORKOUT_SCHEMA = """{
  "type": "upper_body" | "lower_body" | "full_body" | "cardio" | "recovery",
  "estimatedDuration": <minutes>,
  "reasoning": "<1-2 sentences>",
  "warmup": {"exercises": [<exercise>]},
  "strength": {"exercises": [<exercise>]},
  "cooldown": {"exercises": [<exercise>]},
  "coachingNotes": "<optional encouragement>"
}
<exercise> = {
  "name": string,
  "equipment": one of the available equipment values,
  "sets": number,
  "reps": number (0 for timed work),
  "duration": minutes or null,
  "targetWeight": lbs or null,
  "restSeconds": number,
  "formCues": [string],
  "modifications": string or null,
  "instructions": string or null
}"""

RULES = """Rules:
1. Knee below 5/10: no loaded leg exercises (squats, lunges, leg press).
2. Shoulder below 5/10: no overhead pressing; prefer bands over cables.
3. Stress above 7/10: start with 10-15 minutes of contemplative rowing.
4. Energy below 5/10: reduce total volume by about 30%.
5. Sleep below 6/10: moderate intensity, no sets to failure.
6. Always include at least 5 minutes of rowing.
7. Total workout 30-40 minutes including warm-up and cool-down.
8. Only use the available equipment."""


def _band(value: int, low: int, mid: int, labels: tuple) -> str:
    if value < low:
        return labels[0]
    if value < mid:
        return labels[1]
    return labels[2]


def build_prompt_context(
    check_in: CheckIn,
    available_equipment: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    physical = check_in.physical.model_dump(exclude_none=True)
    physical["knee_status"] = _band(check_in.physical.knee, 5, 7, ("painful", "sore", "okay"))
    physical["shoulder_status"] = _band(check_in.physical.shoulder, 5, 7, ("painful", "sore", "okay"))
    return {
        "physical": physical,
        "mental": check_in.mental.model_dump(exclude_none=True),
        "emotional": check_in.emotional.model_dump(exclude_none=True),
        "available_equipment": list(available_equipment or AVAILABLE_EQUIPMENT),
    }


def build_workout_prompt(
    check_in: CheckIn,
    available_equipment: Optional[Iterable[str]] = None,
) -> str:
    context = build_prompt_context(check_in, available_equipment)
    return (
        "Generate today's workout based on this morning's check-in.\n\n"
        f"CHECK-IN CONTEXT:\n{json.dumps(context, indent=2)}\n\n"
        f"PROVIDE THE WORKOUT IN THIS EXACT JSON FORMAT:\n{WORKOUT_SCHEMA}\n\n"
        f"{RULES}\n\nGenerate the workout now:"
    )
