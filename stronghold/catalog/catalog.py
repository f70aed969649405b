from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from stronghold.config.constants import CATALOG_PATH
from stronghold.models.workout import EQUIPMENT_TYPES, TEMPLATE_DIFFICULTIES, WORKOUT_PHASES

logger = logging.getLogger(__name__)

AVAILABLE_EQUIPMENT: List[str] = [
    "rowing_machine",
    "resistance_bands",
    "cables",
    "barbell",
    "ez_bar",
    "dumbbells",
    "stability_ball",
    "bodyweight",
]


class CatalogError(ValueError):
    """Raised when catalog data breaks an id, phase or equipment invariant."""


@dataclass(frozen=True)
class ExerciseTemplate:
    id: str
    name: str
    equipment: str
    phase: str
    default_sets: int
    default_reps: int
    default_rest_seconds: int
    form_cues: Tuple[str, ...] = ()
    modifications: Optional[str] = None
    target_muscles: Tuple[str, ...] = ()
    difficulty: str = "beginner"
    knee_friendly: bool = False
    shoulder_friendly: bool = False

    @property
    def is_duration_based(self) -> bool:
        return self.default_reps == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "equipment": self.equipment,
            "phase": self.phase,
            "default_sets": self.default_sets,
            "default_reps": self.default_reps,
            "default_rest_seconds": self.default_rest_seconds,
            "form_cues": list(self.form_cues),
            "modifications": self.modifications,
            "target_muscles": list(self.target_muscles),
            "difficulty": self.difficulty,
            "knee_friendly": self.knee_friendly,
            "shoulder_friendly": self.shoulder_friendly,
        }


def _template_from_dict(raw: Dict[str, Any]) -> ExerciseTemplate:
    template_id = raw.get("id")
    if not template_id:
        raise CatalogError("Catalog entry is missing an id.")
    if raw.get("phase") not in WORKOUT_PHASES:
        raise CatalogError(f"{template_id}: unknown phase {raw.get('phase')!r}")
    if raw.get("equipment") not in EQUIPMENT_TYPES:
        raise CatalogError(f"{template_id}: unknown equipment {raw.get('equipment')!r}")
    difficulty = raw.get("difficulty", "beginner")
    if difficulty not in TEMPLATE_DIFFICULTIES:
        raise CatalogError(f"{template_id}: unknown difficulty {difficulty!r}")
    return ExerciseTemplate(
        id=template_id,
        name=raw["name"],
        equipment=raw["equipment"],
        phase=raw["phase"],
        default_sets=int(raw.get("default_sets", 1)),
        default_reps=int(raw.get("default_reps", 0)),
        default_rest_seconds=int(raw.get("default_rest_seconds", 0)),
        form_cues=tuple(raw.get("form_cues") or ()),
        modifications=raw.get("modifications"),
        target_muscles=tuple(raw.get("target_muscles") or ()),
        difficulty=difficulty,
        knee_friendly=bool(raw.get("knee_friendly", False)),
        shoulder_friendly=bool(raw.get("shoulder_friendly", False)),
    )


class CatalogProvider:
    """Read-only view over a fixed list of exercise templates.

    Iteration order is the order the templates were supplied in, and every
    lookup preserves it.
    """

    def __init__(self, templates: Iterable[ExerciseTemplate]) -> None:
        self._templates: Dict[str, ExerciseTemplate] = {}
        for template in templates:
            if template.id in self._templates:
                raise CatalogError(f"Duplicate exercise id: {template.id}")
            self._templates[template.id] = template

    @classmethod
    def from_dicts(cls, rows: Iterable[Dict[str, Any]]) -> "CatalogProvider":
        return cls(_template_from_dict(row) for row in rows)

    def __len__(self) -> int:
        return len(self._templates)

    def __iter__(self):
        return iter(self._templates.values())

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._templates

    def all(self) -> List[ExerciseTemplate]:
        return list(self._templates.values())

    def get(self, template_id: str) -> Optional[ExerciseTemplate]:
        return self._templates.get(template_id)

    def find_by_name(self, name: str) -> Optional[ExerciseTemplate]:
        target = (name or "").strip().lower()
        if not target:
            return None
        for template in self._templates.values():
            if template.name.lower() == target:
                return template
        return None

    def by_equipment(self, equipment: str) -> List[ExerciseTemplate]:
        return [t for t in self._templates.values() if t.equipment == equipment]

    def by_phase(self, phase: str) -> List[ExerciseTemplate]:
        return [t for t in self._templates.values() if t.phase == phase]

    def knee_friendly(self) -> List[ExerciseTemplate]:
        return [t for t in self._templates.values() if t.knee_friendly]

    def shoulder_friendly(self) -> List[ExerciseTemplate]:
        return [t for t in self._templates.values() if t.shoulder_friendly]

    def grouped_by_equipment(self) -> Dict[str, List[ExerciseTemplate]]:
        grouped: Dict[str, List[ExerciseTemplate]] = {}
        for template in self._templates.values():
            grouped.setdefault(template.equipment, []).append(template)
        return grouped


def load_catalog(path: Path = CATALOG_PATH) -> CatalogProvider:
    with open(path, "r", encoding="utf-8") as handle:
        rows = json.load(handle)
    if not isinstance(rows, list):
        raise CatalogError(f"Catalog file {path} must hold a JSON list.")
    catalog = CatalogProvider.from_dicts(rows)
    logger.debug("[load_catalog] path=%s templates=%d", path, len(catalog))
    return catalog


@lru_cache(maxsize=1)
def default_catalog() -> CatalogProvider:
    return load_catalog()
