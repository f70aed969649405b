from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Sequence, Tuple

from stronghold.catalog.catalog import CatalogProvider, ExerciseTemplate, default_catalog
from stronghold.config.constants import DEFAULT_DURATION_MINUTES, JOINT_FRIENDLY_THRESHOLD
from stronghold.models.workout import Exercise, ExerciseSet

logger = logging.getLogger(__name__)

BROWSE_MODES = ("suggested", "same_equipment", "all")


@dataclass(frozen=True)
class SubstitutionCriteria:
    """Optional overrides for a substitution search.

    ``None`` means "do not filter on this field". The boolean flags filter on
    equality, so ``knee_friendly=False`` only keeps templates that are *not*
    knee friendly.
    """

    phase: Optional[str] = None
    equipment: Optional[str] = None
    knee_friendly: Optional[bool] = None
    shoulder_friendly: Optional[bool] = None
    target_muscles: Tuple[str, ...] = ()
    difficulty: Optional[str] = None


@dataclass(frozen=True)
class JointHealth:
    knee: int
    shoulder: int

    @property
    def needs_knee_friendly(self) -> bool:
        return self.knee <= JOINT_FRIENDLY_THRESHOLD

    @property
    def needs_shoulder_friendly(self) -> bool:
        return self.shoulder <= JOINT_FRIENDLY_THRESHOLD


@dataclass
class SubstitutionResult:
    templates: List[ExerciseTemplate] = field(default_factory=list)
    mode: str = "suggested"
    tier: Optional[str] = None

    def __len__(self) -> int:
        return len(self.templates)

    def ids(self) -> List[str]:
        return [t.id for t in self.templates]


def _excluded_ids(current: Exercise) -> set:
    excluded = {current.id}
    if current.template_id:
        excluded.add(current.template_id)
    return excluded


def _matches_muscles(template: ExerciseTemplate, muscles: Sequence[str]) -> bool:
    return any(
        wanted.lower() in target.lower()
        for wanted in muscles
        for target in template.target_muscles
    )


def find_substitutions(
    current_exercise: Exercise,
    criteria: Optional[SubstitutionCriteria] = None,
    catalog: Optional[CatalogProvider] = None,
) -> List[ExerciseTemplate]:
    """Return every catalog template that may replace ``current_exercise``.

    Phase always constrains the result: ``criteria.phase`` only changes which
    phase is required, it never removes the check.
    """
    catalog = catalog or default_catalog()
    criteria = criteria or SubstitutionCriteria()
    phase = criteria.phase or current_exercise.phase
    excluded = _excluded_ids(current_exercise)

    matches = []
    for template in catalog:
        if template.id in excluded:
            continue
        if template.phase != phase:
            continue
        if criteria.equipment and template.equipment != criteria.equipment:
            continue
        if criteria.knee_friendly is not None and template.knee_friendly != criteria.knee_friendly:
            continue
        if (
            criteria.shoulder_friendly is not None
            and template.shoulder_friendly != criteria.shoulder_friendly
        ):
            continue
        if criteria.difficulty and template.difficulty != criteria.difficulty:
            continue
        if criteria.target_muscles and not _matches_muscles(template, criteria.target_muscles):
            continue
        matches.append(template)
    return matches


def _joint_health_tier(current: Exercise, joints: Optional[JointHealth]) -> SubstitutionCriteria:
    if joints is None:
        return SubstitutionCriteria()
    return SubstitutionCriteria(
        knee_friendly=True if joints.needs_knee_friendly else None,
        shoulder_friendly=True if joints.needs_shoulder_friendly else None,
    )


def _same_equipment_tier(current: Exercise, joints: Optional[JointHealth]) -> SubstitutionCriteria:
    return SubstitutionCriteria(equipment=current.equipment)


def _phase_only_tier(current: Exercise, joints: Optional[JointHealth]) -> SubstitutionCriteria:
    return SubstitutionCriteria()


CriteriaBuilder = Callable[[Exercise, Optional[JointHealth]], SubstitutionCriteria]

# Evaluated in order; the first tier with any candidates wins. The last tier
# only filters on phase, so the result is empty only when the phase holds no
# other template.
SUGGESTION_TIERS: Tuple[Tuple[str, CriteriaBuilder], ...] = (
    ("joint_health", _joint_health_tier),
    ("same_equipment", _same_equipment_tier),
    ("phase_only", _phase_only_tier),
)


def suggest_substitutions(
    current_exercise: Exercise,
    joints: Optional[JointHealth] = None,
    catalog: Optional[CatalogProvider] = None,
) -> SubstitutionResult:
    tier_name = SUGGESTION_TIERS[-1][0]
    for tier_name, build_criteria in SUGGESTION_TIERS:
        templates = find_substitutions(current_exercise, build_criteria(current_exercise, joints), catalog)
        if templates:
            return SubstitutionResult(templates=templates, mode="suggested", tier=tier_name)
        logger.info(
            "[suggest_substitutions] tier=%s empty for exercise=%s phase=%s",
            tier_name,
            current_exercise.name,
            current_exercise.phase,
        )
    return SubstitutionResult(templates=[], mode="suggested", tier=tier_name)


def _all_exercises(
    current_exercise: Exercise,
    equipment: Optional[str],
    catalog: CatalogProvider,
) -> List[ExerciseTemplate]:
    excluded = _excluded_ids(current_exercise)
    templates = catalog.by_equipment(equipment) if equipment else catalog.all()
    return [t for t in templates if t.id not in excluded]


def search_templates(templates: Sequence[ExerciseTemplate], query: Optional[str]) -> List[ExerciseTemplate]:
    text = (query or "").strip().lower()
    if not text:
        return list(templates)
    return [
        t
        for t in templates
        if text in t.name.lower() or any(text in muscle.lower() for muscle in t.target_muscles)
    ]


def browse_substitutions(
    current_exercise: Exercise,
    mode: str = "suggested",
    joints: Optional[JointHealth] = None,
    equipment: Optional[str] = None,
    query: Optional[str] = None,
    catalog: Optional[CatalogProvider] = None,
) -> SubstitutionResult:
    """Candidate list for the swap picker.

    ``suggested`` runs the tiered fallback, ``same_equipment`` filters on the
    current equipment within the phase, and ``all`` ignores the phase and
    optionally narrows to ``equipment``. ``query`` narrows any mode by name or
    target muscle.
    """
    if mode not in BROWSE_MODES:
        raise ValueError(f"Unknown substitution mode: {mode}")
    catalog = catalog or default_catalog()
    if mode == "suggested":
        result = suggest_substitutions(current_exercise, joints, catalog)
    elif mode == "same_equipment":
        templates = find_substitutions(
            current_exercise, SubstitutionCriteria(equipment=current_exercise.equipment), catalog
        )
        result = SubstitutionResult(templates=templates, mode=mode, tier="same_equipment")
    else:
        result = SubstitutionResult(
            templates=_all_exercises(current_exercise, equipment, catalog), mode=mode, tier=None
        )
    if query and query.strip():
        result = replace(result, templates=search_templates(result.templates, query))
    logger.info(
        "[browse_substitutions] found=%d exercise=%s phase=%s equipment=%s mode=%s tier=%s",
        len(result.templates),
        current_exercise.name,
        current_exercise.phase,
        current_exercise.equipment,
        mode,
        result.tier,
    )
    return result


def _safety_labels(template: ExerciseTemplate) -> List[str]:
    labels = []
    if template.knee_friendly:
        labels.append("Knee Friendly")
    if template.shoulder_friendly:
        labels.append("Shoulder Friendly")
    return labels


def template_to_exercise(
    template: ExerciseTemplate,
    sets: Optional[int] = None,
    reps: Optional[int] = None,
    weight: Optional[float] = None,
) -> Exercise:
    """Instantiate a live exercise from ``template``.

    ``reps == 0`` marks a duration-based exercise; those get a default
    duration of 20 minutes.
    """
    num_sets = template.default_sets if sets is None else sets
    num_reps = template.default_reps if reps is None else reps
    return Exercise(
        id=f"{template.id}_{uuid.uuid4().hex}",
        name=template.name,
        equipment=template.equipment,
        phase=template.phase,
        sets=[
            ExerciseSet(
                set_number=index + 1,
                target_reps=num_reps,
                target_weight=weight,
                rest_seconds=template.default_rest_seconds,
                completed=False,
            )
            for index in range(num_sets)
        ],
        form_cues=list(template.form_cues),
        modifications=template.modifications,
        duration=DEFAULT_DURATION_MINUTES if num_reps == 0 else None,
        target_muscles=list(template.target_muscles),
        safety_considerations=_safety_labels(template),
        template_id=template.id,
    )


def sized_replacement(template: ExerciseTemplate, current_exercise: Exercise) -> Exercise:
    """Build a replacement that keeps the set/rep volume of ``current_exercise``."""
    first_set = current_exercise.sets[0] if current_exercise.sets else None
    replacement = template_to_exercise(
        template,
        sets=len(current_exercise.sets) or None,
        reps=first_set.target_reps if first_set else None,
        weight=first_set.target_weight if first_set else None,
    )
    replacement.substituted_from = current_exercise.template_id or current_exercise.id
    return replacement
