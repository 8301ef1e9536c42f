"""Pre-made workout plans."""

from typing import Dict, List

from fitrep.exceptions import UnknownPlanError
from fitrep.models import ExerciseName, WorkoutPlan, WorkoutStep

PRESET_WORKOUTS: List[WorkoutPlan] = [
    WorkoutPlan(
        id='preset-core-1',
        name='Beginner Core Blast',
        steps=[
            WorkoutStep(ExerciseName.SIT_UP, target_reps=10),
            WorkoutStep(ExerciseName.SIT_UP, target_reps=10),
        ],
    ),
    WorkoutPlan(
        id='preset-legs-1',
        name='Quick Squat Burner',
        steps=[
            WorkoutStep(ExerciseName.SQUAT, target_reps=15),
            WorkoutStep(ExerciseName.SQUAT, target_reps=15),
        ],
    ),
]

_PRESETS_BY_ID: Dict[str, WorkoutPlan] = {plan.id: plan for plan in PRESET_WORKOUTS}


def get_preset(plan_id: str) -> WorkoutPlan:
    try:
        return _PRESETS_BY_ID[plan_id]
    except KeyError:
        raise UnknownPlanError(f"No preset workout with id {plan_id!r}") from None
