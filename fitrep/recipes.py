"""Exercise recipe table.

Every supported exercise is described by data only: which joints must be
visible, which angle(s) to measure, default thresholds and whether the up
pose has the larger angle. The classifier and calibration engine read these
fields and never branch on the exercise itself.
"""

from types import MappingProxyType
from typing import Any, Mapping

from fitrep.exceptions import UnknownExerciseError
from fitrep.landmarks import PoseLandmark as L
from fitrep.models import ExerciseName, ExerciseRecipe, ThresholdSet

EXERCISE_RECIPES: Mapping[ExerciseName, ExerciseRecipe] = MappingProxyType({
    ExerciseName.PUSH_UP: ExerciseRecipe(
        id=ExerciseName.PUSH_UP,
        display_name='Push-up',
        key_joints=(L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST),
        primary_angle_joints=(L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST),
        default_up_angle=160.0,  # Arm extended
        default_down_angle=100.0,
        up_is_larger=True,
    ),
    ExerciseName.SQUAT: ExerciseRecipe(
        id=ExerciseName.SQUAT,
        display_name='Squat',
        key_joints=(L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE,
                    L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE),
        primary_angle_joints=(L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE),
        secondary_angle_joints=(L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE),
        default_up_angle=160.0,  # Standing
        default_down_angle=110.0,
        up_is_larger=True,
    ),
    ExerciseName.SIT_UP: ExerciseRecipe(
        id=ExerciseName.SIT_UP,
        display_name='Sit-up',
        key_joints=(L.RIGHT_SHOULDER, L.RIGHT_HIP, L.RIGHT_KNEE),
        primary_angle_joints=(L.RIGHT_SHOULDER, L.RIGHT_HIP, L.RIGHT_KNEE),
        default_up_angle=80.0,  # Torso raised closes the hip angle
        default_down_angle=160.0,
        up_is_larger=False,
    ),
})


def get_recipe(exercise: Any) -> ExerciseRecipe:
    """Look up the recipe for an exercise.

    Args:
        exercise: ExerciseName or its string value

    Returns:
        The exercise recipe

    Raises:
        UnknownExerciseError: If the exercise is unknown or 'none'
    """
    name = ExerciseName.parse(exercise)
    try:
        return EXERCISE_RECIPES[name]
    except KeyError:
        raise UnknownExerciseError(f"No recipe for exercise {name.value!r}") from None


def default_thresholds(exercise: Any) -> ThresholdSet:
    return get_recipe(exercise).default_thresholds()
