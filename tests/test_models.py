import pytest

from fitrep.exceptions import InvalidPlanError, UnknownExerciseError, UnknownPlanError
from fitrep.models import (Alert, ExerciseName, ExerciseState, SessionUpdate,
                           WorkoutMode, WorkoutPlan)
from fitrep.presets import PRESET_WORKOUTS, get_preset


def test_exercise_name_parse():
    assert ExerciseName.parse('Push-Up ') is ExerciseName.PUSH_UP
    assert ExerciseName.parse(ExerciseName.SQUAT) is ExerciseName.SQUAT
    assert ExerciseName.parse('none') is ExerciseName.NONE
    with pytest.raises(UnknownExerciseError):
        ExerciseName.parse('lunge')


def test_stable_states():
    assert ExerciseState.UP.is_stable
    assert ExerciseState.DOWN.is_stable
    assert not ExerciseState.TRANSITIONING.is_stable
    assert not ExerciseState.NONE.is_stable


def test_plan_from_dict():
    plan = WorkoutPlan.from_dict({
        'id': 'mine',
        'name': 'Morning',
        'steps': [{'exercise': 'squat', 'targetReps': 12}, {'exercise': 'sit-up'}],
    })
    assert plan.name == 'Morning'
    assert [s.exercise for s in plan.steps] == [ExerciseName.SQUAT, ExerciseName.SIT_UP]
    assert plan.steps[1].target_reps is None
    assert plan.to_dict()['steps'][0] == {'exercise': 'squat', 'targetReps': 12}


def test_plan_name_defaults_to_id():
    plan = WorkoutPlan.from_dict({'id': 'x', 'steps': [{'exercise': 'squat'}]})
    assert plan.name == 'x'


@pytest.mark.parametrize("data", [
    None,
    [],
    {'steps': [{'exercise': 'squat'}]},
    {'id': 'x'},
    {'id': 'x', 'steps': []},
    {'id': 'x', 'steps': 'squat'},
    {'id': 'x', 'steps': [{'targetReps': 3}]},
    {'id': 'x', 'steps': [{'exercise': 'lunge'}]},
    {'id': 'x', 'steps': [{'exercise': 'none'}]},
    {'id': 'x', 'steps': [{'exercise': 'squat', 'targetReps': 0}]},
    {'id': 'x', 'steps': [{'exercise': 'squat', 'targetReps': '5'}]},
    {'id': 'x', 'steps': [{'exercise': 'squat', 'targetReps': True}]},
])
def test_invalid_plans(data):
    with pytest.raises(InvalidPlanError):
        WorkoutPlan.from_dict(data)


def test_presets():
    assert [p.id for p in PRESET_WORKOUTS] == ['preset-core-1', 'preset-legs-1']
    core = get_preset('preset-core-1')
    assert core.name == 'Beginner Core Blast'
    assert [(s.exercise, s.target_reps) for s in core.steps] == [
        (ExerciseName.SIT_UP, 10), (ExerciseName.SIT_UP, 10)]
    with pytest.raises(UnknownPlanError):
        get_preset('preset-arms-1')


def test_session_update_to_dict():
    update = SessionUpdate(
        rep_count=3,
        state=ExerciseState.DOWN,
        is_visible=True,
        calibration_message=None,
        exercise=ExerciseName.PUSH_UP,
        mode=WorkoutMode.FREESTYLE,
        primary_angle=92.5,
        alerts=[Alert('Calibration Failed', 'Try again')],
    )
    data = update.to_dict()
    assert data['repCount'] == 3
    assert data['state'] == 'down'
    assert data['isVisible'] is True
    assert data['calibrationMessage'] is None
    assert data['exercise'] == 'push-up'
    assert data['alerts'] == [{'title': 'Calibration Failed', 'message': 'Try again'}]
