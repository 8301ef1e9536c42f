#The code is according to PEP 8 Coding styles standards
"""Data model shared by the classifier, counter, calibration and session."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from fitrep.exceptions import InvalidPlanError, UnknownExerciseError

JointTriple = Tuple[int, int, int]


@dataclass(frozen=True)
class Keypoint:
    """A single landmark reported by the pose detector for one frame."""
    id: int
    x: float
    y: float
    z: float = 0.0
    visibility: float = 0.0  # Detector confidence that the joint is not occluded
    presence: float = 0.0  # Detector confidence that the joint is in frame


# Keypoint id (0-32) -> Keypoint. May be empty when no body is detected.
KeypointFrame = Dict[int, Keypoint]


class ExerciseName(str, Enum):
    PUSH_UP = 'push-up'
    SQUAT = 'squat'
    SIT_UP = 'sit-up'
    NONE = 'none'

    @classmethod
    def parse(cls, value: Any) -> 'ExerciseName':
        """Convert a user supplied name into an ExerciseName.

        Args:
            value: ExerciseName member or its string value

        Returns:
            The matching member

        Raises:
            UnknownExerciseError: If the value names no exercise
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownExerciseError(f"Unknown exercise: {value!r}") from None


class ExerciseState(str, Enum):
    NONE = 'none'
    UP = 'up'
    DOWN = 'down'
    TRANSITIONING = 'transitioning'

    @property
    def is_stable(self) -> bool:
        return self in (ExerciseState.UP, ExerciseState.DOWN)


@dataclass(frozen=True)
class ThresholdSet:
    """Up/down angle thresholds in degrees for one exercise."""
    up_angle: float
    down_angle: float

    def to_dict(self) -> Dict[str, float]:
        return {'upAngle': self.up_angle, 'downAngle': self.down_angle}


@dataclass(frozen=True)
class ExerciseRecipe:
    """Static per-exercise configuration of joints and default thresholds.

    Attributes:
        id: Exercise identifier
        display_name: Name shown to the user
        key_joints: Landmark ids that must all be visible to classify
        primary_angle_joints: (a, vertex, c) landmark ids of the main angle
        secondary_angle_joints: Optional second angle, e.g. the other knee
        default_up_angle: Up threshold used until calibration succeeds
        default_down_angle: Down threshold used until calibration succeeds
        up_is_larger: True when the up pose has the larger angle
    """
    id: ExerciseName
    display_name: str
    key_joints: Tuple[int, ...]
    primary_angle_joints: JointTriple
    default_up_angle: float
    default_down_angle: float
    up_is_larger: bool
    secondary_angle_joints: Optional[JointTriple] = None

    @property
    def angle_joint_sets(self) -> List[JointTriple]:
        joint_sets = [self.primary_angle_joints]
        if self.secondary_angle_joints is not None:
            joint_sets.append(self.secondary_angle_joints)
        return joint_sets

    def default_thresholds(self) -> ThresholdSet:
        return ThresholdSet(up_angle=self.default_up_angle,
                            down_angle=self.default_down_angle)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id.value,
            'displayName': self.display_name,
            'keyJoints': list(self.key_joints),
            'primaryAngleJoints': list(self.primary_angle_joints),
            'secondaryAngleJoints': (list(self.secondary_angle_joints)
                                     if self.secondary_angle_joints else None),
            'defaultUpAngle': self.default_up_angle,
            'defaultDownAngle': self.default_down_angle,
            'upIsLarger': self.up_is_larger,
        }


@dataclass(frozen=True)
class PoseReading:
    """Output of one classifier update."""
    is_visible: bool
    state: ExerciseState
    primary_angle: float = 0.0
    secondary_angle: Optional[float] = None

    @property
    def angles(self) -> List[float]:
        if self.secondary_angle is None:
            return [self.primary_angle]
        return [self.primary_angle, self.secondary_angle]


@dataclass
class ClassifierState:
    """Mutable state the classifier carries from one frame to the next."""
    state: ExerciseState = ExerciseState.NONE
    last_reading: Optional[PoseReading] = None


class CalibrationStep(str, Enum):
    IDLE = 'idle'
    COUNTDOWN_UP = 'countdown_up'
    SETTLE_UP = 'settle_up'
    PAUSE = 'pause'
    COUNTDOWN_DOWN = 'countdown_down'
    SETTLE_DOWN = 'settle_down'
    COMMITTING = 'committing'
    COMPLETE = 'complete'
    FAILED = 'failed'
    CANCELLED = 'cancelled'

    @property
    def is_active(self) -> bool:
        return self not in (CalibrationStep.IDLE, CalibrationStep.COMPLETE,
                            CalibrationStep.FAILED, CalibrationStep.CANCELLED)


@dataclass
class CalibrationSession:
    """One calibration attempt. Discarded on completion, failure or cancel."""
    exercise: ExerciseName
    countdown: int = 0
    captured_up_angle: Optional[float] = None
    captured_down_angle: Optional[float] = None


@dataclass
class RepCounterState:
    rep_count: int = 0
    previous_stable_state: ExerciseState = ExerciseState.UP
    # Latched on down, cleared after each counted rep
    down_achieved_in_cycle: bool = False


@dataclass(frozen=True)
class Alert:
    """User-facing notification, e.g. a calibration failure."""
    title: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {'title': self.title, 'message': self.message}


class WorkoutMode(str, Enum):
    FREESTYLE = 'freestyle'
    PRESET = 'preset'
    CUSTOM = 'custom'


@dataclass(frozen=True)
class WorkoutStep:
    exercise: ExerciseName
    target_reps: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'exercise': self.exercise.value, 'targetReps': self.target_reps}


@dataclass
class WorkoutPlan:
    """A sequence of exercise steps for preset or custom workouts."""
    id: str
    name: str
    steps: List[WorkoutStep] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkoutPlan':
        """Build a plan from its JSON representation.

        Args:
            data: Mapping with 'id', 'name' and 'steps' keys. Each step has
                an 'exercise' name and an optional 'targetReps'.

        Returns:
            Parsed WorkoutPlan

        Raises:
            InvalidPlanError: If the mapping is missing fields or names an
                exercise that cannot be performed
        """
        if not isinstance(data, dict):
            raise InvalidPlanError("Workout plan must be an object")
        try:
            plan_id = str(data['id'])
            name = str(data.get('name', plan_id))
            raw_steps = data['steps']
        except KeyError as e:
            raise InvalidPlanError(f"Workout plan is missing {e.args[0]!r}") from None
        if not isinstance(raw_steps, list) or not raw_steps:
            raise InvalidPlanError("Workout plan needs at least one step")

        steps = []
        for index, raw in enumerate(raw_steps):
            if not isinstance(raw, dict) or 'exercise' not in raw:
                raise InvalidPlanError(f"Step {index} has no exercise")
            try:
                exercise = ExerciseName.parse(raw['exercise'])
            except UnknownExerciseError as e:
                raise InvalidPlanError(f"Step {index}: {e.message}") from None
            if exercise is ExerciseName.NONE:
                raise InvalidPlanError(f"Step {index} cannot use 'none'")
            target = raw.get('targetReps')
            if target is not None:
                if isinstance(target, bool) or not isinstance(target, int) or target < 1:
                    raise InvalidPlanError(f"Step {index} targetReps must be a positive integer")
            steps.append(WorkoutStep(exercise=exercise, target_reps=target))
        return cls(id=plan_id, name=name, steps=steps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'steps': [step.to_dict() for step in self.steps],
        }


@dataclass
class SessionUpdate:
    """Everything the UI layer receives after each frame or command."""
    rep_count: int
    state: ExerciseState
    is_visible: bool
    calibration_message: Optional[str]
    exercise: ExerciseName
    mode: WorkoutMode
    is_calibrating: bool = False
    step_index: int = -1
    target_reps: Optional[int] = None
    primary_angle: float = 0.0
    secondary_angle: Optional[float] = None
    workout_complete: bool = False
    # Final count of a plan step that ended during this update
    completed_reps: Optional[int] = None
    alerts: List[Alert] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'repCount': self.rep_count,
            'state': self.state.value,
            'isVisible': self.is_visible,
            'calibrationMessage': self.calibration_message,
            'isCalibrating': self.is_calibrating,
            'exercise': self.exercise.value,
            'mode': self.mode.value,
            'stepIndex': self.step_index,
            'targetReps': self.target_reps,
            'primaryAngle': self.primary_angle,
            'secondaryAngle': self.secondary_angle,
            'workoutComplete': self.workout_complete,
            'completedReps': self.completed_reps,
            'alerts': [alert.to_dict() for alert in self.alerts],
        }
