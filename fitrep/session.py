"""Workout session orchestration.

A WorkoutSession owns everything for one logical stream of frames: the
classifier, the rep counter, calibration, the per-exercise thresholds and
the workout plan. Frames and UI commands are applied one at a time by a
single caller; the session is not thread-safe on its own.
"""

import logging
from typing import Dict, List, Optional

from fitrep.calibration import CalibrationEngine
from fitrep.classifier import PoseStateClassifier
from fitrep.config import Settings
from fitrep.exceptions import (CommandRejectedError, InvalidPlanError,
                               InvalidThresholdsError)
from fitrep.models import (Alert, ExerciseName, ExerciseState, KeypointFrame,
                           PoseReading, SessionUpdate, ThresholdSet,
                           WorkoutMode, WorkoutPlan)
from fitrep.recipes import get_recipe
from fitrep.rep_counter import RepCounter
from fitrep.scheduler import TimerHandle, TimerScheduler

logger = logging.getLogger("WorkoutSession")

_NO_READING = PoseReading(is_visible=False, state=ExerciseState.NONE)


class WorkoutSession:
    """Ties frame classification, rep counting and calibration together.

    Attributes:
        settings: Tunables shared with the classifier and calibration
        scheduler: Timer queue for calibration and delayed commands
        mode: Freestyle, preset or custom workout
        plan: Active workout plan, None in freestyle
        step_index: Index of the active plan step, -1 in freestyle
        exercise: Exercise currently tracked
        thresholds: Calibrated thresholds by exercise
        latest_frame: Most recent keypoint frame received
        workout_complete: True once the last plan step has been finished
    """

    def __init__(self, settings: Optional[Settings] = None,
                 scheduler: Optional[TimerScheduler] = None) -> None:
        self.settings = settings or Settings()
        self.scheduler = scheduler or TimerScheduler()
        self.mode = WorkoutMode.FREESTYLE
        self.plan: Optional[WorkoutPlan] = None
        self.step_index = -1
        self.exercise = ExerciseName.NONE
        self.thresholds: Dict[ExerciseName, ThresholdSet] = {}
        self.latest_frame: KeypointFrame = {}
        self.workout_complete = False

        self.classifier = PoseStateClassifier(self.settings)
        self.counter = RepCounter(on_target_met=self._on_target_met)
        self.calibration = CalibrationEngine(
            self.scheduler,
            frame_provider=lambda: self.latest_frame,
            on_complete=self._on_calibration_complete,
            on_alert=self._on_alert,
            settings=self.settings,
        )
        self.last_reading = _NO_READING
        self._alerts: List[Alert] = []
        self._completed_reps: Optional[int] = None
        self._auto_calibration: Optional[TimerHandle] = None

    @property
    def is_calibrating(self) -> bool:
        return self.calibration.is_calibrating

    def handle_frame(self, frame: Optional[KeypointFrame]) -> SessionUpdate:
        """Process one keypoint frame from the pose detector.

        Due timers run first so a calibration sample sees this frame. While
        calibrating, classification and counting are suspended.

        Args:
            frame: Keypoints keyed by landmark id; empty if no body detected

        Returns:
            SessionUpdate for the UI layer
        """
        self.latest_frame = frame or {}
        self.scheduler.run_due()

        if self.exercise is not ExerciseName.NONE and not self.is_calibrating:
            reading = self.classifier.update(self.latest_frame,
                                             self.thresholds.get(self.exercise))
            self.last_reading = reading
            self.counter.update(reading.state, reading.is_visible)

        return self._build_update()

    def snapshot(self) -> SessionUpdate:
        """Current session state without new input."""
        self.scheduler.run_due()
        return self._build_update()

    def select_exercise(self, name) -> SessionUpdate:
        """Switch the tracked exercise in freestyle mode.

        Resets the counter. If the exercise has never been calibrated,
        calibration starts shortly afterwards.

        Raises:
            UnknownExerciseError: If the name has no recipe
            CommandRejectedError: Outside freestyle or while calibrating
        """
        exercise = ExerciseName.parse(name)
        if exercise is not ExerciseName.NONE:
            get_recipe(exercise)
        if self.mode is not WorkoutMode.FREESTYLE:
            raise CommandRejectedError("Exercises can only be chosen in freestyle mode")
        if self.is_calibrating:
            raise CommandRejectedError("Cannot change exercise while calibrating")

        self._activate(exercise)
        if exercise is not ExerciseName.NONE and exercise not in self.thresholds:
            logger.info("Calibration needed for %s", exercise.value)
            self._auto_calibration = self.scheduler.call_later(
                self.settings.auto_calibration_delay_s, self._auto_start_calibration)
        return self._build_update()

    def start_calibration(self) -> bool:
        """Begin calibrating the current exercise; no-op if not possible."""
        self.scheduler.run_due()
        self._cancel_auto_calibration()
        return self.calibration.start(self.exercise)

    def cancel_calibration(self) -> bool:
        self._cancel_auto_calibration()
        return self.calibration.cancel()

    def reset_counter(self) -> bool:
        """Zero the rep count for the current exercise; ignored while calibrating."""
        if self.is_calibrating:
            return False
        logger.info("Resetting reps for %s", self.exercise.value)
        self.counter.reset(ExerciseState.UP)
        return True

    def set_thresholds(self, exercise, thresholds: ThresholdSet) -> None:
        """Install thresholds loaded from an external store.

        Raises:
            UnknownExerciseError: If the exercise has no recipe
            InvalidThresholdsError: If up/down are the wrong way round for
                the exercise's polarity
        """
        exercise = ExerciseName.parse(exercise)
        recipe = get_recipe(exercise)
        up, down = thresholds.up_angle, thresholds.down_angle
        if (up <= down) if recipe.up_is_larger else (down <= up):
            raise InvalidThresholdsError(
                f"Thresholds up={up:.0f} down={down:.0f} do not match "
                f"{recipe.display_name} polarity")
        self.thresholds[exercise] = thresholds

    def thresholds_for(self, exercise: ExerciseName) -> Optional[ThresholdSet]:
        """Calibrated thresholds, falling back to the recipe defaults."""
        if exercise is ExerciseName.NONE:
            return None
        return self.thresholds.get(exercise) or get_recipe(exercise).default_thresholds()

    def start_workout(self, plan: WorkoutPlan,
                      mode: WorkoutMode = WorkoutMode.PRESET) -> SessionUpdate:
        """Load a preset or custom plan and activate its first step.

        Raises:
            InvalidPlanError: If the plan has no steps or the mode is freestyle
        """
        if mode is WorkoutMode.FREESTYLE:
            raise InvalidPlanError("Freestyle sessions do not take a plan")
        if not plan.steps:
            raise InvalidPlanError(f"Workout plan {plan.id!r} has no steps")

        self.calibration.cancel()
        self.mode = mode
        self.plan = plan
        self.workout_complete = False
        logger.info("Starting %s workout %r", mode.value, plan.name)
        self._enter_step(0)
        return self._build_update()

    def start_freestyle(self) -> SessionUpdate:
        self.calibration.cancel()
        self.mode = WorkoutMode.FREESTYLE
        self.plan = None
        self.step_index = -1
        self.workout_complete = False
        self.counter.target_reps = None
        self._activate(ExerciseName.NONE)
        return self._build_update()

    def advance_workout_step(self) -> bool:
        """Move to the next plan step, finishing the workout after the last.

        The finished step's final count is reported once, as completed_reps
        in the next SessionUpdate.

        Returns:
            True if another step became active, False if the workout ended

        Raises:
            CommandRejectedError: If no plan is active or it already finished
        """
        if self.plan is None:
            raise CommandRejectedError("No workout plan is active")
        if self.workout_complete:
            raise CommandRejectedError("Workout is already complete")

        self.calibration.cancel()
        self._completed_reps = self.counter.rep_count
        next_index = self.step_index + 1
        if next_index < len(self.plan.steps):
            logger.info("Moving to step %d: %s", next_index + 1,
                        self.plan.steps[next_index].exercise.value)
            self._enter_step(next_index)
            return True

        logger.info("Workout plan %r complete", self.plan.name)
        self.workout_complete = True
        self.counter.target_reps = None
        self._activate(ExerciseName.NONE)
        self._alerts.append(Alert(title="Workout Complete!", message="Great job!"))
        return False

    def close(self) -> None:
        """Cancel every pending timer; the session must not be used afterwards."""
        self.calibration.close()
        self.scheduler.cancel_all()
        self._auto_calibration = None

    def _enter_step(self, index: int) -> None:
        step = self.plan.steps[index]
        self.step_index = index
        self._activate(step.exercise)
        self.counter.target_reps = step.target_reps

    def _activate(self, exercise: ExerciseName) -> None:
        self._cancel_auto_calibration()
        self.exercise = exercise
        recipe = None if exercise is ExerciseName.NONE else get_recipe(exercise)
        self.classifier.set_recipe(recipe)
        self.counter.reset(ExerciseState.UP)
        self.last_reading = _NO_READING

    def _auto_start_calibration(self) -> None:
        self._auto_calibration = None
        self.calibration.start(self.exercise)

    def _cancel_auto_calibration(self) -> None:
        if self._auto_calibration is not None:
            self._auto_calibration.cancel()
            self._auto_calibration = None

    def _on_target_met(self, rep_count: int) -> None:
        if self.plan is not None and not self.workout_complete:
            self.advance_workout_step()

    def _on_calibration_complete(self, exercise: ExerciseName,
                                 thresholds: ThresholdSet) -> None:
        logger.info("Updating thresholds for %s: %s", exercise.value, thresholds)
        self.thresholds[exercise] = thresholds

    def _on_alert(self, alert: Alert) -> None:
        self._alerts.append(alert)

    def _build_update(self) -> SessionUpdate:
        alerts, self._alerts = self._alerts, []
        completed_reps, self._completed_reps = self._completed_reps, None
        reading = self.last_reading
        return SessionUpdate(
            rep_count=self.counter.rep_count,
            state=reading.state,
            is_visible=reading.is_visible,
            calibration_message=self.calibration.message or None,
            exercise=self.exercise,
            mode=self.mode,
            is_calibrating=self.is_calibrating,
            step_index=self.step_index,
            target_reps=self.counter.target_reps,
            primary_angle=reading.primary_angle,
            secondary_angle=reading.secondary_angle,
            workout_complete=self.workout_complete,
            completed_reps=completed_reps,
            alerts=alerts,
        )
