"""User-driven capture of personalised up/down thresholds.

Calibration runs as a state machine: countdown, settle, sample for the UP
pose, a short pause, then the same for the DOWN pose, followed by a sanity
check and commit. Every step is a single scheduled continuation on the
TimerScheduler, so cancelling means cancelling one handle.
"""

import logging
from typing import Callable, Optional, Tuple

from fitrep.classifier import key_joints_visible
from fitrep.config import Settings
from fitrep.geometry import angle_at
from fitrep.models import (Alert, CalibrationSession, CalibrationStep,
                           ExerciseName, KeypointFrame, ThresholdSet)
from fitrep.recipes import get_recipe
from fitrep.scheduler import TimerHandle, TimerScheduler

logger = logging.getLogger("CalibrationEngine")

COMPLETE_MESSAGE = "Calibration Complete!"
CANCELLED_MESSAGE = "Calibration Cancelled"


class CalibrationEngine:
    """Sequences one calibration attempt at a time.

    Attributes:
        scheduler: Timer queue shared with the owning session
        frame_provider: Returns the most recent keypoint frame
        on_complete: Called with (exercise, thresholds) on success only
        on_alert: Called with an Alert when an attempt fails
        settings: Countdown lengths, delays and visibility threshold
        session: The attempt in progress, None when not calibrating
        step: Current state machine step
        message: Text to show the user, empty when nothing to show
    """

    def __init__(
        self,
        scheduler: TimerScheduler,
        frame_provider: Callable[[], KeypointFrame],
        on_complete: Callable[[ExerciseName, ThresholdSet], None],
        on_alert: Optional[Callable[[Alert], None]] = None,
        settings: Optional[Settings] = None
    ) -> None:
        self.scheduler = scheduler
        self.frame_provider = frame_provider
        self.on_complete = on_complete
        self.on_alert = on_alert
        self.settings = settings or Settings()
        self.session: Optional[CalibrationSession] = None
        self.step = CalibrationStep.IDLE
        self.message = ""
        self._timer: Optional[TimerHandle] = None

    @property
    def is_calibrating(self) -> bool:
        return self.step.is_active

    def start(self, exercise: ExerciseName) -> bool:
        """Begin calibrating an exercise.

        Args:
            exercise: Exercise to calibrate

        Returns:
            False if the exercise is 'none' or an attempt is already running
        """
        if exercise is ExerciseName.NONE or self.is_calibrating:
            return False

        logger.info("Starting calibration for %s", exercise.value)
        self._clear_timer()
        self.session = CalibrationSession(exercise=exercise)
        self._begin_countdown(CalibrationStep.COUNTDOWN_UP)
        return True

    def cancel(self) -> bool:
        """Abort the attempt in progress and discard partial captures.

        Returns:
            True if an attempt was cancelled, False if there was none
        """
        if not self.is_calibrating:
            return False
        logger.info("Cancelling calibration for %s", self.session.exercise.value)
        self._clear_timer()
        self.session = None
        self._enter_tail(CalibrationStep.CANCELLED, CANCELLED_MESSAGE,
                         self.settings.cancel_message_s)
        return True

    def close(self) -> None:
        """Drop all state and timers without notifying anyone."""
        self._clear_timer()
        self.session = None
        self.step = CalibrationStep.IDLE
        self.message = ""

    def sample(self, exercise: ExerciseName) -> Tuple[float, bool]:
        """Measure the primary angle of an exercise from the latest frame.

        Args:
            exercise: Exercise whose primary angle joints are measured

        Returns:
            (angle, visible). angle is 0 when the joints are not visible.
        """
        recipe = get_recipe(exercise)
        frame = self.frame_provider() or {}
        joints = recipe.primary_angle_joints
        if not key_joints_visible(frame, joints, self.settings.visibility_threshold):
            return 0.0, False
        a, b, c = joints
        return angle_at(frame.get(a), frame.get(b), frame.get(c)), True

    def _advance(self) -> None:
        self._timer = None
        step = self.step

        if step in (CalibrationStep.COUNTDOWN_UP, CalibrationStep.COUNTDOWN_DOWN):
            self.session.countdown -= 1
            pose = self._pose_label(step)
            if self.session.countdown > 0:
                self.message = f"Get ready for {pose} pose... {self.session.countdown}"
                self._schedule(self.settings.countdown_tick_s)
            else:
                self.step = (CalibrationStep.SETTLE_UP if step is CalibrationStep.COUNTDOWN_UP
                             else CalibrationStep.SETTLE_DOWN)
                self.message = f"Capturing {pose} pose... HOLD!"
                self._schedule(self.settings.settle_delay_s)

        elif step is CalibrationStep.SETTLE_UP:
            angle, visible = self.sample(self.session.exercise)
            if not visible or angle <= 0:
                self._fail("Calibration Failed",
                           "Could not detect pose clearly for UP position. Please try again.")
                return
            logger.info("Captured UP angle %.1f", angle)
            self.session.captured_up_angle = angle
            self.step = CalibrationStep.PAUSE
            self._schedule(self.settings.phase_pause_s)

        elif step is CalibrationStep.PAUSE:
            self._begin_countdown(CalibrationStep.COUNTDOWN_DOWN)

        elif step is CalibrationStep.SETTLE_DOWN:
            angle, visible = self.sample(self.session.exercise)
            if not visible or angle <= 0:
                self._fail("Calibration Failed",
                           "Could not detect pose clearly for DOWN position. Please try again.")
                return
            logger.info("Captured DOWN angle %.1f", angle)
            self.session.captured_down_angle = angle
            self.step = CalibrationStep.COMMITTING
            self._commit()

        elif step in (CalibrationStep.COMPLETE, CalibrationStep.CANCELLED):
            self.step = CalibrationStep.IDLE
            self.message = ""

    def _commit(self) -> None:
        session = self.session
        up, down = session.captured_up_angle, session.captured_down_angle
        recipe = get_recipe(session.exercise)

        if recipe.up_is_larger and up <= down:
            self._fail("Calibration Issue",
                       f"Up pose angle ({up:.0f}°) must be greater than Down pose angle "
                       f"({down:.0f}°). Please try calibration again.")
            return
        if not recipe.up_is_larger and down <= up:
            self._fail("Calibration Issue",
                       f"Down pose angle ({down:.0f}°) must be greater than Up pose angle "
                       f"({up:.0f}°) for {recipe.display_name.lower()}s. "
                       "Please try calibration again.")
            return

        thresholds = ThresholdSet(up_angle=up, down_angle=down)
        logger.info("Calibration complete: %s UP=%.1f DOWN=%.1f",
                    session.exercise.value, up, down)
        self.session = None
        self._enter_tail(CalibrationStep.COMPLETE, COMPLETE_MESSAGE,
                         self.settings.complete_message_s)
        self.on_complete(session.exercise, thresholds)

    def _fail(self, title: str, message: str) -> None:
        logger.warning("%s: %s", title, message)
        self._clear_timer()
        self.session = None
        self.step = CalibrationStep.FAILED
        self.message = ""
        if self.on_alert:
            self.on_alert(Alert(title=title, message=message))

    def _begin_countdown(self, step: CalibrationStep) -> None:
        self.step = step
        self.session.countdown = self.settings.countdown_seconds
        self.message = f"Get ready for {self._pose_label(step)} pose... {self.session.countdown}"
        self._schedule(self.settings.countdown_tick_s)

    def _enter_tail(self, step: CalibrationStep, message: str, duration_s: float) -> None:
        self.step = step
        self.message = message
        self._schedule(duration_s)

    def _schedule(self, delay_s: float) -> None:
        self._clear_timer()
        self._timer = self.scheduler.call_later(delay_s, self._advance)

    def _clear_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @staticmethod
    def _pose_label(step: CalibrationStep) -> str:
        if step in (CalibrationStep.COUNTDOWN_UP, CalibrationStep.SETTLE_UP):
            return "UP"
        return "DOWN"
