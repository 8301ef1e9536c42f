import pytest

from fitrep.calibration import CANCELLED_MESSAGE, COMPLETE_MESSAGE, CalibrationEngine
from fitrep.models import CalibrationStep, ExerciseName
from fitrep.recipes import get_recipe
from helpers import frame_for


class Harness:
    """Calibration engine wired to a settable frame and recording callbacks."""

    def __init__(self, scheduler, clock, settings):
        self.scheduler = scheduler
        self.clock = clock
        self.frame = {}
        self.completed = []
        self.alerts = []
        self.engine = CalibrationEngine(
            scheduler,
            frame_provider=lambda: self.frame,
            on_complete=lambda exercise, thresholds: self.completed.append(
                (exercise, thresholds)),
            on_alert=self.alerts.append,
            settings=settings,
        )

    def advance(self, seconds):
        self.clock.advance(seconds)
        self.scheduler.run_due()

    def pump(self, done, frame_interval=0.1, limit=30.0):
        """Advance at a steady frame rate until done() is true."""
        elapsed = 0.0
        while not done():
            assert elapsed < limit, "calibration did not reach the expected step"
            self.advance(frame_interval)
            elapsed += frame_interval

    def run(self, exercise, up_angle, down_angle):
        """Drive a whole attempt, showing each pose until it is sampled."""
        recipe = get_recipe(exercise)
        engine = self.engine
        assert engine.start(ExerciseName.parse(exercise))
        self.frame = frame_for(recipe, [up_angle] * len(recipe.angle_joint_sets))
        self.pump(lambda: engine.step in (CalibrationStep.PAUSE, CalibrationStep.FAILED))
        self.frame = frame_for(recipe, [down_angle] * len(recipe.angle_joint_sets))
        self.pump(lambda: not engine.is_calibrating)


@pytest.fixture
def harness(scheduler, clock, settings):
    return Harness(scheduler, clock, settings)


def test_successful_push_up_calibration(harness):
    harness.run('push-up', 160, 100)
    assert len(harness.completed) == 1
    exercise, thresholds = harness.completed[0]
    assert exercise is ExerciseName.PUSH_UP
    assert thresholds.up_angle == pytest.approx(160.0)
    assert thresholds.down_angle == pytest.approx(100.0)
    assert harness.alerts == []
    assert harness.engine.step is CalibrationStep.COMPLETE
    assert harness.engine.message == COMPLETE_MESSAGE
    assert not harness.engine.is_calibrating


def test_complete_message_clears_after_two_seconds(harness):
    harness.run('push-up', 160, 100)
    harness.advance(1.5)
    assert harness.engine.message == COMPLETE_MESSAGE
    harness.advance(0.6)
    assert harness.engine.step is CalibrationStep.IDLE
    assert harness.engine.message == ""
    assert harness.scheduler.pending == 0


def test_successful_sit_up_calibration(harness):
    harness.run('sit-up', 70, 170)
    (_, thresholds), = harness.completed
    assert thresholds.up_angle == pytest.approx(70.0)
    assert thresholds.down_angle == pytest.approx(170.0)


def test_wrong_push_up_polarity_fails(harness):
    harness.run('push-up', 90, 120)
    assert harness.completed == []
    alert, = harness.alerts
    assert alert.title == "Calibration Issue"
    assert alert.message == ("Up pose angle (90°) must be greater than Down pose angle "
                             "(120°). Please try calibration again.")
    assert harness.engine.step is CalibrationStep.FAILED
    assert not harness.engine.is_calibrating
    assert harness.engine.message == ""
    assert harness.engine.session is None


def test_wrong_sit_up_polarity_fails(harness):
    harness.run('sit-up', 170, 70)
    alert, = harness.alerts
    assert alert.title == "Calibration Issue"
    assert alert.message == ("Down pose angle (70°) must be greater than Up pose angle "
                             "(170°) for sit-ups. Please try calibration again.")


def test_squat_calibrates_from_the_right_leg(harness):
    harness.run('squat', 170, 95)
    (exercise, thresholds), = harness.completed
    assert exercise is ExerciseName.SQUAT
    assert thresholds.up_angle == pytest.approx(170.0)
    assert thresholds.down_angle == pytest.approx(95.0)


def test_countdown_messages(harness):
    engine = harness.engine
    harness.frame = frame_for(get_recipe('push-up'), [165])
    engine.start(ExerciseName.PUSH_UP)
    assert engine.is_calibrating
    assert engine.message == "Get ready for UP pose... 3"
    harness.advance(0.9)
    assert engine.message == "Get ready for UP pose... 3"
    harness.advance(0.15)
    assert engine.message == "Get ready for UP pose... 2"
    harness.advance(1.05)
    assert engine.message == "Get ready for UP pose... 1"
    harness.advance(1.05)
    assert engine.message == "Capturing UP pose... HOLD!"
    assert engine.step is CalibrationStep.SETTLE_UP
    harness.advance(0.55)
    assert engine.step is CalibrationStep.PAUSE
    assert engine.session.captured_up_angle == pytest.approx(165.0)
    harness.advance(0.55)
    assert engine.message == "Get ready for DOWN pose... 3"
    for _ in range(3):
        harness.advance(1.05)
    assert engine.message == "Capturing DOWN pose... HOLD!"


def test_up_capture_fails_without_body(harness):
    harness.engine.start(ExerciseName.PUSH_UP)
    harness.pump(lambda: harness.engine.step is CalibrationStep.FAILED)
    alert, = harness.alerts
    assert alert.title == "Calibration Failed"
    assert alert.message == "Could not detect pose clearly for UP position. Please try again."
    assert harness.engine.step is CalibrationStep.FAILED
    assert harness.scheduler.pending == 0


def test_down_capture_fails_when_joints_hidden(harness):
    recipe = get_recipe('push-up')
    harness.engine.start(ExerciseName.PUSH_UP)
    harness.frame = frame_for(recipe, [165])
    harness.pump(lambda: harness.engine.step is CalibrationStep.PAUSE)
    harness.frame = frame_for(recipe, [95], visibility=0.2)
    harness.pump(lambda: not harness.engine.is_calibrating)
    alert, = harness.alerts
    assert alert.message == "Could not detect pose clearly for DOWN position. Please try again."
    assert harness.completed == []


def test_cancel_discards_attempt(harness):
    recipe = get_recipe('push-up')
    harness.frame = frame_for(recipe, [165])
    harness.engine.start(ExerciseName.PUSH_UP)
    harness.pump(lambda: harness.engine.step is CalibrationStep.COUNTDOWN_DOWN)
    assert harness.engine.cancel()
    assert harness.engine.session is None
    assert harness.engine.message == CANCELLED_MESSAGE
    assert not harness.engine.is_calibrating

    harness.frame = frame_for(recipe, [95])
    harness.advance(1.6)
    assert harness.engine.step is CalibrationStep.IDLE
    assert harness.engine.message == ""
    harness.advance(10)
    assert harness.completed == []
    assert harness.alerts == []


def test_cancel_when_idle_is_a_no_op(harness):
    assert not harness.engine.cancel()
    assert harness.engine.step is CalibrationStep.IDLE


def test_start_is_rejected_while_running(harness):
    assert harness.engine.start(ExerciseName.PUSH_UP)
    assert not harness.engine.start(ExerciseName.SQUAT)
    assert harness.engine.session.exercise is ExerciseName.PUSH_UP


def test_start_rejects_none(harness):
    assert not harness.engine.start(ExerciseName.NONE)
    assert harness.engine.step is CalibrationStep.IDLE


def test_restart_after_failure(harness):
    harness.run('push-up', 90, 120)
    harness.run('push-up', 160, 100)
    assert len(harness.completed) == 1


def test_restart_during_cancelled_message(harness):
    harness.engine.start(ExerciseName.PUSH_UP)
    harness.engine.cancel()
    assert harness.engine.start(ExerciseName.PUSH_UP)
    assert harness.engine.message == "Get ready for UP pose... 3"
    # The cancelled tail timer must not fire into the new attempt
    harness.advance(1.6)
    assert harness.engine.message == "Get ready for UP pose... 2"


def test_close_drops_timers(harness):
    harness.engine.start(ExerciseName.PUSH_UP)
    harness.engine.close()
    assert harness.scheduler.pending == 0
    assert harness.engine.step is CalibrationStep.IDLE


def test_long_gap_between_frames_advances_one_step(harness):
    recipe = get_recipe('push-up')
    harness.frame = frame_for(recipe, [165])
    harness.engine.start(ExerciseName.PUSH_UP)
    harness.advance(8.0)
    assert harness.engine.is_calibrating
    assert harness.engine.message == "Get ready for UP pose... 2"
    assert harness.alerts == []
    assert harness.engine.session.captured_up_angle is None

    # The remaining countdown is measured from this frame onwards
    harness.advance(0.9)
    assert harness.engine.message == "Get ready for UP pose... 2"
    harness.advance(0.15)
    assert harness.engine.message == "Get ready for UP pose... 1"
