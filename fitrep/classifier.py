"""Pose state classification with visibility gating and hysteresis.

This module turns a stream of keypoint frames into a discrete exercise
state (up, down, transitioning) for whichever exercise recipe is active.
"""

import logging
from typing import List, Optional, Sequence

from fitrep.config import Settings
from fitrep.geometry import angle_at
from fitrep.models import (ClassifierState, ExerciseRecipe, ExerciseState,
                           KeypointFrame, PoseReading, ThresholdSet)

logger = logging.getLogger("PoseStateClassifier")


def meets_up(angle: float, thresholds: ThresholdSet, up_is_larger: bool) -> bool:
    if up_is_larger:
        return angle >= thresholds.up_angle
    return angle <= thresholds.up_angle


def meets_down(angle: float, thresholds: ThresholdSet, up_is_larger: bool) -> bool:
    if up_is_larger:
        return angle <= thresholds.down_angle
    return angle >= thresholds.down_angle


def leaves_up(angle: float, thresholds: ThresholdSet, up_is_larger: bool,
              margin: float) -> bool:
    if up_is_larger:
        return angle < thresholds.up_angle - margin
    return angle > thresholds.up_angle + margin


def leaves_down(angle: float, thresholds: ThresholdSet, up_is_larger: bool,
                margin: float) -> bool:
    if up_is_larger:
        return angle > thresholds.down_angle + margin
    return angle < thresholds.down_angle - margin


def next_state(
    current: ExerciseState,
    angles: Sequence[float],
    thresholds: ThresholdSet,
    up_is_larger: bool,
    margin: float
) -> ExerciseState:
    """Apply one step of the hysteresis state machine.

    Entering a stable state needs every angle past the threshold. Leaving
    one needs any angle past the threshold plus the margin. A state that is
    left is re-evaluated against the entry rules with the same angles, so
    a fast movement can go from up to down in a single frame.

    Args:
        current: State after the previous frame
        angles: Primary angle followed by the optional secondary angle
        thresholds: Active up/down thresholds
        up_is_larger: Recipe polarity
        margin: Hysteresis margin in degrees

    Returns:
        The new exercise state
    """
    if current is ExerciseState.UP:
        if not any(leaves_up(a, thresholds, up_is_larger, margin) for a in angles):
            return ExerciseState.UP
    elif current is ExerciseState.DOWN:
        if not any(leaves_down(a, thresholds, up_is_larger, margin) for a in angles):
            return ExerciseState.DOWN

    if all(meets_up(a, thresholds, up_is_larger) for a in angles):
        return ExerciseState.UP
    if all(meets_down(a, thresholds, up_is_larger) for a in angles):
        return ExerciseState.DOWN
    return ExerciseState.TRANSITIONING


def key_joints_visible(frame: KeypointFrame, joints: Sequence[int],
                       threshold: float) -> bool:
    """True when every joint is present with visibility above the threshold."""
    for joint in joints:
        keypoint = frame.get(joint)
        if keypoint is None or not keypoint.visibility > threshold:
            return False
    return True


class PoseStateClassifier:
    """Classifies keypoint frames into exercise states for one recipe.

    Attributes:
        settings: Visibility threshold and hysteresis margin
        recipe: Active exercise recipe, None when no exercise is selected
        state_data: State carried between frames
    """

    def __init__(self, settings: Optional[Settings] = None,
                 recipe: Optional[ExerciseRecipe] = None) -> None:
        self.settings = settings or Settings()
        self.recipe = recipe
        self.state_data = ClassifierState()

    @property
    def state(self) -> ExerciseState:
        return self.state_data.state

    def set_recipe(self, recipe: Optional[ExerciseRecipe]) -> None:
        """Switch to another exercise and forget the previous state."""
        self.recipe = recipe
        self.reset()

    def reset(self) -> None:
        self.state_data = ClassifierState()

    def measure_angles(self, frame: KeypointFrame) -> List[float]:
        """Compute the recipe's angle(s) from a frame, primary first."""
        if self.recipe is None:
            return []
        return [
            angle_at(frame.get(a), frame.get(b), frame.get(c))
            for a, b, c in self.recipe.angle_joint_sets
        ]

    def update(
        self,
        frame: KeypointFrame,
        thresholds: Optional[ThresholdSet] = None
    ) -> PoseReading:
        """Classify the latest frame.

        Args:
            frame: Latest keypoints keyed by landmark id; may be empty
            thresholds: Calibrated thresholds, or None for recipe defaults

        Returns:
            PoseReading with visibility, state and the measured angles.
            When key joints are not visible the previous state is held.
        """
        recipe = self.recipe
        if recipe is None:
            reading = PoseReading(is_visible=False, state=ExerciseState.NONE)
            self.state_data = ClassifierState(ExerciseState.NONE, reading)
            return reading

        if not frame or not key_joints_visible(
                frame, recipe.key_joints, self.settings.visibility_threshold):
            logger.debug("Key joints not visible for %s, holding state %s",
                         recipe.id.value, self.state.value)
            reading = PoseReading(is_visible=False, state=self.state)
            self.state_data.last_reading = reading
            return reading

        active = thresholds or recipe.default_thresholds()
        angles = self.measure_angles(frame)
        new_state = next_state(self.state, angles, active, recipe.up_is_larger,
                               self.settings.hysteresis_margin)

        if new_state is not self.state:
            logger.debug("State change: %s -> %s (angles: %s)",
                         self.state.value, new_state.value,
                         ", ".join(f"{a:.1f}" for a in angles))

        reading = PoseReading(
            is_visible=True,
            state=new_state,
            primary_angle=angles[0],
            secondary_angle=angles[1] if len(angles) > 1 else None,
        )
        self.state_data = ClassifierState(new_state, reading)
        return reading
