"""Repetition counting from the classified state stream."""

import logging
from typing import Callable, Optional

from fitrep.models import ExerciseState, RepCounterState

logger = logging.getLogger("RepCounter")


class RepCounter:
    """Counts one rep per complete down -> up cycle.

    Attributes:
        target_reps: Optional goal; reaching it fires on_target_met
        on_rep_complete: Called with the new count after each rep
        on_target_met: Called with the new count once count >= target_reps
        data: Counter state (count, last stable state, down latch)
    """

    def __init__(
        self,
        target_reps: Optional[int] = None,
        on_rep_complete: Optional[Callable[[int], None]] = None,
        on_target_met: Optional[Callable[[int], None]] = None
    ) -> None:
        self.target_reps = target_reps
        self.on_rep_complete = on_rep_complete
        self.on_target_met = on_target_met
        self.data = RepCounterState()

    @property
    def rep_count(self) -> int:
        return self.data.rep_count

    def update(self, state: ExerciseState, is_visible: bool) -> bool:
        """Feed one classifier output.

        Args:
            state: Classified exercise state
            is_visible: Whether the key joints were visible for this frame

        Returns:
            True if this update completed a rep
        """
        if not is_visible or not state.is_stable:
            return False

        data = self.data
        completed = False

        if (state is ExerciseState.UP
                and data.previous_stable_state is ExerciseState.DOWN
                and data.down_achieved_in_cycle):
            data.rep_count += 1
            data.down_achieved_in_cycle = False
            completed = True
            logger.info("Rep counted: %d", data.rep_count)

        if state is ExerciseState.DOWN and not data.down_achieved_in_cycle:
            data.down_achieved_in_cycle = True

        data.previous_stable_state = state

        if completed:
            if self.on_rep_complete:
                self.on_rep_complete(data.rep_count)
            if self.target_reps and data.rep_count >= self.target_reps:
                logger.info("Target reps (%d) met", self.target_reps)
                if self.on_target_met:
                    self.on_target_met(data.rep_count)
        return completed

    def reset(self, start_state: ExerciseState = ExerciseState.UP) -> None:
        """Zero the count and clear the down latch.

        Args:
            start_state: Stable state assumed before the next frame; anything
                other than up/down falls back to up
        """
        if not start_state.is_stable:
            start_state = ExerciseState.UP
        self.data = RepCounterState(previous_stable_state=start_state)
        logger.debug("Counter reset, previous state set to %s", start_state.value)
