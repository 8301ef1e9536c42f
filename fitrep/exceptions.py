"""Error types raised for invalid commands and malformed input.

Sensor noise is never an error here: low visibility and missing joints are
absorbed by the classifier, and calibration problems are reported to the user
as alerts. These exceptions cover what the caller got wrong.
"""


class FitRepError(Exception):
    """Base class for all errors surfaced to API clients."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': type(self).__name__, 'message': self.message}


class UnknownExerciseError(FitRepError):
    """Raised when an exercise name has no recipe."""


class UnknownPlanError(FitRepError):
    """Raised when a preset workout id does not exist."""

    status_code = 404


class InvalidPlanError(FitRepError):
    """Raised when a custom workout plan cannot be parsed."""


class InvalidFrameError(FitRepError):
    """Raised when a keypoint payload is not a list or mapping."""


class CommandRejectedError(FitRepError):
    """Raised when a command is not allowed in the current session state."""

    status_code = 409


class InvalidThresholdsError(FitRepError):
    """Raised when thresholds are not numbers or have the wrong polarity."""
