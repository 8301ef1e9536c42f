"""Camera-based repetition counting for push-ups, squats and sit-ups."""

__version__ = "0.1.0"
