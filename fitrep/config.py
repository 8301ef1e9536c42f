"""Tunable parameters for pose classification, calibration and the server."""

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

ENV_PREFIX = 'FITREP_'


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Attributes:
        visibility_threshold: Minimum landmark visibility for a joint to count
        hysteresis_margin: Degrees an angle must move past a threshold to
            leave a stable state
        countdown_seconds: Countdown length before each calibration capture
        countdown_tick_s: Interval between countdown messages
        settle_delay_s: Hold time between countdown end and sampling
        phase_pause_s: Pause between the UP capture and the DOWN countdown
        complete_message_s: How long "Calibration Complete!" stays visible
        cancel_message_s: How long "Calibration Cancelled" stays visible
        auto_calibration_delay_s: Delay before calibration starts on its own
            after selecting an uncalibrated exercise
        port: HTTP port for the Flask server
        log_level: Root logging level name
    """
    visibility_threshold: float = 0.5
    hysteresis_margin: float = 5.0
    countdown_seconds: int = 3
    countdown_tick_s: float = 1.0
    settle_delay_s: float = 0.5
    phase_pause_s: float = 0.5
    complete_message_s: float = 2.0
    cancel_message_s: float = 1.5
    auto_calibration_delay_s: float = 0.1
    port: int = 10000
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Build settings from FITREP_* environment variables.

        PORT is also honoured for hosting platforms that set it. Unset
        variables keep their defaults.

        Raises:
            ValueError: If a variable cannot be converted to its field type
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None and f.name == 'port':
                raw = environ.get('PORT')
            if raw is None:
                continue
            field_type = type(getattr(cls, f.name))
            try:
                overrides[f.name] = field_type(raw)
            except ValueError:
                raise ValueError(
                    f"{ENV_PREFIX}{f.name.upper()}={raw!r} is not a valid {field_type.__name__}"
                ) from None
        return cls(**overrides)
