"""
Race engine package for the marble race.

Data models describe the roster and ranked results, the race loop owns the
randomized progress simulation, and telemetry collects per-tick frames for
playback.
"""

from .data_models import (  # noqa: F401
    DEFAULT_ROSTER,
    MARBLE_STYLES,
    ROSTER_IDS,
    FinishEntry,
    Marble,
    RaceResult,
)
from .telemetry import RaceFrame, TelemetryCollector  # noqa: F401
from .race_loop import MarbleRaceLoop, run_race  # noqa: F401

__all__ = [
    "DEFAULT_ROSTER",
    "MARBLE_STYLES",
    "ROSTER_IDS",
    "FinishEntry",
    "Marble",
    "RaceResult",
    "RaceFrame",
    "TelemetryCollector",
    "MarbleRaceLoop",
    "run_race",
]
