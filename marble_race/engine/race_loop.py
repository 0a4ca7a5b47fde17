from __future__ import annotations

import math
from typing import Dict, Optional, Sequence

import numpy as np

from marble_race.config import get_config
from .data_models import DEFAULT_ROSTER, Marble, RaceResult
from .telemetry import RaceFrame, TelemetryCollector

TICK_MS = int(get_config("racing.tick_ms", 50))
PHASE_SECONDS = int(get_config("racing.phase_seconds", 15))
RACE_DURATION_MS = PHASE_SECONDS * 1000
TRACK_LENGTH = float(get_config("racing.track_length", 1000.0))
BASE_SPEED = tuple(get_config("racing.base_speed", [0.5, 1.0]))
SPEED_NOISE = float(get_config("racing.speed_noise", 0.15))
TARGET_PULL = float(get_config("racing.target_pull", 0.12))
TARGET_JITTER = float(get_config("racing.target_jitter", 0.02))
FINISH_TARGET = float(get_config("racing.finish_target", 0.95))


class MarbleRaceLoop:
    """
    Fixed-duration race over a roster of marbles.

    Every tick each marble gets an independent random advance (uniform base
    speed plus gaussian noise) and is then pulled toward the pace line
    ``elapsed / duration * finish_target * track_length`` with per-marble
    jitter. The pull keeps the field bunched near the line so the race ends
    at the deadline rather than when the first marble crosses. At the
    deadline everyone finishes together and the order is decided by final
    progress.
    """

    def __init__(
        self,
        roster: Sequence[Marble] = DEFAULT_ROSTER,
        duration_ms: int = RACE_DURATION_MS,
        tick_ms: int = TICK_MS,
        track_length: float = TRACK_LENGTH,
        telemetry: Optional[TelemetryCollector] = None,
        rng_seed: Optional[int] = None,
        base_speed: Sequence[float] = BASE_SPEED,
        speed_noise: float = SPEED_NOISE,
        target_pull: float = TARGET_PULL,
        target_jitter: float = TARGET_JITTER,
        finish_target: float = FINISH_TARGET,
    ) -> None:
        if not roster:
            raise ValueError("Race roster must contain at least one marble.")
        ids = [marble.marble_id for marble in roster]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate marble ids in roster: {ids}")
        if duration_ms <= 0 or tick_ms <= 0:
            raise ValueError("Race duration and tick interval must be positive.")

        self.roster = tuple(roster)
        self.duration_ms = int(duration_ms)
        self.tick_ms = int(tick_ms)
        self.track_length = float(track_length)
        self.telemetry = telemetry
        self.rng = np.random.default_rng(rng_seed)
        self.speed_low, self.speed_high = float(base_speed[0]), float(base_speed[1])
        self.speed_noise = speed_noise
        self.target_pull = target_pull
        self.target_jitter = target_jitter
        self.finish_target = finish_target

        self.elapsed_ms = 0
        self.tick_index = 0
        self._ids = np.array(ids, dtype=int)
        self._progress = np.zeros(len(ids), dtype=float)
        self._finished = np.zeros(len(ids), dtype=bool)
        self._result: Optional[RaceResult] = None

        speed_mean = (self.speed_low + self.speed_high) / 2.0 or 1.0
        # Mean advance per tick that lands the field on the pace line.
        self._step = finish_target * self.track_length * self.tick_ms / self.duration_ms / speed_mean

    @property
    def total_ticks(self) -> int:
        return math.ceil(self.duration_ms / self.tick_ms)

    @property
    def is_finished(self) -> bool:
        return self._result is not None

    @property
    def progress(self) -> Dict[int, float]:
        return {int(marble_id): float(value) for marble_id, value in zip(self._ids, self._progress)}

    @property
    def result(self) -> Optional[RaceResult]:
        return self._result

    def pace_line(self) -> float:
        ratio = min(self.elapsed_ms / self.duration_ms, 1.0)
        return ratio * self.finish_target * self.track_length

    def tick(self) -> RaceFrame:
        if self.is_finished:
            return self._frame()

        self.tick_index += 1
        self.elapsed_ms = min(self.elapsed_ms + self.tick_ms, self.duration_ms)
        count = len(self._ids)

        speed = self.rng.uniform(self.speed_low, self.speed_high, count)
        noise = self.rng.normal(0.0, self.speed_noise, count)
        advanced = self._progress + (speed + noise) * self._step

        target = self.pace_line()
        jitter = self.rng.normal(0.0, self.target_jitter * self.track_length, count)
        pulled = advanced + self.target_pull * (target + jitter - advanced)

        # Marbles never roll backwards and never leave the track.
        updated = np.clip(np.maximum(pulled, self._progress), 0.0, self.track_length)
        self._progress = np.where(self._finished, self._progress, updated)
        self._finished |= self._progress >= self.track_length

        if self.elapsed_ms >= self.duration_ms:
            self._finished[:] = True
            self._result = RaceResult.from_progress(self.progress, self.elapsed_ms)

        return self._snapshot()

    def force_finish(self) -> RaceResult:
        """
        Ends the race immediately, ranking on the last computed progress.
        """
        if self._result is None:
            self._finished[:] = True
            self._result = RaceResult.from_progress(self.progress, self.elapsed_ms)
            self._snapshot()
        return self._result

    def run_until_finished(self) -> RaceResult:
        while not self.is_finished and self.tick_index < self.total_ticks:
            self.tick()
        if not self.is_finished:
            return self.force_finish()
        return self._result

    def _frame(self) -> RaceFrame:
        return RaceFrame(
            tick=self.tick_index,
            elapsed_ms=self.elapsed_ms,
            target=self.pace_line(),
            progress=self.progress,
            finished=self.is_finished,
        )

    def _snapshot(self) -> RaceFrame:
        frame = self._frame()
        if self.telemetry is not None:
            self.telemetry.record_frame(frame)
        return frame


def run_race(
    roster: Sequence[Marble] = DEFAULT_ROSTER,
    duration_ms: int = RACE_DURATION_MS,
    **kwargs,
) -> RaceResult:
    """Runs a whole race synchronously and returns the ranked result."""
    return MarbleRaceLoop(roster, duration_ms, **kwargs).run_until_finished()
