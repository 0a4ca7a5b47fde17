from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence


@dataclass
class RaceFrame:
    tick: int
    elapsed_ms: int
    target: float
    progress: Dict[int, float] = field(default_factory=dict)
    finished: bool = False

    def leader(self) -> Optional[int]:
        if not self.progress:
            return None
        return min(self.progress.items(), key=lambda item: (-item[1], item[0]))[0]


class TelemetryCollector:
    def __init__(self) -> None:
        self.frames: List[RaceFrame] = []

    def record_frame(self, frame: RaceFrame) -> None:
        self.frames.append(frame)

    def export(self) -> Sequence[RaceFrame]:
        return tuple(self.frames)

    def clear(self) -> None:
        self.frames.clear()
