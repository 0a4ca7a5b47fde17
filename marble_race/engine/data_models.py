from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

MARBLE_STYLES = (
    "linear-gradient(135deg, #ff6b6b, #ee5a24)",
    "linear-gradient(135deg, #4ecdc4, #00d2d3)",
    "linear-gradient(135deg, #45b7d1, #96ceb4)",
    "linear-gradient(135deg, #f9ca24, #f0932b)",
    "linear-gradient(135deg, #eb4d4b, #6639a6)",
    "linear-gradient(135deg, #6c5ce7, #a29bfe)",
    "linear-gradient(135deg, #00b894, #00cec9)",
    "linear-gradient(135deg, #e17055, #fdcb6e)",
    "linear-gradient(135deg, #fd79a8, #fdcb6e)",
    "linear-gradient(135deg, #636e72, #2d3436)",
)


@dataclass(frozen=True)
class Marble:
    """One of the fixed racers. ``style`` is purely decorative."""

    marble_id: int
    style: str = ""


DEFAULT_ROSTER: Tuple[Marble, ...] = tuple(
    Marble(marble_id=idx, style=style) for idx, style in enumerate(MARBLE_STYLES, start=1)
)
ROSTER_IDS = frozenset(marble.marble_id for marble in DEFAULT_ROSTER)


@dataclass(frozen=True)
class FinishEntry:
    marble_id: int
    position: int
    progress: float


@dataclass(frozen=True)
class RaceResult:
    entries: Tuple[FinishEntry, ...]
    elapsed_ms: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @classmethod
    def from_progress(cls, progress_by_marble: Dict[int, float], elapsed_ms: int = 0) -> "RaceResult":
        """
        Ranks by descending progress; equal progress falls back to the
        lower marble id.
        """
        ordered = sorted(progress_by_marble.items(), key=lambda item: (-item[1], item[0]))
        entries = tuple(
            FinishEntry(marble_id=marble_id, position=idx, progress=float(progress))
            for idx, (marble_id, progress) in enumerate(ordered, start=1)
        )
        return cls(entries=entries, elapsed_ms=elapsed_ms)

    @classmethod
    def from_order(cls, marble_ids: Sequence[int]) -> "RaceResult":
        entries = tuple(
            FinishEntry(marble_id=marble_id, position=idx, progress=0.0)
            for idx, marble_id in enumerate(marble_ids, start=1)
        )
        return cls(entries=entries)

    @property
    def finish_order(self) -> Tuple[int, ...]:
        return tuple(entry.marble_id for entry in self.entries)

    @property
    def winner(self) -> Optional[int]:
        return self.entries[0].marble_id if self.entries else None

    def position_of(self, marble_id: int) -> Optional[int]:
        for entry in self.entries:
            if entry.marble_id == marble_id:
                return entry.position
        return None
