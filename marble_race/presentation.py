from __future__ import annotations

from typing import Dict, Optional

from marble_race.betting_service import BetLedger, describe_ledger
from marble_race.engine.data_models import RaceResult
from marble_race.payouts import PayoutSummary

BAR_WIDTH = 30


def format_gems(value) -> str:
    if value is None:
        return "-"
    try:
        return f"{int(value):,} gems"
    except (TypeError, ValueError):
        return str(value)


def ordinal(value: int) -> str:
    if 10 <= value % 100 <= 20:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(value % 10, 'th')
    return f"{value}{suffix}"


def format_net_result(net_result: int) -> str:
    if net_result > 0:
        return f"Net Result: +{net_result:,} gems"
    if net_result < 0:
        return f"Net Result: {net_result:,} gems"
    return "Net Result: Break Even"


def progress_bar(progress: float, track_length: float, width: int = BAR_WIDTH) -> str:
    if track_length <= 0:
        return "[" + " " * width + "]"
    filled = int(round(width * max(0.0, min(progress / track_length, 1.0))))
    return "[" + "=" * filled + " " * (width - filled) + "]"


class PresentationAdapter:
    """
    Boundary the engine renders through. Every hook is a no-op here;
    front-ends override the ones they care about.
    """

    def render_balance(self, gems: int) -> None:
        pass

    def render_status(self, message: str) -> None:
        pass

    def render_ledger(self, ledger: BetLedger) -> None:
        pass

    def render_countdown(self, phase, seconds_left: int) -> None:
        pass

    def render_race_frame(self, progress_by_marble: Dict[int, float]) -> None:
        pass

    def render_results(self, result: RaceResult) -> None:
        pass

    def render_payout(self, summary: PayoutSummary) -> None:
        pass

    def report_error(self, message: str) -> None:
        pass


class ConsoleAdapter(PresentationAdapter):
    """Plain-text front-end for running the game in a terminal."""

    def __init__(self, track_length: float = 1000.0, frame_every: int = 20, show_countdown: bool = True):
        self.track_length = track_length
        self.frame_every = max(1, frame_every)
        self.show_countdown = show_countdown
        self._frames_seen = 0

    def render_balance(self, gems: int) -> None:
        print(f"Balance: {format_gems(gems)}")

    def render_status(self, message: str) -> None:
        print(f"  -> {message}")

    def render_ledger(self, ledger: BetLedger) -> None:
        print(f"  -> Bets: {describe_ledger(ledger)}")

    def render_countdown(self, phase, seconds_left: int) -> None:
        if self.show_countdown:
            label = getattr(phase, "label", str(phase))
            print(f"[{label}] {seconds_left}s")

    def render_race_frame(self, progress_by_marble: Dict[int, float]) -> None:
        self._frames_seen += 1
        if self._frames_seen % self.frame_every:
            return
        for marble_id, progress in progress_by_marble.items():
            print(f"  {marble_id:>2} {progress_bar(progress, self.track_length)}")
        print()

    def render_results(self, result: RaceResult) -> None:
        self._frames_seen = 0
        lines = [f"{ordinal(entry.position):>4} - Marble {entry.marble_id}" for entry in result]
        print("  -> Results:\n" + "\n".join(lines))

    def render_payout(self, summary: PayoutSummary) -> None:
        print(build_payout_text(summary))

    def report_error(self, message: str) -> None:
        print(f"!!! {message}")


def build_payout_text(summary: Optional[PayoutSummary]) -> str:
    lines = ["Payout Summary"]
    if summary is None:
        return "\n".join(lines + ["No race has been settled yet."])
    if summary.lines:
        for line in summary.lines:
            lines.append(
                f"Marble {line.marble_id} ({ordinal(line.position)}): "
                f"{line.bet_amount} x {line.multiplier} = {line.winnings} gems"
            )
    else:
        lines.append("No winning positions")
    lines.append(f"Total Bet: -{summary.total_bet:,} gems")
    lines.append(f"Total Winnings: +{summary.total_winnings:,} gems")
    lines.append(format_net_result(summary.net_result))
    return "\n".join(lines)
