from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from marble_race.betting_service import BetLedger
from marble_race.config import get_config
from marble_race.engine.data_models import RaceResult

DEFAULT_MULTIPLIERS = {1: 3, 2: 2, 3: 1}


def _load_multipliers() -> Dict[int, int]:
    raw = get_config("payouts.multipliers")
    if not raw:
        return dict(DEFAULT_MULTIPLIERS)
    return {int(position): int(multiplier) for position, multiplier in raw.items()}


PAYOUT_MULTIPLIERS = _load_multipliers()


@dataclass(frozen=True)
class PayoutLine:
    marble_id: int
    position: int
    bet_amount: int
    multiplier: int
    winnings: int


@dataclass(frozen=True)
class PayoutSummary:
    lines: Tuple[PayoutLine, ...]
    total_winnings: int
    total_bet: int
    net_result: int

    @property
    def is_break_even(self) -> bool:
        return self.net_result == 0


def multiplier_for(position: Optional[int], multipliers: Mapping[int, int] = PAYOUT_MULTIPLIERS) -> int:
    if position is None:
        return 0
    return multipliers.get(position, 0)


def calculate_payouts(
    result: RaceResult,
    ledger: BetLedger,
    multipliers: Mapping[int, int] = PAYOUT_MULTIPLIERS,
) -> PayoutSummary:
    """
    Converts a ranked race into winnings for the marbles backed in ``ledger``.

    Only placed bets are considered. Lines with zero winnings are left out of
    ``lines`` but still count toward the totals. The ledger is not modified.
    """
    wagers = ledger.wagers
    lines = []
    total_winnings = 0
    for entry in result.entries:
        bet_amount = wagers.get(entry.marble_id)
        if bet_amount is None:
            continue
        multiplier = multiplier_for(entry.position, multipliers)
        winnings = bet_amount * multiplier
        if winnings <= 0:
            continue
        total_winnings += winnings
        lines.append(
            PayoutLine(
                marble_id=entry.marble_id,
                position=entry.position,
                bet_amount=bet_amount,
                multiplier=multiplier,
                winnings=winnings,
            )
        )

    total_bet = ledger.total()
    return PayoutSummary(
        lines=tuple(lines),
        total_winnings=total_winnings,
        total_bet=total_bet,
        net_result=total_winnings - total_bet,
    )
