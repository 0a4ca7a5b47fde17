from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional

from marble_race.config import get_config
from marble_race.engine.data_models import ROSTER_IDS

MAX_SELECTIONS = int(get_config("betting.max_selections", 9))
DEFAULT_WAGER = int(get_config("economy.default_wager", 10))
ALLOW_ZERO_STAKE = bool(get_config("economy.allow_zero_stake", False))
LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class BettingError(Exception):
    """Base class for rejected ledger actions. State is never partially changed."""


class SelectionLimitExceeded(BettingError):
    def __init__(self, limit: int = MAX_SELECTIONS):
        super().__init__(f"You can select maximum {limit} marbles")
        self.limit = limit


class InsufficientBalance(BettingError):
    def __init__(self, total: int, balance: int):
        super().__init__(f"Total bet ({total}) exceeds available gems ({balance})")
        self.total = total
        self.balance = balance


class EmptyLedger(BettingError):
    pass


class NotSelected(BettingError):
    def __init__(self, marble_id: int):
        super().__init__(f"Marble {marble_id} is not selected")
        self.marble_id = marble_id


class UnknownMarble(BettingError):
    def __init__(self, marble_id):
        super().__init__(f"There is no marble {marble_id} in this race")
        self.marble_id = marble_id


class LedgerLocked(BettingError):
    def __init__(self):
        super().__init__("Bets are locked for the race in progress")


@dataclass
class BetResult:
    success: bool
    message: str
    total: int = 0


def parse_wager(raw, minimum: int = 1) -> int:
    """
    Coerces user-entered wager text to an int. Anything unparseable becomes
    0 and the result is never below ``minimum``.
    """
    if isinstance(raw, bool):
        value = 0
    elif isinstance(raw, int):
        value = raw
    else:
        match = LEADING_INT.match(str(raw if raw is not None else ""))
        value = int(match.group(1)) if match else 0
    return max(minimum, value)


class BetLedger:
    """
    Marble selections and the wager on each for one race cycle.

    ``wagers`` is keyed exactly by the selected ids, in selection order.
    """

    def __init__(
        self,
        max_selections: int = MAX_SELECTIONS,
        default_wager: int = DEFAULT_WAGER,
        allow_zero_stake: bool = ALLOW_ZERO_STAKE,
        roster_ids: Iterable[int] = ROSTER_IDS,
    ):
        self.max_selections = max_selections
        self.default_wager = default_wager
        self.min_wager = 0 if allow_zero_stake else 1
        self.roster_ids: FrozenSet[int] = frozenset(roster_ids)
        self._wagers: Dict[int, int] = {}
        self.locked = False

    def __repr__(self):
        state = "locked" if self.locked else "open"
        return f"<BetLedger {state} | {self._wagers} | total={self.total()}>"

    def __len__(self) -> int:
        return len(self._wagers)

    def __contains__(self, marble_id) -> bool:
        return marble_id in self._wagers

    @property
    def selection(self) -> List[int]:
        return list(self._wagers)

    @property
    def wagers(self) -> Dict[int, int]:
        return dict(self._wagers)

    def wager_for(self, marble_id: int) -> int:
        return self._wagers.get(marble_id, 0)

    def _ensure_editable(self):
        if self.locked:
            raise LedgerLocked()

    def select(self, marble_id: int) -> int:
        self._ensure_editable()
        if marble_id not in self.roster_ids:
            raise UnknownMarble(marble_id)
        if marble_id in self._wagers:
            return self._wagers[marble_id]
        if len(self._wagers) >= self.max_selections:
            raise SelectionLimitExceeded(self.max_selections)
        self._wagers[marble_id] = max(self.min_wager, self.default_wager)
        return self._wagers[marble_id]

    def deselect(self, marble_id: int) -> None:
        self._ensure_editable()
        self._wagers.pop(marble_id, None)

    def toggle(self, marble_id: int) -> bool:
        """Returns True if the marble ends up selected."""
        if marble_id in self._wagers:
            self.deselect(marble_id)
            return False
        self.select(marble_id)
        return True

    def set_wager(self, marble_id: int, amount: int, balance: int) -> int:
        self._ensure_editable()
        if marble_id not in self._wagers:
            raise NotSelected(marble_id)
        try:
            value = int(amount)
        except OverflowError:
            value = balance if amount > 0 else self.min_wager
        except (TypeError, ValueError):
            value = parse_wager(amount, minimum=0)
        stored = max(self.min_wager, min(value, balance))
        self._wagers[marble_id] = stored
        return stored

    def set_wager_text(self, marble_id: int, raw, balance: int) -> int:
        return self.set_wager(marble_id, parse_wager(raw, minimum=0), balance)

    def total(self) -> int:
        return sum(self._wagers.values())

    def clear(self) -> None:
        self._ensure_editable()
        self._wagers.clear()

    def lock(self) -> "BetLedger":
        self.locked = True
        return self

    def validate(self, balance: int) -> int:
        """
        Confirm-time check. Returns the total or raises EmptyLedger /
        InsufficientBalance.
        """
        total = self.total()
        if not self._wagers:
            raise EmptyLedger("Select marbles and place bets to start racing!")
        if total > balance:
            raise InsufficientBalance(total, balance)
        if total == 0:
            raise EmptyLedger("Place at least 1 gem bet to start racing")
        return total

    def as_dict(self) -> Dict[str, object]:
        return {
            "selection": self.selection,
            "wagers": self.wagers,
            "total": self.total(),
            "locked": self.locked,
        }

    def copy(self) -> "BetLedger":
        clone = BetLedger(
            max_selections=self.max_selections,
            default_wager=self.default_wager,
            allow_zero_stake=self.min_wager == 0,
            roster_ids=self.roster_ids,
        )
        clone._wagers = dict(self._wagers)
        clone.locked = self.locked
        return clone


def describe_ledger(ledger: Optional[BetLedger]) -> str:
    if ledger is None or not len(ledger):
        return "No bets placed."
    parts = [f"Marble {marble_id}: {amount} gems" for marble_id, amount in ledger.wagers.items()]
    return ", ".join(parts) + f" (total {ledger.total()} gems)"
