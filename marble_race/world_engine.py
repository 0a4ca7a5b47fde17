from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from marble_race.balance_store import BalanceStore
from marble_race.betting_service import BetLedger, BetResult, BettingError
from marble_race.console_commands import COMMAND_HELP, start_console_input
from marble_race.engine import DEFAULT_ROSTER, Marble, MarbleRaceLoop, RaceFrame, RaceResult, TelemetryCollector
from marble_race.engine.race_loop import PHASE_SECONDS, TICK_MS, TRACK_LENGTH
from marble_race.payouts import PayoutSummary, calculate_payouts
from marble_race.presentation import ConsoleAdapter, PresentationAdapter


class Phase(Enum):
    BETTING = "betting"
    RACING = "racing"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass
class PhaseState:
    phase: Phase
    seconds_left: int
    phase_seconds: int


class PhaseScheduler:
    """
    Runs the Betting -> Racing -> Betting cycle.

    ``tick()`` is one countdown unit and ``race_tick()`` one race step; both
    are plain synchronous calls so the cycle can be driven by hand. ``run()``
    drives them from two asyncio timers. While Racing, the current ledger is
    locked and player edits go to the pending ledger, which becomes the
    current one when Betting reopens.
    """

    def __init__(
        self,
        balance_store: Optional[BalanceStore] = None,
        adapter: Optional[PresentationAdapter] = None,
        roster: Sequence[Marble] = DEFAULT_ROSTER,
        phase_seconds: int = PHASE_SECONDS,
        tick_ms: int = TICK_MS,
        countdown_interval: float = 1.0,
        race_tick_interval: Optional[float] = None,
        ledger_factory: Callable[[], BetLedger] = BetLedger,
        race_factory: Callable[..., MarbleRaceLoop] = MarbleRaceLoop,
        telemetry: Optional[TelemetryCollector] = None,
        verbose: bool = True,
    ):
        if phase_seconds <= 0:
            raise ValueError("phase_seconds must be positive.")
        self.balance = balance_store if balance_store is not None else BalanceStore()
        self.adapter = adapter if adapter is not None else PresentationAdapter()
        self.roster = tuple(roster)
        self.phase_seconds = phase_seconds
        self.tick_ms = tick_ms
        self.countdown_interval = countdown_interval
        if race_tick_interval is None:
            race_tick_interval = countdown_interval * tick_ms / 1000.0
        self.race_tick_interval = race_tick_interval
        self.ledger_factory = ledger_factory
        self.race_factory = race_factory
        self.telemetry = telemetry
        self.verbose = verbose

        self.state = PhaseState(Phase.BETTING, phase_seconds, phase_seconds)
        self.current: BetLedger = ledger_factory()
        self.pending: BetLedger = ledger_factory()
        self.race: Optional[MarbleRaceLoop] = None
        self.race_number = 0
        self.cycles_completed = 0
        self.stake_debited = False
        self.last_result: Optional[RaceResult] = None
        self.last_summary: Optional[PayoutSummary] = None
        self.started = False

        self._race_task: Optional[asyncio.Task] = None
        self._running_async = False

    def __repr__(self):
        return f"<PhaseScheduler {self.state.phase.value} {self.state.seconds_left}s | race #{self.race_number}>"

    def _log(self, message: str):
        if self.verbose:
            print(message)

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def editable_ledger(self) -> BetLedger:
        return self.current if self.state.phase is Phase.BETTING else self.pending

    @property
    def race_in_progress(self) -> bool:
        return self.race is not None

    # --- Lifecycle ---

    def start(self):
        if self.started:
            return
        self.started = True
        self._log("--- Marble Race Engine Started ---")
        self.adapter.render_balance(self.balance.gems)
        self._enter_betting(promote=False)

    def tick(self) -> PhaseState:
        """Advances the phase countdown by one unit."""
        if not self.started:
            self.start()
        self.state.seconds_left = max(0, self.state.seconds_left - 1)
        self.adapter.render_countdown(self.state.phase, self.state.seconds_left)
        if self.state.seconds_left == 0:
            if self.state.phase is Phase.BETTING:
                self._enter_racing()
            else:
                self._enter_betting()
        return self.state

    def race_tick(self) -> Optional[RaceFrame]:
        """Advances the running race by one step."""
        race = self.race
        if race is None:
            return None
        frame = race.tick()
        self.adapter.render_race_frame(frame.progress)
        if race.is_finished:
            self.finish_race()
        return frame

    def finish_race(self) -> Optional[PayoutSummary]:
        """
        Settles the running race against the locked current ledger and
        credits the winnings. A race is settled at most once.
        """
        race = self.race
        if race is None:
            return None
        self.race = None

        result = race.force_finish()
        summary = calculate_payouts(result, self.current)
        self.balance.credit(summary.total_winnings)
        self.last_result = result
        self.last_summary = summary
        self.cycles_completed += 1

        self.adapter.render_status("Race finished!")
        self.adapter.render_results(result)
        self.adapter.render_payout(summary)
        self.adapter.render_balance(self.balance.gems)
        if summary.total_winnings:
            self._log(f"  -> Credited {summary.total_winnings:,} gems (net {summary.net_result:+,}).")
        self._log(f"=== Race #{self.race_number} complete: Marble {result.winner} wins ===")
        return summary

    def _enter_racing(self):
        self._cancel_race_timer()
        if self.race is not None:
            self.finish_race()

        ledger = self.current.lock()
        total = ledger.total()
        self.stake_debited = self.balance.debit(total)
        self.race_number += 1
        self._log(f"\n=== Running Race #{self.race_number} ({len(self.roster)} marbles) ===")
        if self.stake_debited:
            self._log(f"  -> Debited {total:,} gems in stakes.")
        elif total > 0:
            self._log(f"  -> Stake of {total:,} gems exceeds balance of {self.balance.gems:,}; debit skipped.")

        self.state = PhaseState(Phase.RACING, self.phase_seconds, self.phase_seconds)
        self.race = self.race_factory(
            self.roster,
            duration_ms=self.phase_seconds * 1000,
            tick_ms=self.tick_ms,
            telemetry=self.telemetry,
        )
        self.adapter.render_balance(self.balance.gems)
        self.adapter.render_status("Racing in progress... bets now go to the next race.")
        self.adapter.render_ledger(self.pending.copy())
        self.adapter.render_countdown(self.state.phase, self.state.seconds_left)
        if self._running_async:
            self._start_race_timer()

    def _enter_betting(self, promote: bool = True):
        self._cancel_race_timer()
        if self.race is not None:
            self.finish_race()

        if promote:
            self.current = self.pending
            self.pending = self.ledger_factory()
        self.state = PhaseState(Phase.BETTING, self.phase_seconds, self.phase_seconds)
        self.adapter.render_ledger(self.current.copy())
        self.adapter.render_status("Betting is open. Select marbles and place bets!")
        self.adapter.render_countdown(self.state.phase, self.state.seconds_left)

    # --- Player actions (always against the editable ledger) ---

    def _apply(self, action: Callable[[BetLedger], object], message: str) -> BetResult:
        ledger = self.editable_ledger
        try:
            action(ledger)
        except BettingError as err:
            self.adapter.report_error(str(err))
            return BetResult(False, str(err), ledger.total())
        self.adapter.render_ledger(ledger.copy())
        return BetResult(True, message, ledger.total())

    def select(self, marble_id: int) -> BetResult:
        return self._apply(lambda ledger: ledger.select(marble_id), f"Marble {marble_id} selected.")

    def deselect(self, marble_id: int) -> BetResult:
        return self._apply(lambda ledger: ledger.deselect(marble_id), f"Marble {marble_id} removed.")

    def toggle(self, marble_id: int) -> BetResult:
        return self._apply(lambda ledger: ledger.toggle(marble_id), f"Marble {marble_id} toggled.")

    def set_wager(self, marble_id: int, amount: int) -> BetResult:
        return self._apply(
            lambda ledger: ledger.set_wager(marble_id, amount, self.balance.gems),
            f"Wager on Marble {marble_id} updated.",
        )

    def set_wager_text(self, marble_id: int, raw) -> BetResult:
        return self._apply(
            lambda ledger: ledger.set_wager_text(marble_id, raw, self.balance.gems),
            f"Wager on Marble {marble_id} updated.",
        )

    def reset_current_editable_ledger(self) -> BetResult:
        return self._apply(lambda ledger: ledger.clear(), "Bets cleared.")

    def confirm_bets(self) -> BetResult:
        ledger = self.editable_ledger
        try:
            total = ledger.validate(self.balance.gems)
        except BettingError as err:
            self.adapter.report_error(str(err))
            return BetResult(False, str(err), ledger.total())
        message = f"Ready to race! Total bet: {total} gems"
        self.adapter.render_status(message)
        return BetResult(True, message, total)

    # --- asyncio driver ---

    def _start_race_timer(self):
        loop = asyncio.get_running_loop()
        self._race_task = loop.create_task(self._race_timer(self.race))
        self._race_task.add_done_callback(self._report_race_timer_failure)

    @staticmethod
    def _report_race_timer_failure(task: asyncio.Task):
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            print(f"!!! Race timer failed: {err!r}")

    def _cancel_race_timer(self):
        task, self._race_task = self._race_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _race_timer(self, race: MarbleRaceLoop):
        while self.race is race:
            await asyncio.sleep(self.race_tick_interval)
            if self.race is not race:
                break
            self.race_tick()

    async def run(self, max_cycles: Optional[int] = None):
        """
        Drives the countdown and race timers until ``max_cycles`` races have
        been settled, or forever when it is None.
        """
        self._running_async = True
        self.start()
        if self.race is not None and self._race_task is None:
            self._start_race_timer()
        try:
            while max_cycles is None or self.cycles_completed < max_cycles:
                await asyncio.sleep(self.countdown_interval)
                self.tick()
        finally:
            self._cancel_race_timer()
            self._running_async = False


async def run_world_engine(max_cycles: Optional[int] = None, command_stream=None):
    """
    Builds the default game (persisted balance, console front-end) and runs
    it until interrupted. Player commands are read line by line from
    ``command_stream``, stdin by default.
    """
    scheduler = PhaseScheduler(
        balance_store=BalanceStore(),
        adapter=ConsoleAdapter(track_length=TRACK_LENGTH),
    )
    scheduler.adapter.render_status(COMMAND_HELP)
    start_console_input(scheduler, command_stream)
    await scheduler.run(max_cycles=max_cycles)
    return scheduler
