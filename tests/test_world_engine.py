import asyncio
from functools import partial
from unittest.mock import MagicMock

import pytest

from marble_race.balance_store import BalanceStore, MemoryBackend
from marble_race.engine import MarbleRaceLoop, RaceFrame, RaceResult
from marble_race.presentation import PresentationAdapter
from marble_race.world_engine import Phase, PhaseScheduler


class ScriptedRace:
    """Race stand-in that finishes after ``ticks`` steps in a fixed order."""

    def __init__(self, roster, duration_ms, tick_ms, telemetry=None, order=None, ticks=3):
        self.order = list(order or [marble.marble_id for marble in roster])
        self.ticks = ticks
        self.tick_index = 0
        self._result = None

    @property
    def is_finished(self):
        return self._result is not None

    def tick(self):
        self.tick_index += 1
        if self.tick_index >= self.ticks:
            self.force_finish()
        return RaceFrame(tick=self.tick_index, elapsed_ms=0, target=0.0, progress={}, finished=self.is_finished)

    def force_finish(self):
        if self._result is None:
            self._result = RaceResult.from_order(self.order)
        return self._result


def _scheduler(gems=1000, order=None, adapter=None, **kwargs):
    store = BalanceStore(MemoryBackend({"marbleRaceGems": str(gems)}), key="marbleRaceGems")
    kwargs.setdefault("race_factory", partial(ScriptedRace, order=order))
    scheduler = PhaseScheduler(
        balance_store=store,
        adapter=adapter or MagicMock(spec=PresentationAdapter),
        verbose=False,
        **kwargs,
    )
    scheduler.start()
    return scheduler


def _finish_countdown(scheduler):
    for _ in range(scheduler.state.seconds_left):
        scheduler.tick()


def _run_race(scheduler):
    while scheduler.race_in_progress:
        scheduler.race_tick()


def test_starts_in_betting_with_full_countdown():
    scheduler = _scheduler()
    assert scheduler.phase is Phase.BETTING
    assert scheduler.state.seconds_left == 15
    scheduler.adapter.render_balance.assert_called_with(1000)


def test_full_cycle_scenario():
    scheduler = _scheduler(order=[3, 1, 2, 7, 4, 5, 6, 8, 9, 10])
    scheduler.select(3)
    scheduler.set_wager(3, 50)
    scheduler.select(7)
    scheduler.set_wager(7, 20)

    _finish_countdown(scheduler)
    assert scheduler.phase is Phase.RACING
    assert scheduler.balance.gems == 930
    assert scheduler.stake_debited
    assert scheduler.current.locked

    _run_race(scheduler)
    summary = scheduler.last_summary
    assert summary.total_winnings == 150
    assert summary.net_result == 80
    assert scheduler.balance.gems == 1080
    assert scheduler.balance.backend.values["marbleRaceGems"] == "1080"
    scheduler.adapter.render_payout.assert_called_once_with(summary)
    scheduler.adapter.render_results.assert_called_once_with(scheduler.last_result)

    _finish_countdown(scheduler)
    assert scheduler.phase is Phase.BETTING
    assert scheduler.cycles_completed == 1
    assert scheduler.current.wagers == {}
    assert not scheduler.current.locked


def test_over_budget_stake_is_not_debited_but_still_pays():
    scheduler = _scheduler(gems=40, order=list(range(1, 11)))
    for marble_id in (1, 2, 3, 4, 5):
        scheduler.select(marble_id)
    assert scheduler.current.total() == 50

    _finish_countdown(scheduler)
    assert scheduler.phase is Phase.RACING
    assert not scheduler.stake_debited
    assert scheduler.balance.gems == 40

    _run_race(scheduler)
    assert scheduler.last_summary.total_winnings == 60
    assert scheduler.balance.gems == 100


def test_empty_ledger_races_with_zero_stake():
    scheduler = _scheduler()
    _finish_countdown(scheduler)
    assert not scheduler.stake_debited
    _run_race(scheduler)
    assert scheduler.last_summary.total_winnings == 0
    assert scheduler.balance.gems == 1000


def test_edits_during_racing_go_to_next_race():
    scheduler = _scheduler()
    scheduler.select(2)
    _finish_countdown(scheduler)

    result = scheduler.select(5)
    assert result.success
    assert scheduler.current.wagers == {2: 10}
    assert scheduler.pending.wagers == {5: 10}

    scheduler.reset_current_editable_ledger()
    assert scheduler.pending.wagers == {}
    assert scheduler.current.wagers == {2: 10}

    scheduler.select(6)
    _run_race(scheduler)
    _finish_countdown(scheduler)
    assert scheduler.phase is Phase.BETTING
    assert scheduler.current.wagers == {6: 10}
    assert scheduler.pending.wagers == {}


def test_selection_limit_is_reported_and_rejected():
    scheduler = _scheduler()
    for marble_id in range(1, 10):
        assert scheduler.select(marble_id).success

    result = scheduler.select(10)

    assert not result.success
    assert 10 not in scheduler.current
    scheduler.adapter.report_error.assert_called_once_with("You can select maximum 9 marbles")


def test_wager_text_is_clamped_against_balance():
    scheduler = _scheduler(gems=300)
    scheduler.select(4)
    scheduler.set_wager_text(4, "5000")
    assert scheduler.current.wager_for(4) == 300
    scheduler.set_wager_text(4, "-2")
    assert scheduler.current.wager_for(4) == 1


def test_wager_on_unselected_marble_is_reported():
    scheduler = _scheduler()
    result = scheduler.set_wager(3, 40)
    assert not result.success
    assert scheduler.current.wagers == {}
    scheduler.adapter.report_error.assert_called_once()


def test_confirm_bets_checks_balance():
    scheduler = _scheduler(gems=40)
    assert not scheduler.confirm_bets().success

    for marble_id in (1, 2, 3, 4, 5):
        scheduler.select(marble_id)
    result = scheduler.confirm_bets()
    assert not result.success
    assert result.message == "Total bet (50) exceeds available gems (40)"

    scheduler.deselect(5)
    result = scheduler.confirm_bets()
    assert result.success
    scheduler.adapter.render_status.assert_called_with("Ready to race! Total bet: 40 gems")


def test_countdown_expiry_settles_unfinished_race_once():
    scheduler = _scheduler(order=[3, 1, 2, 4, 5, 6, 7, 8, 9, 10])
    scheduler.select(3)
    _finish_countdown(scheduler)
    assert scheduler.balance.gems == 990

    _finish_countdown(scheduler)
    assert scheduler.phase is Phase.BETTING
    assert scheduler.cycles_completed == 1
    assert scheduler.balance.gems == 1020
    assert scheduler.finish_race() is None
    assert scheduler.balance.gems == 1020


def test_finish_race_credits_exactly_once():
    scheduler = _scheduler(order=[1, 2, 3, 4, 5, 6, 7, 8, 9, 10])
    scheduler.select(1)
    _finish_countdown(scheduler)
    scheduler.finish_race()
    scheduler.finish_race()
    assert scheduler.race_tick() is None
    assert scheduler.balance.gems == 1020
    assert scheduler.cycles_completed == 1


def test_real_race_loop_through_scheduler():
    scheduler = _scheduler(phase_seconds=1, race_factory=MarbleRaceLoop)
    scheduler.select(8)
    scheduler.tick()
    assert scheduler.phase is Phase.RACING
    assert isinstance(scheduler.race, MarbleRaceLoop)
    assert scheduler.race.total_ticks == 20

    frames = 0
    while scheduler.race_in_progress:
        scheduler.race_tick()
        frames += 1
    assert frames == 20
    assert sorted(scheduler.last_result.finish_order) == list(range(1, 11))
    assert scheduler.adapter.render_race_frame.call_count == 20


def test_invalid_phase_length():
    with pytest.raises(ValueError):
        PhaseScheduler(balance_store=BalanceStore(MemoryBackend()), phase_seconds=0, verbose=False)


def test_async_run_completes_cycles_and_clears_timers():
    store = BalanceStore(MemoryBackend({"marbleRaceGems": "1000"}), key="marbleRaceGems")
    scheduler = PhaseScheduler(
        balance_store=store,
        adapter=PresentationAdapter(),
        phase_seconds=1,
        countdown_interval=0.01,
        race_tick_interval=0.0001,
        verbose=False,
    )
    scheduler.select(1)

    asyncio.run(scheduler.run(max_cycles=2))

    assert scheduler.cycles_completed == 2
    assert scheduler.race_number == 2
    assert scheduler._race_task is None
    assert not scheduler._running_async
    assert scheduler.balance.gems >= 990


@pytest.mark.parametrize(
    "amount, expected",
    [("abc", 1), (float("inf"), 250), (float("nan"), 1), (float("-inf"), 1)],
)
def test_scheduler_set_wager_survives_bad_amounts(amount, expected):
    scheduler = _scheduler(gems=250)
    scheduler.select(3)

    result = scheduler.set_wager(3, amount)

    assert result.success
    assert scheduler.current.wager_for(3) == expected
    scheduler.adapter.report_error.assert_not_called()


class BrokenFrameAdapter(PresentationAdapter):
    def render_race_frame(self, progress_by_marble):
        raise RuntimeError("frame render broke")


def test_failed_race_timer_is_reported(capsys):
    store = BalanceStore(MemoryBackend({"marbleRaceGems": "1000"}), key="marbleRaceGems")
    scheduler = PhaseScheduler(
        balance_store=store,
        adapter=BrokenFrameAdapter(),
        phase_seconds=1,
        countdown_interval=0.01,
        race_tick_interval=0.0001,
        verbose=False,
    )

    asyncio.run(scheduler.run(max_cycles=1))

    assert scheduler.cycles_completed == 1
    assert "!!! Race timer failed: RuntimeError('frame render broke')" in capsys.readouterr().out
