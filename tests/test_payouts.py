from marble_race.betting_service import BetLedger
from marble_race.engine import RaceResult
from marble_race.payouts import PayoutLine, calculate_payouts, multiplier_for


def _ledger(wagers):
    ledger = BetLedger()
    for marble_id, amount in wagers.items():
        ledger.select(marble_id)
        ledger.set_wager(marble_id, amount, balance=10_000)
    return ledger


def test_first_and_fourth_place_scenario():
    ledger = _ledger({3: 50, 7: 20})
    result = RaceResult.from_order([3, 1, 2, 7, 4, 5, 6, 8, 9, 10])

    summary = calculate_payouts(result, ledger)

    assert summary.lines == (PayoutLine(marble_id=3, position=1, bet_amount=50, multiplier=3, winnings=150),)
    assert summary.total_winnings == 150
    assert summary.total_bet == 70
    assert summary.net_result == 80
    assert 1000 - summary.total_bet + summary.total_winnings == 1080


def test_podium_multipliers():
    ledger = _ledger({5: 10, 6: 10, 8: 10, 9: 10})
    result = RaceResult.from_order([5, 6, 8, 9, 1, 2, 3, 4, 7, 10])

    summary = calculate_payouts(result, ledger)

    assert [(line.marble_id, line.multiplier, line.winnings) for line in summary.lines] == [
        (5, 3, 30),
        (6, 2, 20),
        (8, 1, 10),
    ]
    assert summary.total_winnings == 60
    assert summary.net_result == 20


def test_empty_ledger_pays_nothing():
    result = RaceResult.from_order(range(1, 11))
    summary = calculate_payouts(result, BetLedger())
    assert summary.lines == ()
    assert summary.total_winnings == 0
    assert summary.total_bet == 0
    assert summary.net_result == 0
    assert summary.is_break_even


def test_unbacked_podium_is_ignored():
    ledger = _ledger({10: 30})
    result = RaceResult.from_order([1, 2, 3, 4, 5, 6, 7, 8, 9, 10])
    summary = calculate_payouts(result, ledger)
    assert summary.lines == ()
    assert summary.net_result == -30


def test_calculation_is_pure():
    ledger = _ledger({1: 15, 2: 25})
    result = RaceResult.from_order([2, 1, 3, 4, 5, 6, 7, 8, 9, 10])
    before = ledger.as_dict()

    first = calculate_payouts(result, ledger)
    second = calculate_payouts(result, ledger)

    assert first == second
    assert first.net_result == first.total_winnings - ledger.total()
    assert ledger.as_dict() == before


def test_custom_multiplier_table():
    ledger = _ledger({4: 10})
    result = RaceResult.from_order([4, 1, 2, 3, 5, 6, 7, 8, 9, 10])
    summary = calculate_payouts(result, ledger, multipliers={1: 5})
    assert summary.total_winnings == 50


def test_multiplier_for_positions():
    assert multiplier_for(1) == 3
    assert multiplier_for(2) == 2
    assert multiplier_for(3) == 1
    assert multiplier_for(4) == 0
    assert multiplier_for(None) == 0
