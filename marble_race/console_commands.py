from __future__ import annotations

import asyncio
import sys
import threading
from typing import Optional

from marble_race.betting_service import BetResult
from marble_race.presentation import format_gems

COMMAND_HELP = (
    "Commands: select N | deselect N | toggle N (or just N) | bet N AMOUNT | "
    "reset | confirm | balance | help"
)


def _marble_number(raw: Optional[str]) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _rejected(scheduler, message: str) -> BetResult:
    scheduler.adapter.report_error(message)
    return BetResult(False, message, scheduler.editable_ledger.total())


def dispatch_command(scheduler, line: str) -> Optional[BetResult]:
    """
    Maps one line of player input onto the scheduler's betting actions.
    Blank lines are ignored and return None.
    """
    parts = line.strip().split()
    if not parts:
        return None
    command, args = parts[0].lower(), parts[1:]

    if command.isdigit() and not args:
        return scheduler.toggle(int(command))

    if command in ("select", "deselect", "toggle"):
        marble_id = _marble_number(args[0] if args else None)
        if marble_id is None:
            return _rejected(scheduler, f"Usage: {command} N, where N is a marble number")
        return getattr(scheduler, command)(marble_id)

    if command in ("bet", "wager"):
        marble_id = _marble_number(args[0]) if len(args) == 2 else None
        if marble_id is None:
            return _rejected(scheduler, "Usage: bet N AMOUNT")
        return scheduler.set_wager_text(marble_id, args[1])

    if command in ("reset", "clear"):
        return scheduler.reset_current_editable_ledger()

    if command in ("confirm", "go"):
        return scheduler.confirm_bets()

    if command == "balance":
        gems = scheduler.balance.gems
        scheduler.adapter.render_balance(gems)
        return BetResult(True, format_gems(gems), scheduler.editable_ledger.total())

    if command == "help":
        scheduler.adapter.render_status(COMMAND_HELP)
        return BetResult(True, COMMAND_HELP, scheduler.editable_ledger.total())

    return _rejected(scheduler, f"Unknown command '{command}'. Type 'help' for the command list.")


def read_commands(scheduler, stream, loop: asyncio.AbstractEventLoop) -> None:
    """Blocking reader; every line is handed to the event loop thread."""
    for line in iter(stream.readline, ""):
        loop.call_soon_threadsafe(dispatch_command, scheduler, line)
    print("  -> Console input closed.")


def start_console_input(scheduler, stream=None) -> threading.Thread:
    """
    Starts a daemon thread feeding ``stream`` (stdin by default) into the
    running loop. The thread is a daemon, so a blocked readline does not
    hold up exit.
    """
    loop = asyncio.get_running_loop()
    thread = threading.Thread(
        target=read_commands,
        args=(scheduler, stream or sys.stdin, loop),
        name="marble-console-input",
        daemon=True,
    )
    thread.start()
    return thread
