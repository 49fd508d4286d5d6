"""Reconciliation engine: the single owner of every timer's state.

Two producers feed it: the local clock (one ``advance`` per running timer per
tick) and the status poll (``merge``). Both run on the same event loop, so the
engine needs no locking; whichever call lands last simply wins. A merge
always replaces the whole record, so however many ticks ran since the last
poll, the next completed poll puts the timer back on the server's numbers.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from tdash.common.logger import log
from tdash.core.timer_state import RunState, TimerState, TimerSnapshot, SeedRecord
from tdash.util import status_color


class Command(Enum):
    START = "start"
    PAUSE = "pause"
    STOP = "stop"


# Fallback notice text per command when the server gives no message.
_FAILURE_TEXT = {
    Command.START: "Failed to start timer",
    Command.PAUSE: "Failed to toggle pause",
    Command.STOP: "Failed to stop timer",
}


@dataclass(frozen=True)
class TickResult:
    timer_id: str
    changed: bool
    expired: bool = False


class ReconciliationEngine:

    def __init__(self):
        self._timers: dict[str, TimerState] = {}

    # ------------------------------------------------------------------ #
    #  Accessors                                                           #
    # ------------------------------------------------------------------ #

    def get(self, timer_id):
        return self._timers.get(str(timer_id))

    def ids(self):
        return list(self._timers)

    def running_ids(self):
        return [tid for tid, st in self._timers.items() if st.is_running]

    def __contains__(self, timer_id):
        return str(timer_id) in self._timers

    def __len__(self):
        return len(self._timers)

    # ------------------------------------------------------------------ #
    #  Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    def seed(self, records: list[SeedRecord]):
        for record in records:
            if record.timer_id in self._timers:
                log.warning(f"Duplicate seed for timer '{record.timer_id}', keeping the first one")
                continue
            self._timers[record.timer_id] = TimerState.from_seed(record)
        log.info(f"Seeded {len(self._timers)} timers")

    def clear(self):
        self._timers.clear()

    # ------------------------------------------------------------------ #
    #  Producers                                                           #
    # ------------------------------------------------------------------ #

    def advance(self, timer_id) -> TickResult:
        """One local second for one timer.

        Only running timers move. Remaining time bottoms out at zero, and the
        tick that gets it there flips the timer to EXPIRED and reports it; the
        timer is no longer running, so later ticks are no-ops and the expiry is
        reported exactly once.
        """
        state = self._timers.get(str(timer_id))
        if state is None or not state.is_running:
            return TickResult(str(timer_id), changed=False)

        state.elapsed_seconds += 1
        state.remaining_seconds = max(0, state.remaining_seconds - 1)
        state.status_color = status_color(state.elapsed_seconds, state.effective_limit)

        if state.remaining_seconds == 0:
            state.run_state = RunState.EXPIRED
            log.info(f"Timer '{state.timer_id}' ran out locally, waiting on the server to confirm")
            return TickResult(state.timer_id, changed=True, expired=True)
        return TickResult(state.timer_id, changed=True)

    def merge(self, snapshots: list[TimerSnapshot], synced_at=None):
        """Server-wins merge. Every snapshot for a known timer replaces its record outright.

        Snapshots for timers this dashboard was never seeded with are skipped,
        and timers missing from the batch are left exactly as they were.
        Returns the ids that were replaced.
        """
        synced_at = synced_at or datetime.now().astimezone()
        merged = []
        for snapshot in snapshots:
            previous = self._timers.get(snapshot.timer_id)
            if previous is None:
                log.debug(f"Skipping status for unknown timer '{snapshot.timer_id}'")
                continue
            current = TimerState.from_snapshot(snapshot, synced_at)
            if previous.run_state is not current.run_state:
                log.info(f"Timer '{snapshot.timer_id}' {previous.run_state.name} -> {current.run_state.name} (server)")
            self._timers[snapshot.timer_id] = current
            merged.append(snapshot.timer_id)
        return merged

    # Command results don't touch state, the follow-up poll does. This only decides what to tell the user.
    @staticmethod
    def command_notice(command: Command, result: dict):
        if not result.get("success"):
            return False, result.get("message") or _FAILURE_TEXT[command]
        if command is Command.START:
            return True, "Timer started"
        if command is Command.PAUSE:
            return True, "Timer paused" if result.get("paused") else "Timer resumed"
        return True, "Timer stopped"
