from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from tdash.common.logger import log
from tdash.util import status_color, progress_percent


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    EXPIRED = "expired"

    # Server flags -> state. Running beats paused, and a stopped timer with nothing left is expired.
    @staticmethod
    def from_flags(is_running, is_paused, remaining_seconds):
        if is_running:
            return RunState.RUNNING
        if is_paused:
            return RunState.PAUSED
        if remaining_seconds <= 0:
            return RunState.EXPIRED
        return RunState.IDLE


# Lenient int parse for seed values, anything unreadable is 0.
def _seed_int(value):
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


# Strict int parse for poll values. Bools and strings are refused, and int() itself refuses NaN and infinity.
def _strict_int(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number, got {value!r}")
    return int(value)


# One entry of a status poll, already type checked.
@dataclass(frozen=True)
class TimerSnapshot:
    timer_id: str
    elapsed_seconds: int
    remaining_seconds: int
    is_running: bool
    is_paused: bool
    limit_seconds: int | None = None
    status_color: str | None = None
    name: str | None = None
    category: str | None = None

    @property
    def run_state(self):
        return RunState.from_flags(self.is_running, self.is_paused, self.remaining_seconds)

    # Builds a snapshot from one decoded JSON timer object. Returns None (and logs) for anything malformed rather
    # than raising, so one bad entry can't sink a whole poll.
    @staticmethod
    def from_payload(payload):
        if not isinstance(payload, dict) or payload.get('id') is None:
            log.warning(f"Dropping status entry without an id: {payload!r}")
            return None
        try:
            elapsed = _strict_int(payload["elapsed_seconds"])
            remaining = _strict_int(payload["remaining_seconds"])
            limit = payload.get("limit_seconds")
            limit = _strict_int(limit) if limit is not None else None
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            log.warning(f"Dropping malformed status entry for timer '{payload.get('id')}': {e}")
            return None

        color = payload.get("status_color")
        return TimerSnapshot(
            timer_id=str(payload["id"]),
            elapsed_seconds=elapsed,
            remaining_seconds=remaining,
            is_running=bool(payload.get("is_running")),
            is_paused=bool(payload.get("is_paused")),
            limit_seconds=limit,
            status_color=color if isinstance(color, str) else None,
            name=payload.get("name"),
            category=payload.get("category"),
        )


# The initial values a card starts with, before any poll. Parsed leniently, like reading attributes off a page.
@dataclass(frozen=True)
class SeedRecord:
    timer_id: str
    name: str
    elapsed: int
    remaining: int
    running: bool
    paused: bool = False
    category: str | None = None
    limit_seconds: int | None = None

    @staticmethod
    def from_payload(payload):
        timer_id = str(payload["id"])
        limit = payload.get("limit_seconds")
        return SeedRecord(
            timer_id=timer_id,
            name=str(payload.get("name") or f"Timer {timer_id}"),
            elapsed=max(0, _seed_int(payload.get("elapsed_seconds"))),
            remaining=_seed_int(payload.get("remaining_seconds")),
            running=bool(payload.get("is_running")),
            paused=bool(payload.get("is_paused")),
            category=payload.get("category"),
            limit_seconds=_seed_int(limit) if limit is not None else None,
        )


# The engine's record for a single timer. Only ReconciliationEngine writes to these.
class TimerState:

    def __init__(self, timer_id, elapsed_seconds=0, remaining_seconds=0, run_state=RunState.IDLE,
                 limit_seconds=None, color=None, last_server_sync=None):
        self.timer_id = timer_id
        self.elapsed_seconds = max(0, int(elapsed_seconds))
        self.remaining_seconds = int(remaining_seconds)
        self.run_state = run_state
        self.limit_seconds = limit_seconds
        self.status_color = color or status_color(self.elapsed_seconds, self.effective_limit)
        self.last_server_sync: datetime | None = last_server_sync

    @staticmethod
    def from_seed(seed: SeedRecord):
        return TimerState(
            seed.timer_id,
            elapsed_seconds=seed.elapsed,
            remaining_seconds=seed.remaining,
            run_state=RunState.from_flags(seed.running, seed.paused, seed.remaining),
            limit_seconds=seed.limit_seconds,
        )

    @staticmethod
    def from_snapshot(snapshot: TimerSnapshot, synced_at: datetime):
        return TimerState(
            snapshot.timer_id,
            elapsed_seconds=snapshot.elapsed_seconds,
            remaining_seconds=snapshot.remaining_seconds,
            run_state=snapshot.run_state,
            limit_seconds=snapshot.limit_seconds,
            color=snapshot.status_color,
            last_server_sync=synced_at,
        )

    # The limit used for colours and progress. Without a server limit, elapsed + remaining is the best guess.
    @property
    def effective_limit(self):
        if self.limit_seconds is not None:
            return self.limit_seconds
        return self.elapsed_seconds + max(0, self.remaining_seconds)

    @property
    def progress_percent(self):
        return progress_percent(self.elapsed_seconds, self.effective_limit)

    @property
    def is_running(self):
        return self.run_state is RunState.RUNNING

    @property
    def is_expired(self):
        return self.run_state is RunState.EXPIRED

    def __repr__(self):
        return (f"TimerState({self.timer_id!r}, elapsed={self.elapsed_seconds}, "
                f"remaining={self.remaining_seconds}, state={self.run_state.name})")
