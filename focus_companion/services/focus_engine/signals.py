from dataclasses import dataclass
from typing import Any, Dict

from .activity_window import TabStats


class RawActivity:
    """
    Per-session input timestamps (seconds).

    Passive listeners write through the mark_* methods only; the tick cycle
    reads. All three start at the session start time, so a fresh session is
    never idle.
    """

    def __init__(self, started_at: float) -> None:
        self._last_input_at = started_at
        self._last_key_at = started_at
        self._last_pointer_at = started_at

    @property
    def last_input_at(self) -> float:
        return self._last_input_at

    @property
    def last_key_at(self) -> float:
        return self._last_key_at

    @property
    def last_pointer_at(self) -> float:
        return self._last_pointer_at

    # Events may arrive out of order; timestamps only move forward
    def mark_key(self, now: float) -> None:
        self._last_key_at = max(self._last_key_at, now)
        self._last_input_at = max(self._last_input_at, now)

    def mark_pointer(self, now: float) -> None:
        self._last_pointer_at = max(self._last_pointer_at, now)
        self._last_input_at = max(self._last_input_at, now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_input_at": self._last_input_at,
            "last_key_at": self._last_key_at,
            "last_pointer_at": self._last_pointer_at,
        }


@dataclass(frozen=True)
class SignalSnapshot:
    """Immutable per-tick view of the user's activity."""
    tab_switches_10s: int
    tab_switches_30s: int
    tab_switches_60s: int
    tab_rate_per_min: float
    seconds_since_key: float
    seconds_since_any_input: float
    seconds_since_pointer: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tab_switches_10s": self.tab_switches_10s,
            "tab_switches_30s": self.tab_switches_30s,
            "tab_switches_60s": self.tab_switches_60s,
            "tab_rate_per_min": self.tab_rate_per_min,
            "seconds_since_key": round(self.seconds_since_key, 2),
            "seconds_since_any_input": round(self.seconds_since_any_input, 2),
            "seconds_since_pointer": round(self.seconds_since_pointer, 2),
        }


def _elapsed(now: float, then: float) -> float:
    # Clock skew between listeners and the tick can put `then` slightly ahead
    return max(0.0, now - then)


def build_snapshot(raw: RawActivity, tab_stats: TabStats, now: float) -> SignalSnapshot:
    """Combine timestamps and window counts into a SignalSnapshot."""
    return SignalSnapshot(
        tab_switches_10s=tab_stats.count10s,
        tab_switches_30s=tab_stats.count30s,
        tab_switches_60s=tab_stats.count60s,
        tab_rate_per_min=tab_stats.rate_per_minute,
        seconds_since_key=_elapsed(now, raw.last_key_at),
        seconds_since_any_input=_elapsed(now, raw.last_input_at),
        seconds_since_pointer=_elapsed(now, raw.last_pointer_at),
    )
