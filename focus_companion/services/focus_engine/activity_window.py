"""
Sliding-window tab-switch aggregation.

Keeps rolling counts of tab switches over 10s / 30s / 60s windows and a
derived rate. Counts can come from two places:

1. Switches recorded locally via record_switch(now)
2. Pre-aggregated counts merged in from the background tab tracker, which
   runs on its own clock with a 10 second hard reset

The two are reconciled so the nested-window ordering never breaks:
count10s <= count30s <= count60s. Smaller windows are raised to match,
larger windows are never lowered.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

WINDOW_10S = 10.0
WINDOW_30S = 30.0
WINDOW_60S = 60.0

# Background tracker hard-resets its counter on this interval
BACKGROUND_RESET_SECONDS = 10.0


@dataclass(frozen=True)
class TabStats:
    """Snapshot of tab-switch counts per window."""
    count10s: int = 0
    count30s: int = 0
    count60s: int = 0
    rate_per_minute: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count10s": self.count10s,
            "count30s": self.count30s,
            "count60s": self.count60s,
            "rate_per_minute": self.rate_per_minute,
        }


def enforce_window_order(stats: TabStats) -> TabStats:
    """Raise smaller windows up so count10s <= count30s <= count60s."""
    count30s = max(stats.count30s, stats.count10s)
    count60s = max(stats.count60s, count30s)
    return replace(stats, count30s=count30s, count60s=count60s)


def _to_count(value: Any, fallback: float) -> float:
    """Coerce a payload value to a non-negative number, else the fallback."""
    if value is None or isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    return max(0.0, number)


class ActivityWindowAggregator:
    """
    Owns the session's tab-switch counters.

    Callers only ever see TabStats copies; the internal deque and the last
    merged external stats are never handed out.
    """

    MAX_TRACKED_SWITCHES = 512

    def __init__(self) -> None:
        self._switches: deque[float] = deque(maxlen=self.MAX_TRACKED_SWITCHES)
        self._external = TabStats()

    def record_switch(self, now: float) -> None:
        """Record one tab switch at `now` (seconds)."""
        self._switches.append(now)
        self._prune(now)

    def merge(self, partial: Optional[Dict[str, Any]]) -> TabStats:
        """
        Merge pre-aggregated counts from the background tracker.

        Accepts the payload shapes the tracker emits:
            {"counts": {"last10": 1, "last30": 2, "last60": 4}, "ratePerMin": 4}
            {"countLast10s": 1, "countLast60s": 4}

        Windows missing from the payload keep their last known value instead
        of dropping to zero, so a partial update never looks like a burst
        ending.

        Returns:
            The reconciled external stats.
        """
        partial = partial or {}
        counts = partial.get("counts") or {}
        previous = self._external

        last10 = _to_count(
            counts.get("last10", partial.get("countLast10s")), previous.count10s
        )
        last30 = _to_count(counts.get("last30"), previous.count30s)
        last60_raw = counts.get("last60")
        if last60_raw is None:
            last60_raw = counts.get("last60s", partial.get("countLast60s"))
        last60 = _to_count(last60_raw, previous.count60s)
        rate = _to_count(partial.get("ratePerMin"), previous.rate_per_minute)

        merged = enforce_window_order(TabStats(
            count10s=int(last10),
            count30s=int(last30),
            count60s=int(last60),
            rate_per_minute=rate,
        ))
        self._external = merged
        logger.debug(f"Merged external tab stats: {merged}")
        return merged

    def snapshot(self, now: float) -> TabStats:
        """Current TabStats at `now`. Does not mutate any state."""
        local10 = local30 = local60 = 0
        for ts in self._switches:
            age = now - ts
            if age < 0 or age > WINDOW_60S:
                continue
            local60 += 1
            if age <= WINDOW_30S:
                local30 += 1
            if age <= WINDOW_10S:
                local10 += 1

        external = self._external
        count60s = max(local60, external.count60s)
        stats = TabStats(
            count10s=max(local10, external.count10s),
            count30s=max(local30, external.count30s),
            count60s=count60s,
            rate_per_minute=max(float(local60), external.rate_per_minute),
        )
        return enforce_window_order(stats)

    def reset(self) -> None:
        self._switches.clear()
        self._external = TabStats()

    def _prune(self, now: float) -> None:
        while self._switches and now - self._switches[0] > WINDOW_60S:
            self._switches.popleft()


class ResettingSwitchCounter:
    """
    Coarse tab-activation counter used by the background tracker.

    Counts activations and silently starts over once more than
    BACKGROUND_RESET_SECONDS have passed since the last reset. Its output is
    fed into ActivityWindowAggregator.merge as a 10s count.
    """

    def __init__(self, reset_interval: float = BACKGROUND_RESET_SECONDS) -> None:
        self.reset_interval = reset_interval
        self._count = 0
        self._last_reset: Optional[float] = None

    def increment(self, now: float) -> int:
        self._roll(now)
        self._count += 1
        return self._count

    def count(self, now: float) -> int:
        self._roll(now)
        return self._count

    def reset(self, now: float) -> None:
        self._count = 0
        self._last_reset = now

    def as_payload(self, now: float) -> Dict[str, Any]:
        """Shape the current count the way merge() expects it."""
        return {"countLast10s": self.count(now), "timestamp": now}

    def _roll(self, now: float) -> None:
        if self._last_reset is None:
            self._last_reset = now
        elif now - self._last_reset > self.reset_interval:
            self._count = 0
            self._last_reset = now
