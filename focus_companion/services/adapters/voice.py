"""
Voice coach and spoken command parsing.

The coach speaks short nudges and celebrations through whichever
VoiceAdapter it is given. Calls are fire-and-forget: the tick cycle never
waits on speech, and speech failures are logged and dropped.
"""

import asyncio
import logging
import random
import re
import time
from typing import Callable, Optional, Set

from .base import VoiceAdapter, VoiceCoachAdapter

logger = logging.getLogger(__name__)


class VoiceCoach(VoiceCoachAdapter):
    """Cooldown-limited coaching lines spoken in the background."""

    COOLDOWN_SECONDS = 45.0

    CELEBRATIONS = [
        "Nice flow. Keep riding it.",
        "You're locked in. Great work.",
        "That's real momentum.",
    ]
    NUDGES = [
        "Lots of tabs. Pick one thing and come back to it.",
        "Quick reset: what was the next step?",
        "Let's bring it back to the task at hand.",
    ]

    def __init__(
        self,
        voice: VoiceAdapter,
        enabled: bool = True,
        cooldown_seconds: float = COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.voice = voice
        self.enabled = enabled
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._rng = rng or random.Random()
        self._last_spoken_at: Optional[float] = None
        self._tasks: Set[asyncio.Task] = set()

    def configure(self, enabled: bool) -> None:
        self.enabled = enabled

    def reset_cooldown(self) -> None:
        self._last_spoken_at = None

    def celebrate_flow(self) -> None:
        self._say(self._rng.choice(self.CELEBRATIONS), "celebrate")

    def nudge_focus(self) -> None:
        self._say(self._rng.choice(self.NUDGES), "nudge")

    async def drain(self) -> None:
        """Wait for any in-flight speech (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _say(self, line: str, kind: str) -> None:
        if not self.enabled:
            return
        now = self._clock()
        if self._last_spoken_at is not None and now - self._last_spoken_at < self.cooldown_seconds:
            logger.debug(f"Voice coach {kind} skipped (cooldown)")
            return
        self._last_spoken_at = now

        task = asyncio.get_running_loop().create_task(self.voice.speak(line))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Voice coach speech failed: {error}")


# --- SPOKEN COMMANDS ---

MUTE = "mute"
UNMUTE = "unmute"
PAUSE = "pause"
RESUME = "resume"
FOCUS = "focus"
REFOCUS = "refocus"
CALM = "calm"
AUTO = "auto"

# Order matters: "refocus" must be tested before "focus", unmute before mute, mute before pause
_COMMAND_RULES = [
    (UNMUTE, lambda s: bool(re.search(r"\bunmute\b|\b(voice|coach|assistant)\s+(back\s+)?on\b", s))),
    (MUTE, lambda s: bool(re.search(r"mute|silence", s)) and bool(re.search(r"voice|coach|assistant", s))),
    (PAUSE, lambda s: bool(re.search(r"pause|stop|hold", s))),
    (RESUME, lambda s: bool(re.search(r"resume|continue|play", s))),
    (REFOCUS, lambda s: "refocus" in s),
    (FOCUS, lambda s: "focus" in s),
    (CALM, lambda s: bool(re.search(r"calm|ambient", s))),
    (AUTO, lambda s: "auto" in s),
]


def parse_voice_command(transcript: Optional[str]) -> Optional[str]:
    """Map a recognized utterance to a companion command, or None."""
    lower = (transcript or "").lower().strip()
    if not lower:
        return None
    for command, matches in _COMMAND_RULES:
        if matches(lower):
            return command
    return None
