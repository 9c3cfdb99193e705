"""
Typed-text cue extraction (opt-in, ephemeral).

Keeps a short rolling buffer of what the user typed into editable fields and
pulls out two hints used to colour the soundtrack and status line:
hours of sleep ("slept 3 hours") and a coarse mood ("so tired", "feeling great").
Nothing is stored beyond the buffer.
"""

import logging
import re
from typing import Optional

from ..focus_engine.context import TextCues

logger = logging.getLogger(__name__)

BUFFER_LIMIT = 500
INPUT_TAIL_LIMIT = 160

# Sleep this short implies tiredness even without a mood phrase
TIRED_SLEEP_HOURS = 4

_SLEEP_PATTERNS = [
    re.compile(r"\b(slept|sleep)\b.*?\b(\d{1,2})\s*(h|hr|hrs|hours)\b"),
    re.compile(r"\b(\d{1,2})\s*(h|hr|hrs|hours)\b.*\b(sleep)\b"),
    re.compile(r"\brunning on\s+(\d{1,2})\s*(h|hr|hrs|hours)\b.*\b(sleep)\b"),
]
_TIRED_PHRASES = re.compile(r"(so tired|exhausted|burned out|low energy|running on fumes|need more sleep)")
_HAPPY_PHRASES = re.compile(r"(so happy|feeling great|good mood|energized)")


def extract_cues(text: str) -> TextCues:
    """Pure extraction over a block of text."""
    lower = (text or "").lower()

    sleep_hours: Optional[int] = None
    for pattern in _SLEEP_PATTERNS:
        match = pattern.search(lower)
        if not match:
            continue
        numeric = next((g for g in match.groups() if g and g.isdigit()), None)
        if numeric is not None:
            sleep_hours = int(numeric)
            break

    mood: Optional[str] = None
    if _HAPPY_PHRASES.search(lower):
        mood = "happy"
    elif _TIRED_PHRASES.search(lower):
        mood = "tired"

    if mood is None and sleep_hours is not None and sleep_hours <= TIRED_SLEEP_HOURS:
        mood = "tired"

    return TextCues(mood=mood, sleep_hours=sleep_hours)


class TextCueExtractor:
    """Rolling typed-text buffer that reports when the extracted cues change."""

    def __init__(self, opt_in: bool = True) -> None:
        self._opt_in = opt_in
        self._buffer = ""
        self._last: Optional[TextCues] = None

    @property
    def opt_in(self) -> bool:
        return self._opt_in

    def set_opt_in(self, value: bool) -> None:
        self._opt_in = bool(value)
        if not self._opt_in:
            self._buffer = ""
        self._last = None

    def feed(self, value: str) -> Optional[TextCues]:
        """
        Add the tail of an input field's value to the buffer.

        Returns:
            The new cues if they differ from the last reported ones, else None.
        """
        if not self._opt_in:
            return None
        tail = (value or "")[-INPUT_TAIL_LIMIT:]
        self._buffer = (self._buffer + " " + tail)[-BUFFER_LIMIT:]

        cues = extract_cues(self._buffer)
        if cues == self._last:
            return None
        self._last = cues
        logger.debug(f"Text cues changed: {cues}")
        return cues

    def current(self) -> TextCues:
        if not self._opt_in:
            return TextCues()
        return extract_cues(self._buffer)
