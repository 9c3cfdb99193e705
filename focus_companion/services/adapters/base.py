"""
Collaborator interfaces consumed by the focus engine.

Every collaborator has a no-op default so the engine never has to check
whether one is present.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..focus_engine.classifier import Label, Mode
from ..focus_engine.context import PageContext, TextCues
from ..focus_engine.signals import SignalSnapshot

logger = logging.getLogger(__name__)


@dataclass
class PlaybackOptions:
    instrumental_only: bool = True
    allow_lyric: bool = True
    duration_sec: int = 30


@dataclass
class PlaybackContext:
    """Everything a music adapter may use to pick or generate audio."""
    label: Label
    signals: Optional[SignalSnapshot] = None
    page: Optional[PageContext] = None
    cues: Optional[TextCues] = None
    options: PlaybackOptions = field(default_factory=PlaybackOptions)


class MusicAdapter(ABC):
    @abstractmethod
    async def play(self, mode: Mode, context: PlaybackContext) -> None:
        """Start or refresh the session for `mode`. Raise on failure."""

    @abstractmethod
    def pause(self) -> None:
        ...

    def status(self) -> Dict[str, Any]:
        return {"adapter": type(self).__name__}

    async def aclose(self) -> None:
        """Release network clients or streams. Called when the adapter is replaced or on shutdown."""


class VoiceAdapter(ABC):
    @abstractmethod
    async def speak(self, text: str) -> None:
        ...


class VoiceCoachAdapter(ABC):
    """Fire-and-forget coaching keyed to label transitions."""

    @abstractmethod
    def celebrate_flow(self) -> None:
        ...

    @abstractmethod
    def nudge_focus(self) -> None:
        ...

    def configure(self, enabled: bool) -> None:
        """Follow the user's voice-coach setting. No-op unless the coach keeps its own switch."""


class NullMusicAdapter(MusicAdapter):
    async def play(self, mode: Mode, context: PlaybackContext) -> None:
        logger.debug(f"NullMusicAdapter.play({mode.value})")

    def pause(self) -> None:
        pass


class NullVoiceAdapter(VoiceAdapter):
    async def speak(self, text: str) -> None:
        logger.debug(f"NullVoiceAdapter.speak: {text!r}")


class NullVoiceCoach(VoiceCoachAdapter):
    def celebrate_flow(self) -> None:
        pass

    def nudge_focus(self) -> None:
        pass
