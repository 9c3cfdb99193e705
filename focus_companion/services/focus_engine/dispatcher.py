"""
Signature-gated side-effect dispatch.

Each cycle hands the dispatcher the freshly computed label plus the current
page/cue context. The dispatcher decides which externally visible effects
actually need to happen:

- label changed      -> new status message, spoken announcement, voice coach
- audio refresh      -> only when the label changed, the page or cue
                        fingerprint changed, the dispatched mode changed,
                        or nothing is playing
- status text        -> refreshed every cycle (cheap)

Fingerprints are compared against values stored by the last successful
audio refresh, so an unchanged context never re-issues a slow remote
"generate audio" call.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .activity_window import TabStats
from .classifier import Label, Mode, SensitivityProfile, label_to_mode
from .context import PageContext, TextCues, preview_text
from .signals import SignalSnapshot
from ..adapters.base import (
    MusicAdapter,
    NullMusicAdapter,
    NullVoiceAdapter,
    NullVoiceCoach,
    PlaybackContext,
    PlaybackOptions,
    VoiceAdapter,
    VoiceCoachAdapter,
)
from ..companion_ai.messages import MessageComposer, format_status, format_status_prefix

logger = logging.getLogger(__name__)

PAGE_TITLE_PREVIEW = 80
PAGE_SNIPPET_PREVIEW = 160


def _hash(raw: str) -> str:
    return hashlib.blake2b(raw.encode("utf-8"), digest_size=8).hexdigest()


def page_fingerprint(page: Optional[PageContext]) -> str:
    """Stable hash over host and the title/snippet previews. No page -> ""."""
    if page is None:
        return ""
    raw = "|".join([
        page.host or "",
        preview_text(page.title, PAGE_TITLE_PREVIEW),
        preview_text(page.snippet, PAGE_SNIPPET_PREVIEW),
    ])
    return _hash(raw)


def cue_fingerprint(cues: Optional[TextCues]) -> str:
    """Stable hash over (mood, sleep hours). No cues -> ""."""
    if cues is None:
        return ""
    sleep = "na" if cues.sleep_hours is None else str(cues.sleep_hours)
    return _hash(f"{cues.mood or 'none'}|{sleep}")


@dataclass
class SessionState:
    """Long-lived per-session state; mutated only inside a tick cycle."""
    label: Label = Label.NEUTRAL
    is_playing: bool = False
    last_page_fingerprint: str = ""
    last_cue_fingerprint: str = ""
    last_status_message: str = ""
    last_mode: Optional[Mode] = None
    status_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label.value,
            "is_playing": self.is_playing,
            "mode": self.last_mode.value if self.last_mode else None,
            "status": self.status_text,
            "message": self.last_status_message,
        }


@dataclass
class DispatchResult:
    """What a single dispatch did. Used for logging and tests."""
    label_changed: bool = False
    mode: Optional[Mode] = None
    music_refreshed: bool = False
    music_failed: bool = False
    spoke: bool = False


@dataclass
class DispatchOptions:
    use_voice_coach: bool = True
    announce: bool = True
    # False while the user has paused music; the cycle still runs
    refresh_music: bool = True
    playback: PlaybackOptions = field(default_factory=PlaybackOptions)


class SignatureGatedDispatcher:
    def __init__(
        self,
        state: SessionState,
        music: Optional[MusicAdapter] = None,
        voice: Optional[VoiceAdapter] = None,
        coach: Optional[VoiceCoachAdapter] = None,
        composer: Optional[MessageComposer] = None,
    ) -> None:
        self.state = state
        self.music = music or NullMusicAdapter()
        self.voice = voice or NullVoiceAdapter()
        self.coach = coach or NullVoiceCoach()
        self.composer = composer or MessageComposer()

    async def dispatch(
        self,
        label: Label,
        signals: SignalSnapshot,
        tab_stats: TabStats,
        page: Optional[PageContext],
        cues: Optional[TextCues],
        profile: SensitivityProfile,
        options: Optional[DispatchOptions] = None,
    ) -> DispatchResult:
        options = options or DispatchOptions()
        state = self.state
        result = DispatchResult()

        # Computed before any effect below can touch the stored values
        page_fp = page_fingerprint(page)
        cue_fp = cue_fingerprint(cues)

        changed = label != state.label
        result.label_changed = changed
        message = state.last_status_message

        if changed:
            logger.info(f"State changed: {state.label.value} -> {label.value}")
            message = await self.composer.compose(label, page, cues)

            if options.announce:
                result.spoke = await self._speak(message)

            if options.use_voice_coach:
                if label == Label.FOCUSED:
                    self.coach.celebrate_flow()
                elif label == Label.DISTRACTED:
                    self.coach.nudge_focus()

        override = profile.manual_override
        if override.active and override.mode is not None:
            mode = override.mode
        else:
            mode = label_to_mode(label)
        result.mode = mode

        should_refresh = options.refresh_music and (
            not state.is_playing
            or changed
            or page_fp != state.last_page_fingerprint
            or cue_fp != state.last_cue_fingerprint
            or mode != state.last_mode
        )

        if should_refresh:
            context = PlaybackContext(
                label=label,
                signals=signals,
                page=page,
                cues=cues,
                options=options.playback,
            )
            ok = await self.play(mode, context)
            result.music_refreshed = ok
            result.music_failed = not ok
            if ok:
                state.last_page_fingerprint = page_fp
                state.last_cue_fingerprint = cue_fp

        # Label, message and status line become visible together
        state.label = label
        state.last_status_message = message
        state.status_text = format_status(format_status_prefix(label, tab_stats, page), message)
        return result

    async def play(self, mode: Mode, context: PlaybackContext) -> bool:
        """Start/refresh audio. Failures are logged and leave is_playing False."""
        try:
            await self.music.play(mode, context)
        except Exception as e:
            logger.warning(f"Music play failed ({mode.value}): {e}")
            self.state.is_playing = False
            return False

        self.state.is_playing = True
        self.state.last_mode = mode
        return True

    def pause(self) -> None:
        try:
            self.music.pause()
        except Exception as e:
            logger.warning(f"Music pause failed: {e}")
        self.state.is_playing = False

    async def _speak(self, message: str) -> bool:
        if not message:
            return False
        try:
            await self.voice.speak(message)
            return True
        except Exception as e:
            logger.warning(f"Voice announcement failed: {e}")
            return False
