"""
Focus companion: wires sensing, classification and side effects together.

Ownership:
- RawActivity + ActivityWindowAggregator: written by listeners through the
  ActivityRecorder handle, read by the tick cycle
- SessionState: written only inside a tick cycle, read by the UI between cycles
- Everything flows through TickScheduler, so the cycle body never overlaps
"""

import asyncio
import logging
import os
import time
from typing import Any, Callable, Dict, Optional, Union

from dotenv import load_dotenv

from .activity_window import ActivityWindowAggregator, TabStats
from .classifier import AttentionClassifier, Label, ManualOverride, Mode, SensitivityProfile
from .config_store import InMemoryConfigStore, JsonFileConfigStore
from .context import PageContext, TextCues
from .dispatcher import DispatchOptions, DispatchResult, SessionState, SignatureGatedDispatcher
from .events import CompanionEvent, EventChannel, EventType
from .scheduler import DEFAULT_FOLLOW_UP_DELAY_SECONDS, DEFAULT_TICK_INTERVAL_SECONDS, TickScheduler
from .signals import RawActivity, SignalSnapshot, build_snapshot
from ..adapters.base import (
    MusicAdapter,
    NullVoiceAdapter,
    PlaybackOptions,
    VoiceAdapter,
    VoiceCoachAdapter,
)
from ..adapters.music import build_music_adapter
from ..adapters.voice import (
    AUTO,
    CALM,
    FOCUS,
    MUTE,
    PAUSE,
    REFOCUS,
    RESUME,
    UNMUTE,
    VoiceCoach,
    parse_voice_command,
)
from ..companion_ai.llm_client import build_llm_client
from ..companion_ai.messages import MessageComposer
from ..companion_ai.text_cues import TextCueExtractor

logger = logging.getLogger(__name__)

load_dotenv()

MUSIC_CONFIG_KEYS = ("use_music", "use_musichero", "musichero_api_url", "musichero_api_key")

MusicFactory = Callable[[Dict[str, Any]], MusicAdapter]


class ActivityRecorder:
    """
    Write-only handle given to passive input listeners.

    Listeners can stamp timestamps and count tab switches; they cannot run
    a cycle or read session state.
    """

    POINTER_THROTTLE_SECONDS = 0.5

    def __init__(self, raw: RawActivity, aggregator: ActivityWindowAggregator) -> None:
        self._raw = raw
        self._aggregator = aggregator
        self._last_pointer_mark: Optional[float] = None

    def key(self, now: float) -> None:
        self._raw.mark_key(now)

    def pointer(self, now: float) -> None:
        last = self._last_pointer_mark
        if last is not None and 0 <= now - last < self.POINTER_THROTTLE_SECONDS:
            return
        self._last_pointer_mark = now
        self._raw.mark_pointer(now)

    def tab_switch(self, now: float) -> None:
        self._aggregator.record_switch(now)

    def merge_tab_stats(self, payload: Dict[str, Any]) -> TabStats:
        return self._aggregator.merge(payload)


class FocusCompanion:
    def __init__(
        self,
        config_store: Optional[InMemoryConfigStore] = None,
        music: Optional[MusicAdapter] = None,
        voice: Optional[VoiceAdapter] = None,
        coach: Optional[VoiceCoachAdapter] = None,
        composer: Optional[MessageComposer] = None,
        music_factory: Optional[MusicFactory] = None,
        clock: Callable[[], float] = time.time,
        tick_interval: float = DEFAULT_TICK_INTERVAL_SECONDS,
        follow_up_delay: float = DEFAULT_FOLLOW_UP_DELAY_SECONDS,
        channel: Optional[EventChannel] = None,
    ) -> None:
        self._clock = clock
        started_at = clock()

        self.raw = RawActivity(started_at)
        self.aggregator = ActivityWindowAggregator()
        self.recorder = ActivityRecorder(self.raw, self.aggregator)
        self.classifier = AttentionClassifier()
        self.text_cues = TextCueExtractor()
        self.events = channel or EventChannel()
        self.config_store = config_store or InMemoryConfigStore()

        self.state = SessionState()
        self.dispatcher = SignatureGatedDispatcher(
            self.state,
            music=music,
            voice=voice,
            coach=coach,
            composer=composer,
        )
        self.scheduler = TickScheduler(self._cycle, interval=tick_interval, follow_up_delay=follow_up_delay)

        self.manual_override = ManualOverride()
        self.music_enabled = True
        self.voice_muted = False
        self.latest_page: Optional[PageContext] = None
        self.latest_cues: Optional[TextCues] = None
        self.last_signals: Optional[SignalSnapshot] = None
        self.last_label: Optional[Label] = None
        self.last_result: Optional[DispatchResult] = None

        self._config: Dict[str, Any] = {}
        self._music_factory = music_factory if music is None else None
        self._music_signature: Optional[tuple] = None
        self._unsubscribe = self.config_store.subscribe(self._on_config_change)

    # --- EXPOSED TO COLLABORATORS ---

    def get_state(self) -> Dict[str, Any]:
        """Synchronous read for UI polling."""
        now = self._clock()
        override = self.manual_override
        return {
            **self.state.to_dict(),
            "raw": {
                **self.raw.to_dict(),
                "tab_stats": self.aggregator.snapshot(now).to_dict(),
            },
            "signals": self.last_signals.to_dict() if self.last_signals else None,
            "manual_override": {
                "active": override.active,
                "mode": override.mode.value if override.mode else None,
            },
            "music_enabled": self.music_enabled,
            "voice_muted": self.voice_muted,
            "music": self.dispatcher.music.status(),
            "scheduler": self.scheduler.state.value,
        }

    def request_tick(self, reason: str = "manual") -> bool:
        return self.scheduler.request_tick(reason)

    def set_manual_mode(self, mode: Union[Mode, str]) -> None:
        """
        Pin the audio mode, or pass "auto" to follow the classifier again.

        Raises:
            ValueError: If `mode` is neither "auto" nor a Mode value
        """
        if mode == AUTO:
            self.manual_override = ManualOverride()
            logger.info("Manual override cleared (auto mode)")
        else:
            pinned = Mode(mode)
            self.manual_override = ManualOverride(active=True, mode=pinned)
            logger.info(f"Manual override set to {pinned.value}")
        self.request_tick("mode-change")

    def resume_music(self) -> None:
        self.music_enabled = True
        self.request_tick("music-resume")

    def pause_music(self) -> None:
        self.music_enabled = False
        self.request_tick("music-pause")

    def handle_voice_command(self, transcript: str) -> Optional[str]:
        """Apply a spoken command. Returns the recognized command, if any."""
        command = parse_voice_command(transcript)
        if command is None:
            logger.debug(f"Voice command not recognized: {transcript!r}")
            return None

        if command == PAUSE:
            self.pause_music()
        elif command == RESUME:
            self.resume_music()
        elif command == MUTE:
            self.voice_muted = True
            self.request_tick("voice-mute")
        elif command == UNMUTE:
            self.voice_muted = False
            self.request_tick("voice-unmute")
        elif command in (FOCUS, REFOCUS, CALM, AUTO):
            self.set_manual_mode(command)
        logger.info(f"Voice command applied: {command}")
        return command

    def publish(self, event: CompanionEvent) -> None:
        self.events.publish(event)

    # --- LIFECYCLE ---

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Consume events and drive the scheduler until shutdown."""
        logger.info("Focus companion started")
        consumer = asyncio.get_running_loop().create_task(self._consume_events())
        try:
            await self.scheduler.run(shutdown_event)
        finally:
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)
            self._unsubscribe()
            await self.aclose()
            logger.info("Focus companion stopped")

    async def aclose(self) -> None:
        """Release the music backend's network resources."""
        await _close_music(self.dispatcher.music)

    async def _consume_events(self) -> None:
        while True:
            event = await self.events.get()
            try:
                self.handle_event(event)
            except Exception as e:
                logger.error(f"Failed to handle {event.type.value} event: {e}", exc_info=True)
            finally:
                self.events.task_done()

    def handle_event(self, event: CompanionEvent) -> None:
        """Apply an event's payload to the activity records, then request a tick."""
        now = event.at if event.at is not None else self._clock()
        payload = event.payload or {}
        kind = event.type

        if kind == EventType.KEY:
            self.recorder.key(now)
        elif kind == EventType.POINTER:
            self.recorder.pointer(now)
        elif kind == EventType.TAB_SWITCHED:
            self.recorder.tab_switch(now)
            if payload:
                self.recorder.merge_tab_stats(payload)
            self.request_tick("tab-switch")
        elif kind == EventType.TAB_ACTIVITY:
            self.recorder.merge_tab_stats(payload)
            self.request_tick("tab-activity")
        elif kind == EventType.TAB_BURST:
            if payload:
                self.recorder.merge_tab_stats(payload)
            if self._config.get("use_voice_coach", True) and not self.voice_muted:
                self.dispatcher.coach.nudge_focus()
            self.request_tick("tab-burst")
        elif kind == EventType.PAGE_CONTEXT:
            self.latest_page = PageContext.from_payload(payload)
            self.request_tick("page-change")
        elif kind == EventType.TEXT_CUE:
            self.latest_cues = TextCues.from_payload(payload)
            self.request_tick("cue-change")
        elif kind == EventType.TEXT_INPUT:
            cues = self.text_cues.feed(str(payload.get("text") or ""))
            if cues is not None:
                self.latest_cues = cues
                self.request_tick("cue-change")

    def _on_config_change(self, config: Dict[str, Any]) -> None:
        self.request_tick("config-change")

    # --- TICK CYCLE ---

    async def _cycle(self, reason: str) -> None:
        config = await self.config_store.get()
        await self._apply_config(config)

        now = self._clock()
        profile = SensitivityProfile.from_config(config, self.manual_override)
        tab_stats = self.aggregator.snapshot(now)
        signals = build_snapshot(self.raw, tab_stats, now)
        label = self.classifier.classify(signals, profile)
        self.last_signals = signals
        self.last_label = label

        page = self.latest_page if config.get("allow_page_context", True) else None
        cues = self.latest_cues if config.get("allow_typed_cues", True) else None
        voice_on = not self.voice_muted

        if not self.music_enabled:
            if self.state.is_playing:
                self.dispatcher.pause()

        options = DispatchOptions(
            use_voice_coach=bool(config.get("use_voice_coach", True)) and voice_on,
            announce=bool(config.get("announce_changes", True)) and voice_on,
            refresh_music=self.music_enabled,
            playback=PlaybackOptions(
                instrumental_only=bool(config.get("musichero_instrumental_only", True)),
                allow_lyric=bool(config.get("allow_lyric_hook", True)),
                duration_sec=_duration(config.get("musichero_default_duration")),
            ),
        )
        self.last_result = await self.dispatcher.dispatch(
            label, signals, tab_stats, page, cues, profile, options
        )
        logger.debug(
            f"Tick ({reason}): label={label.value} mode={self.last_result.mode.value} "
            f"refreshed={self.last_result.music_refreshed}"
        )

    async def _apply_config(self, config: Dict[str, Any]) -> None:
        opt_in = bool(config.get("allow_typed_cues", True))
        if opt_in != self.text_cues.opt_in:
            self.text_cues.set_opt_in(opt_in)
            if not opt_in:
                self.latest_cues = None

        if self._music_factory is not None:
            signature = tuple(config.get(key) for key in MUSIC_CONFIG_KEYS)
            if signature != self._music_signature:
                previous = self.dispatcher.music
                if self._music_signature is not None:
                    self.dispatcher.pause()
                self.dispatcher.music = self._music_factory(config)
                self._music_signature = signature
                await _close_music(previous)

        self.dispatcher.coach.configure(bool(config.get("use_voice_coach", True)))

        self._config = config


async def _close_music(adapter: MusicAdapter) -> None:
    try:
        await adapter.aclose()
    except Exception as e:
        logger.warning(f"Failed to close {type(adapter).__name__}: {e}")


def _duration(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 30


async def build_companion() -> FocusCompanion:
    """
    Companion wired from environment settings.

    COMPANION_CONFIG_PATH   JSON file for user settings (in-memory if unset)
    COMPANION_TICK_SECONDS  baseline tick interval (default 10)
    """
    config_path = os.getenv("COMPANION_CONFIG_PATH")
    store = JsonFileConfigStore(config_path) if config_path else InMemoryConfigStore()
    config = await store.get()

    try:
        tick_interval = float(os.getenv("COMPANION_TICK_SECONDS", DEFAULT_TICK_INTERVAL_SECONDS))
    except ValueError:
        logger.warning("Invalid COMPANION_TICK_SECONDS, using default")
        tick_interval = DEFAULT_TICK_INTERVAL_SECONDS

    voice = NullVoiceAdapter()
    coach = VoiceCoach(voice, enabled=bool(config.get("use_voice_coach", True)))
    composer = MessageComposer(llm=build_llm_client(config))

    return FocusCompanion(
        config_store=store,
        voice=voice,
        coach=coach,
        composer=composer,
        music_factory=build_music_adapter,
        tick_interval=tick_interval,
    )
