import logging
import random
from typing import Any, Dict, Optional

from .base import MusicAdapter, NullMusicAdapter, PlaybackContext
from .musichero import MusicHeroAdapter, MusicHeroClient
from ..focus_engine.classifier import Mode

logger = logging.getLogger(__name__)


class YouTubeMusicAdapter(MusicAdapter):
    """
    Default backend: picks a long-running stream for the mode.

    The UI embeds `current_url`. Asking for the mode that is already playing
    is a no-op so a refresh never restarts the same stream.
    """

    PLAYLISTS = {
        Mode.FOCUS: ["jfKfPfyJRdk", "5qap5aO4i9A", "lTRiuFIWV54"],
        Mode.REFOCUS: ["DWcJFNfaw9c", "7NOSDKb0HlU", "bmVKaAV_7-A"],
        Mode.CALM: ["1ZYbU82GVz4", "UfcAVejslrU", "kJnKt4cxf6M"],
    }

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self.current_mode: Optional[Mode] = None
        self.current_video_id: Optional[str] = None

    @property
    def current_url(self) -> Optional[str]:
        if not self.current_video_id:
            return None
        vid = self.current_video_id
        return f"https://www.youtube.com/embed/{vid}?autoplay=1&mute=0&loop=1&playlist={vid}&controls=0"

    async def play(self, mode: Mode, context: PlaybackContext) -> None:
        if self.current_mode == mode and self.current_video_id:
            return

        videos = self.PLAYLISTS.get(mode) or self.PLAYLISTS[Mode.CALM]
        self.current_video_id = self._rng.choice(videos)
        self.current_mode = mode
        logger.info(f"YouTube stream switched to {mode.value} ({self.current_video_id})")

    def pause(self) -> None:
        self.current_video_id = None
        self.current_mode = None

    def status(self) -> Dict[str, Any]:
        return {
            "adapter": "youtube",
            "mode": self.current_mode.value if self.current_mode else None,
            "url": self.current_url,
        }


def build_music_adapter(config: Dict[str, Any]) -> MusicAdapter:
    """
    Pick the music backend from user config.

    Priority: MusicHero (when enabled and credentials resolve) > YouTube.
    `use_music=False` selects the silent adapter.
    """
    if config.get("use_music") is False:
        return NullMusicAdapter()

    if config.get("use_musichero"):
        try:
            client = MusicHeroClient(
                api_url=config.get("musichero_api_url") or None,
                api_key=config.get("musichero_api_key") or None,
            )
            logger.info("Using MusicHero music adapter")
            return MusicHeroAdapter(client)
        except ValueError as e:
            logger.warning(f"MusicHero unavailable, falling back to YouTube: {e}")

    logger.info("Using YouTube music adapter (default)")
    return YouTubeMusicAdapter()
