"""
Collaborator adapters for the focus engine: music, voice and voice coach.
Each interface ships a no-op default.
"""

from .base import (
    MusicAdapter,
    NullMusicAdapter,
    NullVoiceAdapter,
    NullVoiceCoach,
    PlaybackContext,
    PlaybackOptions,
    VoiceAdapter,
    VoiceCoachAdapter,
)
from .music import YouTubeMusicAdapter, build_music_adapter
from .musichero import MusicHeroAdapter, MusicHeroClient, MusicHeroError
from .voice import VoiceCoach, parse_voice_command

__all__ = [
    "MusicAdapter",
    "NullMusicAdapter",
    "NullVoiceAdapter",
    "NullVoiceCoach",
    "PlaybackContext",
    "PlaybackOptions",
    "VoiceAdapter",
    "VoiceCoachAdapter",
    "YouTubeMusicAdapter",
    "build_music_adapter",
    "MusicHeroAdapter",
    "MusicHeroClient",
    "MusicHeroError",
    "VoiceCoach",
    "parse_voice_command",
]
