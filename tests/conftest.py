"""Shared test fixtures for the focus companion tests."""

from __future__ import annotations

import pytest

from focus_companion.services.adapters.base import (
    MusicAdapter,
    PlaybackContext,
    VoiceAdapter,
    VoiceCoachAdapter,
)
from focus_companion.services.focus_engine.classifier import Mode


class FakeClock:
    """Manually advanced clock (epoch seconds)."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingMusic(MusicAdapter):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.plays: list[tuple[Mode, PlaybackContext]] = []
        self.pauses = 0
        self.closed = 0

    async def play(self, mode, context):
        self.plays.append((mode, context))
        if self.fail:
            raise RuntimeError("audio backend down")

    def pause(self):
        self.pauses += 1

    async def aclose(self):
        self.closed += 1

    @property
    def modes(self) -> list[Mode]:
        return [mode for mode, _ in self.plays]


class RecordingVoice(VoiceAdapter):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.spoken: list[str] = []

    async def speak(self, text):
        self.spoken.append(text)
        if self.fail:
            raise RuntimeError("tts unavailable")


class RecordingCoach(VoiceCoachAdapter):
    def __init__(self) -> None:
        self.celebrations = 0
        self.nudges = 0

    def celebrate_flow(self):
        self.celebrations += 1

    def nudge_focus(self):
        self.nudges += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def music():
    return RecordingMusic()


@pytest.fixture
def voice():
    return RecordingVoice()


@pytest.fixture
def coach():
    return RecordingCoach()
