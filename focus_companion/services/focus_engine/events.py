"""
Message-passing channel between event producers (HTTP endpoints, browser
bridges, background tab tracker) and the companion.

Producers never run the tick cycle themselves. They publish a
CompanionEvent; the companion's consumer applies the payload to the
session's activity records and asks the scheduler for a tick.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_SIZE = 256


class EventType(str, Enum):
    TAB_SWITCHED = "tab_switched"
    TAB_ACTIVITY = "tab_activity"
    TAB_BURST = "tab_burst"
    PAGE_CONTEXT = "page_context"
    TEXT_CUE = "text_cue"
    TEXT_INPUT = "text_input"
    KEY = "key"
    POINTER = "pointer"


@dataclass
class CompanionEvent:
    type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    at: Optional[float] = None


class EventChannel:
    """
    Bounded FIFO of CompanionEvents.

    When full, the oldest event is dropped to make room. Tab payloads are
    cumulative window counts and timestamps only move forward, so the newest
    event always supersedes what was dropped.
    """

    def __init__(self, maxsize: int = DEFAULT_CHANNEL_SIZE) -> None:
        self._queue: asyncio.Queue[CompanionEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, event: CompanionEvent) -> None:
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except asyncio.QueueFull:
                dropped = self._queue.get_nowait()
                self._queue.task_done()
                self.dropped += 1
                logger.warning(f"Event channel full, dropped oldest {dropped.type.value} event")

    async def get(self) -> CompanionEvent:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()
