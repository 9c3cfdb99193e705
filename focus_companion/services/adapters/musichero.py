"""
Async MusicHero client and the music adapter built on it.
Generates a loopable track from a fused prompt and exposes its stream URL.
"""

import os
import logging
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

from .base import MusicAdapter, PlaybackContext
from ..companion_ai.prompt_fusion import fuse_prompt
from ..focus_engine.classifier import Mode

logger = logging.getLogger(__name__)

load_dotenv()

# Response keys seen across MusicHero API versions, in preference order
AUDIO_URL_KEYS = ("streamUrl", "audio_url", "download_link", "url")


class MusicHeroError(RuntimeError):
    pass


class MusicHeroClient:
    """
    Thin async wrapper over POST {api_url}/v1/generate.

    Design principles:
    - Fail loudly: every failure surfaces as MusicHeroError with a readable message
    - Observable: logs request outcome and status codes
    - Shareable: accepts an existing httpx.AsyncClient
    """

    DEFAULT_DURATION_SEC = 30
    REQUEST_TIMEOUT = 60.0  # generation is slow

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_url: Base URL (defaults to MUSICHERO_API_URL env var)
            api_key: Bearer token (defaults to MUSICHERO_API_KEY env var)
            http_client: Optional shared client
        """
        self.api_url = (api_url or os.getenv("MUSICHERO_API_URL", "")).strip().rstrip("/")
        self.api_key = (api_key or os.getenv("MUSICHERO_API_KEY", "")).strip()
        if not self.api_url or not self.api_key:
            raise ValueError(
                "MusicHero credentials missing. Set MUSICHERO_API_URL and "
                "MUSICHERO_API_KEY or pass api_url/api_key."
            )
        self._client = http_client or httpx.AsyncClient(timeout=self.REQUEST_TIMEOUT)
        self._owns_client = http_client is None

        logger.info(f"MusicHeroClient initialized for {self.api_url}")

    @staticmethod
    def build_payload(
        prompt: str,
        lyric_hook: str = "",
        duration_sec: Any = DEFAULT_DURATION_SEC,
        instrumental: Optional[bool] = True,
    ) -> Dict[str, Any]:
        try:
            duration = float(duration_sec)
        except (TypeError, ValueError):
            duration = MusicHeroClient.DEFAULT_DURATION_SEC

        body: Dict[str, Any] = {
            "prompt": prompt,
            "loop": True,
            "duration": duration,
            "instrumental": True if instrumental is None else bool(instrumental),
        }
        if lyric_hook:
            body["lyrics"] = lyric_hook
        return body

    async def generate_track(
        self,
        prompt: str,
        lyric_hook: str = "",
        duration_sec: int = DEFAULT_DURATION_SEC,
        instrumental: bool = True,
    ) -> str:
        """
        Request a generated track.

        Returns:
            Audio URL for the generated track

        Raises:
            MusicHeroError: On missing prompt, HTTP errors or a response
                without an audio URL
        """
        if not prompt or not isinstance(prompt, str):
            raise MusicHeroError("MusicHero prompt missing")

        body = self.build_payload(prompt, lyric_hook, duration_sec, instrumental)

        try:
            response = await self._client.post(
                f"{self.api_url}/v1/generate",
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as e:
            logger.warning(f"MusicHero network error: {e}")
            raise MusicHeroError(f"MusicHero request failed ({e})") from e

        if response.status_code >= 400:
            detail = f"{response.status_code} {response.text}".strip()
            logger.warning(f"MusicHero request failed: {detail}")
            raise MusicHeroError(f"MusicHero request failed ({detail})")

        try:
            data = response.json()
        except ValueError as e:
            raise MusicHeroError("MusicHero returned invalid JSON") from e

        url = next((data.get(key) for key in AUDIO_URL_KEYS if data.get(key)), None)
        if not url:
            raise MusicHeroError("MusicHero response missing audio URL")

        logger.info("MusicHero track generated")
        return url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class MusicHeroAdapter(MusicAdapter):
    """Generates a track per refresh and keeps the latest stream URL."""

    def __init__(self, client: MusicHeroClient):
        self.client = client
        self.current_url: Optional[str] = None
        self.current_mode: Optional[Mode] = None

    async def play(self, mode: Mode, context: PlaybackContext) -> None:
        options = context.options
        fused = fuse_prompt(
            context.label,
            page=context.page,
            cues=context.cues,
            instrumental_only=options.instrumental_only,
            allow_lyric=options.allow_lyric,
            duration_sec=options.duration_sec,
        )
        url = await self.client.generate_track(
            prompt=fused.prompt,
            lyric_hook=fused.lyric_hook,
            duration_sec=fused.duration_sec,
            instrumental=fused.instrumental,
        )
        self.current_url = url
        self.current_mode = mode

    def pause(self) -> None:
        self.current_url = None
        self.current_mode = None

    async def aclose(self) -> None:
        await self.client.aclose()

    def status(self) -> Dict[str, Any]:
        return {
            "adapter": "musichero",
            "mode": self.current_mode.value if self.current_mode else None,
            "url": self.current_url,
        }
