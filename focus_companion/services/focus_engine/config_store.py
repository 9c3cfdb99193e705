"""
User configuration store.

Holds the user-tunable settings (sensitivity, opt-ins, music backend) and
notifies subscribers when they change. The in-memory store is the default;
JsonFileConfigStore persists to disk and falls back to defaults when the
file is missing or unreadable.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

ConfigListener = Callable[[Dict[str, Any]], None]

DEFAULT_CONFIG: Dict[str, Any] = {
    # Sensitivity
    "idle_timeout": 10,
    "distraction_threshold": 5,
    "focus_tab_limit": 3,

    # Privacy opt-ins
    "allow_page_context": True,
    "allow_typed_cues": True,

    # Voice
    "use_voice_coach": True,
    "announce_changes": True,

    # Music
    "use_music": True,
    "use_musichero": False,
    "musichero_api_url": "",
    "musichero_api_key": "",
    "musichero_instrumental_only": True,
    "musichero_default_duration": 30,
    "allow_lyric_hook": True,

    # Status messages
    "use_llm": False,
    "llm_provider": "openai",
}

# Never echoed back through the API
SECRET_KEYS = {"musichero_api_key"}


class InMemoryConfigStore:
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._config = {**DEFAULT_CONFIG, **(initial or {})}
        self._listeners: List[ConfigListener] = []

    async def get(self) -> Dict[str, Any]:
        return dict(self._config)

    async def update(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(changes) - set(DEFAULT_CONFIG)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        self._config.update(changes)
        self._persist()
        snapshot = dict(self._config)
        self._notify(snapshot)
        return snapshot

    def subscribe(self, listener: ConfigListener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, snapshot: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(dict(snapshot))
            except Exception as e:
                logger.error(f"Config listener error: {e}", exc_info=True)

    def _persist(self) -> None:
        pass


class JsonFileConfigStore(InMemoryConfigStore):
    """Config store backed by a JSON file."""

    def __init__(self, path: str) -> None:
        self.path = os.path.expanduser(path)
        super().__init__(self._load())

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.path) as f:
                data = json.load(f)
            logger.info(f"Loaded config from {self.path}")
        except (OSError, json.JSONDecodeError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if k in DEFAULT_CONFIG}

    def _persist(self) -> None:
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            logger.warning(f"Failed to persist config: {e}")


def public_view(config: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("***" if k in SECRET_KEYS and v else v) for k, v in config.items()}
