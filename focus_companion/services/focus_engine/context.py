import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

_WHITESPACE = re.compile(r"\s+")


def preview_text(value: Optional[str], limit: int = 120) -> str:
    """Collapse whitespace, trim, and cut to `limit` characters."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()[:limit]


@dataclass(frozen=True)
class PageContext:
    """What the user is looking at. Opt-in; all fields may be empty."""
    host: str = ""
    title: str = ""
    snippet: str = ""

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["PageContext"]:
        if not payload:
            return None
        return cls(
            host=str(payload.get("host") or ""),
            title=str(payload.get("title") or ""),
            snippet=str(payload.get("snippet") or ""),
        )

    @property
    def display_host(self) -> str:
        return self.host[4:] if self.host.startswith("www.") else self.host

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "title": self.title, "snippet": self.snippet}


@dataclass(frozen=True)
class TextCues:
    """Mood hints pulled from what the user typed."""
    mood: Optional[str] = None
    sleep_hours: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["TextCues"]:
        if payload is None:
            return None
        sleep = payload.get("sleep_hours", payload.get("sleepHours"))
        try:
            sleep_hours = int(sleep) if sleep is not None else None
        except (TypeError, ValueError):
            sleep_hours = None
        mood = payload.get("mood")
        return cls(mood=str(mood) if mood else None, sleep_hours=sleep_hours)

    def to_dict(self) -> Dict[str, Any]:
        return {"mood": self.mood, "sleep_hours": self.sleep_hours}
