import logging
import random
from typing import Optional

from .llm_client import LLMClient
from .prompts import build_status_prompt
from ..focus_engine.activity_window import TabStats
from ..focus_engine.classifier import Label
from ..focus_engine.context import PageContext, TextCues, preview_text

logger = logging.getLogger(__name__)


LOCAL_MESSAGES = {
    Label.FOCUSED: [
        "You're in the zone! Keep going.",
        "Great focus. You've got this.",
        "Flowing nicely. Stay with it.",
    ],
    Label.NEUTRAL: [
        "Taking it steady. All good.",
        "Finding your rhythm.",
        "No rush, you're doing fine.",
    ],
    Label.DISTRACTED: [
        "Lots happening. Let's refocus gently.",
        "It's okay. One thing at a time.",
        "Breathe. You can return to center.",
    ],
    Label.IDLE: [
        "Taking a break? That's wise.",
        "Rest is part of the process.",
        "Recharging. Come back when ready.",
    ],
}


def build_context_line(page: Optional[PageContext], cues: Optional[TextCues]) -> str:
    """One short sentence reflecting typed cues first, then the page."""
    if cues:
        if cues.sleep_hours is not None and cues.sleep_hours <= 3:
            return f"Running on {cues.sleep_hours} hours of sleep, adding energizing drums."
        if cues.mood == "tired":
            return "Feeling the fatigue, boosting the energy a little."
        if cues.mood == "happy":
            return "Mood is bright, keeping the soundtrack upbeat but focused."

    if not page:
        return ""

    host = page.host.lower()
    if "ycombinator" in host:
        return "YC page spotted, let's make something people want."
    if "metorial" in host:
        return "Metorial memory mode engaged, celebrating those notes."

    snippet = preview_text(page.snippet, 110)
    if snippet:
        return f'I see "{snippet}".'
    if page.title:
        return f"Locked on {preview_text(page.title, 60)}."
    return ""


def format_status_prefix(label: Label, stats: TabStats, page: Optional[PageContext]) -> str:
    parts = [
        label.value.capitalize(),
        f"10s:{stats.count10s}",
        f"60s:{stats.count60s}",
    ]
    if stats.rate_per_minute > 0:
        parts.append(f"{stats.rate_per_minute:.1f} tabs/min")
    if page and page.host:
        parts.append(f"@ {page.display_host}")
    return " • ".join(parts)


def format_status(prefix: str, message: str) -> str:
    return f"{prefix} - {message}" if message else prefix


class MessageComposer:
    """
    Produces the status line shown on a label change.

    Uses the LLM when one is configured and falls back to the local pools
    on any failure, so composing never raises.
    """

    def __init__(self, llm: Optional[LLMClient] = None, rng: Optional[random.Random] = None):
        self.llm = llm
        self._rng = rng or random.Random()

    async def compose(
        self,
        label: Label,
        page: Optional[PageContext] = None,
        cues: Optional[TextCues] = None,
    ) -> str:
        if self.llm is not None:
            try:
                system_prompt, user_prompt = build_status_prompt(label, page, cues)
                text = await self.llm.complete(system_prompt, user_prompt, temperature=0.8)
                text = text.strip()
                if text:
                    return text
            except Exception as e:
                logger.warning(f"LLM status message failed, using local text: {e}")

        return self.local_message(label, page, cues)

    def local_message(
        self,
        label: Label,
        page: Optional[PageContext] = None,
        cues: Optional[TextCues] = None,
    ) -> str:
        pool = LOCAL_MESSAGES.get(label, LOCAL_MESSAGES[Label.NEUTRAL])
        message = self._rng.choice(pool)
        context_line = build_context_line(page, cues)
        return f"{message} {context_line}" if context_line else message
