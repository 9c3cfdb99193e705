"""
Lightweight prompt template system for token-efficient status messages.
No external dependencies - simple string formatting with validation.
"""

from dataclasses import dataclass
from typing import Optional

from ..focus_engine.classifier import Label
from ..focus_engine.context import PageContext, TextCues, preview_text


@dataclass
class PromptTemplate:
    """Simple template with variable injection"""
    system: str
    user: str

    def format(self, **kwargs) -> tuple[str, str]:
        """Format both system and user prompts with provided variables"""
        try:
            system_msg = self.system.format(**kwargs)
            user_msg = self.user.format(**kwargs)
            return system_msg, user_msg
        except KeyError as e:
            raise ValueError(f"Missing required template variable: {e}")


STATUS_MESSAGE = PromptTemplate(
    system="""You are a gentle focus companion that lives in a small bubble on the user's screen.

STRICT RULES:
- One or two short sentences, under 25 words total
- Warm and calm, never scolding
- No emojis, no questions about private details
- Tone for this state: {tone}

Respond with ONLY the message text.""",
    user="""Attention state: {label}
Page: {page}
Typed cues: {cues}"""
)


LABEL_TONES = {
    Label.FOCUSED: "celebrate the flow quietly so you don't break it",
    Label.NEUTRAL: "steady and reassuring",
    Label.DISTRACTED: "kind, help them pick one thing to return to",
    Label.IDLE: "relaxed, a break is fine",
}


def build_status_prompt(
    label: Label,
    page: Optional[PageContext] = None,
    cues: Optional[TextCues] = None,
) -> tuple[str, str]:
    """Fill STATUS_MESSAGE for the given state. Page text is previewed, never sent whole."""
    if page:
        page_text = f"{page.display_host or 'unknown'} - {preview_text(page.title, 60) or 'untitled'}"
    else:
        page_text = "not shared"

    if cues and (cues.mood or cues.sleep_hours is not None):
        cue_parts = []
        if cues.mood:
            cue_parts.append(f"mood {cues.mood}")
        if cues.sleep_hours is not None:
            cue_parts.append(f"slept {cues.sleep_hours}h")
        cue_text = ", ".join(cue_parts)
    else:
        cue_text = "none"

    return STATUS_MESSAGE.format(
        label=label.value,
        tone=LABEL_TONES.get(label, LABEL_TONES[Label.NEUTRAL]),
        page=page_text,
        cues=cue_text,
    )
