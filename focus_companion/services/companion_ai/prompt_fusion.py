"""
Builds generative-music prompts from attention state, page context and
typed-text cues.
"""

from dataclasses import dataclass
from typing import Optional

from ..focus_engine.classifier import Label
from ..focus_engine.context import PageContext, TextCues, preview_text


STATE_TEXTURES = {
    Label.FOCUSED: "steady low-beta pulses, soft analog pads, gentle shimmer highlights",
    Label.NEUTRAL: "calm lofi beds, sparse keys, relaxed breathing pulses",
    Label.DISTRACTED: "refocus pulse, minimal melody, warm plucks guiding attention back",
    Label.IDLE: "weightless ambient layers, long pads, soft exhale swells",
}

# (host substring, snippet substring, scene text); first match wins
CONTEXT_HINTS = [
    ("github", None, "coding dark ui with subtle futuristic edges"),
    ("notion", None, "minimal writing workspace with clarity and space"),
    ("metorial", None, "ai memory platform with confident forward motion"),
    ("ycombinator", None, "startup inspiration hub with maker energy"),
    (None, "documentation", "documentation session, detail-friendly atmosphere"),
]
DEFAULT_SCENE = "general productivity flow in a premium workspace"

LYRIC_HOOKS = {
    "ycombinator": "make something people want",
    "metorial": "Metorial mode on, building memory that matters",
}


@dataclass
class FusedPrompt:
    prompt: str
    lyric_hook: str
    instrumental: bool
    duration_sec: int


def _scene_for(host: str, snippet: str) -> str:
    snippet_lower = snippet.lower()
    for host_part, snippet_part, text in CONTEXT_HINTS:
        if host_part and host_part in host:
            return text
        if snippet_part and snippet_part in snippet_lower:
            return text
    return DEFAULT_SCENE


def _lyric_hook_for(host: str) -> str:
    for host_part, hook in LYRIC_HOOKS.items():
        if host_part in host:
            return hook
    return ""


def describe_cues(label: Label, cues: Optional[TextCues]) -> str:
    parts = []
    cues = cues or TextCues()

    if cues.sleep_hours is not None and cues.sleep_hours <= 3:
        parts.append("urgent energizing drum grooves, crisp percussion accents, motivational lift")
    if cues.mood == "tired":
        parts.append("bright support energy, friendly momentum, subtle major swells")
    if cues.mood == "happy":
        parts.append("joyful but focus-safe motifs, sparkling chords, light bounce")
    if label == Label.DISTRACTED:
        parts.append("gently steering attention with minimal repeating motifs and calm bass pulses")
    if label == Label.FOCUSED and not parts:
        parts.append("locked-in focus cadence, no lyrical distractions, tight rhythmic bed")

    return "; ".join(parts)


def fuse_prompt(
    label: Label,
    page: Optional[PageContext] = None,
    cues: Optional[TextCues] = None,
    instrumental_only: bool = True,
    allow_lyric: bool = True,
    duration_sec: int = 30,
) -> FusedPrompt:
    host = (page.host if page else "").lower()
    title = page.title if page else ""
    snippet_raw = page.snippet if page else ""
    snippet = preview_text(snippet_raw, 220)

    texture = STATE_TEXTURES.get(label, STATE_TEXTURES[Label.NEUTRAL])
    parts = [
        f"Create loopable {label.value} background music with {texture}.",
        f'Scene: {_scene_for(host, snippet_raw)}. Title or tab: "{title or host or "current task"}".',
    ]
    if snippet:
        parts.append(f'Key on-screen phrases: "{snippet}".')
    cue_line = describe_cues(label, cues)
    if cue_line:
        parts.append(cue_line)

    lyric_hook = _lyric_hook_for(host)
    use_lyrics = bool(lyric_hook and allow_lyric and not instrumental_only)

    return FusedPrompt(
        prompt=" ".join(parts),
        lyric_hook=lyric_hook if use_lyrics else "",
        instrumental=instrumental_only or not use_lyrics,
        duration_sec=duration_sec or 30,
    )
