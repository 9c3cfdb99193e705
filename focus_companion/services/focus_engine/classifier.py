from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .signals import SignalSnapshot


class Label(str, Enum):
    FOCUSED = "focused"
    NEUTRAL = "neutral"
    DISTRACTED = "distracted"
    IDLE = "idle"


class Mode(str, Enum):
    FOCUS = "focus"
    REFOCUS = "refocus"
    CALM = "calm"


_LABEL_TO_MODE = {
    Label.FOCUSED: Mode.FOCUS,
    Label.DISTRACTED: Mode.REFOCUS,
    Label.NEUTRAL: Mode.CALM,
    Label.IDLE: Mode.CALM,
}


def label_to_mode(label: Label) -> Mode:
    """Audio mode for a label. Idle and neutral share the calm mode."""
    return _LABEL_TO_MODE.get(label, Mode.CALM)


@dataclass
class ManualOverride:
    active: bool = False
    mode: Optional[Mode] = None


@dataclass
class SensitivityProfile:
    """
    User-tunable thresholds.

    idle_timeout_seconds is always seconds here; from_config() is where any
    unit conversion happens.
    """
    idle_timeout_seconds: float = 10
    distraction_threshold: int = 5
    # Carried for the settings UI; the classifier decides on the 60s window only
    focus_tab_limit: int = 3
    manual_override: ManualOverride = field(default_factory=ManualOverride)

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        manual_override: Optional[ManualOverride] = None,
    ) -> "SensitivityProfile":
        defaults = cls()
        return cls(
            idle_timeout_seconds=_number(config.get("idle_timeout"), defaults.idle_timeout_seconds),
            distraction_threshold=int(_number(config.get("distraction_threshold"), defaults.distraction_threshold)),
            focus_tab_limit=int(_number(config.get("focus_tab_limit"), defaults.focus_tab_limit)),
            manual_override=manual_override or ManualOverride(),
        )


def _number(value: Any, fallback: float) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


class AttentionClassifier:
    """
    Deterministic rule evaluation: SignalSnapshot + profile -> Label.

    Precedence (first match wins):
    1. IDLE        - no input of any kind for longer than the idle timeout
    2. DISTRACTED  - more tab switches in the last 60s than the threshold
    3. FOCUSED     - a keystroke within the last FOCUS_KEY_WINDOW_SECONDS
    4. NEUTRAL     - everything else

    Idleness overrides a distraction reading left over from before the user
    stepped away. A recent tab burst overrides a merely-not-idle state.
    Keystroke recency is the weakest signal.

    All comparisons are strict, so sitting exactly on a threshold never
    flips the label.
    """

    FOCUS_KEY_WINDOW_SECONDS = 4.0

    def classify(self, snapshot: SignalSnapshot, profile: SensitivityProfile) -> Label:
        if snapshot.seconds_since_any_input > profile.idle_timeout_seconds:
            return Label.IDLE

        if snapshot.tab_switches_60s > profile.distraction_threshold:
            return Label.DISTRACTED

        if snapshot.seconds_since_key < self.FOCUS_KEY_WINDOW_SECONDS:
            return Label.FOCUSED

        return Label.NEUTRAL


_default_classifier = AttentionClassifier()


def classify(snapshot: SignalSnapshot, profile: SensitivityProfile) -> Label:
    return _default_classifier.classify(snapshot, profile)
