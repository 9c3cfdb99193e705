"""
Companion AI Module - status messages, text cues and music prompts

Turns attention state plus opt-in page/typed-text context into the words
and soundtrack prompts the companion presents.
"""

from .llm_client import LLMClient
from .messages import MessageComposer
from .text_cues import TextCueExtractor

__all__ = ["LLMClient", "MessageComposer", "TextCueExtractor"]
