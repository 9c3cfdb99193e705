"""Tests for status messages, prompt building and music prompt fusion."""

from __future__ import annotations

import random
from types import SimpleNamespace

import pytest

from focus_companion.services.companion_ai.llm_client import LLMClient, build_llm_client
from focus_companion.services.companion_ai.messages import (
    LOCAL_MESSAGES,
    MessageComposer,
    build_context_line,
    format_status,
    format_status_prefix,
)
from focus_companion.services.companion_ai.prompt_fusion import STATE_TEXTURES, describe_cues, fuse_prompt
from focus_companion.services.companion_ai.prompts import build_status_prompt
from focus_companion.services.focus_engine.activity_window import TabStats
from focus_companion.services.focus_engine.classifier import Label
from focus_companion.services.focus_engine.context import PageContext, TextCues


class FakeLLM:
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[tuple[str, str]] = []

    async def complete(self, system_prompt, user_prompt, temperature=0.7, max_retries=2):
        self.prompts.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.reply


class TestStatusLine:
    def test_prefix_minimal(self):
        assert format_status_prefix(Label.NEUTRAL, TabStats(), None) == "Neutral • 10s:0 • 60s:0"

    def test_prefix_with_rate_and_host(self):
        stats = TabStats(count10s=3, count30s=5, count60s=8, rate_per_minute=8.0)
        page = PageContext(host="www.github.com", title="PR")
        assert (
            format_status_prefix(Label.DISTRACTED, stats, page)
            == "Distracted • 10s:3 • 60s:8 • 8.0 tabs/min • @ github.com"
        )

    def test_format_status(self):
        assert format_status("Idle • 10s:0 • 60s:0", "") == "Idle • 10s:0 • 60s:0"
        assert format_status("Idle", "Rest.") == "Idle - Rest."


class TestContextLine:
    def test_short_sleep_wins(self):
        cues = TextCues(mood="happy", sleep_hours=2)
        assert build_context_line(None, cues).startswith("Running on 2 hours of sleep")

    def test_mood_lines(self):
        assert "fatigue" in build_context_line(None, TextCues(mood="tired"))
        assert "bright" in build_context_line(None, TextCues(mood="happy"))

    def test_page_lines(self):
        assert "make something people want" in build_context_line(PageContext(host="news.ycombinator.com"), None)
        assert build_context_line(PageContext(host="a.com", snippet="Hello  world"), None) == 'I see "Hello world".'
        assert build_context_line(PageContext(host="a.com", title="Docs"), None) == "Locked on Docs."

    def test_nothing_shared(self):
        assert build_context_line(None, None) == ""
        assert build_context_line(PageContext(), TextCues()) == ""


class TestMessageComposer:
    @pytest.mark.asyncio
    async def test_local_pool_without_llm(self):
        composer = MessageComposer(rng=random.Random(1))
        message = await composer.compose(Label.IDLE)
        assert message in LOCAL_MESSAGES[Label.IDLE]

    @pytest.mark.asyncio
    async def test_local_message_appends_context(self):
        composer = MessageComposer(rng=random.Random(1))
        message = await composer.compose(Label.FOCUSED, cues=TextCues(mood="tired"))
        assert message.endswith("Feeling the fatigue, boosting the energy a little.")

    @pytest.mark.asyncio
    async def test_uses_llm_reply(self):
        llm = FakeLLM(reply="  Deep work mode. Nice.  ")
        composer = MessageComposer(llm=llm)

        message = await composer.compose(Label.FOCUSED, PageContext(host="github.com", title="PR #12"))

        assert message == "Deep work mode. Nice."
        system_prompt, user_prompt = llm.prompts[0]
        assert "Attention state: focused" in user_prompt
        assert "github.com - PR #12" in user_prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize("llm", [FakeLLM(error=RuntimeError("rate limited")), FakeLLM(reply="   ")])
    async def test_llm_failure_falls_back(self, llm):
        composer = MessageComposer(llm=llm, rng=random.Random(3))
        message = await composer.compose(Label.DISTRACTED)
        assert message in LOCAL_MESSAGES[Label.DISTRACTED]


class TestStatusPrompt:
    def test_private_context_is_summarized(self):
        page = PageContext(host="www.bank.com", title="T" * 200, snippet="account 1234")
        system_prompt, user_prompt = build_status_prompt(Label.IDLE, page, TextCues(mood="tired", sleep_hours=4))

        assert "a break is fine" in system_prompt
        assert "account 1234" not in user_prompt
        assert "bank.com - " + "T" * 60 in user_prompt
        assert "T" * 61 not in user_prompt
        assert "mood tired, slept 4h" in user_prompt

    def test_nothing_shared(self):
        _, user_prompt = build_status_prompt(Label.NEUTRAL)
        assert "Page: not shared" in user_prompt
        assert "Typed cues: none" in user_prompt


class TestLLMClient:
    def test_disabled_by_default(self):
        assert build_llm_client({}) is None

    def test_missing_key_disables(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        assert build_llm_client({"use_llm": True}) is None
        assert build_llm_client({"use_llm": True, "llm_provider": "groq"}) is None

    def test_groq_provider(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
        client = build_llm_client({"use_llm": True, "llm_provider": "groq"})
        assert client is not None
        assert client.model == "llama-3.1-8b-instant"

    @pytest.mark.asyncio
    async def test_complete_returns_model_text(self):
        calls = []

        async def create(**kwargs):
            calls.append(kwargs)
            message = SimpleNamespace(content="Steady does it.")
            return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)

        client = LLMClient(api_key="sk-test")
        client.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

        assert await client.complete("system", "user", temperature=0.8) == "Steady does it."
        assert calls[0]["max_tokens"] == LLMClient.MAX_OUTPUT_TOKENS
        assert calls[0]["messages"][1] == {"role": "user", "content": "user"}


class TestFusePrompt:
    def test_label_texture_and_default_scene(self):
        fused = fuse_prompt(Label.FOCUSED)
        assert STATE_TEXTURES[Label.FOCUSED] in fused.prompt
        assert "general productivity flow" in fused.prompt
        assert '"current task"' in fused.prompt
        assert fused.instrumental is True
        assert fused.lyric_hook == ""
        assert fused.duration_sec == 30

    def test_page_scene_and_snippet(self):
        page = PageContext(host="github.com", title="focus-companion", snippet="Pull request  review")
        fused = fuse_prompt(Label.NEUTRAL, page=page)
        assert "coding dark ui" in fused.prompt
        assert 'Title or tab: "focus-companion"' in fused.prompt
        assert 'Key on-screen phrases: "Pull request review"' in fused.prompt

    def test_snippet_selects_scene(self):
        page = PageContext(host="example.org", snippet="API Documentation for widgets")
        assert "documentation session" in fuse_prompt(Label.NEUTRAL, page=page).prompt

    def test_lyric_hook_requires_vocals_allowed(self):
        page = PageContext(host="news.ycombinator.com")

        instrumental = fuse_prompt(Label.FOCUSED, page=page, instrumental_only=True)
        assert instrumental.lyric_hook == ""
        assert instrumental.instrumental is True

        vocal = fuse_prompt(Label.FOCUSED, page=page, instrumental_only=False, allow_lyric=True)
        assert vocal.lyric_hook == "make something people want"
        assert vocal.instrumental is False

        blocked = fuse_prompt(Label.FOCUSED, page=page, instrumental_only=False, allow_lyric=False)
        assert blocked.lyric_hook == ""
        assert blocked.instrumental is True

    def test_describe_cues(self):
        assert "energizing drum" in describe_cues(Label.NEUTRAL, TextCues(sleep_hours=3))
        assert "steering attention" in describe_cues(Label.DISTRACTED, None)
        assert "locked-in focus" in describe_cues(Label.FOCUSED, None)
        assert "locked-in focus" not in describe_cues(Label.FOCUSED, TextCues(mood="happy"))
        assert describe_cues(Label.IDLE, None) == ""
