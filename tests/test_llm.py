# =============================================================================
# Unit Tests - LLM Providers
# =============================================================================
#
# SDK clients are patched; only request shaping and response mapping are
# exercised.
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from brainvault.config import settings
from brainvault.services.llm import (
    AnthropicProvider,
    GeminiProvider,
    OpenAICompatibleProvider,
    build_llm_provider,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class TestFactory:
    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            build_llm_provider(settings.model_copy(update={"llm_provider": "nope"}))

    def test_missing_key(self):
        cfg = settings.model_copy(update={
            "llm_provider": "anthropic", "llm_api_key": None, "anthropic_api_key": "",
        })
        with pytest.raises(ValueError, match="No Anthropic API key"):
            build_llm_provider(cfg)

    def test_builds_configured_provider(self):
        cfg = settings.model_copy(update={
            "llm_provider": "openai_compatible", "llm_api_key": "sk-test",
        })
        with patch("openai.AsyncOpenAI"):
            assert isinstance(build_llm_provider(cfg), OpenAICompatibleProvider)


class TestAnthropicProvider:
    def test_system_prompt_is_top_level_kwarg(self):
        cfg = settings.model_copy(update={"anthropic_api_key": "sk-ant", "llm_api_key": None})
        response = MagicMock()
        response.content = [MagicMock(type="text", text="The answer")]
        response.model = "claude"
        response.usage.input_tokens = 12
        response.usage.output_tokens = 3

        with patch("anthropic.AsyncAnthropic") as client_cls:
            client_cls.return_value.messages.create = AsyncMock(return_value=response)
            provider = AnthropicProvider(cfg)
            result = _run(provider.complete(
                messages=[{"role": "user", "content": "hi"}], system="be brief",
            ))

        kwargs = client_cls.return_value.messages.create.await_args.kwargs
        assert kwargs["system"] == "be brief"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert result.content == "The answer"
        assert (result.input_tokens, result.output_tokens) == (12, 3)

    def test_no_text_block_gives_empty_content(self):
        cfg = settings.model_copy(update={"anthropic_api_key": "sk-ant"})
        response = MagicMock()
        response.content = []
        response.model = "claude"
        response.usage.input_tokens = 1
        response.usage.output_tokens = 0

        with patch("anthropic.AsyncAnthropic") as client_cls:
            client_cls.return_value.messages.create = AsyncMock(return_value=response)
            result = _run(AnthropicProvider(cfg).complete(
                messages=[{"role": "user", "content": "hi"}],
            ))

        assert result.content == ""


class TestOpenAICompatibleProvider:
    def test_system_prompt_prepended_as_message(self):
        cfg = settings.model_copy(update={"llm_api_key": "sk-test"})
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = "Answer"
        response.model = "gpt"
        response.usage.prompt_tokens = 7
        response.usage.completion_tokens = 2

        with patch("openai.AsyncOpenAI") as client_cls:
            client_cls.return_value.chat.completions.create = AsyncMock(return_value=response)
            result = _run(OpenAICompatibleProvider(cfg).complete(
                messages=[{"role": "user", "content": "hi"}], system="sys",
            ))

        sent = client_cls.return_value.chat.completions.create.await_args.kwargs["messages"]
        assert sent[0] == {"role": "system", "content": "sys"}
        assert sent[1] == {"role": "user", "content": "hi"}
        assert result.content == "Answer"


class TestGeminiProvider:
    def _response(self, text):
        response = MagicMock()
        response.text = text
        response.usage_metadata.prompt_token_count = 9
        response.usage_metadata.candidates_token_count = 4
        return response

    def test_roles_mapped_and_system_instruction_set(self):
        cfg = settings.model_copy(update={"llm_api_key": "g-key", "llm_model": "gemini-test"})

        with patch("google.genai.Client") as client_cls:
            generate = AsyncMock(return_value=self._response("Gemini answer"))
            client_cls.return_value.aio.models.generate_content = generate
            result = _run(GeminiProvider(cfg).complete(
                messages=[
                    {"role": "user", "content": "hi"},
                    {"role": "assistant", "content": "hello"},
                ],
                system="be brief",
            ))

        kwargs = generate.await_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert [c.role for c in kwargs["contents"]] == ["user", "model"]
        assert kwargs["contents"][0].parts[0].text == "hi"
        assert kwargs["config"].system_instruction == "be brief"
        assert result.content == "Gemini answer"
        assert (result.input_tokens, result.output_tokens) == (9, 4)

    def test_missing_text_gives_empty_content(self):
        cfg = settings.model_copy(update={"llm_api_key": "g-key"})

        with patch("google.genai.Client") as client_cls:
            client_cls.return_value.aio.models.generate_content = AsyncMock(
                return_value=self._response(None),
            )
            result = _run(GeminiProvider(cfg).complete(messages=[{"role": "user", "content": "hi"}]))

        assert result.content == ""

    def test_missing_key(self):
        cfg = settings.model_copy(update={"llm_api_key": None, "gemini_api_key": ""})
        with pytest.raises(ValueError, match="No Gemini API key"):
            GeminiProvider(cfg)
