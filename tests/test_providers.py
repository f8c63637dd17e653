from types import SimpleNamespace
from unittest.mock import Mock

import httpx
import openai
import pytest

from interviewer_bot.providers.base import Provider
from interviewer_bot.providers.exceptions import (
    ProviderConnectionError,
    ProviderError,
    ProviderResponseError,
    extract_content_from_response,
    handle_provider_operation,
)


def _openai_response(content: str | None):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestFromId:
    @pytest.mark.parametrize("model_id", ["gpt-4o-mini", ""])
    def test_requires_vendor_prefix(self, model_id):
        with pytest.raises(ValueError, match="vendor:model"):
            Provider.from_id(model_id)

    def test_unknown_vendor(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            Provider.from_id("acme:big-model")

    def test_openai(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "test-key")
        provider = Provider.from_id("openai:gpt-4o-mini", timeout=7.0)
        assert provider.model == "gpt-4o-mini"
        assert provider.timeout == 7.0

    def test_anthropic(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
        provider = Provider.from_id("anthropic:claude-3-haiku-20240307")
        assert provider.model == "claude-3-haiku-20240307"


class TestExtractContent:
    def test_openai_content_is_trimmed(self):
        assert extract_content_from_response(_openai_response("  Why Python?  "), "openai") == "Why Python?"

    def test_anthropic_joins_text_blocks(self):
        response = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Why "), SimpleNamespace(type="text", text="Python?")]
        )
        assert extract_content_from_response(response, "anthropic") == "Why Python?"

    @pytest.mark.parametrize("response", [_openai_response(""), _openai_response(None), SimpleNamespace(choices=[])])
    def test_empty_reply(self, response):
        with pytest.raises(ProviderResponseError, match="No question returned"):
            extract_content_from_response(response, "openai")


class TestHandleProviderOperation:
    def test_maps_sdk_errors(self):
        def failing():
            raise openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1"))

        with pytest.raises(ProviderConnectionError):
            handle_provider_operation(
                "complete", "openai", "gpt-4o-mini", failing, {openai.APIConnectionError: ProviderConnectionError}
            )

    def test_unmapped_errors_become_provider_error(self):
        def failing():
            raise RuntimeError("boom")

        with pytest.raises(ProviderError, match="boom"):
            handle_provider_operation("complete", "openai", "gpt-4o-mini", failing, {})


class TestOpenAIProvider:
    def test_complete_sends_system_and_prompt(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "test-key")
        provider = Provider.from_id("openai:gpt-4o-mini")
        provider.client = Mock()
        provider.client.chat.completions.create.return_value = _openai_response("Why this company?")

        assert provider.complete("compose me", system="You are a professional interviewer.") == "Why this company?"

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 120
        assert kwargs["messages"][0] == {"role": "system", "content": "You are a professional interviewer."}
        assert kwargs["messages"][1]["content"] == "compose me"

    def test_timeout_is_mapped(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "test-key")
        provider = Provider.from_id("openai:gpt-4o-mini")
        provider.client = Mock()
        provider.client.chat.completions.create.side_effect = openai.APITimeoutError(
            request=httpx.Request("POST", "https://api.openai.com/v1")
        )

        with pytest.raises(ProviderError) as exc_info:
            provider.complete("compose me")
        assert type(exc_info.value).__name__ == "ProviderTimeoutError"
