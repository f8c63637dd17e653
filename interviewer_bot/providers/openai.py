import os

import openai
from openai import OpenAI

from interviewer_bot.core.constants import (
    DEFAULT_ORACLE_TIMEOUT_SECONDS,
    ORACLE_MAX_TOKENS,
    ORACLE_TEMPERATURE,
)
from interviewer_bot.core.logging import span
from interviewer_bot.core.prompts import SYSTEM_INSTRUCTIONS

from .base import Provider
from .exceptions import (
    OverloadedError,
    ProviderConnectionError,
    ProviderResponseError,
    ProviderTimeoutError,
    extract_content_from_response,
    handle_provider_operation,
)

# Subclasses first: APITimeoutError derives from APIConnectionError
_ERROR_MAP = {
    openai.APITimeoutError: ProviderTimeoutError,
    openai.APIConnectionError: ProviderConnectionError,
    openai.RateLimitError: OverloadedError,
    openai.APIStatusError: ProviderResponseError,
}


class ProviderImpl(Provider):
    def __init__(self, model: str, timeout: float = DEFAULT_ORACLE_TIMEOUT_SECONDS):
        self.model = model
        self.timeout = timeout
        self.client = OpenAI(
            api_key=os.environ.get("OPENAI_API_KEY"),
            timeout=timeout,
            max_retries=0,
        )

    def complete(self, prompt: str, system: str | None = None) -> str:
        """Ask the chat completions endpoint for a single short reply."""

        def _call() -> str:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=ORACLE_TEMPERATURE,
                max_tokens=ORACLE_MAX_TOKENS,
                messages=[
                    {"role": "system", "content": system or SYSTEM_INSTRUCTIONS["interviewer"]},
                    {"role": "user", "content": prompt},
                ],
            )
            return extract_content_from_response(response, "openai")

        with span(
            "llm.complete",
            component="provider",
            operation="complete",
            provider="openai",
            model=self.model,
            prompt_len=len(prompt),
        ):
            return handle_provider_operation("complete", "openai", self.model, _call, _ERROR_MAP)
