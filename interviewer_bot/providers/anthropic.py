import os

import anthropic
from anthropic import Anthropic

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

_ERROR_MAP = {
    anthropic.APITimeoutError: ProviderTimeoutError,
    anthropic.APIConnectionError: ProviderConnectionError,
    anthropic.RateLimitError: OverloadedError,
    anthropic.InternalServerError: OverloadedError,
    anthropic.APIStatusError: ProviderResponseError,
}


class ProviderImpl(Provider):
    def __init__(self, model: str, timeout: float = DEFAULT_ORACLE_TIMEOUT_SECONDS):
        self.model = model
        self.timeout = timeout
        self.client = Anthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY"),
            timeout=timeout,
            max_retries=0,
        )

    def complete(self, prompt: str, system: str | None = None) -> str:
        def _call() -> str:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=ORACLE_MAX_TOKENS,
                temperature=ORACLE_TEMPERATURE,
                system=system or SYSTEM_INSTRUCTIONS["interviewer"],
                messages=[{"role": "user", "content": prompt}],
            )
            return extract_content_from_response(response, "anthropic")

        with span(
            "llm.complete",
            component="provider",
            operation="complete",
            provider="anthropic",
            model=self.model,
            prompt_len=len(prompt),
        ):
            return handle_provider_operation("complete", "anthropic", self.model, _call, _ERROR_MAP)
