from interviewer_bot.core.constants import DEFAULT_ORACLE_TIMEOUT_SECONDS


class Provider:
    """Text-generation oracle: turns one composed prompt into one reply."""

    timeout: float = DEFAULT_ORACLE_TIMEOUT_SECONDS

    @staticmethod
    def from_id(model_id: str, timeout: float = DEFAULT_ORACLE_TIMEOUT_SECONDS) -> "Provider":
        # parse like "openai:gpt-4o-mini" / "anthropic:claude-3-haiku-20240307"
        if ":" not in model_id:
            raise ValueError(
                f"Model ID must be in format 'vendor:model', got: '{model_id}'. Use 'openai:gpt-4o-mini' or similar."
            )

        vendor, model = model_id.split(":", 1)
        if vendor == "openai":
            from . import openai as impl
        elif vendor == "anthropic":
            from . import anthropic as impl
        else:
            raise ValueError(f"Unknown provider '{vendor}'")
        return impl.ProviderImpl(model, timeout=timeout)

    def complete(self, prompt: str, system: str | None = None) -> str:
        """Return the oracle's reply to ``prompt``.

        Raises:
            ProviderError: on transport failure, timeout or an empty reply
        """
        raise NotImplementedError
