from collections.abc import Callable
from typing import Any, TypeVar

from interviewer_bot.core.logging import log_event

T = TypeVar("T")


class ProviderError(Exception):
    """Base exception for provider operations."""

    pass


class ProviderConnectionError(ProviderError):
    """Raised when provider connection fails."""

    pass


class ProviderTimeoutError(ProviderError):
    """Raised when the provider did not answer in time."""

    pass


class ProviderResponseError(ProviderError):
    """Raised when provider returns an invalid or empty response."""

    pass


class OverloadedError(ProviderError):
    """Raised when the provider rejects the call because of load or rate limits."""

    pass


def handle_provider_operation(
    operation: str,
    provider: str,
    model: str,
    operation_func: Callable[[], T],
    error_map: dict[type[BaseException], type[ProviderError]],
) -> T:
    """
    Execute a provider call and translate SDK exceptions into ProviderError subclasses.

    Args:
        operation: The operation being performed (e.g., "complete")
        provider: The provider name (e.g., "openai", "anthropic")
        model: The model being used
        operation_func: Function to execute that may raise SDK exceptions
        error_map: SDK exception type -> ProviderError subclass, checked in order

    Returns:
        Result from operation_func

    Raises:
        ProviderError: for every failure, never a raw SDK exception
    """
    try:
        return operation_func()
    except ProviderError:
        raise
    except Exception as e:
        mapped = next((target for source, target in error_map.items() if isinstance(e, source)), ProviderError)
        log_event(
            "llm.provider_error",
            component="provider",
            operation=operation,
            provider=provider,
            model=model,
            error_type=type(e).__name__,
            error_msg=str(e),
            mapped_to=mapped.__name__,
        )
        raise mapped(f"{provider} {operation} failed: {e}") from e


def extract_content_from_response(response: Any, provider: str) -> str:
    """
    Extract text content from provider-specific response format.

    Raises:
        ProviderResponseError: If content extraction fails or yields nothing
    """
    try:
        if provider == "openai":
            choices = getattr(response, "choices", None) or []
            content = choices[0].message.content if choices else ""
        elif provider == "anthropic":
            content = ""
            for block in getattr(response, "content", None) or []:
                if getattr(block, "type", None) == "text":
                    content += block.text
        else:
            raise ProviderResponseError(f"Unknown provider: {provider}")
    except (AttributeError, TypeError, IndexError) as e:
        raise ProviderResponseError(f"Failed to extract content: {e}") from e

    if not content or not content.strip():
        raise ProviderResponseError("No question returned")
    return content.strip()
