"""LLM gateway layer: OpenRouter behind a reasoning-client protocol."""

from procmatch.config import Settings
from procmatch.llm.base import ReasoningClient
from procmatch.llm.openrouter import OpenRouterGateway


def get_gateway(settings: Settings) -> ReasoningClient:
    """Return the gateway configured from settings. A missing key only fails at call time."""
    return OpenRouterGateway(
        api_key=settings.openrouter_api_key,
        base_url=settings.procmatch_gateway_base_url,
        referer=settings.procmatch_gateway_referer,
        title=settings.procmatch_gateway_title,
        timeout=settings.procmatch_gateway_timeout,
    )


__all__ = ["ReasoningClient", "OpenRouterGateway", "get_gateway"]
