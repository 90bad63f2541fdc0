"""Reasoning-capable LLM client protocol."""

from typing import Protocol, Sequence

from procmatch.schemas.models import ReasoningMessage


class ReasoningClient(Protocol):
    """Protocol for chat-completion gateways that preserve reasoning across turns."""

    async def complete(
        self,
        model: str,
        messages: Sequence[ReasoningMessage],
        reasoning_enabled: bool = True,
    ) -> ReasoningMessage:
        """Return the assistant turn for the given conversation."""
        ...
