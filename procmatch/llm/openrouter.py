"""OpenRouter chat completions with reasoning continuity, via the OpenAI SDK."""

import logging
from typing import Any, Sequence

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from procmatch.errors import ConfigurationError, GatewayError
from procmatch.schemas.models import ReasoningMessage, Role

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterGateway:
    """Single-shot chat completion against an OpenAI-compatible aggregation endpoint.

    No retries and no caching: every call is one fresh POST to
    ``<base_url>/chat/completions``. Retry policy belongs to the caller.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        referer: str = "",
        title: str = "",
        timeout: float = 90.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._headers = {"HTTP-Referer": referer, "X-Title": title}
        self._timeout = timeout
        self._http_client = http_client
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if not self._api_key:
            raise ConfigurationError("OPENROUTER_API_KEY is missing in environment variables")
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                default_headers=self._headers,
                timeout=self._timeout,
                max_retries=0,
                http_client=self._http_client,
            )
        return self._client

    async def complete(
        self,
        model: str,
        messages: Sequence[ReasoningMessage],
        reasoning_enabled: bool = True,
    ) -> ReasoningMessage:
        if not messages:
            raise ValueError("messages must not be empty")
        client = self._get_client()
        logger.info("Calling gateway (model=%s, turns=%d, reasoning=%s)", model, len(messages), reasoning_enabled)

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[m.to_wire() for m in messages],
                extra_body={"reasoning": {"enabled": reasoning_enabled}},
            )
        except APIStatusError as e:
            body = e.response.text
            logger.error("Gateway returned %s: %s", e.status_code, body[:500])
            raise GatewayError(e.status_code, body) from e
        except APIConnectionError as e:
            logger.error("Gateway unreachable: %s", e)
            raise GatewayError(None, str(e)) from e

        if not response.choices:
            raise GatewayError(None, f"No choices in gateway response: {response.model_dump_json()}")

        msg = response.choices[0].message
        extra: dict[str, Any] = msg.model_extra or {}
        return ReasoningMessage(
            role=Role.ASSISTANT,
            content=msg.content or "",
            reasoning_details=extra.get("reasoning_details"),
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
