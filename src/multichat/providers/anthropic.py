"""
Anthropic Claude Provider Adapter.

Implements the provider contract for Anthropic's Messages API using the
official SDK. The system prompt travels in the top-level ``system`` field,
never inside message content, and the protocol version is pinned through
the ``anthropic-version`` header.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..domain.entities import Message, MessageRole, ProviderId, SendOptions
from .base import BaseProviderAdapter, ProviderConfig, classify_sdk_error

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring anthropic if not used
try:
    import anthropic
    from anthropic import AsyncAnthropic

    ANTHROPIC_AVAILABLE = True
except ImportError:
    ANTHROPIC_AVAILABLE = False
    anthropic = None
    AsyncAnthropic = None


class AnthropicAdapter(BaseProviderAdapter):
    """Anthropic Claude adapter.

    Supports:
    - Claude 3 models (opus, sonnet, haiku)
    - Claude 2.x legacy models
    - Base64 image blocks on the final user turn

    Usage:
        config = ProviderConfig(
            provider_id=ProviderId.ANTHROPIC,
            api_key="sk-ant-...",
            model="claude-3-sonnet-20240229",
        )
        adapter = AnthropicAdapter(config)
        reply = await adapter.send_message(history, SendOptions(system_prompt="..."))
    """

    PROVIDER_ID = ProviderId.ANTHROPIC
    PROVIDER_NAME = "Anthropic Claude"
    DEFAULT_MODEL = "claude-3-sonnet-20240229"
    DEFAULT_BASE_URL = "https://api.anthropic.com"
    DEFAULT_MAX_TOKENS = 4096
    MAX_CONTEXT_TOKENS = 200000
    API_VERSION = "2023-06-01"

    AVAILABLE_MODELS = [
        {"id": "claude-3-opus-20240229", "name": "Claude 3 Opus", "tier": "premium"},
        {"id": "claude-3-sonnet-20240229", "name": "Claude 3 Sonnet", "tier": "standard"},
        {"id": "claude-3-haiku-20240307", "name": "Claude 3 Haiku", "tier": "fast"},
        {"id": "claude-2.1", "name": "Claude 2.1", "tier": "legacy"},
        {"id": "claude-2.0", "name": "Claude 2.0", "tier": "legacy"},
    ]

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the Anthropic adapter.

        Args:
            config: Provider configuration
            http_client: Optional HTTP client handed to the SDK

        Raises:
            ImportError: If anthropic package is not installed
        """
        if not ANTHROPIC_AVAILABLE:
            raise ImportError(
                "anthropic package is required for AnthropicAdapter. "
                "Install with: pip install anthropic"
            )

        super().__init__(config, http_client)
        self.api_version = config.extra.get("api_version", self.API_VERSION)
        self._client: Optional[AsyncAnthropic] = None

    @property
    def supports_images(self) -> bool:
        return True

    @property
    def client(self) -> AsyncAnthropic:
        """SDK client, created on first use so a missing key never reaches it."""
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=self.config.api_key,
                base_url=self.base_url,
                timeout=self.config.timeout,
                max_retries=0,
                default_headers={"anthropic-version": self.api_version},
                http_client=self._http_client,
            )
        return self._client

    def format_history(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> dict[str, Any]:
        """Convert messages to a Messages API request.

        Anthropic uses a separate system parameter, not in messages.
        """
        system, turns = self._split_history(history, options)
        api_messages: list[dict[str, Any]] = []

        for msg in turns[:-1]:
            api_messages.append({
                "role": "user" if msg.role == MessageRole.USER else "assistant",
                "content": msg.text,
            })

        last = turns[-1]
        role = "user" if last.role == MessageRole.USER else "assistant"
        images = self._final_images(turns, options)
        if images:
            content: list[dict[str, Any]] = [{"type": "text", "text": last.text}]
            for image in images:
                content.append({
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": image.mime_type,
                        "data": image.data,
                    },
                })
            api_messages.append({"role": role, "content": content})
        else:
            api_messages.append({"role": role, "content": last.text})

        params = self._params(options)
        payload: dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": params.get("max_tokens") or self.DEFAULT_MAX_TOKENS,
            "messages": api_messages,
        }
        if params.get("temperature") is not None:
            payload["temperature"] = params["temperature"]
        if params.get("top_p") is not None:
            payload["top_p"] = params["top_p"]
        if params.get("top_k") is not None:
            payload["top_k"] = params["top_k"]
        if system:
            payload["system"] = system
        return payload

    def parse_response(self, payload: Any) -> str:
        blocks = getattr(payload, "content", None)
        if blocks is None and isinstance(payload, dict):
            blocks = payload.get("content")
        if not blocks:
            raise self._invalid_response("empty content")

        texts = []
        for block in blocks:
            if isinstance(block, dict):
                block_type, text = block.get("type"), block.get("text")
            else:
                block_type, text = getattr(block, "type", None), getattr(block, "text", None)
            if block_type == "text" and text:
                texts.append(text)
        if not texts:
            raise self._invalid_response("no text blocks")
        return "".join(texts)

    async def _dispatch(self, history: list[Message], options: SendOptions) -> str:
        payload = self.format_history(history, options)
        try:
            message = await self.client.messages.create(**payload)
        except anthropic.APIError as e:
            error = classify_sdk_error(self.provider, e)
            logger.error(f"Anthropic API error: {error}")
            raise error from e
        return self.parse_response(message)

    def available_models(self) -> list[dict[str, str]]:
        return list(self.AVAILABLE_MODELS)

    async def check_rate_limit(self) -> dict[str, Optional[str]]:
        """Issue a 1-token request and report the rate-limit headers.

        Returns:
            Dict with remaining, limit and reset_time header values
        """
        self._require_credential()
        try:
            raw = await self.client.messages.with_raw_response.create(
                model=self.model_name,
                max_tokens=1,
                messages=[{"role": "user", "content": "test"}],
            )
        except anthropic.APIError as e:
            raise classify_sdk_error(self.provider, e) from e

        return {
            "remaining": raw.headers.get("anthropic-ratelimit-requests-remaining"),
            "limit": raw.headers.get("anthropic-ratelimit-requests-limit"),
            "reset_time": raw.headers.get("anthropic-ratelimit-requests-reset"),
        }

    async def aclose(self) -> None:
        # the SDK closes its transport, which may be caller-owned
        if self._client is not None and self._owns_http_client:
            await self._client.close()
        self._client = None
        await super().aclose()
