"""
OpenAI GPT Provider Adapter.

Implements the provider contract for OpenAI chat completions using the
official SDK. Image attachments are only sent to gpt-4 family models; for
other models they are dropped and the final turn stays a plain string.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..domain.entities import Message, MessageRole, ProviderId, SendOptions
from .base import BaseProviderAdapter, ProviderConfig, classify_sdk_error

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring openai if not used
try:
    import openai
    from openai import AsyncOpenAI

    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False
    openai = None
    AsyncOpenAI = None


# Suggested models when the models endpoint cannot be listed
FALLBACK_MODELS = [
    {"id": "gpt-3.5-turbo", "name": "GPT-3.5 Turbo"},
    {"id": "gpt-4", "name": "GPT-4"},
    {"id": "gpt-4-turbo", "name": "GPT-4 Turbo"},
]


class OpenAIAdapter(BaseProviderAdapter):
    """OpenAI GPT adapter.

    Supports:
    - GPT-4, GPT-4 Turbo, GPT-4o (text and images)
    - GPT-3.5 Turbo (text only)

    Usage:
        config = ProviderConfig(
            provider_id=ProviderId.OPENAI,
            api_key="sk-...",
            model="gpt-4o",
        )
        adapter = OpenAIAdapter(config)
        reply = await adapter.send_message(history)
    """

    PROVIDER_ID = ProviderId.OPENAI
    PROVIDER_NAME = "OpenAI"
    DEFAULT_MODEL = "gpt-3.5-turbo"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MAX_TOKENS = 4096

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the OpenAI adapter.

        Args:
            config: Provider configuration
            http_client: Optional HTTP client handed to the SDK

        Raises:
            ImportError: If openai package is not installed
        """
        if not OPENAI_AVAILABLE:
            raise ImportError(
                "openai package is required for OpenAIAdapter. "
                "Install with: pip install openai"
            )

        super().__init__(config, http_client)
        self._client: Optional[AsyncOpenAI] = None

    @property
    def is_vision_model(self) -> bool:
        return "gpt-4" in self.model_name

    @property
    def supports_images(self) -> bool:
        return self.is_vision_model

    @property
    def max_context_tokens(self) -> int:
        return 128000 if self.is_vision_model else 4096

    @property
    def client(self) -> AsyncOpenAI:
        """SDK client, created on first use so a missing key never reaches it."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.base_url,
                timeout=self.config.timeout,
                max_retries=0,
                http_client=self._http_client,
            )
        return self._client

    def format_history(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> dict[str, Any]:
        """Convert messages to a chat.completions request.

        OpenAI includes the system message in the messages array.
        """
        system, turns = self._split_history(history, options)
        api_messages: list[dict[str, Any]] = []

        if system:
            api_messages.append({"role": "system", "content": system})

        for msg in turns[:-1]:
            api_messages.append({
                "role": "user" if msg.role == MessageRole.USER else "assistant",
                "content": msg.text,
            })

        last = turns[-1]
        role = "user" if last.role == MessageRole.USER else "assistant"
        images = self._final_images(turns, options)
        if images and self.is_vision_model:
            content: list[dict[str, Any]] = [{"type": "text", "text": last.text}]
            for image in images:
                content.append({
                    "type": "image_url",
                    "image_url": {"url": image.data_url},
                })
            api_messages.append({"role": role, "content": content})
        else:
            if images:
                logger.debug(f"Dropping {len(images)} image(s): {self.model_name} has no vision support")
            api_messages.append({"role": role, "content": last.text})

        params = self._params(options)
        payload: dict[str, Any] = {
            "model": self.model_name,
            "messages": api_messages,
            "stream": False,
        }
        for name in ("max_tokens", "temperature", "top_p", "frequency_penalty", "presence_penalty"):
            if params.get(name) is not None:
                payload[name] = params[name]
        return payload

    def parse_response(self, payload: Any) -> str:
        choices = getattr(payload, "choices", None)
        if choices is None and isinstance(payload, dict):
            choices = payload.get("choices")
        if not choices:
            raise self._invalid_response("no choices")

        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else getattr(first, "message", None)
        if isinstance(message, dict):
            content = message.get("content")
        else:
            content = getattr(message, "content", None)
        if not content:
            raise self._invalid_response("empty message content")
        return content

    async def _dispatch(self, history: list[Message], options: SendOptions) -> str:
        payload = self.format_history(history, options)
        try:
            completion = await self.client.chat.completions.create(**payload)
        except openai.APIError as e:
            error = classify_sdk_error(self.provider, e)
            logger.error(f"OpenAI API error: {error}")
            raise error from e
        return self.parse_response(completion)

    async def list_models(self) -> list[dict[str, Any]]:
        """List GPT models available to this key.

        Falls back to a static list when the models endpoint fails.
        """
        self._require_credential()
        try:
            models = []
            async for model in self.client.models.list():
                if "gpt" in model.id:
                    models.append({"id": model.id, "name": model.id, "created": model.created})
            return models
        except openai.APIError as e:
            logger.warning(f"Could not list OpenAI models, using defaults: {e}")
            return list(FALLBACK_MODELS)

    async def aclose(self) -> None:
        # the SDK closes its transport, which may be caller-owned
        if self._client is not None and self._owns_http_client:
            await self._client.close()
        self._client = None
        await super().aclose()
