"""
Cohere Provider Adapter.

Cohere offers two text endpoints with different request shapes:

- ``/chat``: the latest turn as ``message``, prior turns as
  ``chat_history`` (USER/CHATBOT roles) and the system prompt as
  ``preamble``.
- ``/generate``: a single concatenated Human/Assistant prompt string.

send_message always tries ``/chat`` first and falls back to ``/generate``
only when the chat call fails.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx
from pydantic import BaseModel, ValidationError

from ..domain.entities import Message, MessageRole, ProviderId, SendOptions
from .base import BaseProviderAdapter, ProviderConfig
from .strategy import FallbackStrategy, fall_back_on_provider_error

logger = logging.getLogger(__name__)


# =============================================================================
# Wire response schemas
# =============================================================================


class CohereChatResponse(BaseModel):
    text: Optional[str] = None


class CohereGeneration(BaseModel):
    text: Optional[str] = None


class CohereGenerateResponse(BaseModel):
    generations: list[CohereGeneration] = []


# =============================================================================
# Adapter
# =============================================================================


class CohereAdapter(BaseProviderAdapter):
    """Cohere adapter with chat-then-generate fallback.

    Usage:
        config = ProviderConfig(
            provider_id=ProviderId.COHERE,
            api_key="co-...",
            model="command",
        )
        adapter = CohereAdapter(config)
        reply = await adapter.send_message(history)
    """

    PROVIDER_ID = ProviderId.COHERE
    PROVIDER_NAME = "Cohere"
    DEFAULT_MODEL = "command"
    DEFAULT_BASE_URL = "https://api.cohere.ai/v1"
    DEFAULT_MAX_TOKENS = 4096
    MAX_CONTEXT_TOKENS = 4096
    API_VERSION = "2022-12-06"

    STOP_SEQUENCES = ["Human:", "\n\nHuman:"]

    AVAILABLE_MODELS = [
        {"id": "command", "name": "Command", "description": "Main conversational model"},
        {"id": "command-light", "name": "Command Light", "description": "Faster, lighter version"},
        {"id": "command-nightly", "name": "Command Nightly", "description": "Experimental version"},
    ]

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        should_fall_back: Callable[[Exception], bool] = fall_back_on_provider_error,
    ):
        """Initialize the Cohere adapter.

        Args:
            config: Provider configuration
            http_client: Optional HTTP client
            should_fall_back: Predicate deciding whether a chat failure
                triggers the generate fallback
        """
        super().__init__(config, http_client)
        self.should_fall_back = should_fall_back

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Cohere-Version": self.API_VERSION,
        }

    def _sampling(self, options: Optional[SendOptions]) -> dict[str, Any]:
        params = self._params(options)
        sampling: dict[str, Any] = {}
        for name in ("max_tokens", "temperature", "frequency_penalty", "presence_penalty"):
            if params.get(name) is not None:
                sampling[name] = params[name]
        if params.get("top_p") is not None:
            sampling["p"] = params["top_p"]
        return sampling

    # ------------------------------------------------------------------
    # Encodings
    # ------------------------------------------------------------------

    def format_history(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> dict[str, Any]:
        """Build the ``/chat`` request (the primary encoding)."""
        return self.format_chat_request(history, options)

    def format_chat_request(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> dict[str, Any]:
        system, turns = self._split_history(history, options)
        chat_history = [
            {
                "role": "USER" if msg.role == MessageRole.USER else "CHATBOT",
                "message": msg.text,
            }
            for msg in turns[:-1]
        ]
        payload: dict[str, Any] = {
            "model": self.model_name,
            "message": turns[-1].text,
            "chat_history": chat_history,
            **self._sampling(options),
        }
        if system:
            payload["preamble"] = system
        return payload

    def build_prompt(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> str:
        """Concatenate the conversation into a Human/Assistant transcript."""
        system, turns = self._split_history(history, options)
        prompt = f"{system}\n\n" if system else ""
        for msg in turns:
            speaker = "Human" if msg.role == MessageRole.USER else "Assistant"
            prompt += f"{speaker}: {msg.text}\n"
        return prompt + "Assistant:"

    def format_generate_request(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> dict[str, Any]:
        return {
            "model": self.model_name,
            "prompt": self.build_prompt(history, options),
            **self._sampling(options),
            "stop_sequences": list(self.STOP_SEQUENCES),
            "return_likelihoods": "NONE",
        }

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def parse_response(self, payload: Any) -> str:
        """Parse a ``/chat`` response."""
        try:
            response = CohereChatResponse.model_validate(payload)
        except ValidationError as e:
            raise self._invalid_response("malformed chat body", cause=e) from e
        if not response.text:
            raise self._invalid_response("empty chat text")
        return response.text

    def parse_generate_response(self, payload: Any) -> str:
        try:
            response = CohereGenerateResponse.model_validate(payload)
        except ValidationError as e:
            raise self._invalid_response("malformed generate body", cause=e) from e
        if not response.generations or not response.generations[0].text:
            raise self._invalid_response("no generations")
        text = response.generations[0].text.strip()
        if not text:
            raise self._invalid_response("empty generation")
        return text

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def send_chat(self, history: list[Message], options: Optional[SendOptions] = None) -> str:
        """Call ``/chat`` once."""
        data = await self._request_json(
            "POST",
            f"{self.base_url}/chat",
            headers=self._headers(),
            payload=self.format_chat_request(history, options),
        )
        return self.parse_response(data)

    async def send_generate(self, history: list[Message], options: Optional[SendOptions] = None) -> str:
        """Call ``/generate`` once."""
        data = await self._request_json(
            "POST",
            f"{self.base_url}/generate",
            headers=self._headers(),
            payload=self.format_generate_request(history, options),
        )
        return self.parse_generate_response(data)

    def strategy(self, history: list[Message], options: SendOptions) -> FallbackStrategy[str]:
        return FallbackStrategy(
            primary=lambda: self.send_chat(history, options),
            fallback=lambda: self.send_generate(history, options),
            should_fall_back=self.should_fall_back,
            name="cohere chat->generate",
        )

    async def _dispatch(self, history: list[Message], options: SendOptions) -> str:
        return await self.strategy(history, options).run()

    def available_models(self) -> list[dict[str, str]]:
        return list(self.AVAILABLE_MODELS)
