"""
Google Gemini Provider Adapter.

REST adapter for the Gemini API (generativelanguage.googleapis.com) using
the generateContent endpoint. Authentication is via the ``x-goog-api-key``
header.

Gemini has no separate system field in this adapter: the system prompt is
prepended to the final user turn, and images travel as ``inlineData`` parts
of that same turn.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from ..domain.entities import Message, MessageRole, ProviderId, SendOptions
from .base import BaseProviderAdapter

logger = logging.getLogger(__name__)


# =============================================================================
# Wire response schema
# =============================================================================


class GeminiPart(BaseModel):
    text: Optional[str] = None


class GeminiContent(BaseModel):
    role: Optional[str] = None
    parts: list[GeminiPart] = []


class GeminiCandidate(BaseModel):
    content: Optional[GeminiContent] = None
    finishReason: Optional[str] = None


class GeminiResponse(BaseModel):
    candidates: list[GeminiCandidate] = []
    promptFeedback: Optional[dict[str, Any]] = None


# =============================================================================
# Chat session
# =============================================================================


class GeminiChatSession:
    """Stateful chat seeded with prior turns.

    Each successful send_message() appends the user turn and the model
    reply to the session history, so the session can keep a conversation
    going without the caller resending it.
    """

    def __init__(
        self,
        adapter: GeminiAdapter,
        history: Optional[list[dict[str, Any]]] = None,
        generation_config: Optional[dict[str, Any]] = None,
    ):
        self.adapter = adapter
        self.history: list[dict[str, Any]] = list(history or [])
        self.generation_config = generation_config or {}

    async def send_message(self, parts: list[dict[str, Any]]) -> str:
        """Send one user turn and return the model text."""
        user_turn = {"role": "user", "parts": parts}
        payload: dict[str, Any] = {"contents": [*self.history, user_turn]}
        if self.generation_config:
            payload["generationConfig"] = self.generation_config

        data = await self.adapter._generate(payload)
        text = self.adapter.parse_response(data)

        self.history.append(user_turn)
        self.history.append({"role": "model", "parts": [{"text": text}]})
        return text


# =============================================================================
# Adapter
# =============================================================================


class GeminiAdapter(BaseProviderAdapter):
    """Google Gemini adapter.

    Usage:
        config = ProviderConfig(
            provider_id=ProviderId.GEMINI,
            api_key="AIza...",
            model="gemini-1.5-flash",
        )
        adapter = GeminiAdapter(config)
        reply = await adapter.send_message(history, SendOptions(system_prompt="..."))
    """

    PROVIDER_ID = ProviderId.GEMINI
    PROVIDER_NAME = "Google Gemini"
    DEFAULT_MODEL = "gemini-1.5-flash"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    MAX_CONTEXT_TOKENS = 1_000_000

    @property
    def supports_images(self) -> bool:
        return True

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model_name}:generateContent"

    def _generation_config(self, options: Optional[SendOptions]) -> dict[str, Any]:
        params = self._params(options)
        config: dict[str, Any] = {}
        if params.get("temperature") is not None:
            config["temperature"] = params["temperature"]
        if params.get("max_tokens") is not None:
            config["maxOutputTokens"] = params["max_tokens"]
        if params.get("top_p") is not None:
            config["topP"] = params["top_p"]
        if params.get("top_k") is not None:
            config["topK"] = params["top_k"]
        return config

    def format_history(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> dict[str, Any]:
        """Convert messages to a generateContent request.

        All but the last turn become alternating user/model contents. The
        last turn is the new user prompt: the system prompt is prepended to
        its text and each image is appended as an inlineData part.
        """
        system, turns = self._split_history(history, options)

        contents = [
            {
                "role": "user" if msg.role == MessageRole.USER else "model",
                "parts": [{"text": msg.text}],
            }
            for msg in turns[:-1]
        ]

        prompt = turns[-1].text
        if system:
            prompt = f"{system}\n\n{prompt}"

        parts: list[dict[str, Any]] = [{"text": prompt}]
        for image in self._final_images(turns, options):
            parts.append({
                "inlineData": {
                    "mimeType": image.mime_type,
                    "data": image.data,
                }
            })
        contents.append({"role": "user", "parts": parts})

        payload: dict[str, Any] = {"contents": contents}
        generation_config = self._generation_config(options)
        if generation_config:
            payload["generationConfig"] = generation_config
        return payload

    def start_chat(
        self,
        history: Optional[list[dict[str, Any]]] = None,
        generation_config: Optional[dict[str, Any]] = None,
    ) -> GeminiChatSession:
        """Start a chat session seeded with wire-format history."""
        return GeminiChatSession(self, history, generation_config)

    def parse_response(self, payload: Any) -> str:
        try:
            response = GeminiResponse.model_validate(payload)
        except ValidationError as e:
            raise self._invalid_response("malformed body", cause=e) from e

        if not response.candidates:
            block_reason = (response.promptFeedback or {}).get("blockReason")
            if block_reason:
                raise self._invalid_response(f"prompt blocked ({block_reason})")
            raise self._invalid_response("no candidates")

        content = response.candidates[0].content
        text = "".join(part.text for part in (content.parts if content else []) if part.text)
        if not text:
            raise self._invalid_response("empty candidate content")
        return text

    async def _generate(self, payload: dict[str, Any]) -> Any:
        return await self._request_json(
            "POST",
            self.endpoint,
            headers={"x-goog-api-key": self.config.api_key},
            payload=payload,
        )

    async def _dispatch(self, history: list[Message], options: SendOptions) -> str:
        payload = self.format_history(history, options)
        contents = payload["contents"]
        chat = self.start_chat(contents[:-1], payload.get("generationConfig"))
        return await chat.send_message(contents[-1]["parts"])
