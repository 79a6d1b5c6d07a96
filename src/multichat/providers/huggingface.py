"""
Hugging Face Inference API Provider Adapter.

Text-generation models receive a single prompt string. The template
depends on the model family:

- Dialogue models (DialoGPT, BlenderBot): ``User: ...\\nBot: ...\\nBot:``
- Instruction-tuned models: ``<|system|>``/``<|user|>``/``<|assistant|>``
  role tags, ending with an open assistant tag.

A 503 "model loading" answer is surfaced as ModelLoadingError; whether to
wait and retry is the caller's decision (``wait_for_model`` asks the
service to hold the request instead).
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from ..domain.entities import Message, MessageRole, ProviderId, SendOptions
from .base import BaseProviderAdapter

logger = logging.getLogger(__name__)

DIALOGUE_MODEL_MARKERS = ("dialogpt", "blenderbot")
HUB_MODELS_URL = "https://huggingface.co/api/models"
SEARCH_LIMIT = 10
ROLE_TAG_STOP_SEQUENCES = ["<|user|>", "<|system|>"]


# =============================================================================
# Wire response schema
# =============================================================================


class HuggingFaceGeneration(BaseModel):
    generated_text: Optional[str] = None
    text: Optional[str] = None


class HubModel(BaseModel):
    id: str
    downloads: Optional[int] = None
    likes: Optional[int] = None


_GENERATION_PAYLOAD = TypeAdapter(Union[list[HuggingFaceGeneration], HuggingFaceGeneration])
_HUB_MODELS = TypeAdapter(list[HubModel])


# =============================================================================
# Adapter
# =============================================================================


class HuggingFaceAdapter(BaseProviderAdapter):
    """Hugging Face Inference API adapter.

    Usage:
        config = ProviderConfig(
            provider_id=ProviderId.HUGGINGFACE,
            api_key="hf_...",
            model="HuggingFaceH4/zephyr-7b-beta",
            extra={"wait_for_model": False},
        )
        adapter = HuggingFaceAdapter(config)
        reply = await adapter.send_message(history)
    """

    PROVIDER_ID = ProviderId.HUGGINGFACE
    PROVIDER_NAME = "Hugging Face"
    DEFAULT_MODEL = "microsoft/DialoGPT-medium"
    DEFAULT_BASE_URL = "https://api-inference.huggingface.co/models"
    DEFAULT_MAX_TOKENS = 1024
    MAX_CONTEXT_TOKENS = 4096

    AVAILABLE_MODELS = [
        {"id": "microsoft/DialoGPT-medium", "name": "DialoGPT Medium", "type": "conversational"},
        {"id": "microsoft/DialoGPT-large", "name": "DialoGPT Large", "type": "conversational"},
        {"id": "facebook/blenderbot-400M-distill", "name": "BlenderBot 400M", "type": "conversational"},
        {"id": "mistralai/Mistral-7B-Instruct-v0.1", "name": "Mistral 7B Instruct", "type": "instruction"},
        {"id": "meta-llama/Llama-2-7b-chat-hf", "name": "Llama 2 7B Chat", "type": "chat"},
        {"id": "codellama/CodeLlama-7b-Instruct-hf", "name": "Code Llama 7B", "type": "code"},
        {"id": "HuggingFaceH4/zephyr-7b-beta", "name": "Zephyr 7B Beta", "type": "assistant"},
    ]

    @property
    def supports_images(self) -> bool:
        lowered = self.model_name.lower()
        return "vision" in lowered or "clip" in lowered

    @property
    def is_dialogue_model(self) -> bool:
        lowered = self.model_name.lower()
        return any(marker in lowered for marker in DIALOGUE_MODEL_MARKERS)

    @property
    def model_url(self) -> str:
        return f"{self.base_url}/{self.model_name}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    def wait_for_model(self, options: Optional[SendOptions] = None) -> bool:
        """Configured wait_for_model flag (default True), per-call override wins."""
        return bool(self._params(options).get("wait_for_model", True))

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def build_prompt(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> str:
        system, turns = self._split_history(history, options)

        if self.is_dialogue_model:
            prompt = f"{system}\n\n" if system else ""
            for msg in turns:
                speaker = "User" if msg.role == MessageRole.USER else "Bot"
                prompt += f"{speaker}: {msg.text}\n"
            return prompt + "Bot:"

        prompt = f"<|system|>\n{system}\n" if system else ""
        for msg in turns:
            tag = "<|user|>" if msg.role == MessageRole.USER else "<|assistant|>"
            prompt += f"{tag}\n{msg.text}\n"
        return prompt + "<|assistant|>\n"

    def format_history(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> dict[str, Any]:
        params = self._params(options)
        parameters: dict[str, Any] = {
            "max_new_tokens": params.get("max_tokens") or self.DEFAULT_MAX_TOKENS,
            "do_sample": True,
            "return_full_text": False,
        }
        if params.get("temperature") is not None:
            parameters["temperature"] = params["temperature"]
        if params.get("top_p") is not None:
            parameters["top_p"] = params["top_p"]
        if not self.is_dialogue_model:
            parameters["stop"] = list(ROLE_TAG_STOP_SEQUENCES)

        return {
            "inputs": self.build_prompt(history, options),
            "parameters": parameters,
            "options": {
                "wait_for_model": self.wait_for_model(options),
                "use_cache": False,
            },
        }

    def parse_response(self, payload: Any) -> str:
        """Accept ``[{generated_text}]``, ``[{text}]`` or ``{generated_text}``."""
        try:
            parsed = _GENERATION_PAYLOAD.validate_python(payload)
        except ValidationError as e:
            raise self._invalid_response("malformed body", cause=e) from e

        generation = parsed[0] if isinstance(parsed, list) and parsed else parsed
        if isinstance(generation, list):
            raise self._invalid_response("empty generation list")

        text = generation.generated_text
        if text is None:
            text = generation.text
        if text is None or not text.strip():
            raise self._invalid_response("no generated text")
        return text.strip()

    async def _dispatch(self, history: list[Message], options: SendOptions) -> str:
        data = await self._request_json(
            "POST",
            self.model_url,
            headers=self._headers(),
            payload=self.format_history(history, options),
        )
        return self.parse_response(data)

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def available_models(self) -> list[dict[str, str]]:
        return list(self.AVAILABLE_MODELS)

    async def check_model_status(self) -> dict[str, str]:
        """Report whether the configured model is ready, loading or failing.

        Returns:
            Dict with 'status' (ready/loading/error) and 'message'
        """
        self._require_credential()
        client = self._get_http_client()
        try:
            response = await client.get(self.model_url, headers=self._headers())
        except httpx.RequestError as e:
            logger.warning(f"Hugging Face status check failed: {e}")
            return {"status": "error", "message": str(e)}

        if response.is_success:
            return {"status": "ready", "message": "Model ready"}
        if response.status_code == 503:
            return {"status": "loading", "message": "Model loading"}
        return {"status": "error", "message": f"HTTP {response.status_code}"}

    async def search_models(
        self,
        query: str,
        category: str = "text-generation",
    ) -> list[dict[str, Any]]:
        """Search the Hub for models matching query.

        Returns an empty list when the Hub cannot be reached or answers
        with an error.

        Args:
            query: Free-text search
            category: Hub pipeline filter

        Returns:
            Up to ten dicts with id, name, downloads and likes
        """
        headers = self._headers() if self.is_ready() else {}
        client = self._get_http_client()
        try:
            response = await client.get(
                HUB_MODELS_URL,
                params={"search": query, "filter": category},
                headers=headers,
            )
            response.raise_for_status()
            models = _HUB_MODELS.validate_python(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not search Hugging Face models: {e}")
            return []

        return [
            {"id": m.id, "name": m.id, "downloads": m.downloads, "likes": m.likes}
            for m in models[:SEARCH_LIMIT]
        ]
