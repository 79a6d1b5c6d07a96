"""
Base Provider Adapter Implementation.

Provides common functionality for all provider adapters: configuration,
credential checks, system-prompt handling, HTTP transport and the
classification of vendor failures into the canonical error kinds.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import httpx

from ..domain.entities import (
    ImageAttachment,
    Message,
    MessageRole,
    ModelInfo,
    ProviderId,
    SendOptions,
)
from ..domain.ports import IProviderAdapter
from ..exceptions import (
    InvalidCredentialError,
    InvalidHistoryError,
    InvalidResponseError,
    MissingCredentialError,
    ModelLoadingError,
    NetworkError,
    ProviderAPIError,
    ProviderError,
    RateLimitedError,
    TransientUnavailableError,
)

logger = logging.getLogger(__name__)

# Decoding parameters every adapter understands, in config order
DECODING_PARAMS = (
    "temperature",
    "max_tokens",
    "top_p",
    "frequency_penalty",
    "presence_penalty",
)

# camelCase keys accepted from host settings
_CONFIG_ALIASES = {
    "apiKey": "api_key",
    "maxTokens": "max_tokens",
    "topP": "top_p",
    "frequencyPenalty": "frequency_penalty",
    "presencePenalty": "presence_penalty",
    "baseUrl": "base_url",
    "baseURL": "base_url",
}

TRANSIENT_STATUS_CODES = {500, 502, 503, 504, 529}


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration owned by exactly one adapter instance.

    Attributes:
        provider_id: Provider this config belongs to
        api_key: API key for the provider
        model: Model name to use (adapter default when None)
        temperature: Default temperature
        max_tokens: Default max tokens (adapter default when None)
        top_p: Nucleus sampling parameter
        frequency_penalty: Frequency penalty, where supported
        presence_penalty: Presence penalty, where supported
        base_url: Optional custom base URL
        timeout: Request timeout in seconds
        extra: Provider-specific settings passed through verbatim
    """

    provider_id: ProviderId
    api_key: str = ""
    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    base_url: Optional[str] = None
    timeout: float = 60.0
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls,
        provider_id: ProviderId,
        api_key: Optional[str],
        settings: Optional[Mapping[str, Any]] = None,
    ) -> ProviderConfig:
        """Build a config from host settings (snake_case or camelCase keys).

        Unknown keys are kept in ``extra``.
        """
        known = {
            "model", "temperature", "max_tokens", "top_p", "frequency_penalty",
            "presence_penalty", "base_url", "timeout",
        }
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in (settings or {}).items():
            name = _CONFIG_ALIASES.get(key, key)
            if name == "api_key":
                continue
            if name in known:
                if value is not None:
                    values[name] = value
            else:
                extra[name] = value
        try:
            provider_id = ProviderId(provider_id)
        except ValueError:
            # host-registered provider outside the built-in set
            pass
        return cls(
            provider_id=provider_id,
            api_key=api_key or "",
            extra=extra,
            **values,
        )


# ============================================
# Error classification
# ============================================


def extract_error_message(body: Any) -> Optional[str]:
    """Pull a human-readable message out of a vendor error body.

    Handles ``{"error": {"message": ...}}`` (OpenAI, Anthropic, Gemini),
    ``{"message": ...}`` (Cohere) and ``{"error": "..."}`` (HuggingFace).
    """
    if isinstance(body, str):
        return body or None
    if not isinstance(body, Mapping):
        return None
    error = body.get("error")
    if isinstance(error, Mapping) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if body.get("message"):
        return str(body["message"])
    return None


def _rate_limit_header_signal(headers: Optional[Mapping[str, str]]) -> tuple[bool, Optional[float]]:
    if not headers:
        return False, None
    retry_after: Optional[float] = None
    limited = False
    for name, value in headers.items():
        lowered = name.lower()
        if lowered == "retry-after":
            limited = True
            try:
                retry_after = float(value)
            except (TypeError, ValueError):
                retry_after = None
        elif "ratelimit" in lowered and "remaining" in lowered and str(value).strip() == "0":
            limited = True
    return limited, retry_after


def classify_http_error(
    provider: str,
    status_code: Optional[int],
    message: Optional[str],
    headers: Optional[Mapping[str, str]] = None,
    body: Any = None,
    cause: Optional[Exception] = None,
) -> ProviderError:
    """Map a vendor failure onto the canonical error taxonomy.

    Args:
        provider: Provider id for error context
        status_code: HTTP status, or None when no response was received
        message: Vendor error message, if any
        headers: Response headers (rate-limit signals)
        body: Parsed error body (used for HuggingFace estimated_time)
        cause: Original exception to chain

    Returns:
        A ProviderError subclass instance (not raised)
    """
    text = message or (f"HTTP {status_code}" if status_code else "Unknown error")
    lowered = text.lower()
    common = {"provider": provider, "status_code": status_code, "cause": cause}
    header_limited, retry_after = _rate_limit_header_signal(headers)

    if status_code == 429:
        return RateLimitedError(f"API usage limit reached: {text}", retry_after=retry_after, **common)

    if status_code in (401, 403) or "api key" in lowered:
        return InvalidCredentialError(f"Invalid or unauthorized API key: {text}", **common)

    if "loading" in lowered:
        estimated = body.get("estimated_time") if isinstance(body, Mapping) else None
        return ModelLoadingError(
            f"Model is loading, try again in a few seconds: {text}",
            estimated_time=estimated,
            **common,
        )

    if status_code in TRANSIENT_STATUS_CODES or "overloaded" in lowered:
        return TransientUnavailableError(f"Service temporarily unavailable: {text}", **common)

    if header_limited or "quota" in lowered or "limit" in lowered:
        return RateLimitedError(f"API usage limit reached: {text}", retry_after=retry_after, **common)

    return ProviderAPIError(f"API error: {text}", **common)


def classify_sdk_error(provider: str, error: Exception) -> ProviderError:
    """Translate an openai/anthropic SDK exception into a ProviderError.

    Both SDKs expose the same shape: APIStatusError (status_code, body,
    response) and APIConnectionError (timeouts included, no status).
    """
    status_code = getattr(error, "status_code", None)
    if status_code is None:
        return NetworkError(
            f"Could not connect to the API: {error}", provider=provider, cause=error
        )
    response = getattr(error, "response", None)
    body = getattr(error, "body", None)
    return classify_http_error(
        provider,
        status_code,
        extract_error_message(body) or getattr(error, "message", None) or str(error),
        headers=response.headers if response is not None else None,
        body=body,
        cause=error,
    )


# ============================================
# Base adapter
# ============================================


class BaseProviderAdapter(IProviderAdapter, ABC):
    """Base class for provider adapter implementations.

    Provides the credential check, system-prompt and attachment resolution
    and the JSON-over-HTTP helper. Subclasses implement the wire mapping
    (format_history / parse_response) and the call itself (_dispatch).
    """

    PROVIDER_ID: ProviderId
    PROVIDER_NAME = ""
    DEFAULT_MODEL = ""
    DEFAULT_BASE_URL = ""
    DEFAULT_MAX_TOKENS: Optional[int] = None
    MAX_CONTEXT_TOKENS = 4096

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the adapter.

        Args:
            config: Provider configuration
            http_client: Optional shared/mock HTTP client; created lazily
                when omitted
        """
        self.config = config
        self.base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def provider(self) -> str:
        return self.PROVIDER_ID.value

    @property
    def model_name(self) -> str:
        """Return the configured model, or the provider default."""
        return self.config.model or self.DEFAULT_MODEL

    def is_ready(self) -> bool:
        return bool(self.config.api_key and self.config.api_key.strip())

    def get_model_info(self) -> ModelInfo:
        return ModelInfo(
            provider_name=self.PROVIDER_NAME,
            model_id=self.model_name,
            supports_images=self.supports_images,
            max_context_tokens=self.max_context_tokens,
        )

    @property
    def supports_images(self) -> bool:
        return False

    @property
    def max_context_tokens(self) -> int:
        return self.MAX_CONTEXT_TOKENS

    # ------------------------------------------------------------------
    # Shared request building
    # ------------------------------------------------------------------

    def _require_credential(self) -> None:
        if not self.is_ready():
            raise MissingCredentialError(self.provider, display_name=self.PROVIDER_NAME)

    def _split_history(
        self,
        history: list[Message],
        options: Optional[SendOptions],
    ) -> tuple[Optional[str], list[Message]]:
        """Separate system messages from conversation turns.

        System-role messages are lifted out of the turn list and placed
        before the caller's system prompt.

        Returns:
            Tuple of (system_prompt, turns)
        """
        system_parts = [m.text for m in history if m.role == MessageRole.SYSTEM and m.text]
        if options and options.system_prompt:
            system_parts.append(options.system_prompt)
        turns = [m for m in history if m.role != MessageRole.SYSTEM]
        if not turns:
            raise InvalidHistoryError(details={"provider": self.provider})
        system = "\n\n".join(system_parts) if system_parts else None
        return system, turns

    def _final_images(
        self,
        turns: list[Message],
        options: Optional[SendOptions],
    ) -> list[ImageAttachment]:
        """Images for the final turn: explicit options win over the message's own."""
        if options and options.attachments:
            return list(options.attachments)
        return list(turns[-1].attachments) if turns else []

    def _params(self, options: Optional[SendOptions]) -> dict[str, Any]:
        """Decoding parameters: config values overridden by per-call params."""
        params: dict[str, Any] = {
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens or self.DEFAULT_MAX_TOKENS,
            "top_p": self.config.top_p,
            "frequency_penalty": self.config.frequency_penalty,
            "presence_penalty": self.config.presence_penalty,
        }
        params.update(self.config.extra)
        if options and options.params:
            params.update(options.params)
        return params

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._http_client

    async def _request_json(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Issue one HTTP request and return the decoded JSON body.

        Raises:
            NetworkError: On transport failures
            ProviderError: Classified vendor error for non-2xx responses
            InvalidResponseError: If a 2xx body is not JSON
        """
        client = self._get_http_client()
        try:
            response = await client.request(method, url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"{self.PROVIDER_NAME} request timeout: {e}")
            raise NetworkError(
                f"Request timed out: {e}", provider=self.provider, cause=e
            ) from e
        except httpx.RequestError as e:
            logger.error(f"{self.PROVIDER_NAME} connection error: {e}")
            raise NetworkError(
                f"Could not connect to the API: {e}", provider=self.provider, cause=e
            ) from e

        if response.is_success:
            try:
                return response.json()
            except (json.JSONDecodeError, ValueError) as e:
                raise InvalidResponseError(
                    f"{self.PROVIDER_NAME} returned a non-JSON body",
                    provider=self.provider,
                    status_code=response.status_code,
                    cause=e,
                ) from e

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            body = response.text
        error = classify_http_error(
            self.provider,
            response.status_code,
            extract_error_message(body) or response.reason_phrase,
            headers=response.headers,
            body=body,
        )
        if isinstance(error, (RateLimitedError, TransientUnavailableError)):
            logger.warning(f"{self.PROVIDER_NAME} API error: {error}")
        else:
            logger.error(f"{self.PROVIDER_NAME} API error: {error}")
        raise error

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def send_message(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> str:
        """Check the credential, then delegate to the provider call."""
        self._require_credential()
        return await self._dispatch(history, options or SendOptions())

    @abstractmethod
    async def _dispatch(self, history: list[Message], options: SendOptions) -> str:
        """Perform the provider call. Must be implemented by subclasses."""
        pass

    @abstractmethod
    def parse_response(self, payload: Any) -> str:
        """Extract assistant text from a response, or raise InvalidResponseError."""
        pass

    def _invalid_response(self, detail: str, cause: Optional[Exception] = None) -> InvalidResponseError:
        return InvalidResponseError(
            f"Invalid response from {self.PROVIDER_NAME} API: {detail}",
            provider=self.provider,
            cause=cause,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit - cleanup client."""
        await self.aclose()
