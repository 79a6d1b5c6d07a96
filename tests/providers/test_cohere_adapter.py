"""
Unit tests for the Cohere adapter and its chat-then-generate fallback.
"""

import httpx
import pytest

from multichat.domain.entities import Message, ProviderId, SendOptions
from multichat.exceptions import InvalidCredentialError, InvalidResponseError, ProviderError
from multichat.providers.base import ProviderConfig
from multichat.providers.cohere import CohereAdapter
from multichat.providers.strategy import FallbackStrategy


@pytest.fixture
def cohere_config():
    """Test Cohere config."""
    return ProviderConfig(provider_id=ProviderId.COHERE, api_key="co-test", top_p=0.75)


@pytest.fixture
def history():
    return [Message.user("Hi"), Message.assistant("Hello"), Message.user("Tell me a joke")]


def _route(chat_status=200, chat_body=None, generate_body=None):
    """Handler answering /chat and /generate independently."""

    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/chat"):
            return httpx.Response(chat_status, json=chat_body or {"text": "chat reply"})
        if request.url.path.endswith("/generate"):
            body = generate_body or {"generations": [{"text": "  generated reply \n"}]}
            return httpx.Response(200, json=body)
        return httpx.Response(404, json={"message": "not found"})

    return _handler


class TestCohereEncodings:
    """Tests for the chat and generate request shapes."""

    def test_chat_request(self, cohere_config, history):
        adapter = CohereAdapter(cohere_config)
        payload = adapter.format_chat_request(history, SendOptions(system_prompt="Be funny."))

        assert payload["message"] == "Tell me a joke"
        assert payload["chat_history"] == [
            {"role": "USER", "message": "Hi"},
            {"role": "CHATBOT", "message": "Hello"},
        ]
        assert payload["preamble"] == "Be funny."
        assert payload["p"] == 0.75
        assert "top_p" not in payload

    def test_chat_request_without_system(self, cohere_config, history):
        payload = CohereAdapter(cohere_config).format_chat_request(history)
        assert "preamble" not in payload

    def test_generate_prompt(self, cohere_config, history):
        adapter = CohereAdapter(cohere_config)
        prompt = adapter.build_prompt(history, SendOptions(system_prompt="Be funny."))

        assert prompt == (
            "Be funny.\n\n"
            "Human: Hi\n"
            "Assistant: Hello\n"
            "Human: Tell me a joke\n"
            "Assistant:"
        )

    def test_generate_request(self, cohere_config, history):
        payload = CohereAdapter(cohere_config).format_generate_request(history)

        assert payload["stop_sequences"] == ["Human:", "\n\nHuman:"]
        assert payload["return_likelihoods"] == "NONE"
        assert payload["prompt"].endswith("Assistant:")


class TestCohereFallback:
    """send_message tries /chat first and /generate only on failure."""

    @pytest.mark.asyncio
    async def test_chat_success_never_calls_generate(self, cohere_config, history, mock_http):
        client, recorder = mock_http(_route())
        adapter = CohereAdapter(cohere_config, http_client=client)

        reply = await adapter.send_message(history)

        assert reply == "chat reply"
        assert recorder.paths == ["/v1/chat"]
        headers = recorder.requests[0].headers
        assert headers["authorization"] == "Bearer co-test"
        assert headers["cohere-version"] == "2022-12-06"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_chat_failure_calls_generate_once(self, cohere_config, history, mock_http):
        client, recorder = mock_http(_route(chat_status=500, chat_body={"message": "internal"}))
        adapter = CohereAdapter(cohere_config, http_client=client)

        reply = await adapter.send_message(history)

        assert reply == "generated reply"
        assert recorder.paths == ["/v1/chat", "/v1/generate"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_empty_chat_text_also_falls_back(self, cohere_config, history, mock_http):
        client, recorder = mock_http(_route(chat_body={"text": ""}))
        adapter = CohereAdapter(cohere_config, http_client=client)

        assert await adapter.send_message(history) == "generated reply"
        assert recorder.paths == ["/v1/chat", "/v1/generate"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_predicate_can_refuse_fallback(self, cohere_config, history, mock_http):
        client, recorder = mock_http(_route(chat_status=401, chat_body={"message": "invalid api token"}))
        adapter = CohereAdapter(
            cohere_config,
            http_client=client,
            should_fall_back=lambda error: not isinstance(error, InvalidCredentialError),
        )

        with pytest.raises(InvalidCredentialError):
            await adapter.send_message(history)
        assert recorder.paths == ["/v1/chat"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_generate_failure_propagates(self, cohere_config, history, mock_http):
        client, recorder = mock_http(_route(chat_status=500, generate_body={"generations": []}))
        adapter = CohereAdapter(cohere_config, http_client=client)

        with pytest.raises(InvalidResponseError):
            await adapter.send_message(history)
        assert len(recorder.requests) == 2
        await client.aclose()


class TestFallbackStrategy:
    """Tests for the strategy object on its own."""

    @pytest.mark.asyncio
    async def test_non_provider_errors_do_not_fall_back(self):
        calls = []

        async def primary():
            raise KeyError("bug")

        async def fallback():
            calls.append("fallback")
            return "unused"

        with pytest.raises(KeyError):
            await FallbackStrategy(primary=primary, fallback=fallback).run()
        assert calls == []

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self):
        async def primary():
            raise ProviderError("down", provider="cohere")

        async def fallback():
            return "second"

        assert await FallbackStrategy(primary=primary, fallback=fallback).run() == "second"
