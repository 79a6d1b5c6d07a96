"""
Unit tests for the Hugging Face Inference API adapter.
"""

import httpx
import pytest

from multichat.domain.entities import Message, ProviderId, SendOptions
from multichat.exceptions import InvalidResponseError, ModelLoadingError
from multichat.providers.base import ProviderConfig
from multichat.providers.huggingface import HuggingFaceAdapter


def _config(model=None, **kwargs):
    return ProviderConfig(provider_id=ProviderId.HUGGINGFACE, api_key="hf_test", model=model, **kwargs)


@pytest.fixture
def history():
    return [Message.user("Hi"), Message.assistant("Hello"), Message.user("How are you?")]


class TestHuggingFaceTemplates:
    """Tests for the two prompt templates."""

    def test_dialogue_template_for_dialogpt(self, history):
        adapter = HuggingFaceAdapter(_config())
        prompt = adapter.build_prompt(history, SendOptions(system_prompt="Be cheerful."))

        assert prompt == "Be cheerful.\n\nUser: Hi\nBot: Hello\nUser: How are you?\nBot:"

    def test_dialogue_template_for_blenderbot(self, history):
        adapter = HuggingFaceAdapter(_config("facebook/BlenderBot-400M-distill"))
        assert adapter.build_prompt(history).startswith("User: Hi\n")

    def test_role_tagged_template(self, history):
        adapter = HuggingFaceAdapter(_config("HuggingFaceH4/zephyr-7b-beta"))
        prompt = adapter.build_prompt(history, SendOptions(system_prompt="Be cheerful."))

        assert prompt == (
            "<|system|>\nBe cheerful.\n"
            "<|user|>\nHi\n"
            "<|assistant|>\nHello\n"
            "<|user|>\nHow are you?\n"
            "<|assistant|>\n"
        )

    def test_payload_shape(self, history):
        adapter = HuggingFaceAdapter(_config("mistralai/Mistral-7B-Instruct-v0.1", temperature=0.6))
        payload = adapter.format_history(history)

        assert payload["parameters"]["max_new_tokens"] == 1024
        assert payload["parameters"]["temperature"] == 0.6
        assert payload["parameters"]["do_sample"] is True
        assert payload["parameters"]["return_full_text"] is False
        assert payload["parameters"]["stop"] == ["<|user|>", "<|system|>"]
        assert payload["options"] == {"wait_for_model": True, "use_cache": False}

    def test_wait_for_model_from_config_and_options(self, history):
        adapter = HuggingFaceAdapter(_config(extra={"wait_for_model": False}))
        assert adapter.format_history(history)["options"]["wait_for_model"] is False

        override = SendOptions(params={"wait_for_model": True})
        assert adapter.format_history(history, override)["options"]["wait_for_model"] is True

    def test_image_support_follows_model(self):
        assert HuggingFaceAdapter(_config("openai/clip-vit-base")).supports_images is True
        assert HuggingFaceAdapter(_config()).supports_images is False


class TestHuggingFaceParse:
    """Tests for the accepted response shapes."""

    @pytest.mark.parametrize("payload", [
        [{"generated_text": " Fine, thanks! "}],
        [{"text": "Fine, thanks!"}],
        {"generated_text": "Fine, thanks!"},
    ])
    def test_accepted_shapes(self, payload):
        assert HuggingFaceAdapter(_config()).parse_response(payload) == "Fine, thanks!"

    @pytest.mark.parametrize("payload", [[], [{"generated_text": "   "}], {"other": 1}, "text"])
    def test_rejected_shapes(self, payload):
        with pytest.raises(InvalidResponseError):
            HuggingFaceAdapter(_config()).parse_response(payload)


class TestHuggingFaceSend:
    """Tests for send_message and the model status check."""

    @pytest.mark.asyncio
    async def test_posts_to_model_url(self, history, mock_http, json_response):
        client, recorder = mock_http(json_response(200, [{"generated_text": "Great"}]))
        adapter = HuggingFaceAdapter(_config(), http_client=client)

        assert await adapter.send_message(history) == "Great"
        request = recorder.requests[0]
        assert str(request.url) == "https://api-inference.huggingface.co/models/microsoft/DialoGPT-medium"
        assert request.headers["authorization"] == "Bearer hf_test"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_loading_model_is_surfaced_not_retried(self, history, mock_http, json_response):
        body = {"error": "Model microsoft/DialoGPT-medium is currently loading", "estimated_time": 42.0}
        client, recorder = mock_http(json_response(503, body))
        adapter = HuggingFaceAdapter(_config(), http_client=client)

        with pytest.raises(ModelLoadingError) as exc_info:
            await adapter.send_message(history)

        assert exc_info.value.estimated_time == 42.0
        assert exc_info.value.recoverable is True
        assert len(recorder.requests) == 1
        await client.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [(200, "ready"), (503, "loading"), (404, "error")])
    async def test_check_model_status(self, status, expected, mock_http):
        client, recorder = mock_http(lambda request: httpx.Response(status, json={}))
        adapter = HuggingFaceAdapter(_config(), http_client=client)

        result = await adapter.check_model_status()

        assert result["status"] == expected
        assert recorder.requests[0].method == "GET"
        await client.aclose()

    def test_available_models(self):
        ids = [m["id"] for m in HuggingFaceAdapter(_config()).available_models()]
        assert "microsoft/DialoGPT-medium" in ids


class TestHuggingFaceModelSearch:
    """Tests for Hub model search."""

    @pytest.mark.asyncio
    async def test_returns_top_ten(self, mock_http, json_response):
        hub = [{"id": f"org/model-{i}", "downloads": i * 10, "likes": i, "tags": []} for i in range(12)]
        client, recorder = mock_http(json_response(200, hub))
        adapter = HuggingFaceAdapter(_config(), http_client=client)

        models = await adapter.search_models("llama")

        assert len(models) == 10
        assert models[1] == {"id": "org/model-1", "name": "org/model-1", "downloads": 10, "likes": 1}
        request = recorder.requests[0]
        assert request.url.host == "huggingface.co"
        assert request.url.path == "/api/models"
        assert request.url.params["search"] == "llama"
        assert request.url.params["filter"] == "text-generation"
        assert request.headers["authorization"] == "Bearer hf_test"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_category_filter(self, mock_http, json_response):
        client, recorder = mock_http(json_response(200, []))
        adapter = HuggingFaceAdapter(_config(), http_client=client)

        assert await adapter.search_models("clip", category="image-classification") == []
        assert recorder.requests[0].url.params["filter"] == "image-classification"
        await client.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("handler", [
        lambda request: httpx.Response(500, json={"error": "boom"}),
        lambda request: httpx.Response(200, json={"unexpected": True}),
        lambda request: httpx.Response(200, text="not json"),
    ])
    async def test_failures_return_empty_list(self, handler, mock_http):
        client, _ = mock_http(handler)
        adapter = HuggingFaceAdapter(_config(), http_client=client)

        assert await adapter.search_models("llama") == []
        await client.aclose()

    @pytest.mark.asyncio
    async def test_connection_failure_returns_empty_list(self, mock_http):
        def _refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = mock_http(_refuse)
        adapter = HuggingFaceAdapter(_config(), http_client=client)

        assert await adapter.search_models("llama") == []
        await client.aclose()
