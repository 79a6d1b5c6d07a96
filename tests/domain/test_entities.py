"""
Unit tests for domain entities.
"""

import base64

import pytest

from multichat.domain.entities import (
    Agent,
    CommandOutcome,
    ImageAttachment,
    Message,
    MessageRole,
    OutcomeType,
    ProviderId,
    SendOptions,
)
from multichat.exceptions import AttachmentTooLargeError


class TestMessage:
    """Tests for the Message entity."""

    def test_factories(self):
        assert Message.user("a").role == MessageRole.USER
        assert Message.assistant("b").role == MessageRole.ASSISTANT
        assert Message.system("c").role == MessageRole.SYSTEM

    def test_role_string_is_coerced(self):
        assert Message(role="assistant", text="x").role == MessageRole.ASSISTANT

    def test_role_is_fixed_after_creation(self):
        msg = Message.user("hello")

        with pytest.raises(AttributeError):
            msg.role = MessageRole.ASSISTANT

    def test_edit_keeps_role(self):
        msg = Message.assistant("draft")
        msg.edit("final")

        assert msg.text == "final"
        assert msg.role == MessageRole.ASSISTANT

    def test_timestamp_is_utc(self):
        assert Message.user("x").timestamp.tzinfo is not None


class TestImageAttachment:
    """Tests for image size limits and encoding."""

    def test_from_bytes(self):
        image = ImageAttachment.from_bytes(b"\x89PNG", "image/png", "a.png")

        assert image.size == 4
        assert base64.b64decode(image.data) == b"\x89PNG"
        assert image.data_url.startswith("data:image/png;base64,")

    def test_from_bytes_over_limit(self):
        with pytest.raises(AttachmentTooLargeError) as exc_info:
            ImageAttachment.from_bytes(b"12345", "image/png", "big.png", max_bytes=4)

        assert exc_info.value.size == 5
        assert exc_info.value.to_dict()["code"] == "ATTACHMENT_TOO_LARGE"

    def test_validate_at_limit(self):
        image = ImageAttachment(mime_type="image/png", data="", name="a.png", size=4)
        assert image.validate(max_bytes=4) is image


class TestSendOptions:
    """Tests for provider id handling."""

    def test_string_id_becomes_enum(self):
        assert SendOptions(provider_id="cohere").provider_id is ProviderId.COHERE

    def test_host_registered_id_is_kept(self):
        assert SendOptions(provider_id="local").provider_id == "local"


class TestAgent:
    """Tests for the Agent persona entity."""

    def test_keywords_are_normalised(self):
        agent = Agent(id="a", name="A", description="", prompt="p", keywords={" Foo ", "", "BAR"})
        assert agent.keywords == frozenset({"foo", "bar"})

    def test_keyword_matches_is_case_insensitive_substring(self):
        agent = Agent(id="a", name="A", description="", prompt="p", keywords={"debug", "código"})
        assert agent.keyword_matches("Vamos DEBUGAR o Código") == 2

    def test_built_in_flag(self):
        assert Agent(id="a", name="A", description="", prompt="p").is_built_in is True
        assert Agent(id="b", name="B", description="", prompt="p", custom=True).is_built_in is False


class TestCommandOutcome:
    """Tests for outcome classification."""

    @pytest.mark.parametrize("outcome_type,forwards", [
        (OutcomeType.PASS_THROUGH, True),
        (OutcomeType.SILENT_ACTIVATION, True),
        (OutcomeType.AGENT_ACTIVATED, False),
        (OutcomeType.RESET, False),
        (OutcomeType.ERROR, False),
    ])
    def test_forwards_to_model(self, outcome_type, forwards):
        assert CommandOutcome(type=outcome_type).forwards_to_model is forwards
