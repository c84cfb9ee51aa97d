"""
Tests for MessageAdmissionFilter.

This test module covers:
- Admission of well-formed message and system frames
- Silent dropping of malformed, unknown or mistyped frames
- Bytes payload handling
"""

from __future__ import annotations

import pytest

from ws_chat_client.admission import MessageAdmissionFilter
from ws_chat_client.schemas import ChatMessage, MessageKind


@pytest.fixture
def admission() -> MessageAdmissionFilter:
    return MessageAdmissionFilter()


class TestAdmitted:
    def test_text_message(self, admission: MessageAdmissionFilter) -> None:
        message = admission.admit('{"type": "message", "text": "hello"}')
        assert message == ChatMessage(kind=MessageKind.TEXT, body="hello")

    def test_system_message(self, admission: MessageAdmissionFilter) -> None:
        message = admission.admit('{"type": "system", "text": "3 people online"}')
        assert message == ChatMessage(kind=MessageKind.SYSTEM, body="3 people online")

    def test_empty_text_is_still_a_message(self, admission: MessageAdmissionFilter) -> None:
        message = admission.admit('{"type": "message", "text": ""}')
        assert message is not None
        assert message.body == ""

    def test_extra_keys_are_ignored(self, admission: MessageAdmissionFilter) -> None:
        message = admission.admit(
            '{"type": "message", "text": "hi", "ts": 1700000000, "id": "abc"}'
        )
        assert message == ChatMessage(kind=MessageKind.TEXT, body="hi")

    def test_utf8_bytes_payload(self, admission: MessageAdmissionFilter) -> None:
        raw = '{"type": "message", "text": "héllo 👋"}'.encode()
        message = admission.admit(raw)
        assert message is not None
        assert message.body == "héllo 👋"

    def test_admitted_message_is_immutable(self, admission: MessageAdmissionFilter) -> None:
        message = admission.admit('{"type": "message", "text": "hello"}')
        assert message is not None
        with pytest.raises(Exception):
            message.body = "changed"  # type: ignore[misc]


class TestDropped:
    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "not json at all",
            "{",
            '{"type": "message", "text": "unterminated}',
            "null",
            "42",
            '"a string"',
            '["message", "hi"]',
            "{}",
            '{"text": "no type"}',
            '{"type": "typing", "text": "x"}',
            '{"type": "MESSAGE", "text": "case matters"}',
            '{"type": null, "text": "x"}',
            '{"type": "message"}',
            '{"type": "message", "text": null}',
            '{"type": "message", "text": 42}',
            '{"type": "message", "text": ["a"]}',
            '{"type": "system", "text": {"nested": true}}',
            "[" * 100_000,
            '{"a": ' * 100_000,
        ],
    )
    def test_malformed_payload_is_dropped(
        self, admission: MessageAdmissionFilter, raw: str
    ) -> None:
        assert admission.admit(raw) is None

    def test_invalid_utf8_bytes_are_dropped(
        self, admission: MessageAdmissionFilter
    ) -> None:
        assert admission.admit(b"\xff\xfe{not utf8") is None

    def test_unsupported_payload_type_is_dropped(
        self, admission: MessageAdmissionFilter
    ) -> None:
        assert admission.admit(12345) is None  # type: ignore[arg-type]
