"""Tests for WhatsAppMessagingService (database and Meta mocked)."""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from zenmind.whatsapp.messaging import (
    MissingTemplateError,
    WhatsAppMessagingService,
    window_from_conversation,
)
from zenmind.whatsapp.models import NormalizedInbound

MODULE = "zenmind.whatsapp.messaging"
NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
USER = {"id": "user-1", "phone_number": "+5511999998888", "name": None, "created_at": NOW}


def _conversation(expires_at=None):
    return {
        "id": "conv-1",
        "user_id": "user-1",
        "phone_number_id": "PNID_1",
        "status": "active",
        "last_user_message_at": NOW - timedelta(hours=1) if expires_at else None,
        "window_expires_at": expires_at,
        "phase": None,
    }


@pytest.fixture
def cursor():
    cur = MagicMock()

    @contextmanager
    def fake_txn():
        yield cur

    with patch(f"{MODULE}.txn", fake_txn):
        yield cur


@pytest.fixture
def repos():
    with patch(f"{MODULE}.users_repository") as users, patch(
        f"{MODULE}.conversations_repository"
    ) as conversations, patch(f"{MODULE}.messages_repository") as messages:
        users.find_or_create.return_value = (USER, False)
        messages.INBOUND = "inbound"
        messages.OUTBOUND = "outbound"
        yield users, conversations, messages


class TestWindow:
    def test_no_conversation_is_closed(self):
        assert window_from_conversation(None).is_open is False

    def test_open_until_expiry(self):
        window = window_from_conversation(_conversation(NOW + timedelta(hours=2)), now=NOW)
        assert window.is_open is True
        assert window.can_send_free_message is True

    def test_expired(self):
        window = window_from_conversation(_conversation(NOW - timedelta(seconds=1)), now=NOW)
        assert window.is_open is False

    def test_to_dict(self):
        window = window_from_conversation(_conversation(NOW + timedelta(hours=2)), now=NOW)
        data = window.to_dict()
        assert data["is_open"] is True
        assert data["expires_at"] == (NOW + timedelta(hours=2)).isoformat()


class TestSendMessage:
    def test_free_message_inside_window(self, cursor, repos):
        _, conversations, messages = repos
        conversations.find_or_create.return_value = (
            _conversation(datetime.now(timezone.utc) + timedelta(hours=1)),
            False,
        )
        with patch(f"{MODULE}.meta_sender.send_text_via_meta", return_value="wamid.OUT") as send:
            result = WhatsAppMessagingService("PNID_1").send_message("+5511999998888", "Oi")

        send.assert_called_once_with(
            to_phone="+5511999998888", text="Oi", phone_number_id="PNID_1"
        )
        assert result.message_type == "free"
        assert result.message_id == "wamid.OUT"
        kwargs = messages.insert_message.call_args.kwargs
        assert kwargs["direction"] == "outbound"
        assert kwargs["content"] == {"text": "Oi"}
        assert kwargs["whatsapp_message_id"] == "wamid.OUT"

    def test_closed_window_requires_template(self, cursor, repos):
        _, conversations, messages = repos
        conversations.find_or_create.return_value = (_conversation(None), True)
        with patch(f"{MODULE}.meta_sender.send_text_via_meta") as send:
            with pytest.raises(MissingTemplateError):
                WhatsAppMessagingService().send_message("+5511999998888", "Oi")
        send.assert_not_called()
        messages.insert_message.assert_not_called()

    def test_closed_window_sends_template(self, cursor, repos):
        _, conversations, messages = repos
        conversations.find_or_create.return_value = (_conversation(None), True)
        with patch(
            f"{MODULE}.meta_sender.send_template_via_meta", return_value="wamid.T"
        ) as send:
            result = WhatsAppMessagingService().send_message(
                "+5511999998888", "Oi", template_name="retomada"
            )

        assert result.message_type == "template"
        assert send.call_args.kwargs["template_name"] == "retomada"
        assert messages.insert_message.call_args.kwargs["message_type"] == "template"

    def test_provider_failure_stores_nothing(self, cursor, repos):
        _, conversations, messages = repos
        conversations.find_or_create.return_value = (
            _conversation(datetime.now(timezone.utc) + timedelta(hours=1)),
            False,
        )
        with patch(
            f"{MODULE}.meta_sender.send_text_via_meta", side_effect=RuntimeError("down")
        ):
            with pytest.raises(RuntimeError):
                WhatsAppMessagingService().send_message("+5511999998888", "Oi")
        messages.insert_message.assert_not_called()


class TestStoreIncoming:
    def _inbound(self, **overrides):
        values = dict(
            message_id="wamid.IN",
            provider="meta",
            received_at=NOW,
            kind="text",
            from_phone="5511999998888",
            text="Oi",
            raw_kind="text",
            contact_name="Maria",
        )
        values.update(overrides)
        return NormalizedInbound(**values)

    def test_stores_and_opens_window(self, cursor, repos):
        users, conversations, messages = repos
        conversations.find_or_create.return_value = (_conversation(None), True)
        messages.insert_message.return_value = "msg-1"

        stored = WhatsAppMessagingService("PNID_1").store_incoming_message(self._inbound())

        assert stored.message_id == "msg-1"
        assert stored.user_id == "user-1"
        assert stored.kind == "text"
        users.find_or_create.assert_called_once_with(
            cursor, phone_number="5511999998888", name="Maria"
        )
        assert messages.insert_message.call_args.kwargs["content"] == {
            "type": "text",
            "text": "Oi",
        }
        window = conversations.update_window.call_args.kwargs
        assert window["window_expires_at"] - window["last_user_message_at"] == timedelta(hours=24)

    def test_duplicate_returns_none(self, cursor, repos):
        _, conversations, messages = repos
        conversations.find_or_create.return_value = (_conversation(None), False)
        messages.insert_message.return_value = None

        assert WhatsAppMessagingService().store_incoming_message(self._inbound()) is None
        conversations.update_window.assert_not_called()

    def test_media_keeps_raw_type(self, cursor, repos):
        _, conversations, messages = repos
        conversations.find_or_create.return_value = (_conversation(None), False)
        messages.insert_message.return_value = "msg-2"

        WhatsAppMessagingService().store_incoming_message(
            self._inbound(kind="other", raw_kind="sticker", text=None)
        )

        kwargs = messages.insert_message.call_args.kwargs
        assert kwargs["content"] == {"type": "sticker"}
        assert kwargs["message_type"] == "other"


class TestStatus:
    def test_unknown_phone_is_closed(self, cursor, repos):
        users, _, _ = repos
        users.find_by_phone.return_value = None
        window = WhatsAppMessagingService().get_conversation_status("+5511000000000")
        assert window.is_open is False

    def test_update_status(self, cursor, repos):
        _, _, messages = repos
        messages.update_status.return_value = True
        assert WhatsAppMessagingService().update_message_status("wamid.OUT", "read") is True
        messages.update_status.assert_called_once_with(cursor, "wamid.OUT", "read")
