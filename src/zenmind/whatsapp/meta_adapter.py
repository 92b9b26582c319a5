"""Meta Cloud API adapter - validate and normalize webhook payloads.

Handles Meta WhatsApp Business API webhook payloads, including
signature verification, message normalization and delivery statuses.

Meta payload structure:
{
  "object": "whatsapp_business_account",
  "entry": [{
    "changes": [{
      "value": {
        "metadata": {"phone_number_id": "..."},
        "contacts": [{"profile": {"name": "..."}, "wa_id": "PHONE"}],
        "messages": [{"from": "PHONE", "id": "MSG_ID", "type": "text",
                      "text": {"body": "..."}}],
        "statuses": [{"id": "MSG_ID", "status": "delivered", "timestamp": "..."}]
      },
      "field": "messages"
    }]
  }]
}
"""

from datetime import datetime, timezone
import hashlib
import hmac
from typing import Any, Iterator

from zenmind.conversation.phases import KNOWN_MESSAGE_TYPES

from .models import NormalizedInbound, StatusUpdate


class InvalidPayloadError(Exception):
    """Raised when Meta payload has invalid shape."""

    pass


class SignatureVerificationError(Exception):
    """Raised when HMAC signature verification fails."""

    pass


def verify_signature(payload_bytes: bytes, signature_header: str, app_secret: str) -> None:
    """Verify Meta webhook signature (HMAC-SHA256).

    Meta signs webhooks with sha256=<hex_signature> format.

    Args:
        payload_bytes: Raw request body bytes.
        signature_header: X-Hub-Signature-256 header value (sha256=...).
        app_secret: Meta App Secret for HMAC verification.

    Raises:
        SignatureVerificationError: If signature is invalid or missing.
    """
    if not signature_header:
        raise SignatureVerificationError("missing signature header")

    if not signature_header.startswith("sha256="):
        raise SignatureVerificationError("invalid signature format")

    expected_sig = signature_header[len("sha256="):]

    computed_sig = hmac.new(
        key=app_secret.encode("utf-8"),
        msg=payload_bytes,
        digestmod=hashlib.sha256,
    ).hexdigest()

    if not hmac.compare_digest(computed_sig, expected_sig):
        raise SignatureVerificationError("signature mismatch")


def normalize_type(raw_type: str | None) -> str:
    """Map a Meta message type to text/image/document/audio/video/other."""
    if raw_type in KNOWN_MESSAGE_TYPES:
        return raw_type
    return "other"


def iter_inbound_messages(payload: dict[str, Any]) -> Iterator[NormalizedInbound]:
    """Yield every user message carried by the payload.

    A single delivery may batch several entries, changes and messages.
    Changes whose field is not "messages" are skipped.

    Raises:
        InvalidPayloadError: If a message lacks its id or sender.
    """
    for value in _iter_message_values(payload):
        names = _contact_names(value)
        for message in value.get("messages") or []:
            yield _normalize_message(message, names)


def iter_status_updates(payload: dict[str, Any]) -> Iterator[StatusUpdate]:
    """Yield delivery status updates for outbound messages."""
    for value in _iter_message_values(payload):
        for status in value.get("statuses") or []:
            message_id = status.get("id")
            state = status.get("status")
            if not message_id or not state:
                continue
            yield StatusUpdate(
                message_id=str(message_id),
                status=str(state),
                timestamp=_parse_timestamp(status.get("timestamp")),
            )


def get_phone_number_id(payload: dict[str, Any]) -> str | None:
    """Extract phone_number_id from Meta payload.

    Args:
        payload: Raw webhook payload from Meta Cloud API.

    Returns:
        phone_number_id if found, None otherwise.
    """
    for value in _iter_message_values(payload):
        metadata = value.get("metadata") or {}
        phone_number_id = metadata.get("phone_number_id")
        if phone_number_id:
            return str(phone_number_id)
    return None


def _iter_message_values(payload: dict[str, Any]) -> Iterator[dict[str, Any]]:
    if not isinstance(payload, dict):
        return
    for entry in payload.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        for change in entry.get("changes") or []:
            if not isinstance(change, dict) or change.get("field") != "messages":
                continue
            value = change.get("value")
            if isinstance(value, dict):
                yield value


def _contact_names(value: dict[str, Any]) -> dict[str, str]:
    names: dict[str, str] = {}
    for contact in value.get("contacts") or []:
        wa_id = contact.get("wa_id")
        name = (contact.get("profile") or {}).get("name")
        if wa_id and name:
            names[str(wa_id)] = str(name)
    return names


def _normalize_message(
    message: dict[str, Any], names: dict[str, str]
) -> NormalizedInbound:
    message_id = message.get("id")
    if not message_id or not isinstance(message_id, str):
        raise InvalidPayloadError("missing or invalid message_id")

    sender_phone = message.get("from", "")
    if not sender_phone:
        raise InvalidPayloadError("missing sender phone number")

    raw_type = message.get("type", "unknown")

    text = None
    if raw_type == "text":
        text_obj = message.get("text", {})
        text = text_obj.get("body") if isinstance(text_obj, dict) else None

    return NormalizedInbound(
        message_id=message_id,
        provider="meta",
        received_at=_parse_timestamp(message.get("timestamp"))
        or datetime.now(timezone.utc),
        kind=normalize_type(raw_type),
        from_phone=str(sender_phone),
        text=text,
        raw_kind=str(raw_type),
        contact_name=names.get(str(sender_phone)),
    )


def _parse_timestamp(value: Any) -> datetime | None:
    """Meta timestamps are unix seconds as strings."""
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None
