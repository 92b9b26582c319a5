"""In-memory collaborators for conversation tests.

These are NOT fixtures - they are regular classes imported by test modules.
"""

from __future__ import annotations

from zenmind.conversation.handlers import GeneratedReply
from zenmind.conversation.phases import InboundMessage, Phase

USER_ID = "user-1"
PHONE = "+5511999998888"


def text_message(content: str, user_id: str = USER_ID) -> InboundMessage:
    return InboundMessage(user_id=user_id, phone_number=PHONE, content=content)


class FakeHistoryStore:
    """History store backed by lists, with optional failures."""

    def __init__(
        self,
        outbound: list[str] | None = None,
        phase: Phase | None = None,
        history: list[dict[str, str]] | None = None,
    ) -> None:
        self.outbound = list(outbound or [])
        self.phase = phase
        self.history = list(history or [])
        self.saved_phases: list[Phase] = []
        self.fail_reads = False
        self.fail_save = False

    def _check(self) -> None:
        if self.fail_reads:
            raise RuntimeError("history store unavailable")

    def count_outbound_messages(self, user_id: str) -> int:
        self._check()
        return len(self.outbound)

    def get_outbound_messages(self, user_id: str) -> list[str]:
        self._check()
        return list(self.outbound)

    def get_last_outbound_message(self, user_id: str) -> str | None:
        self._check()
        return self.outbound[-1] if self.outbound else None

    def get_phase(self, user_id: str) -> Phase | None:
        self._check()
        return self.phase

    def save_phase(self, user_id: str, phase: Phase) -> None:
        if self.fail_save:
            raise RuntimeError("phase save failed")
        self.phase = phase
        self.saved_phases.append(phase)

    def get_history(self, user_id: str) -> list[dict[str, str]]:
        self._check()
        return list(self.history)


class FakeMessenger:
    """Records sends. fail_all or fail_texts make sends raise."""

    def __init__(self, store: FakeHistoryStore | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail_all = False
        self.fail_texts: set[str] = set()
        self._store = store

    def send_message(self, phone_number: str, text: str, **options):
        if self.fail_all or text in self.fail_texts:
            raise RuntimeError("provider unavailable")
        self.sent.append((phone_number, text))
        if self._store is not None:
            self._store.outbound.append(text)
        return {"message_id": f"wamid.{len(self.sent)}"}

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.sent]


class FakeReplyGenerator:
    """Returns queued replies in order, then a default one."""

    def __init__(self, *replies: str, default: str = "Me conta mais!") -> None:
        self.replies = list(replies)
        self.default = default
        self.calls: list[tuple[str, str, str]] = []

    def generate_reply(self, user_text, user_id, variant) -> GeneratedReply:
        self.calls.append((user_text, user_id, variant.value))
        text = self.replies.pop(0) if self.replies else self.default
        return GeneratedReply(text=text, history_used=3)


class LogRecorder:
    """Simple recorder to capture log calls deterministically."""

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, level: str, *args, **kwargs):
        self.calls.append((level, args, kwargs))

    def info(self, *args, **kwargs):
        self._record("info", *args, **kwargs)

    def warning(self, *args, **kwargs):
        self._record("warning", *args, **kwargs)

    def error(self, *args, **kwargs):
        self._record("error", *args, **kwargs)

    def exception(self, *args, **kwargs):
        self._record("exception", *args, **kwargs)

    def debug(self, *args, **kwargs):
        self._record("debug", *args, **kwargs)

    def levels(self) -> list[str]:
        return [level for level, _, _ in self.calls]

    def messages(self) -> list[str]:
        return [args[0] for _, args, _ in self.calls if args]

    def get_all_logged_content(self) -> str:
        """Concatenate all args and kwargs from all calls into one string."""
        parts = []
        for level, args, kwargs in self.calls:
            parts.append(str(args))
            parts.append(str(kwargs))
        return " ".join(parts)
