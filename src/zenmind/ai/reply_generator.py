"""OpenAI-backed reply generation for the goal and expenses phases.

The model sees the system prompt for the phase, the user's full transcript
and the current message. Any failure yields the phase's canned fallback;
generate_reply never raises.

Security: NEVER log message text or model output.
"""

from __future__ import annotations

import os
from typing import Any, Protocol

from openai import OpenAI

from zenmind.conversation.handlers import GeneratedReply
from zenmind.infra.time import utc_now
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import safe_log_context

from .prompts import MODEL_SETTINGS, PromptVariant, build_system_prompt

logger = get_logger(__name__)

DEFAULT_MODEL = "gpt-4o"


class ChatHistorySource(Protocol):
    def get_history(self, user_id: str) -> list[dict[str, str]]:
        ...


class OpenAIReplyGenerator:
    """Generate Arnaldo's next message with the chat completions API."""

    def __init__(
        self,
        history_store: ChatHistorySource,
        client: Any | None = None,
        model: str | None = None,
    ) -> None:
        self._history_store = history_store
        self._client = client
        self._model = model or os.environ.get("OPENAI_MODEL", DEFAULT_MODEL)

    @property
    def client(self) -> Any:
        """OpenAI client, created on first use."""
        if self._client is None:
            api_key = os.environ.get("OPENAI_API_KEY", "")
            if not api_key:
                raise RuntimeError("OPENAI_API_KEY environment variable not set")
            self._client = OpenAI(api_key=api_key)
        return self._client

    def build_messages(
        self, user_text: str, user_id: str, variant: PromptVariant
    ) -> tuple[list[dict[str, str]], int]:
        """Chat messages for the request plus the number of history turns used."""
        history = list(self._history_store.get_history(user_id))

        # The inbound message is stored before processing; do not send it twice
        if history and history[-1] == {"role": "user", "content": user_text}:
            history.pop()

        messages = [
            {"role": "system", "content": build_system_prompt(variant, utc_now().date())},
            *history,
            {"role": "user", "content": user_text},
        ]
        return messages, len(history)

    def generate_reply(
        self, user_text: str, user_id: str, variant: PromptVariant
    ) -> GeneratedReply:
        settings = MODEL_SETTINGS[variant]
        try:
            messages, history_used = self.build_messages(user_text, user_id, variant)
            response = self.client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
            )
            text = (response.choices[0].message.content or "").strip()
            if not text:
                raise ValueError("empty completion")
        except Exception as e:
            logger.exception(
                "reply generation failed, using fallback",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=user_id,
                        variant=variant.value,
                        error_type=type(e).__name__,
                    )
                },
            )
            return GeneratedReply(text=settings.fallback_reply, history_used=0)

        logger.info(
            "reply generated",
            extra={
                "extra_fields": safe_log_context(
                    user_id=user_id,
                    variant=variant.value,
                    model=self._model,
                    history_used=history_used,
                    reply_len=len(text),
                )
            },
        )
        return GeneratedReply(text=text, history_used=history_used)
