"""Reply pipeline: history window -> completion -> stored history -> rendered reply."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any

from coralbot.context_manager import ContextManager
from coralbot.llm import CompletionError, CompletionProvider
from coralbot.markup import render
from coralbot.memory.event_log import EventLogStore
from coralbot.turns import Turn, assistant_turn, user_turn

HTML_PARSE_MODE = "HTML"
APOLOGY = "Sorry, I couldn't generate a response. Please try again later."
NOTHING_TO_SEND = "No valid messages available to generate a response."


class ReplyOutcome(str, Enum):
    OK = "ok"
    NOTHING_TO_SEND = "nothing_to_send"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class Reply:
    outcome: ReplyOutcome
    text: str
    parse_mode: str | None = None
    plain_text: str = ""


class ReplyPipeline:
    """Synchronous reply flow for one user message.

    Store errors propagate to the caller. Completion errors are logged with
    their raw text and turned into a generic apology, so the user never sees
    upstream error details.
    """

    def __init__(
        self,
        manager: ContextManager,
        provider: CompletionProvider,
        events: EventLogStore | None = None,
    ) -> None:
        self._manager = manager
        self._provider = provider
        self._events = events

    def _record(
        self,
        event_type: str,
        payload: dict[str, Any],
        user_id: int | None,
        decision: str = "allow",
    ) -> None:
        if self._events is not None:
            self._events.record(event_type, payload, user_id=user_id, decision=decision)

    def reply(self, user_id: int, text: str, cancelled: threading.Event | None = None) -> Reply:
        """Answer one message.

        When ``cancelled`` is set by the time the completion returns, the
        caller has already given up on the reply: nothing is saved and a
        degraded outcome is returned.
        """
        user_text = (text or "").strip()
        if not user_text:
            return Reply(ReplyOutcome.NOTHING_TO_SEND, NOTHING_TO_SEND)

        history = self._manager.load_history(user_id)
        window = self._manager.build_window(history, user_text)
        self._record(
            "context_before_request",
            {
                "stored_turns": len(history),
                "window_turns": len(window),
                "history_chars": sum(turn.char_length for turn in window[1:-1]),
            },
            user_id,
        )

        try:
            answer, usage = self._provider.chat(window)
        except CompletionError as exc:
            self._record("completion_error", {"error": str(exc)}, user_id, decision="deny")
            return Reply(ReplyOutcome.DEGRADED, APOLOGY)
        self._record("completion_received", {"chars": len(answer), "usage": usage}, user_id)

        if cancelled is not None and cancelled.is_set():
            self._record("reply_discarded", {"reason": "caller_timeout"}, user_id, decision="deny")
            return Reply(ReplyOutcome.DEGRADED, APOLOGY)

        self._manager.save_window(user_id, [*history, user_turn(user_text), assistant_turn(answer)])
        return Reply(ReplyOutcome.OK, render(answer), HTML_PARSE_MODE, plain_text=answer)

    def generate(self, prompt: list[Turn], fallback: str, *, user_id: int | None = None) -> str:
        """One-off generation outside conversation history; returns fallback on completion errors."""
        try:
            text, _usage = self._provider.chat(prompt)
        except CompletionError as exc:
            self._record("completion_error", {"error": str(exc), "purpose": "prompt"}, user_id, decision="deny")
            return fallback
        return text.strip() or fallback
