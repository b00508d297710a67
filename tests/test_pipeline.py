from __future__ import annotations

import tempfile
import threading
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

from coralbot.context_manager import ContextManager
from coralbot.llm import CohereProvider, CompletionError, CompletionProvider
from coralbot.memory.context_store import ContextStore, ContextStoreError
from coralbot.memory.engine import MemoryEngine
from coralbot.memory.event_log import EventLogStore
from coralbot.pipeline import APOLOGY, HTML_PARSE_MODE, ReplyOutcome, ReplyPipeline
from coralbot.turns import Role, Turn, assistant_turn, user_turn


class FakeProvider(CompletionProvider):
    def __init__(self, answer: str = "", error: str | None = None) -> None:
        self.answer = answer
        self.error = error
        self.calls: list[list[Turn]] = []

    def chat(self, turns: list[Turn]) -> tuple[str, dict[str, Any]]:
        self.calls.append(list(turns))
        if self.error is not None:
            raise CompletionError(self.error)
        return self.answer, {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5}


class ReplyPipelineTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        engine = MemoryEngine(Path(tmpdir.name) / "memory.db")
        engine.initialize()
        self.addCleanup(engine.close)
        self.conn = engine.connect()
        self.store = ContextStore(self.conn)
        self.events = EventLogStore(self.conn)
        self.manager = ContextManager(self.store, "persona")

    def _pipeline(self, provider: FakeProvider) -> ReplyPipeline:
        return ReplyPipeline(self.manager, provider, self.events)

    def test_blank_text_is_nothing_to_send(self) -> None:
        provider = FakeProvider("unused")
        reply = self._pipeline(provider).reply(1, "   ")
        self.assertEqual(reply.outcome, ReplyOutcome.NOTHING_TO_SEND)
        self.assertEqual(provider.calls, [])
        self.assertEqual(self.store.load_context(1), [])

    def test_reply_is_rendered_and_history_saved(self) -> None:
        provider = FakeProvider("Hello **there**")
        reply = self._pipeline(provider).reply(1, "  hi  ")
        self.assertEqual(reply.outcome, ReplyOutcome.OK)
        self.assertEqual(reply.text, "Hello <b>there</b>")
        self.assertEqual(reply.parse_mode, HTML_PARSE_MODE)
        self.assertEqual(reply.plain_text, "Hello **there**")
        self.assertEqual(
            self.store.load_context(1),
            [user_turn("hi"), assistant_turn("Hello **there**")],
        )

    def test_provider_receives_window(self) -> None:
        self.store.save_context(1, [user_turn("earlier"), assistant_turn("answer")])
        provider = FakeProvider("ok")
        self._pipeline(provider).reply(1, "again")
        sent = provider.calls[0]
        self.assertEqual(sent[0].role, Role.SYSTEM)
        self.assertEqual(sent[0].text, "persona")
        self.assertEqual(sent[1:], [user_turn("earlier"), assistant_turn("answer"), user_turn("again")])
        self.assertEqual(len(self.store.load_context(1)), 4)

    def test_history_grows_to_stored_limit(self) -> None:
        provider = FakeProvider("reply")
        pipeline = self._pipeline(provider)
        for i in range(15):
            pipeline.reply(1, f"message {i}")
        stored = self.store.load_context(1)
        self.assertEqual(len(stored), 20)
        self.assertEqual(stored[-2], user_turn("message 14"))
        self.assertEqual(len(provider.calls[-1]), 12)

    def test_upstream_failure_returns_generic_apology(self) -> None:
        provider = FakeProvider(error="Completion API error: invalid api token (HTTP code: 401)")
        reply = self._pipeline(provider).reply(1, "hi")
        self.assertEqual(reply.outcome, ReplyOutcome.DEGRADED)
        self.assertEqual(reply.text, APOLOGY)
        self.assertIsNone(reply.parse_mode)
        self.assertNotIn("401", reply.text)
        self.assertEqual(self.store.load_context(1), [])
        logged = self.events.latest(user_id=1)
        self.assertEqual(logged[0]["event_type"], "completion_error")
        self.assertIn("HTTP code: 401", logged[0]["payload"]["error"])

    def test_storage_failure_propagates(self) -> None:
        self.conn.execute("INSERT INTO user_context (user_id, messages) VALUES (1, 'garbage')")
        provider = FakeProvider("unused")
        with self.assertRaises(ContextStoreError):
            self._pipeline(provider).reply(1, "hi")
        self.assertEqual(provider.calls, [])

    def test_generate_falls_back_on_error(self) -> None:
        pipeline = self._pipeline(FakeProvider(error="boom"))
        self.assertEqual(pipeline.generate([user_turn("welcome")], "fallback", user_id=3), "fallback")
        ok = self._pipeline(FakeProvider("  Welcome aboard!  "))
        self.assertEqual(ok.generate([user_turn("welcome")], "fallback"), "Welcome aboard!")
        self.assertEqual(self.store.load_context(3), [])

    def test_pipeline_works_without_event_log(self) -> None:
        reply = ReplyPipeline(self.manager, FakeProvider("_ok_")).reply(2, "hi")
        self.assertEqual(reply.text, "<i>ok</i>")

    def test_reply_after_caller_gave_up_is_not_saved(self) -> None:
        cancelled = threading.Event()

        class SlowProvider(FakeProvider):
            def chat(self, turns: list[Turn]) -> tuple[str, dict[str, Any]]:
                cancelled.set()
                return super().chat(turns)

        reply = self._pipeline(SlowProvider("late answer")).reply(1, "hi", cancelled)
        self.assertEqual(reply.outcome, ReplyOutcome.DEGRADED)
        self.assertEqual(reply.text, APOLOGY)
        self.assertEqual(self.store.load_context(1), [])
        self.assertEqual(self.events.latest(limit=1, user_id=1)[0]["event_type"], "reply_discarded")

    def test_unset_cancel_flag_saves_normally(self) -> None:
        reply = self._pipeline(FakeProvider("ok")).reply(1, "hi", threading.Event())
        self.assertEqual(reply.outcome, ReplyOutcome.OK)
        self.assertEqual(len(self.store.load_context(1)), 2)

    def test_malformed_provider_payloads_stay_inside_the_pipeline(self) -> None:
        bodies = (
            b"\xff\xfe",
            b'{"message": {"content": [{"text": "hi"}]}, "usage": {"billed_units": {"input_tokens": "n/a"}}}',
        )
        outcomes = []
        for body in bodies:
            response = MagicMock()
            response.read.return_value = body
            response.__enter__.return_value = response
            with patch("coralbot.llm.request.urlopen", return_value=response):
                outcomes.append(ReplyPipeline(self.manager, CohereProvider("key"), self.events).reply(5, "hi"))
        self.assertEqual(outcomes[0].outcome, ReplyOutcome.DEGRADED)
        self.assertEqual(outcomes[0].text, APOLOGY)
        self.assertEqual(outcomes[1].outcome, ReplyOutcome.OK)
        self.assertEqual(outcomes[1].plain_text, "hi")


if __name__ == "__main__":
    unittest.main()
