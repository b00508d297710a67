"""Bounded prompt windows over stored conversation history."""

from __future__ import annotations

from coralbot.memory.context_store import ContextStore
from coralbot.turns import Role, Turn, system_turn, user_turn

WINDOW_MAX_TURNS = 10
WINDOW_MAX_CHARS = 2000
STORED_MAX_TURNS = 20


class ContextManager:
    """Builds the turn window sent with each request and persists history.

    Parameters
    ----------
    store:
        Adapter over the ``user_context`` table.
    persona:
        Text of the synthetic system turn that opens every window. It is
        regenerated per build and never written to the store.
    """

    def __init__(
        self,
        store: ContextStore,
        persona: str,
        *,
        max_turns: int = WINDOW_MAX_TURNS,
        max_chars: int = WINDOW_MAX_CHARS,
        stored_max_turns: int = STORED_MAX_TURNS,
    ) -> None:
        self._store = store
        self._persona = persona
        self.max_turns = max_turns
        self.max_chars = max_chars
        self.stored_max_turns = stored_max_turns

    def load_history(self, user_id: int) -> list[Turn]:
        return self._store.load_context(user_id)

    def build_window(self, history: list[Turn], new_user_text: str) -> list[Turn]:
        """Return system turn + newest eligible history turns + the new user turn.

        History is scanned newest first. Invalid turns are skipped; the scan
        stops at the first valid turn that would exceed either bound, so older
        turns are never reconsidered.
        """
        selected: list[Turn] = []
        count = 0
        char_len = 0
        for turn in reversed(history):
            if not turn.is_valid:
                continue
            length = turn.char_length
            if count >= self.max_turns or char_len + length > self.max_chars:
                break
            selected.append(turn)
            count += 1
            char_len += length
        selected.reverse()
        return [system_turn(self._persona), *selected, user_turn(new_user_text)]

    def save_window(self, user_id: int, turns: list[Turn]) -> list[Turn]:
        """Persist the newest turns for user_id as a single row replace; returns what was stored."""
        kept = [turn for turn in turns if turn.is_valid and turn.role is not Role.SYSTEM]
        if len(kept) > self.stored_max_turns:
            kept = kept[-self.stored_max_turns :]
        self._store.save_context(user_id, kept)
        return kept
