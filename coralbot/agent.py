"""Coral relay bot runtime entry point."""

from __future__ import annotations

import argparse
import sqlite3
import threading
import time
from pathlib import Path

from coralbot.memory.context_store import ContextStore
from coralbot.memory.engine import MemoryEngine, open_connection
from coralbot.memory.event_log import EventLogStore
from coralbot.persona import get_persona
from coralbot.profile import Profile, ensure_profile_directories, load_profile
from coralbot.telegram_bot import TelegramBot


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Coral Telegram relay bot")
    parser.add_argument("--profile", required=True, help="Profile name, e.g. coral")
    parser.add_argument(
        "--repo-root",
        default=None,
        help="Optional repo root override for config loading",
    )
    parser.add_argument(
        "--data-root",
        default=None,
        help="Optional data directory override (default: ~/agentdata)",
    )
    return parser


def purge_stale_contexts(profile: Profile) -> int:
    """Delete expired conversation rows and record the sweep."""
    conn = open_connection(profile.paths.db_path)
    try:
        removed = ContextStore(conn).purge_stale(profile.context_ttl_hours)
        EventLogStore(conn).record(
            "context_purged",
            {"removed": removed, "ttl_hours": profile.context_ttl_hours},
            decision="allow",
        )
        return removed
    finally:
        conn.close()


def main() -> int:
    args = build_parser().parse_args()
    repo_root = Path(args.repo_root).resolve() if args.repo_root else None
    data_root = Path(args.data_root).expanduser().resolve() if args.data_root else None
    profile = load_profile(args.profile, repo_root=repo_root, data_root=data_root)
    ensure_profile_directories(profile)

    memory_engine = MemoryEngine(profile.paths.db_path)
    memory_engine.initialize()
    events = EventLogStore(memory_engine.connect())
    events.record("agent_boot", {"profile": profile.name}, decision="allow")

    running = threading.Event()
    running.set()

    def _purge_loop() -> None:
        # Wakes every second so shutdown is not delayed by the sweep interval.
        next_run = time.monotonic() + profile.cleanup_interval_seconds
        while running.is_set():
            if time.monotonic() >= next_run:
                try:
                    purge_stale_contexts(profile)
                except sqlite3.Error as exc:
                    events.record("context_purge_error", {"error": str(exc)}, decision="deny")
                next_run = time.monotonic() + profile.cleanup_interval_seconds
            time.sleep(1)

    purge_thread = threading.Thread(target=_purge_loop, daemon=True)
    purge_thread.start()

    telegram_bot = TelegramBot(
        profile=profile,
        events=events,
        persona=get_persona(profile.name, repo_root=repo_root),
    )
    try:
        started = telegram_bot.start()
    finally:
        running.clear()
        purge_thread.join(timeout=2)
        telegram_bot.stop()
        events.record("agent_shutdown", {"profile": profile.name}, decision="allow")
        memory_engine.close()

    return 0 if started else 1


if __name__ == "__main__":
    raise SystemExit(main())
