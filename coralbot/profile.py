"""Profile configuration loader and path resolver."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from coralbot.context_manager import STORED_MAX_TURNS, WINDOW_MAX_CHARS, WINDOW_MAX_TURNS
from coralbot.llm import DEFAULT_MODEL


@dataclass(frozen=True)
class ProfilePaths:
    base_data_dir: Path
    db_path: Path
    secrets_dir: Path


@dataclass(frozen=True)
class Profile:
    name: str
    display_name: str
    model: str
    max_tokens: int
    temperature: float
    llm_timeout_seconds: int
    window_max_turns: int
    window_max_chars: int
    stored_max_turns: int
    context_ttl_hours: int
    cleanup_interval_seconds: int
    simulate_typing: bool
    paths: ProfilePaths


class ProfileError(ValueError):
    """Raised when profile configuration is invalid."""


def _validate_raw_profile(raw: dict[str, Any], expected_name: str) -> None:
    required = {"name", "display_name"}
    missing = required.difference(raw.keys())
    if missing:
        missing_joined = ", ".join(sorted(missing))
        raise ProfileError(f"Missing required profile keys: {missing_joined}")

    if raw["name"] != expected_name:
        raise ProfileError(
            f"Profile filename/name mismatch: expected '{expected_name}', got '{raw['name']}'"
        )

    for key in ("window_max_turns", "window_max_chars", "stored_max_turns", "context_ttl_hours"):
        if key in raw and (not isinstance(raw[key], int) or raw[key] < 1):
            raise ProfileError(f"{key} must be a positive integer")


def load_profile(
    profile_name: str,
    repo_root: Path | None = None,
    data_root: Path | None = None,
) -> Profile:
    """Load a profile from config and resolve data paths."""
    if repo_root is None:
        repo_root = Path(__file__).resolve().parent.parent

    profile_path = repo_root / "config" / "profiles" / f"{profile_name}.yaml"
    if not profile_path.exists():
        raise ProfileError(f"Profile not found: {profile_path}")

    with profile_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        raise ProfileError(f"Profile file must contain a mapping: {profile_path}")

    _validate_raw_profile(raw, profile_name)

    base_data_dir = (data_root or Path.home() / "agentdata") / profile_name
    paths = ProfilePaths(
        base_data_dir=base_data_dir,
        db_path=base_data_dir / "memory.db",
        secrets_dir=base_data_dir / "secrets",
    )

    return Profile(
        name=raw["name"],
        display_name=raw["display_name"],
        model=str(raw.get("model", DEFAULT_MODEL)).strip() or DEFAULT_MODEL,
        max_tokens=int(raw.get("max_tokens", 512)),
        temperature=float(raw.get("temperature", 0.7)),
        llm_timeout_seconds=max(5, min(120, int(raw.get("llm_timeout_seconds", 60)))),
        window_max_turns=int(raw.get("window_max_turns", WINDOW_MAX_TURNS)),
        window_max_chars=int(raw.get("window_max_chars", WINDOW_MAX_CHARS)),
        stored_max_turns=int(raw.get("stored_max_turns", STORED_MAX_TURNS)),
        context_ttl_hours=int(raw.get("context_ttl_hours", 24)),
        cleanup_interval_seconds=max(60, int(raw.get("cleanup_interval_seconds", 3600))),
        simulate_typing=bool(raw.get("simulate_typing", True)),
        paths=paths,
    )


def ensure_profile_directories(profile: Profile) -> None:
    """Create profile directories without touching existing data."""
    profile.paths.base_data_dir.mkdir(parents=True, exist_ok=True)
    profile.paths.secrets_dir.mkdir(parents=True, exist_ok=True)
