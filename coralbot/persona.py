"""Persona text used as the synthetic system turn of every prompt window."""

from __future__ import annotations

from pathlib import Path

DEFAULT_PERSONA = (
    "You are Cohere's Coral, a helpful AI assistant. "
    "Keep context of the conversation and provide relevant responses."
)


def get_persona(profile_name: str, repo_root: Path | None = None) -> str:
    """Return persona text from config/personas/<profile>.md, or the built-in Coral persona."""
    if repo_root is None:
        repo_root = Path(__file__).resolve().parent.parent
    persona_file = repo_root / "config" / "personas" / f"{profile_name}.md"
    if persona_file.exists():
        text = persona_file.read_text(encoding="utf-8").strip()
        if text:
            return text
    return DEFAULT_PERSONA
