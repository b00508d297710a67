"""Minimal Cohere v2 chat client."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib import error, request

from coralbot.turns import Turn

DEFAULT_MODEL = "command-r-plus"
COHERE_BASE = "https://api.cohere.ai/v2"


class CompletionError(RuntimeError):
    """Raised when the completion service is unreachable or returns an unusable answer."""


def _token_count(value: Any) -> int:
    # Usage only feeds the event log; unreadable counts read as zero.
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def _parse_usage(data: dict[str, Any]) -> dict[str, Any]:
    usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
    billed = usage.get("billed_units") if isinstance(usage.get("billed_units"), dict) else {}
    prompt_tokens = _token_count(billed.get("input_tokens"))
    completion_tokens = _token_count(billed.get("output_tokens"))
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
    }


def _response_text(data: Any) -> str:
    message = data.get("message") if isinstance(data, dict) else None
    parts = message.get("content") if isinstance(message, dict) else None
    if not isinstance(parts, list) or not parts:
        raise CompletionError("Completion API unexpected response format")
    return "".join(
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


def read_secret(secrets_dir: Path, filename: str) -> str | None:
    """Read first line of a secret file; return None if missing or empty."""
    path = secrets_dir / filename
    if not path.exists():
        return None
    raw = path.read_text(encoding="utf-8").strip()
    return raw if raw else None


def complete(
    messages: list[dict[str, str]],
    api_key: str,
    *,
    base_url: str | None = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 512,
    temperature: float = 0.7,
    timeout: int = 60,
) -> tuple[str, dict[str, Any]]:
    """
    Call the Cohere v2 chat endpoint.
    Returns (text, usage) where text joins every content part of the reply and
    usage has prompt_tokens, completion_tokens, total_tokens.
    Messages with blank content are dropped before sending.
    """
    payload_messages = [
        {"role": msg["role"], "content": msg["content"]}
        for msg in messages
        if isinstance(msg.get("content"), str) and msg["content"].strip()
    ]
    if not payload_messages:
        raise CompletionError("No valid message found for the request")

    url = (base_url or COHERE_BASE).rstrip("/") + "/chat"
    body = {
        "model": model,
        "messages": payload_messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    encoded = json.dumps(body).encode("utf-8")
    headers: dict[str, str] = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "Authorization": f"Bearer {api_key}",
    }
    req = request.Request(url, data=encoded, headers=headers, method="POST")
    try:
        with request.urlopen(req, timeout=timeout) as response:  # noqa: S310
            raw_bytes = response.read()
    except error.HTTPError as exc:
        body_read = exc.read().decode("utf-8", errors="replace")
        try:
            detail = json.loads(body_read).get("message") or "Unknown error"
        except (ValueError, AttributeError):
            detail = body_read or "Unknown error"
        raise CompletionError(f"Completion API error: {detail} (HTTP code: {exc.code})") from exc
    except OSError as exc:
        raise CompletionError(f"Error making request to completion API: {exc}") from exc

    try:
        raw = raw_bytes.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CompletionError("Completion API returned a body that is not UTF-8") from exc

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise CompletionError("Completion API returned invalid JSON") from exc

    text = _response_text(data)
    if not text.strip():
        raise CompletionError("Completion API returned an empty reply")
    return text, _parse_usage(data)


class CompletionProvider(ABC):
    """Turns in, generated text out."""

    @abstractmethod
    def chat(self, turns: list[Turn]) -> tuple[str, dict[str, Any]]:
        """Return (text, usage) for an ordered list of turns; raise CompletionError on failure."""


class CohereProvider(CompletionProvider):
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 512,
        temperature: float = 0.7,
        timeout: int = 60,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self.model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout

    def chat(self, turns: list[Turn]) -> tuple[str, dict[str, Any]]:
        return complete(
            [turn.to_message() for turn in turns],
            self._api_key,
            base_url=self._base_url,
            model=self.model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            timeout=self._timeout,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model!r})"
