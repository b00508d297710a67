"""Markdown-like model output to Telegram HTML.

The translator is syntactic and total: any input yields a string, and markers
that do not pair up are left as literal characters. Rendering runs in stages:

1. fenced blocks (```` ```lang ```` ... ```` ``` ````) are stashed as ``<pre>``
2. inline code spans are stashed as ``<code>``
3. emphasis markers are resolved innermost-first into ``<b>``, ``<i>``, ``<s>``
4. list lines are normalized
5. stashed code is restored in extraction order

Stashed code is represented in the working text by a single code point picked
per call from those that do not occur in the input, so no input character is
reserved and placeholders cannot collide with real text.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field

BULLET = "•"

_FENCE_RE = re.compile(r"```(\w+)?\n(.*?)\n```", re.DOTALL | re.ASCII)
_INLINE_CODE_RE = re.compile(r"`([^`]+)`")
_BULLET_LINE_RE = re.compile(r"^\s*[-*]\s+(.+)$", re.ASCII)
_NUMBERED_LINE_RE = re.compile(r"^\s*(\d+)\.\s+(.+)$", re.ASCII)

# Order matters: on equal start positions the earlier entry wins.
_EMPHASIS_PATTERNS: tuple[tuple[str, str, re.Pattern[str]], ...] = (
    ("**", "b", re.compile(r"\*\*(.*?)\*\*")),
    ("__", "b", re.compile(r"__(.*?)__")),
    ("*", "i", re.compile(r"\*(.*?)\*")),
    ("_", "i", re.compile(r"_(.*?)_")),
    ("~~", "s", re.compile(r"~~(.*?)~~")),
    ("~", "s", re.compile(r"~(.*?)~")),
)

_PRIVATE_USE_RANGES = (
    (0xE000, 0xF900),
    (0xF0000, 0xFFFFE),
    (0x100000, 0x10FFFE),
)


@dataclass(frozen=True)
class MarkupSpan:
    start: int
    end: int
    content: str
    marker: str
    tag: str

    def wrap(self, inner: str) -> str:
        return f"<{self.tag}>{inner}</{self.tag}>"


@dataclass
class _Frame:
    text: str
    patterns: tuple[tuple[str, str, re.Pattern[str]], ...]
    pending: MarkupSpan | None = None


@dataclass
class _Stash:
    sentinel: str
    rendered: list[str] = field(default_factory=list)

    def put(self, rendered: str) -> str:
        self.rendered.append(rendered)
        return self.sentinel

    def restore(self, text: str) -> str:
        if not self.rendered:
            return text
        pieces = iter(self.rendered)
        head, *rest = text.split(self.sentinel)
        return head + "".join(next(pieces, "") + part for part in rest)


def _free_code_points(text: str, count: int) -> list[str] | None:
    used = set(text)
    found: list[str] = []
    for start, stop in _PRIVATE_USE_RANGES:
        for code in range(start, stop):
            char = chr(code)
            if char in used:
                continue
            found.append(char)
            if len(found) == count:
                return found
    return None


def _render_fence(language: str, body: str) -> str:
    if language:
        return f'<pre language="{language}">{html.escape(body)}</pre>'
    return f"<pre>{html.escape(body)}</pre>"


def _render_inline_code(body: str) -> str:
    return f"<code>{html.escape(body, quote=False)}</code>"


def _live_patterns(
    text: str, patterns: tuple[tuple[str, str, re.Pattern[str]], ...]
) -> tuple[tuple[tuple[str, str, re.Pattern[str]], ...], MarkupSpan | None]:
    live: list[tuple[str, str, re.Pattern[str]]] = []
    best: MarkupSpan | None = None
    for entry in patterns:
        marker, tag, pattern = entry
        match = pattern.search(text)
        if match is None:
            continue
        live.append(entry)
        if best is None or match.start() > best.start:
            best = MarkupSpan(match.start(), match.end(), match.group(1), marker, tag)
    return tuple(live), best


def find_innermost_span(text: str) -> MarkupSpan | None:
    """Return the span to resolve next.

    Each pattern contributes its leftmost non-greedy match; the match that
    starts latest in the string wins.
    """
    return _live_patterns(text, _EMPHASIS_PATTERNS)[1]


def resolve_emphasis(text: str) -> str:
    """Replace paired emphasis markers with tags, inner content first.

    Works on an explicit frame stack. A frame whose text still has a span
    pushes a child frame for the span content; when the child is finished its
    result is wrapped and spliced back into the parent, which is rescanned.
    A pattern that finds no match in a frame is dropped for that frame and
    its children: splices only remove markers and insert tags, so they never
    create a new match.
    """
    stack = [_Frame(text, _EMPHASIS_PATTERNS)]
    while True:
        frame = stack[-1]
        frame.patterns, span = _live_patterns(frame.text, frame.patterns)
        if span is not None:
            frame.pending = span
            stack.append(_Frame(span.content, frame.patterns))
            continue
        stack.pop()
        if not stack:
            return frame.text
        parent = stack[-1]
        done = parent.pending
        assert done is not None
        parent.text = parent.text[: done.start] + done.wrap(frame.text) + parent.text[done.end :]
        parent.pending = None


def normalize_list_lines(text: str) -> str:
    lines: list[str] = []
    for line in text.split("\n"):
        bullet = _BULLET_LINE_RE.match(line)
        if bullet:
            lines.append(f"{BULLET} {bullet.group(1)}")
            continue
        numbered = _NUMBERED_LINE_RE.match(line)
        if numbered:
            lines.append(f"{numbered.group(1)}. {numbered.group(2)}")
            continue
        lines.append(line)
    return "\n".join(lines)


def render(text: str | None) -> str:
    """Render model output as Telegram HTML. Never raises."""
    if not text:
        return ""
    sentinels = _free_code_points(text, 2)
    if sentinels is None:
        return text
    fences = _Stash(sentinels[0])
    inline = _Stash(sentinels[1])

    text = _FENCE_RE.sub(lambda m: fences.put(_render_fence(m.group(1) or "", m.group(2))), text)
    text = _INLINE_CODE_RE.sub(lambda m: inline.put(_render_inline_code(m.group(1))), text)
    text = resolve_emphasis(text)
    text = normalize_list_lines(text)
    # Inline spans may enclose a fence placeholder, so they go back first.
    text = inline.restore(text)
    return fences.restore(text)
