"""Conversation turns and role vocabulary."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    UNKNOWN = "unknown"


_ROLE_NAMES: dict[str, Role] = {
    "system": Role.SYSTEM,
    "user": Role.USER,
    "assistant": Role.ASSISTANT,
    "chatbot": Role.ASSISTANT,
}


def map_role(name: Any) -> Role:
    """Map a stored or provider role name to a Role; unmapped names give Role.UNKNOWN."""
    if not isinstance(name, str):
        return Role.UNKNOWN
    return _ROLE_NAMES.get(name.strip().lower(), Role.UNKNOWN)


@dataclass(frozen=True)
class Turn:
    role: Role
    text: str

    @property
    def is_valid(self) -> bool:
        return self.role is not Role.UNKNOWN and bool(self.text.strip())

    @property
    def char_length(self) -> int:
        return len(self.text)

    def to_message(self) -> dict[str, str]:
        """Return the {role, content} pair sent to the completion provider."""
        if self.role is Role.UNKNOWN:
            raise ValueError("Turn with unknown role cannot be sent")
        return {"role": self.role.value, "content": self.text}

    def to_record(self) -> dict[str, str]:
        return {"role": self.role.value, "message": self.text}

    @classmethod
    def from_record(cls, record: Any) -> Turn:
        """Build a turn from a stored record; malformed records become invalid turns."""
        if not isinstance(record, dict):
            return cls(Role.UNKNOWN, "")
        text = record.get("message")
        return cls(map_role(record.get("role")), text if isinstance(text, str) else "")


def system_turn(text: str) -> Turn:
    return Turn(Role.SYSTEM, text)


def user_turn(text: str) -> Turn:
    return Turn(Role.USER, text)


def assistant_turn(text: str) -> Turn:
    return Turn(Role.ASSISTANT, text)
