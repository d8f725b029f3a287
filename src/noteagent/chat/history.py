"""Conversation history entries and the bounded history window."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Literal, Mapping, Sequence

__all__ = [
    "ChatRole",
    "DEFAULT_MAX_MESSAGES",
    "Message",
    "ChatHistory",
    "create_message",
    "user_message",
    "assistant_message",
    "system_message",
    "filter_by_role",
    "last_message",
    "last_message_by_role",
    "count_by_role",
    "truncate",
    "format_for_display",
]

LOGGER = logging.getLogger(__name__)

ChatRole = Literal["user", "assistant", "system"]
DEFAULT_MAX_MESSAGES = 50


@dataclass(frozen=True, slots=True)
class Message:
    """One conversation turn as exchanged with the agent."""

    content: str
    role: str = "user"

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "role": self.role}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Message":
        content = payload.get("content")
        role = payload.get("role") or "user"
        if not isinstance(content, str) or not isinstance(role, str):
            raise ValueError("Messages require string 'content' and 'role' fields")
        return cls(content=content, role=role)


def create_message(content: str, role: str = "user") -> Message:
    return Message(content=content, role=role)


def user_message(content: str) -> Message:
    return create_message(content, "user")


def assistant_message(content: str) -> Message:
    return create_message(content, "assistant")


def system_message(content: str) -> Message:
    return create_message(content, "system")


def filter_by_role(messages: Iterable[Message], role: str) -> list[Message]:
    return [message for message in messages if message.role == role]


def last_message(messages: Sequence[Message]) -> Message | None:
    return messages[-1] if messages else None


def last_message_by_role(messages: Iterable[Message], role: str) -> Message | None:
    return last_message(filter_by_role(messages, role))


def count_by_role(messages: Iterable[Message], role: str) -> int:
    return len(filter_by_role(messages, role))


def truncate(messages: Sequence[Message], max_count: int) -> list[Message]:
    """Keep the newest ``max_count`` messages, preserving their order."""

    if max_count <= 0:
        return []
    if len(messages) <= max_count:
        return list(messages)
    return list(messages[-max_count:])


def format_for_display(message: Message) -> str:
    label = message.role[:1].upper() + message.role[1:]
    return f"{label}: {message.content}"


class ChatHistory:
    """Ordered conversation turns capped to a sliding window.

    Once the cap is exceeded the oldest entries are dropped first.
    """

    def __init__(self, messages: Iterable[Message] = (), *, max_messages: int = DEFAULT_MAX_MESSAGES) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._max_messages = max_messages
        self._messages: list[Message] = truncate(list(messages), max_messages)

    @property
    def max_messages(self) -> int:
        return self._max_messages

    @property
    def messages(self) -> tuple[Message, ...]:
        """Snapshot of the current window; later appends do not affect it."""

        return tuple(self._messages)

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        overflow = len(self._messages) - self._max_messages
        if overflow > 0:
            del self._messages[:overflow]
            LOGGER.debug("History trimmed by %d message(s) to cap %d", overflow, self._max_messages)
        return message

    def extend(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.append(message)

    def clear(self) -> None:
        self._messages.clear()

    def replace(self, messages: Iterable[Message]) -> None:
        self._messages = truncate(list(messages), self._max_messages)

    def last(self) -> Message | None:
        return last_message(self._messages)

    def to_payload(self) -> list[Dict[str, Any]]:
        return [message.to_dict() for message in self._messages]

    @classmethod
    def from_payload(cls, payload: Iterable[Mapping[str, Any]], *, max_messages: int = DEFAULT_MAX_MESSAGES) -> "ChatHistory":
        return cls((Message.from_dict(item) for item in payload), max_messages=max_messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __bool__(self) -> bool:
        return bool(self._messages)
