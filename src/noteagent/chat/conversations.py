"""Persisted conversation history, archived conversations and note snapshots."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Sequence

from ..notes.codec import decode_document, encode_document
from ..notes.document import Document
from ..storage import KeyValueStore
from .history import ChatHistory, Message

__all__ = ["ConversationStore", "ConversationArchive"]

LOGGER = logging.getLogger(__name__)


class ConversationStore:
    """Reads and writes chat state through a :class:`KeyValueStore`.

    Keys: ``history_<persist_key>`` for the live history,
    ``conversation_<persist_key>`` for archived conversations and
    ``note_<note_id>`` for document snapshots.
    """

    def __init__(self, store: KeyValueStore, persist_key: str) -> None:
        if not persist_key:
            raise ValueError("persist_key is required")
        self._store = store
        self._persist_key = persist_key

    @property
    def persist_key(self) -> str:
        return self._persist_key

    @property
    def history_key(self) -> str:
        return f"history_{self._persist_key}"

    @property
    def archive_key(self) -> str:
        return f"conversation_{self._persist_key}"

    @staticmethod
    def document_key(note_id: str) -> str:
        return f"note_{note_id}"

    # History ---------------------------------------------------------------
    def load_history(self) -> list[Message]:
        payload = self._read_json(self.history_key)
        if not isinstance(payload, list):
            return []
        return _decode_messages(payload, self.history_key)

    def save_history(self, messages: Iterable[Message]) -> None:
        self._store.set(self.history_key, json.dumps([message.to_dict() for message in messages]))

    # Archived conversations ----------------------------------------------
    def load_archive(self) -> list[list[Message]]:
        payload = self._read_json(self.archive_key)
        if not isinstance(payload, list):
            return []
        return [_decode_messages(item, self.archive_key) for item in payload if isinstance(item, list)]

    def save_archive(self, conversations: Sequence[Sequence[Message]]) -> None:
        body = [[message.to_dict() for message in conversation] for conversation in conversations]
        self._store.set(self.archive_key, json.dumps(body))

    def clear_archive(self) -> None:
        self._store.remove(self.archive_key)

    # Documents -------------------------------------------------------------
    def save_document(self, document: Document) -> None:
        self._store.set(self.document_key(document.id), json.dumps(encode_document(document)))

    def load_document(self, note_id: str) -> Document | None:
        """Return the stored snapshot; a malformed snapshot raises ``SchemaError``."""

        payload = self._read_json(self.document_key(note_id))
        if payload is None:
            return None
        return decode_document(payload)

    def remove_document(self, note_id: str) -> None:
        self._store.remove(self.document_key(note_id))

    def _read_json(self, key: str) -> Any:
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Failed to parse saved value for %s: %s", key, exc)
            return None


def _decode_messages(payload: list[Any], key: str) -> list[Message]:
    messages: list[Message] = []
    for item in payload:
        try:
            messages.append(Message.from_dict(item))
        except (AttributeError, ValueError):
            LOGGER.warning("Skipping malformed message stored under %s", key)
    return messages


class ConversationArchive:
    """Keeps past conversations next to a live :class:`ChatHistory`."""

    def __init__(self, history: ChatHistory, store: ConversationStore | None = None) -> None:
        self._history = history
        self._store = store
        self._conversations: list[list[Message]] = store.load_archive() if store is not None else []

    @property
    def conversations(self) -> tuple[tuple[Message, ...], ...]:
        return tuple(tuple(conversation) for conversation in self._conversations)

    @property
    def has_history(self) -> bool:
        return bool(self._conversations)

    @property
    def count(self) -> int:
        return len(self._conversations)

    def start_new_conversation(self) -> bool:
        """Archive the live history and clear it; no-op when it is empty."""

        if not self._history:
            return False
        self._conversations.append(list(self._history.messages))
        self._history.clear()
        self._save_history()
        self._persist()
        return True

    def load_conversation(self, index: int) -> bool:
        """Replace the live history with archived conversation ``index``."""

        if not 0 <= index < len(self._conversations):
            return False
        self._history.replace(self._conversations[index])
        self._save_history()
        return True

    def delete_conversation(self, index: int) -> bool:
        if not 0 <= index < len(self._conversations):
            return False
        del self._conversations[index]
        self._persist()
        return True

    def clear_all(self) -> None:
        self._conversations.clear()
        self._persist()

    def _save_history(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save_history(self._history.messages)
        except Exception:
            LOGGER.warning("Failed to save chat history", exc_info=True)

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            if self._conversations:
                self._store.save_archive(self._conversations)
            else:
                self._store.clear_archive()
        except Exception:
            LOGGER.warning("Failed to save conversations", exc_info=True)
