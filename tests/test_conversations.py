"""Tests for :mod:`noteagent.chat.conversations` and :mod:`noteagent.storage`."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from noteagent.chat.conversations import ConversationArchive, ConversationStore
from noteagent.chat.history import ChatHistory, Message
from noteagent.errors import SchemaError
from noteagent.notes.codec import encode_document
from noteagent.notes.document import Document
from noteagent.storage import InMemoryKeyValueStore, JsonFileKeyValueStore


def test_history_round_trips_through_store() -> None:
    backing = InMemoryKeyValueStore()
    store = ConversationStore(backing, "demo")

    store.save_history([Message("a"), Message("b", "assistant")])

    assert backing.keys() == ["history_demo"]
    assert store.load_history() == [Message("a"), Message("b", "assistant")]


def test_corrupt_history_is_ignored() -> None:
    store = ConversationStore(InMemoryKeyValueStore({"history_demo": "{not json"}), "demo")

    assert store.load_history() == []


def test_malformed_messages_are_skipped() -> None:
    payload = json.dumps([{"content": "ok"}, {"role": "user"}, "junk"])
    store = ConversationStore(InMemoryKeyValueStore({"history_demo": payload}), "demo")

    assert store.load_history() == [Message("ok")]


def test_persist_key_is_required() -> None:
    with pytest.raises(ValueError):
        ConversationStore(InMemoryKeyValueStore(), "")


def test_document_snapshots(sample_document: Document) -> None:
    backing = InMemoryKeyValueStore()
    store = ConversationStore(backing, "demo")

    store.save_document(sample_document)

    assert backing.get("note_n1") is not None
    assert store.load_document("n1") == sample_document
    assert store.load_document("missing") is None

    store.remove_document("n1")
    assert store.load_document("n1") is None


def test_malformed_document_snapshot_raises(sample_document: Document) -> None:
    payload = encode_document(sample_document)
    payload["lexicalState"]["root"]["version"] = 9
    store = ConversationStore(InMemoryKeyValueStore({"note_n1": json.dumps(payload)}), "demo")

    with pytest.raises(SchemaError):
        store.load_document("n1")


class TestConversationArchive:
    def test_start_new_conversation_archives_history(self) -> None:
        backing = InMemoryKeyValueStore()
        store = ConversationStore(backing, "demo")
        history = ChatHistory([Message("a"), Message("b", "assistant")])
        archive = ConversationArchive(history, store)

        assert archive.start_new_conversation()

        assert not history
        assert archive.count == 1
        assert archive.conversations[0] == (Message("a"), Message("b", "assistant"))
        assert ConversationArchive(ChatHistory(), store).count == 1
        assert store.load_history() == []

    def test_start_new_conversation_with_empty_history_is_noop(self) -> None:
        archive = ConversationArchive(ChatHistory())

        assert not archive.start_new_conversation()
        assert not archive.has_history

    def test_load_and_delete_conversation(self) -> None:
        history = ChatHistory([Message("first")])
        archive = ConversationArchive(history)
        archive.start_new_conversation()
        history.append(Message("second"))

        assert archive.load_conversation(0)
        assert history.messages == (Message("first"),)
        assert not archive.load_conversation(3)

        assert archive.delete_conversation(0)
        assert not archive.delete_conversation(0)
        assert archive.count == 0

    def test_clear_all_removes_persisted_archive(self) -> None:
        backing = InMemoryKeyValueStore()
        store = ConversationStore(backing, "demo")
        archive = ConversationArchive(ChatHistory([Message("a")]), store)
        archive.start_new_conversation()

        archive.clear_all()

        assert backing.get("conversation_demo") is None
        assert not archive.has_history


class TestJsonFileKeyValueStore:
    def test_values_survive_reopen(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        JsonFileKeyValueStore(path).set("k", "v")

        reopened = JsonFileKeyValueStore(path)

        assert reopened.get("k") == "v"
        assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1

    def test_remove(self, tmp_path: Path) -> None:
        store = JsonFileKeyValueStore(tmp_path / "store.json")
        store.set("a", "1")
        store.set("b", "2")

        store.remove("a")
        store.remove("missing")

        assert JsonFileKeyValueStore(tmp_path / "store.json").keys() == ["b"]

    def test_invalid_json_is_treated_as_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        path.write_text("{oops", encoding="utf-8")

        assert JsonFileKeyValueStore(path).get("k") is None

    def test_failed_write_leaves_cache_matching_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        store = JsonFileKeyValueStore(tmp_path / "store.json")
        store.set("a", "1")

        def refuse(self: Path, target: Path) -> Path:
            raise OSError("disk full")

        monkeypatch.setattr(Path, "replace", refuse)
        with pytest.raises(OSError):
            store.set("b", "2")
        with pytest.raises(OSError):
            store.remove("a")
        monkeypatch.undo()

        assert store.keys() == ["a"]
        assert store.get("b") is None
        assert JsonFileKeyValueStore(tmp_path / "store.json").keys() == ["a"]
