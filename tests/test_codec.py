"""Tests for :mod:`noteagent.notes.codec`."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from noteagent.errors import ErrorCode, SchemaError
from noteagent.notes.codec import decode_document, decode_node, decode_root, encode_document, encode_node
from noteagent.notes.nodes import (
    ChatSessionNode,
    EmbeddingNode,
    HeadingNode,
    HeadingTag,
    ListNode,
    ListType,
    MessageSender,
    ParagraphNode,
    TableCellNode,
    TextDirection,
    TextFormat,
    TextNode,
)
from noteagent.notes.tree import (
    make_chat_message,
    make_embedding,
    make_heading,
    make_link,
    make_list,
    make_list_item,
    make_page_break,
    make_paragraph,
    make_quote,
    make_root,
    make_text,
    make_voice_transcript,
)


def _text(text: str = "hi", **extra: Any) -> dict[str, Any]:
    return {"type": "text", "version": 1, "text": text, "format": 0, **extra}


def test_decode_document_builds_typed_tree(sample_note_payload: dict[str, Any]) -> None:
    document = decode_document(sample_note_payload)

    assert document.id == "n1"
    assert document.root.direction is TextDirection.LTR
    (paragraph,) = document.children
    assert isinstance(paragraph, ParagraphNode)
    (text,) = paragraph.children
    assert isinstance(text, TextNode)
    assert text.text == "Hello"
    assert text.format == TextFormat.BOLD


def test_encode_document_inverts_decode(sample_note_payload: dict[str, Any]) -> None:
    original = copy.deepcopy(sample_note_payload)

    encoded = encode_document(decode_document(sample_note_payload))

    assert encoded == original


def test_storage_id_round_trips(sample_note_payload: dict[str, Any]) -> None:
    sample_note_payload["id"] = 42

    document = decode_document(sample_note_payload)

    assert document.storage_id == 42
    assert encode_document(document)["id"] == 42


def test_unknown_keys_are_dropped() -> None:
    node = decode_node(_text(extra_field="ignored"))

    assert "extra_field" not in encode_node(node)


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "heading", "version": 1, "tag": "h2", "children": [_text()]},
        {"type": "list", "version": 1, "listType": "number", "start": 3, "children": []},
        {"type": "listitem", "version": 1, "children": [_text()]},
        {"type": "quote", "version": 1, "children": []},
        {"type": "code", "version": 1, "format": 0, "language": "python", "text": "x = 1"},
        {"type": "link", "version": 1, "url": "https://example.com", "rel": "noopener", "children": [_text()]},
        {"type": "autolink", "version": 1, "url": "https://example.com", "children": []},
        {"type": "hashtag", "version": 1, "text": "#idea", "format": 0},
        {"type": "mention", "version": 1, "mentionName": "ada", "text": "@ada", "format": 0},
        {
            "type": "table",
            "version": 1,
            "children": [
                {
                    "type": "tablerow",
                    "version": 1,
                    "children": [
                        {
                            "type": "tablecell",
                            "version": 1,
                            "headerState": 1,
                            "colSpan": 2,
                            "rowSpan": 1,
                            "children": [_text("a")],
                        }
                    ],
                }
            ],
        },
        {"type": "page-break", "version": 1},
        {"type": "ai-embedding", "version": 1, "content": "generated", "isLoading": True},
        {"type": "voice-input", "version": 1, "content": "dictated"},
        {
            "type": "chat-message",
            "version": 1,
            "sender": "agent",
            "content": "hello",
            "timestamp": "2024-01-01T00:00:00Z",
        },
        {
            "type": "chat-session",
            "version": 1,
            "sessionId": "s1",
            "isActive": False,
            "messages": [
                {"id": 1, "sender": "user", "content": "hi", "timestamp": "2024-01-01T00:00:00Z"},
            ],
        },
    ],
    ids=lambda payload: payload["type"],
)
def test_every_variant_survives_encode(payload: dict[str, Any]) -> None:
    assert encode_node(decode_node(payload)) == payload


_BUILT_NODES = [
    make_text("plain"),
    make_text("styled", 15),
    make_text("extra bits", 19),
    make_paragraph([make_text("a"), make_text("b", TextFormat.BOLD)]),
    make_heading("h2", [make_text("Heading")]),
    make_list("number", [make_list_item([make_text("one")])]),
    make_list_item([make_text("item")]),
    make_quote([make_text("quoted")]),
    make_link("https://example.com", [make_text("link")], rel="noopener", target="_blank"),
    make_page_break(),
    make_embedding("generated", is_loading=True),
    make_voice_transcript("spoken words"),
    make_chat_message("hello", "agent", timestamp="2024-01-01T00:00:00Z"),
]


@pytest.mark.parametrize("node", _BUILT_NODES, ids=lambda node: node.type.value)
def test_built_nodes_decode_back_to_themselves(node: Any) -> None:
    assert decode_node(encode_node(node)) == node


def test_built_root_decodes_back_to_itself() -> None:
    root = make_root(_BUILT_NODES)

    assert decode_root(encode_node(root)) == root


def test_variant_specific_fields_are_typed() -> None:
    heading = decode_node({"type": "heading", "version": 1, "tag": "h3", "children": []})
    numbered = decode_node({"type": "list", "version": 1, "listType": "number", "children": []})
    cell = decode_node(
        {"type": "tablecell", "version": 1, "headerState": 0, "colSpan": 1, "rowSpan": 3, "children": []}
    )
    embedding = decode_node({"type": "ai-embedding", "version": 1, "content": "x", "isLoading": False})

    assert isinstance(heading, HeadingNode) and heading.tag is HeadingTag.H3
    assert isinstance(numbered, ListNode) and numbered.list_type is ListType.NUMBER
    assert isinstance(cell, TableCellNode) and cell.row_span == 3
    assert isinstance(embedding, EmbeddingNode) and embedding.is_loading is False


def test_chat_session_messages_are_decoded() -> None:
    node = decode_node(
        {
            "type": "chat-session",
            "version": 1,
            "sessionId": "s1",
            "isActive": True,
            "messages": [{"id": 7, "sender": "system", "content": "note", "timestamp": "t"}],
        }
    )

    assert isinstance(node, ChatSessionNode)
    assert node.messages[0].id == 7
    assert node.messages[0].sender is MessageSender.SYSTEM


class TestDecodeFailures:
    """Malformed payloads are rejected with a located :class:`SchemaError`."""

    def test_unknown_type(self) -> None:
        with pytest.raises(SchemaError) as excinfo:
            decode_node({"type": "widget", "version": 1})

        assert excinfo.value.code == ErrorCode.SCHEMA_ERROR
        assert excinfo.value.path == "node.type"

    def test_unsupported_version(self) -> None:
        with pytest.raises(SchemaError) as excinfo:
            decode_node(_text(version=2))

        assert excinfo.value.details["version"] == 2

    def test_missing_required_field_reports_nested_path(self) -> None:
        payload = {"type": "root", "version": 1, "children": [{"type": "paragraph", "version": 1}]}

        with pytest.raises(SchemaError) as excinfo:
            decode_root(payload)

        assert excinfo.value.path == "root.children[0].children"

    def test_wrong_field_type(self) -> None:
        with pytest.raises(SchemaError, match="must be an integer"):
            decode_node(_text(format="bold"))

    def test_boolean_is_not_an_integer(self) -> None:
        with pytest.raises(SchemaError):
            decode_node({"type": "list", "version": 1, "listType": "bullet", "start": True, "children": []})

    def test_unknown_enum_value(self) -> None:
        with pytest.raises(SchemaError, match="one of"):
            decode_node({"type": "heading", "version": 1, "tag": "h7", "children": []})

    def test_root_is_not_a_child(self) -> None:
        with pytest.raises(SchemaError, match="not allowed"):
            decode_node({"type": "root", "version": 1, "children": []})

    def test_document_requires_root_node(self) -> None:
        with pytest.raises(SchemaError, match="Expected a root node"):
            decode_document({"noteId": "n1", "lexicalState": {"root": _text()}})

    def test_document_requires_lexical_state(self) -> None:
        with pytest.raises(SchemaError):
            decode_document({"noteId": "n1"})

    def test_non_object_payload(self) -> None:
        with pytest.raises(SchemaError, match="must be an object"):
            decode_node(["not", "a", "node"])
