"""Strict conversion between raw JSON-compatible payloads and typed nodes.

Decoding fails closed: an unknown ``type``, a ``version`` other than
:data:`~noteagent.notes.nodes.SCHEMA_VERSION`, or a missing/ill-typed required
field raises :class:`~noteagent.errors.SchemaError`. Nothing is defaulted
here; defaults belong to the constructors in :mod:`noteagent.notes.tree`.
Keys the schema does not know about are dropped.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Mapping, TypeVar, cast

from ..errors import SchemaError
from .document import Document
from .nodes import (
    SCHEMA_VERSION,
    AnyNode,
    AutoLinkNode,
    ChatMessageNode,
    ChatSessionMessage,
    ChatSessionNode,
    CodeNode,
    EmbeddingNode,
    HashtagNode,
    HeadingNode,
    HeadingTag,
    LinkNode,
    ListItemNode,
    ListNode,
    ListType,
    MentionNode,
    MessageSender,
    Node,
    NodeType,
    PageBreakNode,
    ParagraphNode,
    QuoteNode,
    RootNode,
    TableCellNode,
    TableNode,
    TableRowNode,
    TextDirection,
    TextFormat,
    TextNode,
    VoiceTranscriptNode,
)

__all__ = [
    "decode_node",
    "decode_root",
    "encode_node",
    "decode_document",
    "encode_document",
]

_E = TypeVar("_E", bound=Enum)
_MISSING = object()


# -----------------------------------------------------------------------------
# Field readers
# -----------------------------------------------------------------------------


def _field(raw: Mapping[str, Any], key: str, path: str, *, required: bool) -> Any:
    value = raw.get(key, _MISSING)
    if value is _MISSING or (value is None and required):
        if required:
            raise SchemaError(message=f"Missing required field '{key}'", path=f"{path}.{key}")
        return None
    return value


def _str(raw: Mapping[str, Any], key: str, path: str, *, required: bool = True) -> str | None:
    value = _field(raw, key, path, required=required)
    if value is None:
        return None
    if not isinstance(value, str):
        raise SchemaError(message=f"Field '{key}' must be a string", path=f"{path}.{key}")
    return value


def _int(raw: Mapping[str, Any], key: str, path: str, *, required: bool = True) -> int | None:
    value = _field(raw, key, path, required=required)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(message=f"Field '{key}' must be an integer", path=f"{path}.{key}")
    return value


def _bool(raw: Mapping[str, Any], key: str, path: str) -> bool:
    value = _field(raw, key, path, required=True)
    if not isinstance(value, bool):
        raise SchemaError(message=f"Field '{key}' must be a boolean", path=f"{path}.{key}")
    return value


def _enum(raw: Mapping[str, Any], key: str, path: str, enum_cls: type[_E], *, required: bool = True) -> _E | None:
    value = _str(raw, key, path, required=required)
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise SchemaError(
            message=f"Field '{key}' must be one of: {allowed}",
            path=f"{path}.{key}",
            details={"value": value},
        ) from None


def _text_format(raw: Mapping[str, Any], path: str) -> TextFormat:
    value = cast(int, _int(raw, "format", path))
    if value < 0:
        raise SchemaError(message="Field 'format' must be a non-negative bit field", path=f"{path}.format")
    return TextFormat(value)


def _children(raw: Mapping[str, Any], path: str, *, required: bool = True) -> tuple[Node, ...] | None:
    value = _field(raw, "children", path, required=required)
    if value is None:
        return None
    if not isinstance(value, list):
        raise SchemaError(message="Field 'children' must be a list", path=f"{path}.children")
    return tuple(decode_node(child, path=f"{path}.children[{index}]") for index, child in enumerate(value))


def _base(raw: Mapping[str, Any], path: str) -> Dict[str, Any]:
    version = _int(raw, "version", path)
    if version != SCHEMA_VERSION:
        raise SchemaError(
            message=f"Unsupported node version {version}",
            path=f"{path}.version",
            details={"version": version, "supported": SCHEMA_VERSION},
        )
    return {
        "version": version,
        "direction": _enum(raw, "direction", path, TextDirection, required=False),
        "indent": _int(raw, "indent", path, required=False),
    }


def _block(raw: Mapping[str, Any], path: str) -> Dict[str, Any]:
    payload = _base(raw, path)
    payload["children"] = _children(raw, path)
    payload["format"] = _str(raw, "format", path, required=False)
    return payload


# -----------------------------------------------------------------------------
# Per-variant decoders
# -----------------------------------------------------------------------------


def _decode_root(raw: Mapping[str, Any], path: str) -> RootNode:
    return RootNode(**_block(raw, path))


def _decode_text(raw: Mapping[str, Any], path: str) -> TextNode:
    return TextNode(
        **_base(raw, path),
        text=_str(raw, "text", path),
        format=_text_format(raw, path),
        detail=_int(raw, "detail", path, required=False),
        mode=_str(raw, "mode", path, required=False),
        style=_str(raw, "style", path, required=False),
    )


def _decode_paragraph(raw: Mapping[str, Any], path: str) -> ParagraphNode:
    return ParagraphNode(
        **_block(raw, path),
        text_format=_int(raw, "textFormat", path, required=False),
        text_style=_str(raw, "textStyle", path, required=False),
    )


def _decode_heading(raw: Mapping[str, Any], path: str) -> HeadingNode:
    return HeadingNode(**_block(raw, path), tag=_enum(raw, "tag", path, HeadingTag))


def _decode_list(raw: Mapping[str, Any], path: str) -> ListNode:
    return ListNode(
        **_block(raw, path),
        list_type=_enum(raw, "listType", path, ListType),
        start=_int(raw, "start", path, required=False),
    )


def _decode_code(raw: Mapping[str, Any], path: str) -> CodeNode:
    return CodeNode(
        **_base(raw, path),
        format=_text_format(raw, path),
        text=_str(raw, "text", path, required=False),
        language=_str(raw, "language", path, required=False),
        children=_children(raw, path, required=False),
    )


def _decode_link(raw: Mapping[str, Any], path: str) -> LinkNode:
    return LinkNode(
        **_block(raw, path),
        url=_str(raw, "url", path),
        rel=_str(raw, "rel", path, required=False),
        target=_str(raw, "target", path, required=False),
    )


def _decode_table_cell(raw: Mapping[str, Any], path: str) -> TableCellNode:
    return TableCellNode(
        **_block(raw, path),
        header_state=_int(raw, "headerState", path),
        col_span=_int(raw, "colSpan", path),
        row_span=_int(raw, "rowSpan", path),
    )


def _decode_page_break(raw: Mapping[str, Any], path: str) -> PageBreakNode:
    return PageBreakNode(**_base(raw, path), format=_str(raw, "format", path, required=False))


def _decode_embedding(raw: Mapping[str, Any], path: str) -> EmbeddingNode:
    return EmbeddingNode(
        **_base(raw, path),
        content=_str(raw, "content", path),
        is_loading=_bool(raw, "isLoading", path),
        format=_str(raw, "format", path, required=False),
    )


def _decode_voice(raw: Mapping[str, Any], path: str) -> VoiceTranscriptNode:
    return VoiceTranscriptNode(
        **_base(raw, path),
        content=_str(raw, "content", path),
        format=_str(raw, "format", path, required=False),
    )


def _decode_chat_message(raw: Mapping[str, Any], path: str) -> ChatMessageNode:
    return ChatMessageNode(
        **_base(raw, path),
        sender=_enum(raw, "sender", path, MessageSender),
        content=_str(raw, "content", path),
        timestamp=_str(raw, "timestamp", path),
        format=_str(raw, "format", path, required=False),
    )


def _decode_session_message(raw: Any, path: str) -> ChatSessionMessage:
    if not isinstance(raw, Mapping):
        raise SchemaError(message="Session message must be an object", path=path)
    return ChatSessionMessage(
        id=_int(raw, "id", path),
        sender=_enum(raw, "sender", path, MessageSender),
        content=_str(raw, "content", path),
        timestamp=_str(raw, "timestamp", path),
    )


def _decode_chat_session(raw: Mapping[str, Any], path: str) -> ChatSessionNode:
    messages = _field(raw, "messages", path, required=True)
    if not isinstance(messages, list):
        raise SchemaError(message="Field 'messages' must be a list", path=f"{path}.messages")
    return ChatSessionNode(
        **_base(raw, path),
        session_id=_str(raw, "sessionId", path),
        is_active=_bool(raw, "isActive", path),
        messages=tuple(
            _decode_session_message(item, f"{path}.messages[{index}]") for index, item in enumerate(messages)
        ),
        format=_str(raw, "format", path, required=False),
    )


def _decode_hashtag(raw: Mapping[str, Any], path: str) -> HashtagNode:
    return HashtagNode(**_base(raw, path), text=_str(raw, "text", path), format=_text_format(raw, path))


def _decode_mention(raw: Mapping[str, Any], path: str) -> MentionNode:
    return MentionNode(
        **_base(raw, path),
        mention_name=_str(raw, "mentionName", path),
        text=_str(raw, "text", path),
        format=_text_format(raw, path),
    )


def _decode_container(cls: type) -> Callable[[Mapping[str, Any], str], Any]:
    def _decode(raw: Mapping[str, Any], path: str) -> Any:
        return cls(**_block(raw, path))

    return _decode


def _decode_autolink(raw: Mapping[str, Any], path: str) -> AutoLinkNode:
    return AutoLinkNode(**_block(raw, path), url=_str(raw, "url", path))


_DECODERS: Dict[NodeType, Callable[[Mapping[str, Any], str], Node]] = {
    NodeType.TEXT: _decode_text,
    NodeType.PARAGRAPH: _decode_paragraph,
    NodeType.HEADING: _decode_heading,
    NodeType.LIST: _decode_list,
    NodeType.LIST_ITEM: _decode_container(ListItemNode),
    NodeType.QUOTE: _decode_container(QuoteNode),
    NodeType.CODE: _decode_code,
    NodeType.LINK: _decode_link,
    NodeType.AUTOLINK: _decode_autolink,
    NodeType.HASHTAG: _decode_hashtag,
    NodeType.TABLE: _decode_container(TableNode),
    NodeType.TABLE_ROW: _decode_container(TableRowNode),
    NodeType.TABLE_CELL: _decode_table_cell,
    NodeType.PAGE_BREAK: _decode_page_break,
    NodeType.EMBEDDING: _decode_embedding,
    NodeType.VOICE_TRANSCRIPT: _decode_voice,
    NodeType.CHAT_MESSAGE: _decode_chat_message,
    NodeType.CHAT_SESSION: _decode_chat_session,
    NodeType.MENTION: _decode_mention,
}


def _node_type(raw: Any, path: str) -> NodeType:
    if not isinstance(raw, Mapping):
        raise SchemaError(message="Node payload must be an object", path=path)
    type_name = raw.get("type")
    if not isinstance(type_name, str):
        raise SchemaError(message="Node payload is missing its 'type'", path=f"{path}.type")
    try:
        return NodeType(type_name)
    except ValueError:
        raise SchemaError(
            message=f"Unknown node type '{type_name}'",
            path=f"{path}.type",
            details={"type": type_name},
        ) from None


def decode_node(raw: Any, *, path: str = "node") -> Node:
    """Decode a non-root node payload into its typed variant."""

    node_type = _node_type(raw, path)
    decoder = _DECODERS.get(node_type)
    if decoder is None:
        raise SchemaError(message=f"Node type '{node_type.value}' is not allowed here", path=f"{path}.type")
    return decoder(raw, path)


def decode_root(raw: Any, *, path: str = "root") -> RootNode:
    """Decode the ``root`` node of a note."""

    node_type = _node_type(raw, path)
    if node_type is not NodeType.ROOT:
        raise SchemaError(message=f"Expected a root node, got '{node_type.value}'", path=f"{path}.type")
    return _decode_root(raw, path)


# -----------------------------------------------------------------------------
# Encoding
# -----------------------------------------------------------------------------


def _put(payload: Dict[str, Any], key: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, Enum):
        value = value.value
    payload[key] = value


def _encode_session_message(message: ChatSessionMessage) -> Dict[str, Any]:
    return {
        "id": message.id,
        "sender": message.sender.value,
        "content": message.content,
        "timestamp": message.timestamp,
    }


def encode_node(node: AnyNode) -> Dict[str, Any]:
    """Encode ``node`` (root included) into plain JSON-compatible records."""

    payload: Dict[str, Any] = {"type": node.type.value}

    if isinstance(node, (TextNode, HashtagNode, MentionNode)):
        if isinstance(node, MentionNode):
            payload["mentionName"] = node.mention_name
        payload["text"] = node.text
        payload["format"] = int(node.format)
        if isinstance(node, TextNode):
            _put(payload, "detail", node.detail)
            _put(payload, "mode", node.mode)
            _put(payload, "style", node.style)
    elif isinstance(node, CodeNode):
        payload["format"] = int(node.format)
        _put(payload, "text", node.text)
        _put(payload, "language", node.language)
        if node.children is not None:
            payload["children"] = [encode_node(child) for child in node.children]
    elif isinstance(node, EmbeddingNode):
        payload["content"] = node.content
        payload["isLoading"] = node.is_loading
        _put(payload, "format", node.format)
    elif isinstance(node, VoiceTranscriptNode):
        payload["content"] = node.content
        _put(payload, "format", node.format)
    elif isinstance(node, ChatMessageNode):
        payload["sender"] = node.sender.value
        payload["content"] = node.content
        payload["timestamp"] = node.timestamp
        _put(payload, "format", node.format)
    elif isinstance(node, ChatSessionNode):
        payload["sessionId"] = node.session_id
        payload["isActive"] = node.is_active
        payload["messages"] = [_encode_session_message(message) for message in node.messages]
        _put(payload, "format", node.format)
    elif isinstance(node, PageBreakNode):
        _put(payload, "format", node.format)
    else:
        payload.update(_encode_block(node))

    payload["version"] = node.version
    _put(payload, "direction", node.direction)
    _put(payload, "indent", node.indent)
    return payload


def _encode_block(node: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if isinstance(node, HeadingNode):
        payload["tag"] = node.tag.value
    elif isinstance(node, ListNode):
        payload["listType"] = node.list_type.value
        _put(payload, "start", node.start)
    elif isinstance(node, LinkNode):
        payload["url"] = node.url
        _put(payload, "rel", node.rel)
        _put(payload, "target", node.target)
    elif isinstance(node, AutoLinkNode):
        payload["url"] = node.url
    elif isinstance(node, TableCellNode):
        payload["headerState"] = node.header_state
        payload["colSpan"] = node.col_span
        payload["rowSpan"] = node.row_span
    elif isinstance(node, ParagraphNode):
        _put(payload, "textFormat", node.text_format)
        _put(payload, "textStyle", node.text_style)
    payload["children"] = [encode_node(child) for child in node.children]
    _put(payload, "format", node.format)
    return payload


# -----------------------------------------------------------------------------
# Documents
# -----------------------------------------------------------------------------


def decode_document(raw: Any) -> Document:
    """Decode ``{"noteId", "lexicalState": {"root"}}`` into a :class:`Document`."""

    if not isinstance(raw, Mapping):
        raise SchemaError(message="Document payload must be an object", path="note")
    note_id = _str(raw, "noteId", "note")
    state = _field(raw, "lexicalState", "note", required=True)
    if not isinstance(state, Mapping):
        raise SchemaError(message="Field 'lexicalState' must be an object", path="note.lexicalState")
    root = decode_root(_field(state, "root", "note.lexicalState", required=True))
    storage_id = _int(raw, "id", "note", required=False)
    return Document(id=note_id, root=root, storage_id=storage_id)


def encode_document(document: Document) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "noteId": document.id,
        "lexicalState": {"root": encode_node(document.root)},
    }
    if document.storage_id is not None:
        payload["id"] = document.storage_id
    return payload
