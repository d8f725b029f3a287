"""Typed node variants making up a note's rich-text tree.

Every variant is an immutable, slotted dataclass. The wire discriminant is
exposed as the ``type`` class attribute and never stored per instance, so it
cannot change after construction. Container variants hold their children in a
tuple which lets edited documents share untouched subtrees with the previous
value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import ClassVar, Union

__all__ = [
    "SCHEMA_VERSION",
    "NodeType",
    "TextDirection",
    "TextFormat",
    "HeadingTag",
    "ListType",
    "MessageSender",
    "BaseNode",
    "RootNode",
    "TextNode",
    "ParagraphNode",
    "HeadingNode",
    "ListNode",
    "ListItemNode",
    "QuoteNode",
    "CodeNode",
    "LinkNode",
    "AutoLinkNode",
    "HashtagNode",
    "TableNode",
    "TableRowNode",
    "TableCellNode",
    "PageBreakNode",
    "EmbeddingNode",
    "VoiceTranscriptNode",
    "ChatMessageNode",
    "ChatSessionMessage",
    "ChatSessionNode",
    "MentionNode",
    "Node",
    "AnyNode",
    "NODE_CLASSES",
]

SCHEMA_VERSION = 1


class NodeType(str, Enum):
    """Wire discriminants for every node variant."""

    ROOT = "root"
    TEXT = "text"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    LIST = "list"
    LIST_ITEM = "listitem"
    QUOTE = "quote"
    CODE = "code"
    LINK = "link"
    AUTOLINK = "autolink"
    HASHTAG = "hashtag"
    TABLE = "table"
    TABLE_ROW = "tablerow"
    TABLE_CELL = "tablecell"
    PAGE_BREAK = "page-break"
    EMBEDDING = "ai-embedding"
    VOICE_TRANSCRIPT = "voice-input"
    CHAT_MESSAGE = "chat-message"
    CHAT_SESSION = "chat-session"
    MENTION = "mention"


class TextDirection(str, Enum):
    LTR = "ltr"
    RTL = "rtl"


class TextFormat(IntFlag):
    """Inline formatting bit field carried by text-bearing leaves.

    Bits outside the four named flags are kept as-is so foreign editor flags
    survive a decode/encode cycle.
    """

    NONE = 0
    BOLD = 1
    ITALIC = 2
    UNDERLINE = 4
    STRIKETHROUGH = 8


class HeadingTag(str, Enum):
    H1 = "h1"
    H2 = "h2"
    H3 = "h3"
    H4 = "h4"
    H5 = "h5"
    H6 = "h6"


class ListType(str, Enum):
    BULLET = "bullet"
    NUMBER = "number"


class MessageSender(str, Enum):
    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


@dataclass(frozen=True, slots=True, kw_only=True)
class BaseNode:
    """Fields shared by every variant.

    ``direction`` and ``indent`` are layout hints only; tree operations never
    depend on them.
    """

    type: ClassVar[NodeType]
    is_container: ClassVar[bool] = False

    version: int = SCHEMA_VERSION
    direction: TextDirection | None = None
    indent: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class _BlockNode(BaseNode):
    """Container variant with a layout ``format`` string (alignment)."""

    is_container: ClassVar[bool] = True

    children: tuple["Node", ...] = ()
    format: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class RootNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.ROOT


@dataclass(frozen=True, slots=True, kw_only=True)
class TextNode(BaseNode):
    type: ClassVar[NodeType] = NodeType.TEXT

    text: str
    format: TextFormat = TextFormat.NONE
    detail: int | None = None
    mode: str | None = None
    style: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ParagraphNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.PARAGRAPH

    text_format: int | None = None
    text_style: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class HeadingNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.HEADING

    tag: HeadingTag


@dataclass(frozen=True, slots=True, kw_only=True)
class ListNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.LIST

    list_type: ListType
    start: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ListItemNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.LIST_ITEM


@dataclass(frozen=True, slots=True, kw_only=True)
class QuoteNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.QUOTE


@dataclass(frozen=True, slots=True, kw_only=True)
class CodeNode(BaseNode):
    """Inline code (``text``) or a code block (``children``)."""

    type: ClassVar[NodeType] = NodeType.CODE
    is_container: ClassVar[bool] = True

    format: TextFormat = TextFormat.NONE
    text: str | None = None
    language: str | None = None
    children: tuple["Node", ...] | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class LinkNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.LINK

    url: str
    rel: str | None = None
    target: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class AutoLinkNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.AUTOLINK

    url: str


@dataclass(frozen=True, slots=True, kw_only=True)
class HashtagNode(BaseNode):
    type: ClassVar[NodeType] = NodeType.HASHTAG

    text: str
    format: TextFormat = TextFormat.NONE


@dataclass(frozen=True, slots=True, kw_only=True)
class TableNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.TABLE


@dataclass(frozen=True, slots=True, kw_only=True)
class TableRowNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.TABLE_ROW


@dataclass(frozen=True, slots=True, kw_only=True)
class TableCellNode(_BlockNode):
    type: ClassVar[NodeType] = NodeType.TABLE_CELL

    header_state: int = 0
    col_span: int = 1
    row_span: int = 1


@dataclass(frozen=True, slots=True, kw_only=True)
class PageBreakNode(BaseNode):
    type: ClassVar[NodeType] = NodeType.PAGE_BREAK

    format: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class EmbeddingNode(BaseNode):
    """Agent-generated block, optionally still streaming in."""

    type: ClassVar[NodeType] = NodeType.EMBEDDING

    content: str
    is_loading: bool = False
    format: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class VoiceTranscriptNode(BaseNode):
    type: ClassVar[NodeType] = NodeType.VOICE_TRANSCRIPT

    content: str
    format: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ChatMessageNode(BaseNode):
    type: ClassVar[NodeType] = NodeType.CHAT_MESSAGE

    sender: MessageSender
    content: str
    timestamp: str
    format: str | None = None


@dataclass(frozen=True, slots=True)
class ChatSessionMessage:
    """Message embedded in a chat-session node; unrelated to chat history."""

    id: int
    sender: MessageSender
    content: str
    timestamp: str


@dataclass(frozen=True, slots=True, kw_only=True)
class ChatSessionNode(BaseNode):
    type: ClassVar[NodeType] = NodeType.CHAT_SESSION

    session_id: str
    is_active: bool = False
    messages: tuple[ChatSessionMessage, ...] = field(default=())
    format: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class MentionNode(BaseNode):
    type: ClassVar[NodeType] = NodeType.MENTION

    mention_name: str
    text: str
    format: TextFormat = TextFormat.NONE


Node = Union[
    TextNode,
    ParagraphNode,
    HeadingNode,
    ListNode,
    ListItemNode,
    QuoteNode,
    CodeNode,
    LinkNode,
    AutoLinkNode,
    HashtagNode,
    TableNode,
    TableRowNode,
    TableCellNode,
    PageBreakNode,
    EmbeddingNode,
    VoiceTranscriptNode,
    ChatMessageNode,
    ChatSessionNode,
    MentionNode,
]

AnyNode = Union[RootNode, Node]

NODE_CLASSES: dict[NodeType, type[BaseNode]] = {
    cls.type: cls
    for cls in (
        RootNode,
        TextNode,
        ParagraphNode,
        HeadingNode,
        ListNode,
        ListItemNode,
        QuoteNode,
        CodeNode,
        LinkNode,
        AutoLinkNode,
        HashtagNode,
        TableNode,
        TableRowNode,
        TableCellNode,
        PageBreakNode,
        EmbeddingNode,
        VoiceTranscriptNode,
        ChatMessageNode,
        ChatSessionNode,
        MentionNode,
    )
}
