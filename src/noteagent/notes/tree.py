"""Pure, side-effect-free operations over individual nodes."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Iterator, Sequence

from .nodes import (
    AnyNode,
    AutoLinkNode,
    BaseNode,
    ChatMessageNode,
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
    TextFormat,
    TextNode,
    VoiceTranscriptNode,
)

__all__ = [
    "BULLET_MARKER",
    "PAGE_BREAK_TEXT",
    "ROW_SEPARATOR",
    "children_of",
    "extract_text",
    "is_empty",
    "has_children",
    "count_children",
    "iter_nodes",
    "find_nodes_by_type",
    "node_type_label",
    "with_children",
    "make_root",
    "make_text",
    "make_paragraph",
    "make_heading",
    "make_list",
    "make_list_item",
    "make_quote",
    "make_link",
    "make_page_break",
    "make_embedding",
    "make_voice_transcript",
    "make_chat_message",
]

BULLET_MARKER = "• "
PAGE_BREAK_TEXT = "---"
ROW_SEPARATOR = " | "

# Variants whose extracted text is their children concatenated directly.
_CONCATENATING = (RootNode, ParagraphNode, HeadingNode, ListNode, QuoteNode, TableNode, TableCellNode)


def children_of(node: AnyNode) -> tuple[Node, ...]:
    """Return ``node``'s direct children, or an empty tuple for leaves."""

    children = getattr(node, "children", None)
    if not children:
        return ()
    return tuple(children)


def _joined(children: Iterable[AnyNode], separator: str = "") -> str:
    return separator.join(extract_text(child) for child in children)


def extract_text(node: AnyNode) -> str:
    """Return the human-readable text of ``node`` and its descendants.

    Unknown variants yield an empty string.
    """

    if isinstance(node, (TextNode, HashtagNode, MentionNode)):
        return node.text
    if isinstance(node, _CONCATENATING):
        return _joined(node.children)
    if isinstance(node, ListItemNode):
        return BULLET_MARKER + _joined(node.children)
    if isinstance(node, (LinkNode, AutoLinkNode)):
        return f"{_joined(node.children)} ({node.url})"
    if isinstance(node, TableRowNode):
        return _joined(node.children, ROW_SEPARATOR)
    if isinstance(node, CodeNode):
        if node.text:
            return node.text
        return _joined(node.children or ())
    if isinstance(node, PageBreakNode):
        return PAGE_BREAK_TEXT
    if isinstance(node, (EmbeddingNode, VoiceTranscriptNode)):
        return node.content
    if isinstance(node, ChatMessageNode):
        return f"[{node.sender.value}] {node.content}"
    if isinstance(node, ChatSessionNode):
        return "\n".join(f"[{message.sender.value}] {message.content}" for message in node.messages)
    return ""


def is_empty(node: AnyNode) -> bool:
    return not extract_text(node).strip()


def has_children(node: AnyNode) -> bool:
    return bool(children_of(node))


def count_children(node: AnyNode) -> int:
    """Count every descendant of ``node`` (not just its direct children)."""

    total = 0
    pending: list[AnyNode] = [node]
    while pending:
        current = pending.pop()
        children = children_of(current)
        total += len(children)
        pending.extend(children)
    return total


def iter_nodes(node: AnyNode) -> Iterator[AnyNode]:
    """Yield ``node`` and its descendants in depth-first pre-order."""

    pending: list[AnyNode] = [node]
    while pending:
        current = pending.pop()
        yield current
        pending.extend(reversed(children_of(current)))


def find_nodes_by_type(node: AnyNode, node_type: NodeType | str) -> list[AnyNode]:
    """Collect ``node`` and descendants whose discriminant equals ``node_type``."""

    wanted = node_type.value if isinstance(node_type, NodeType) else str(node_type)
    return [candidate for candidate in iter_nodes(node) if candidate.type.value == wanted]


_LABELS: dict[NodeType, str] = {
    NodeType.ROOT: "Root",
    NodeType.TEXT: "Text",
    NodeType.PARAGRAPH: "Paragraph",
    NodeType.LIST_ITEM: "List Item",
    NodeType.QUOTE: "Quote",
    NodeType.CODE: "Code",
    NodeType.LINK: "Link",
    NodeType.AUTOLINK: "Auto Link",
    NodeType.HASHTAG: "Hashtag",
    NodeType.TABLE: "Table",
    NodeType.TABLE_ROW: "Table Row",
    NodeType.TABLE_CELL: "Table Cell",
    NodeType.PAGE_BREAK: "Page Break",
    NodeType.EMBEDDING: "AI Embedding",
    NodeType.VOICE_TRANSCRIPT: "Voice Input",
    NodeType.CHAT_MESSAGE: "Chat Message",
    NodeType.CHAT_SESSION: "Chat Session",
    NodeType.MENTION: "Mention",
}


def node_type_label(node: BaseNode) -> str:
    """Human-readable label for ``node``'s variant."""

    if isinstance(node, HeadingNode):
        return f"Heading {node.tag.value.upper()}"
    if isinstance(node, ListNode):
        return "Bullet List" if node.list_type is ListType.BULLET else "Numbered List"
    return _LABELS.get(getattr(node, "type", None), "Unknown")


def with_children(node: AnyNode, children: Sequence[Node]) -> AnyNode:
    """Return a copy of container ``node`` holding ``children``."""

    if not node.is_container:
        raise TypeError(f"{node.type.value} nodes cannot hold children")
    return replace(node, children=tuple(children))


# -----------------------------------------------------------------------------
# Constructors
# -----------------------------------------------------------------------------


def make_root(children: Sequence[Node] = ()) -> RootNode:
    return RootNode(children=tuple(children))


def make_text(text: str, format: TextFormat | int = TextFormat.NONE) -> TextNode:
    return TextNode(text=text, format=TextFormat(format), detail=0, mode="normal", style="")


def make_paragraph(children: Sequence[Node] = ()) -> ParagraphNode:
    return ParagraphNode(children=tuple(children), text_format=0, text_style="")


def make_heading(tag: HeadingTag | str = HeadingTag.H1, children: Sequence[Node] = ()) -> HeadingNode:
    return HeadingNode(tag=HeadingTag(tag), children=tuple(children))


def make_list(
    list_type: ListType | str = ListType.BULLET,
    children: Sequence[Node] = (),
    *,
    start: int | None = None,
) -> ListNode:
    resolved = ListType(list_type)
    if start is None and resolved is ListType.NUMBER:
        start = 1
    return ListNode(list_type=resolved, children=tuple(children), start=start)


def make_list_item(children: Sequence[Node] = ()) -> ListItemNode:
    return ListItemNode(children=tuple(children))


def make_quote(children: Sequence[Node] = ()) -> QuoteNode:
    return QuoteNode(children=tuple(children))


def make_link(url: str, children: Sequence[Node] = (), *, rel: str | None = None, target: str | None = None) -> LinkNode:
    return LinkNode(url=url, children=tuple(children), rel=rel, target=target)


def make_page_break() -> PageBreakNode:
    return PageBreakNode()


def make_embedding(content: str, is_loading: bool = False) -> EmbeddingNode:
    return EmbeddingNode(content=content, is_loading=is_loading)


def make_voice_transcript(content: str) -> VoiceTranscriptNode:
    return VoiceTranscriptNode(content=content)


def make_chat_message(
    content: str,
    sender: MessageSender | str = MessageSender.USER,
    *,
    timestamp: str | None = None,
) -> ChatMessageNode:
    stamp = timestamp or datetime.now(timezone.utc).isoformat()
    return ChatMessageNode(sender=MessageSender(sender), content=content, timestamp=stamp)
