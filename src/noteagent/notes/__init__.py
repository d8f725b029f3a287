"""Typed note tree: schema, codec and pure tree operations."""

from .codec import decode_document, decode_node, decode_root, encode_document, encode_node
from .document import (
    BriefNode,
    Document,
    brief,
    character_count,
    create_empty_document,
    get_child_at,
    insert_child,
    remove_child_at,
    replace_child_at,
    word_count,
)
from .nodes import (
    SCHEMA_VERSION,
    AnyNode,
    HeadingTag,
    ListType,
    MessageSender,
    Node,
    NodeType,
    TextDirection,
    TextFormat,
)
from .tree import (
    count_children,
    extract_text,
    find_nodes_by_type,
    has_children,
    is_empty,
    make_embedding,
    make_heading,
    make_paragraph,
    make_text,
    node_type_label,
)

__all__ = [
    "SCHEMA_VERSION",
    "AnyNode",
    "BriefNode",
    "Document",
    "HeadingTag",
    "ListType",
    "MessageSender",
    "Node",
    "NodeType",
    "TextDirection",
    "TextFormat",
    "brief",
    "character_count",
    "count_children",
    "create_empty_document",
    "decode_document",
    "decode_node",
    "decode_root",
    "encode_document",
    "encode_node",
    "extract_text",
    "find_nodes_by_type",
    "get_child_at",
    "has_children",
    "insert_child",
    "is_empty",
    "make_embedding",
    "make_heading",
    "make_paragraph",
    "make_text",
    "node_type_label",
    "remove_child_at",
    "replace_child_at",
    "word_count",
]
