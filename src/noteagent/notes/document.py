"""Document value and document-level tree operations.

Every edit returns a new :class:`Document`; untouched children are shared with
the input. Positional arguments never raise: lookups outside the valid range
return ``None`` and edits outside it leave the children unchanged. Indices
shift after every insert or removal, so callers must re-resolve positions
after each edit.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List

from .nodes import AnyNode, Node, NodeType, RootNode
from . import tree

__all__ = [
    "Document",
    "BriefNode",
    "create_empty_document",
    "extract_text",
    "word_count",
    "character_count",
    "is_empty",
    "brief",
    "find_nodes_by_type",
    "get_child_at",
    "insert_child",
    "remove_child_at",
    "replace_child_at",
]

LOGGER = logging.getLogger(__name__)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class Document:
    """A note: an identifier plus its root node.

    ``storage_id`` is the optional numeric row id a backing store may assign;
    it round-trips through the wire format but carries no meaning here.
    """

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    root: RootNode = field(default_factory=RootNode)
    storage_id: int | None = None

    @property
    def children(self) -> tuple[Node, ...]:
        return self.root.children


@dataclass(frozen=True, slots=True)
class BriefNode:
    """Summary of a non-empty top-level child, addressed by its index."""

    id: int
    node_type: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "nodeType": self.node_type, "content": self.content}


def create_empty_document(note_id: str | None = None) -> Document:
    if note_id is None:
        return Document()
    return Document(id=note_id)


def _with_children(document: Document, children: List[Node]) -> Document:
    return replace(document, root=replace(document.root, children=tuple(children)))


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------


def extract_text(document: Document) -> str:
    """Text of every top-level child, one child per line."""

    return "\n".join(tree.extract_text(child) for child in document.root.children)


def word_count(document: Document) -> int:
    return len([token for token in _WHITESPACE.split(extract_text(document)) if token])


def character_count(document: Document) -> int:
    return len(extract_text(document))


def is_empty(document: Document) -> bool:
    return all(tree.is_empty(child) for child in document.root.children)


def brief(document: Document) -> list[BriefNode]:
    """Index, type and text of each non-empty top-level child."""

    briefs: list[BriefNode] = []
    for index, child in enumerate(document.root.children):
        content = tree.extract_text(child)
        if content.strip():
            briefs.append(BriefNode(id=index, node_type=child.type.value, content=content))
    return briefs


def find_nodes_by_type(document: Document, node_type: NodeType | str) -> list[AnyNode]:
    results: list[AnyNode] = []
    for child in document.root.children:
        results.extend(tree.find_nodes_by_type(child, node_type))
    return results


def get_child_at(document: Document, index: int) -> Node | None:
    children = document.root.children
    if 0 <= index < len(children):
        return children[index]
    return None


# -----------------------------------------------------------------------------
# Edits
# -----------------------------------------------------------------------------


def insert_child(document: Document, node: Node, position: int | None = None) -> Document:
    """Insert ``node`` at ``position``, appending when it is omitted or out of range."""

    children = list(document.root.children)
    if position is not None and 0 <= position <= len(children):
        children.insert(position, node)
    else:
        children.append(node)
    return _with_children(document, children)


def remove_child_at(document: Document, index: int) -> Document:
    children = document.root.children
    if not 0 <= index < len(children):
        LOGGER.debug("remove_child_at(%s) ignored; document %s has %d children", index, document.id, len(children))
        return document
    return _with_children(document, [*children[:index], *children[index + 1 :]])


def replace_child_at(document: Document, index: int, node: Node) -> Document:
    children = document.root.children
    if not 0 <= index < len(children):
        LOGGER.debug("replace_child_at(%s) ignored; document %s has %d children", index, document.id, len(children))
        return document
    updated = list(children)
    updated[index] = node
    return _with_children(document, updated)
