"""Agent-issued instructions and their application to documents.

An instruction is one of :class:`Reply`, :class:`InsertNode` or
:class:`ModifyNode`. :func:`apply_instruction` folds insert/modify
instructions into a document and returns the input document itself when the
instruction changes nothing, so callers can detect a no-op with ``is``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict, Literal, Mapping, Union

from ..notes.document import Document, get_child_at, insert_child, replace_child_at
from ..notes.nodes import EmbeddingNode, HeadingTag, Node, ParagraphNode, TextNode
from ..notes.tree import make_embedding, make_heading, make_paragraph, make_text

__all__ = [
    "Reply",
    "InsertNode",
    "ModifyNode",
    "Instruction",
    "NodeKind",
    "InstructionParseError",
    "parse_instruction",
    "instruction_to_dict",
    "is_reply",
    "is_insert_node",
    "is_modify_node",
    "build_node",
    "apply_instruction",
    "describe_instruction",
]

LOGGER = logging.getLogger(__name__)

NodeKind = Literal["text", "paragraph", "heading", "ai-embedding"]
_KIND_ALIASES = {"embedding": "ai-embedding", "h1": "heading"}


@dataclass(frozen=True, slots=True)
class Reply:
    """Conversational response; never touches the document."""

    content: str

    action: ClassVar[str] = "reply"


@dataclass(frozen=True, slots=True)
class InsertNode:
    """Insert a new node right after the top-level child ``after_index``.

    ``after_index=-1`` inserts at the top of the document.
    """

    after_index: int
    node_kind: str
    content: str

    action: ClassVar[str] = "insert_node"


@dataclass(frozen=True, slots=True)
class ModifyNode:
    """Rewrite the content of the top-level child at ``index``."""

    index: int
    node_kind: str
    content: str

    action: ClassVar[str] = "modify_node"


Instruction = Union[Reply, InsertNode, ModifyNode]


class InstructionParseError(ValueError):
    """Raised when an agent payload is not a recognizable instruction."""


def is_reply(instruction: Instruction) -> bool:
    return isinstance(instruction, Reply)


def is_insert_node(instruction: Instruction) -> bool:
    return isinstance(instruction, InsertNode)


def is_modify_node(instruction: Instruction) -> bool:
    return isinstance(instruction, ModifyNode)


# -----------------------------------------------------------------------------
# Wire format
# -----------------------------------------------------------------------------


def _require_int(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InstructionParseError(f"Instruction field '{key}' must be an integer")
    return value


def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise InstructionParseError(f"Instruction field '{key}' must be a string")
    return value


def parse_instruction(payload: Mapping[str, Any] | str) -> Instruction:
    """Decode an agent payload (mapping or JSON text) into an instruction."""

    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise InstructionParseError(f"Instruction is not valid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise InstructionParseError("Instruction payload must be an object")

    action = payload.get("action")
    if action == "reply":
        return Reply(content=_require_str(payload, "content"))
    if action == "insert_node":
        return InsertNode(
            after_index=_require_int(payload, "insertAfter"),
            node_kind=_require_str(payload, "nodeType"),
            content=_require_str(payload, "content"),
        )
    if action == "modify_node":
        return ModifyNode(
            index=_require_int(payload, "id"),
            node_kind=_require_str(payload, "nodeType"),
            content=_require_str(payload, "content"),
        )
    raise InstructionParseError(f"Unknown instruction action: {action!r}")


def instruction_to_dict(instruction: Instruction) -> Dict[str, Any]:
    if isinstance(instruction, InsertNode):
        return {
            "action": instruction.action,
            "insertAfter": instruction.after_index,
            "nodeType": instruction.node_kind,
            "content": instruction.content,
        }
    if isinstance(instruction, ModifyNode):
        return {
            "action": instruction.action,
            "id": instruction.index,
            "nodeType": instruction.node_kind,
            "content": instruction.content,
        }
    return {"action": instruction.action, "content": instruction.content}


# -----------------------------------------------------------------------------
# Interpreter
# -----------------------------------------------------------------------------


def build_node(node_kind: str, content: str) -> Node:
    """Construct the node an insert instruction asks for.

    Unrecognized kinds become a paragraph wrapping a text node.
    """

    node_kind = _normalize_kind(node_kind)
    if node_kind == "text":
        return make_text(content)
    if node_kind == "heading":
        return make_heading(HeadingTag.H1, [make_text(content)])
    if node_kind == "ai-embedding":
        return make_embedding(content)
    if node_kind != "paragraph":
        LOGGER.debug("Unknown node kind %r; inserting a paragraph", node_kind)
    return make_paragraph([make_text(content)])


def _normalize_kind(node_kind: str) -> str:
    kind = node_kind.strip().lower()
    return _KIND_ALIASES.get(kind, kind)


def _rewrite(existing: Node, node_kind: str, content: str) -> Node:
    node_kind = _normalize_kind(node_kind)
    if node_kind == "text" and isinstance(existing, TextNode):
        return replace(existing, text=content)
    if node_kind == "paragraph" and isinstance(existing, ParagraphNode):
        children = existing.children
        first = children[0] if children else None
        if isinstance(first, TextNode):
            return replace(existing, children=(replace(first, text=content), *children[1:]))
        return replace(existing, children=(make_text(content), *children[1:]))
    if node_kind == "ai-embedding" and isinstance(existing, EmbeddingNode):
        return replace(existing, content=content)
    LOGGER.info(
        "Cannot rewrite %s node as %r; keeping it unchanged",
        existing.type.value,
        node_kind,
    )
    return existing


def apply_instruction(document: Document, instruction: Instruction) -> Document:
    """Return the document produced by ``instruction``.

    Replies and modify instructions whose target index is absent return
    ``document`` itself.
    """

    if isinstance(instruction, InsertNode):
        node = build_node(instruction.node_kind, instruction.content)
        return insert_child(document, node, instruction.after_index + 1)
    if isinstance(instruction, ModifyNode):
        existing = get_child_at(document, instruction.index)
        if existing is None:
            LOGGER.info(
                "modify_node ignored: index %s is outside document %s",
                instruction.index,
                document.id,
            )
            return document
        updated = _rewrite(existing, instruction.node_kind, instruction.content)
        if updated is existing:
            return document
        return replace_child_at(document, instruction.index, updated)
    return document


def describe_instruction(instruction: Instruction) -> str:
    if isinstance(instruction, Reply):
        return "Agent replied to your message"
    if isinstance(instruction, InsertNode):
        return f"Agent inserted a new {instruction.node_kind} node"
    if isinstance(instruction, ModifyNode):
        return f"Agent modified {instruction.node_kind} node at position {instruction.index}"
    return "Unknown action"
