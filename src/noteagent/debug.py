"""Diagnostic dumps routed through :mod:`logging`."""

from __future__ import annotations

import logging
from typing import Any

from .agent.actions import Instruction, describe_instruction, instruction_to_dict
from .errors import NoteAgentError
from .notes.document import Document
from .notes.formatting import truncate_text
from .notes.tree import extract_text

__all__ = ["note_structure", "log_note_structure", "log_agent_status", "log_chat_action"]

LOGGER = logging.getLogger(__name__)

_PREVIEW_CHARS = 50


def note_structure(document: Document) -> dict[str, Any]:
    """Summarize the top-level blocks of ``document`` with short text previews."""

    return {
        "id": document.id,
        "childCount": len(document.children),
        "children": [
            {
                "index": index,
                "type": child.type.value,
                "content": extract_text(child)[:_PREVIEW_CHARS],
            }
            for index, child in enumerate(document.children)
        ],
    }


def log_note_structure(document: Document, *, logger: logging.Logger | None = None) -> None:
    (logger or LOGGER).debug("Note structure: %s", note_structure(document))


def log_agent_status(
    status: str,
    error: NoteAgentError | None = None,
    *,
    logger: logging.Logger | None = None,
) -> None:
    target = logger or LOGGER
    if error is None:
        target.debug("Agent status: %s", status)
    else:
        target.debug("Agent status: %s (%s)", status, error.to_dict())


def log_chat_action(instruction: Instruction, *, logger: logging.Logger | None = None) -> None:
    payload = instruction_to_dict(instruction)
    if "content" in payload:
        payload["content"] = truncate_text(payload["content"], _PREVIEW_CHARS)
    (logger or LOGGER).debug("Chat action: %s %s", describe_instruction(instruction), payload)
