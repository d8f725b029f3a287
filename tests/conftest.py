"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from noteagent.notes.document import Document
from noteagent.notes.tree import make_embedding, make_heading, make_paragraph, make_root, make_text


@pytest.fixture
def sample_document() -> Document:
    return Document(
        id="n1",
        root=make_root(
            [
                make_heading("h1", [make_text("Title")]),
                make_paragraph([make_text("Hello world")]),
                make_embedding("generated passage"),
            ]
        ),
    )


@pytest.fixture
def sample_note_payload() -> dict[str, Any]:
    return {
        "noteId": "n1",
        "lexicalState": {
            "root": {
                "type": "root",
                "version": 1,
                "direction": "ltr",
                "format": "",
                "indent": 0,
                "children": [
                    {
                        "type": "paragraph",
                        "version": 1,
                        "direction": "ltr",
                        "format": "",
                        "indent": 0,
                        "textFormat": 0,
                        "textStyle": "",
                        "children": [
                            {
                                "type": "text",
                                "version": 1,
                                "text": "Hello",
                                "format": 1,
                                "detail": 0,
                                "mode": "normal",
                                "style": "",
                            }
                        ],
                    }
                ],
            }
        },
    }
