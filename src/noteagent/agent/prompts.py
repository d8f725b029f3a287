"""Prompt templates for the note editing agent."""

from __future__ import annotations

import json

from ..notes.document import Document, brief

# Upper bound on the brief embedded in the system prompt.
BRIEF_CHAR_BUDGET = 12_000


def system_prompt(document: Document, cursor_position: int) -> str:
    """Render the system prompt describing the note and the reply contract."""

    return f"""You are a writing assistant embedded in a note editor.

## The Note

The note is a list of top-level blocks addressed by their zero-based `id`.
Empty blocks are omitted from this summary but still occupy an index.

```json
{_render_brief(document)}
```

The user's cursor is at block index {cursor_position}.

## How To Answer

Answer with exactly one JSON object and nothing else. Pick one action:

- `{{"action": "reply", "content": "..."}}` to answer conversationally without editing.
- `{{"action": "insert_node", "insertAfter": <id>, "nodeType": "<kind>", "content": "..."}}`
  to add a block after block `id` (use -1 to insert at the top).
- `{{"action": "modify_node", "id": <id>, "nodeType": "<kind>", "content": "..."}}`
  to rewrite the text of block `id`.

`nodeType` is one of: text, paragraph, heading, ai-embedding.
Prefer `ai-embedding` for generated passages the user did not dictate.
"""


def _render_brief(document: Document) -> str:
    entries = [entry.to_dict() for entry in brief(document)]
    rendered = json.dumps(entries, ensure_ascii=False, indent=2)
    if len(rendered) <= BRIEF_CHAR_BUDGET:
        return rendered
    # Drop trailing blocks until the summary fits.
    while entries and len(rendered) > BRIEF_CHAR_BUDGET:
        entries.pop()
        rendered = json.dumps(entries, ensure_ascii=False, indent=2)
    return rendered
