"""Tests for :mod:`noteagent.debug` and :mod:`noteagent.utils.logging`."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from noteagent.agent.actions import InsertNode
from noteagent.debug import log_agent_status, log_chat_action, log_note_structure, note_structure
from noteagent.errors import AgentInitError
from noteagent.notes.document import Document
from noteagent.services.settings import Settings, load_settings
from noteagent.utils import logging as logging_utils
from noteagent.utils.logging import configure_logging, setup_logging


def test_note_structure_previews_children(sample_document: Document) -> None:
    structure = note_structure(sample_document)

    assert structure["id"] == "n1"
    assert structure["childCount"] == 3
    assert structure["children"][1] == {"index": 1, "type": "paragraph", "content": "Hello world"}


def test_debug_helpers_log_at_debug(sample_document: Document, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="noteagent.debug")

    log_note_structure(sample_document)
    log_agent_status("error", AgentInitError(message="boom"))
    log_chat_action(InsertNode(after_index=0, node_kind="paragraph", content="x" * 80))

    messages = [record.getMessage() for record in caplog.records]
    assert any("childCount" in message for message in messages)
    assert any("AGENT_INIT_ERROR" in message for message in messages)
    assert any("Agent inserted a new paragraph node" in message and "x" * 80 not in message for message in messages)


@pytest.fixture()
def root_logging(monkeypatch: pytest.MonkeyPatch):
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    monkeypatch.setattr(logging_utils, "_active", None)
    yield root
    for handler in root.handlers[:]:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def _flush(root: logging.Logger) -> None:
    for handler in root.handlers:
        handler.flush()


def test_setup_logging_writes_to_log_dir(tmp_path: Path, root_logging: logging.Logger) -> None:
    log_path = setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

    logging.getLogger("noteagent.test").info("hello log")
    _flush(root_logging)

    assert log_path == tmp_path / "noteagent.log"
    assert "hello log" in log_path.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_keeps_first_configuration(tmp_path: Path, root_logging: logging.Logger) -> None:
    first = setup_logging(log_dir=tmp_path / "a", console=False)
    second = setup_logging(log_dir=tmp_path / "b", console=False)

    assert second == first
    assert not (tmp_path / "b").exists()


def test_configure_logging_follows_debug_flag(tmp_path: Path, root_logging: logging.Logger) -> None:
    quiet = Settings(log_dir=str(tmp_path))
    verbose = Settings(log_dir=str(tmp_path), debug_logging=True)

    configure_logging(quiet, console=False)
    assert root_logging.level == logging.INFO
    handlers = root_logging.handlers[:]

    configure_logging(quiet, console=False)
    assert root_logging.handlers == handlers

    log_path = configure_logging(verbose, console=False)
    logging.getLogger("noteagent.test").debug("verbose now")
    _flush(root_logging)

    assert root_logging.level == logging.DEBUG
    assert root_logging.handlers != handlers
    assert "verbose now" in log_path.read_text(encoding="utf-8")


def test_load_settings_applies_logging_from_environment(
    tmp_path: Path, root_logging: logging.Logger, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("NOTEAGENT_DEBUG_LOGGING", "1")
    monkeypatch.setenv("NOTEAGENT_LOG_DIR", str(tmp_path / "logs"))

    settings = load_settings(tmp_path / "settings.json", console=False)
    _flush(root_logging)

    assert settings.debug_logging is True
    assert settings.log_dir == str(tmp_path / "logs")
    assert root_logging.level == logging.DEBUG
    assert "Settings loaded" in (tmp_path / "logs" / "noteagent.log").read_text(encoding="utf-8")
