"""Chat pipeline: one conversational turn against the agent capability.

The pipeline appends the caller's message, races the capability against a
timeout and records the reply in history. It never edits the document; the
returned instruction is folded in by the caller through
:func:`noteagent.agent.actions.apply_instruction`.

Calls on one pipeline must be awaited one after another; the pipeline does
not serialize concurrent turns sharing its history.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from ..agent.actions import Instruction, InstructionParseError, InsertNode, ModifyNode, Reply, parse_instruction
from ..agent.session import AgentSession
from ..errors import AgentNotReady, ChatError, ChatTimeout, NoteAgentError
from ..events import ChatTurnCompleted, ChatTurnFailed, Event, EventBus, HistoryChanged
from ..notes.document import Document
from .conversations import ConversationStore
from .history import DEFAULT_MAX_MESSAGES, ChatHistory, Message

__all__ = ["DEFAULT_CHAT_TIMEOUT", "ChatConfig", "ChatResult", "ChatPipeline"]

LOGGER = logging.getLogger(__name__)

DEFAULT_CHAT_TIMEOUT = 30.0


@dataclass(slots=True, frozen=True)
class ChatConfig:
    """History cap and per-turn timeout (seconds)."""

    max_messages: int = DEFAULT_MAX_MESSAGES
    timeout: float = DEFAULT_CHAT_TIMEOUT


@dataclass(slots=True, frozen=True)
class ChatResult:
    """Instruction returned by the agent, or the error that prevented it."""

    instruction: Instruction | None = None
    error: NoteAgentError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.instruction is not None


class ChatPipeline:
    """Sequences conversational turns for one session and one history."""

    def __init__(
        self,
        session: AgentSession,
        *,
        config: ChatConfig | None = None,
        history: ChatHistory | None = None,
        store: ConversationStore | None = None,
        events: EventBus[Event] | None = None,
    ) -> None:
        self._session = session
        self._config = config or ChatConfig()
        self._store = store
        self._events = events
        if history is None:
            restored = store.load_history() if store is not None else []
            history = ChatHistory(restored, max_messages=self._config.max_messages)
        self._history = history
        self._is_loading = False
        self._error: NoteAgentError | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def config(self) -> ChatConfig:
        return self._config

    @property
    def history(self) -> ChatHistory:
        return self._history

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._history.messages

    @property
    def last_message(self) -> Message | None:
        return self._history.last()

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def error(self) -> NoteAgentError | None:
        """Most recent chat error, falling back to the session's error."""

        return self._error or self._session.error

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------
    async def send_message(
        self,
        content: str,
        cursor_position: int,
        document: Document,
        role: str = "user",
    ) -> ChatResult:
        """Run one turn and return the agent's instruction or the failure."""

        capability = self._session.capability
        if capability is None or not self._session.is_ready():
            return self._reject(AgentNotReady())

        self._is_loading = True
        self._error = None
        self._session.clear_error()
        try:
            self.add_message(Message(content=content, role=role))
            snapshot = list(self._history.messages)
            try:
                raw = await asyncio.wait_for(
                    capability.chat(snapshot, cursor_position, document),
                    timeout=self._config.timeout,
                )
                instruction = _coerce_instruction(raw)
            except asyncio.TimeoutError:
                LOGGER.warning("Chat turn timed out after %.1fs", self._config.timeout)
                return self._fail(ChatTimeout(timeout=self._config.timeout))
            except NoteAgentError as exc:
                LOGGER.warning("Chat turn failed: %s", exc)
                return self._fail(exc)
            except Exception as exc:
                LOGGER.warning("Chat turn failed: %s", exc)
                return self._fail(ChatError.from_exception(exc))

            if isinstance(instruction, Reply):
                self.add_message(Message(content=instruction.content, role="assistant"))
            LOGGER.debug("Chat turn produced %s", instruction.action)
            self._publish(ChatTurnCompleted(action=instruction.action, history_length=len(self._history)))
            return ChatResult(instruction=instruction)
        finally:
            self._is_loading = False

    def add_message(self, message: Message) -> None:
        self._history.append(message)
        self._history_changed()

    def clear_messages(self) -> None:
        self._history.clear()
        self._history_changed()

    def clear_error(self) -> None:
        self._error = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _reject(self, error: NoteAgentError) -> ChatResult:
        LOGGER.info("Chat turn rejected: %s", error)
        self._error = error
        self._publish(ChatTurnFailed(code=error.error_code, message=error.message))
        return ChatResult(error=error)

    def _fail(self, error: NoteAgentError) -> ChatResult:
        self._error = error
        self._session.record_error(error)
        self._publish(ChatTurnFailed(code=error.error_code, message=error.message))
        return ChatResult(error=error)

    def _history_changed(self) -> None:
        payload = self._history.to_payload()
        if self._store is not None:
            try:
                self._store.save_history(self._history.messages)
            except Exception:
                LOGGER.warning("Failed to persist chat history", exc_info=True)
        self._publish(HistoryChanged(length=len(payload), payload=payload))

    def _publish(self, event: Event) -> None:
        if self._events is not None:
            self._events.publish(event)


def _coerce_instruction(raw: Any) -> Instruction:
    if isinstance(raw, (Reply, InsertNode, ModifyNode)):
        return raw
    if isinstance(raw, (Mapping, str)):
        try:
            return parse_instruction(raw)
        except InstructionParseError as exc:
            raise ChatError(message=f"Agent returned an invalid instruction: {exc}") from exc
    raise ChatError(message=f"Agent returned an unsupported value of type {type(raw).__name__}")
