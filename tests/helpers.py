"""Shared test helpers and stub capabilities.

Import from here instead of redefining capability stubs in each test module.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Sequence

from noteagent.agent.actions import Instruction, Reply
from noteagent.chat.history import Message
from noteagent.notes.document import Document


class StubCapability:
    """In-process capability returning queued instructions.

    Example:
        capability = StubCapability(replies=[Reply(content="hi")])
    """

    def __init__(
        self,
        replies: Sequence[Any] | None = None,
        *,
        start_error: Exception | None = None,
    ) -> None:
        self._replies = list(replies or [])
        self._start_error = start_error
        self.running = False
        self.start_calls = 0
        self.calls: list[tuple[list[Message], int, Document]] = []

    def start(self) -> None:
        self.start_calls += 1
        if self._start_error is not None:
            raise self._start_error
        self.running = True

    def is_running(self) -> bool:
        return self.running

    async def chat(self, history: Sequence[Message], cursor_position: int, document: Document) -> Instruction:
        self.calls.append((list(history), cursor_position, document))
        if not self._replies:
            return Reply(content="ok")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class HangingCapability(StubCapability):
    """Capability whose chat call never completes on its own."""

    def __init__(self) -> None:
        super().__init__()
        self.cancelled = False

    async def chat(self, history: Sequence[Message], cursor_position: int, document: Document) -> Instruction:
        self.calls.append((list(history), cursor_position, document))
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        raise AssertionError("unreachable")


class CountingFactory:
    """Capability factory recording every credential it was called with."""

    def __init__(
        self,
        capability_builder: Callable[[], StubCapability] = StubCapability,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
        failures: int | None = None,
    ) -> None:
        self._builder = capability_builder
        self._delay = delay
        self._error = error
        self._failures = failures
        self.credentials: list[str] = []
        self.built: list[StubCapability] = []

    async def __call__(self, credential: str) -> StubCapability:
        self.credentials.append(credential)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None and (self._failures is None or self.calls <= self._failures):
            raise self._error
        capability = self._builder()
        self.built.append(capability)
        return capability

    @property
    def calls(self) -> int:
        return len(self.credentials)


async def running_session(capability: StubCapability | None = None, **session_kwargs: Any):
    """Return an initialized :class:`AgentSession` wrapping ``capability``."""

    from noteagent.agent.session import AgentConfig, AgentSession

    target = capability or StubCapability()
    session = AgentSession(lambda _credential: target, **session_kwargs)
    result = await session.initialize(AgentConfig(credential="a.b.c"))
    assert result.ok
    return session
