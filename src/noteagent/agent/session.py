"""Agent session lifecycle: single-flight initialization and status tracking.

Status moves ``idle -> starting -> running`` on a successful initialization
and to ``error`` on any recorded failure; :meth:`AgentSession.clear_error`
returns it to ``idle``. Readiness is never stored: :meth:`AgentSession.is_ready`
asks the capability itself.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum

from ..errors import AgentInitError, AgentStartError, NoteAgentError
from ..events import AgentErrorRaised, AgentStatusChanged, Event, EventBus
from .capability import AgentCapability, CapabilityFactory

__all__ = [
    "AgentStatus",
    "AgentConfig",
    "SessionResult",
    "AgentSession",
]

LOGGER = logging.getLogger(__name__)

STATUS_HISTORY_LIMIT = 10
ERROR_HISTORY_LIMIT = 5


class AgentStatus(str, Enum):
    """Lifecycle status of an :class:`AgentSession`."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class AgentConfig:
    """Parameters for acquiring a capability."""

    credential: str
    auto_start: bool = True

    def __repr__(self) -> str:
        return f"AgentConfig(credential=<redacted>, auto_start={self.auto_start})"


@dataclass(slots=True, frozen=True)
class SessionResult:
    """Outcome of a lifecycle operation."""

    status: AgentStatus
    error: NoteAgentError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AgentSession:
    """Owns the agent capability and its lifecycle status.

    Concurrent :meth:`initialize` calls share one in-flight attempt, so the
    capability factory runs at most once per attempt. The slot is released by
    :meth:`stop`, or by :meth:`clear_error` after a failed attempt.
    """

    def __init__(
        self,
        factory: CapabilityFactory,
        *,
        events: EventBus[Event] | None = None,
    ) -> None:
        self._factory = factory
        self._events = events
        self._capability: AgentCapability | None = None
        self._status = AgentStatus.IDLE
        self._error: NoteAgentError | None = None
        self._init_task: asyncio.Task[SessionResult] | None = None
        self._generation = 0
        self._status_history: deque[AgentStatus] = deque([AgentStatus.IDLE], maxlen=STATUS_HISTORY_LIMIT)
        self._error_history: deque[NoteAgentError] = deque(maxlen=ERROR_HISTORY_LIMIT)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def capability(self) -> AgentCapability | None:
        return self._capability

    @property
    def status(self) -> AgentStatus:
        return self._status

    @property
    def error(self) -> NoteAgentError | None:
        return self._error

    @property
    def status_history(self) -> tuple[AgentStatus, ...]:
        return tuple(self._status_history)

    @property
    def error_history(self) -> tuple[NoteAgentError, ...]:
        return tuple(self._error_history)

    @property
    def is_idle(self) -> bool:
        return self._status is AgentStatus.IDLE

    @property
    def is_starting(self) -> bool:
        return self._status is AgentStatus.STARTING

    @property
    def is_running(self) -> bool:
        return self._status is AgentStatus.RUNNING

    @property
    def has_error(self) -> bool:
        return self._status is AgentStatus.ERROR

    @property
    def initializing(self) -> bool:
        return self._init_task is not None and not self._init_task.done()

    def is_ready(self) -> bool:
        """True iff a capability exists and reports itself running."""

        capability = self._capability
        if capability is None:
            return False
        try:
            return bool(capability.is_running())
        except Exception:
            LOGGER.warning("Capability liveness check failed", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    async def initialize(self, config: AgentConfig) -> SessionResult:
        """Acquire the capability, joining any attempt already in progress."""

        task = self._init_task
        if task is None:
            task = asyncio.get_running_loop().create_task(self._initialize(config, self._generation))
            self._init_task = task
        elif task.done() and not task.cancelled():
            return SessionResult(self._status, task.result().error)
        else:
            LOGGER.debug("Initialization already requested; awaiting the existing attempt")
        return await asyncio.shield(task)

    async def _initialize(self, config: AgentConfig, generation: int) -> SessionResult:
        if generation != self._generation:
            return SessionResult(self._status)
        self._reset_error()
        self._set_status(AgentStatus.STARTING)
        try:
            capability = await self._acquire(config.credential)
            if generation != self._generation:
                LOGGER.info("Session stopped during initialization; discarding the acquired capability")
                return SessionResult(self._status)
            self._capability = capability
            if config.auto_start:
                capability.start()
        except Exception as exc:
            if generation != self._generation:
                LOGGER.info("Initialization failed after the session was stopped: %s", exc)
                return SessionResult(self._status)
            error = AgentInitError(
                message=str(exc) or "Failed to initialize agent",
                details={"exception": type(exc).__name__},
            )
            LOGGER.warning("Agent initialization failed: %s", exc)
            self.record_error(error)
            return SessionResult(self._status, error)

        self._set_status(AgentStatus.RUNNING if config.auto_start else AgentStatus.IDLE)
        LOGGER.info("Agent initialized (auto_start=%s)", config.auto_start)
        return SessionResult(self._status)

    async def _acquire(self, credential: str) -> AgentCapability:
        result = self._factory(credential)
        if inspect.isawaitable(result):
            result = await result
        return result

    def start(self) -> SessionResult:
        """Mark the acquired capability running."""

        capability = self._capability
        if capability is None:
            error = AgentStartError(message="Agent is not initialized")
            self.record_error(error)
            return SessionResult(self._status, error)

        self._reset_error()
        self._set_status(AgentStatus.STARTING)
        try:
            capability.start()
        except Exception as exc:
            error = AgentStartError(
                message=str(exc) or "Failed to start agent",
                details={"exception": type(exc).__name__},
            )
            LOGGER.warning("Agent start failed: %s", exc)
            self.record_error(error)
            return SessionResult(self._status, error)
        self._set_status(AgentStatus.RUNNING)
        return SessionResult(self._status)

    def stop(self) -> SessionResult:
        """Discard the capability and return to ``idle``."""

        self._generation += 1
        self._capability = None
        self._init_task = None
        self._set_status(AgentStatus.IDLE)
        LOGGER.info("Agent stopped")
        return SessionResult(self._status)

    def clear_error(self) -> SessionResult:
        """Leave the ``error`` state; initialization may be retried right after."""

        if self._status is not AgentStatus.ERROR:
            return SessionResult(self._status)
        task = self._init_task
        if task is not None and task.done() and not task.cancelled() and not task.result().ok:
            self._init_task = None
        self._reset_error()
        return SessionResult(self._status)

    def record_error(self, error: NoteAgentError) -> None:
        """Move to ``error`` carrying ``error``."""

        self._error = error
        self._error_history.append(error)
        self._set_status(AgentStatus.ERROR)
        self._publish(AgentErrorRaised(code=error.error_code, message=error.message))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _reset_error(self) -> None:
        self._error = None
        if self._status is AgentStatus.ERROR:
            self._set_status(AgentStatus.IDLE)

    def _set_status(self, status: AgentStatus) -> None:
        previous = self._status
        if previous is status:
            return
        self._status = status
        self._status_history.append(status)
        LOGGER.debug("Agent status %s -> %s", previous.value, status.value)
        self._publish(AgentStatusChanged(previous=previous.value, status=status.value))

    def _publish(self, event: Event) -> None:
        if self._events is not None:
            self._events.publish(event)
