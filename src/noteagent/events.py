"""Typed publish/subscribe bus for agent status and chat notifications.

Sessions and pipelines work without any subscriber; the bus only lets an
outer layer (a UI, a logger, a test) observe transitions.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on an :class:`EventBus`."""

    pass


# =============================================================================
# Session events
# =============================================================================


@dataclass(slots=True)
class AgentStatusChanged(Event):
    """Emitted whenever the session moves to a different status.

    Attributes:
        previous: Status value before the transition.
        status: Status value after the transition.
    """

    previous: str
    status: str


@dataclass(slots=True)
class AgentErrorRaised(Event):
    """Emitted when a session or chat failure is recorded.

    Attributes:
        code: Machine-readable error code (``AGENT_INIT_ERROR``...).
        message: Human-readable description.
    """

    code: str
    message: str


# =============================================================================
# Chat events
# =============================================================================


@dataclass(slots=True)
class ChatTurnCompleted(Event):
    """Emitted when the agent answered a chat turn in time.

    Attributes:
        action: The instruction's action name (``reply``, ``insert_node``...).
        history_length: Number of history entries after the turn.
    """

    action: str
    history_length: int


@dataclass(slots=True)
class ChatTurnFailed(Event):
    """Emitted when a chat turn was rejected, failed or timed out."""

    code: str
    message: str


@dataclass(slots=True)
class HistoryChanged(Event):
    """Emitted after the conversation history was appended, trimmed or cleared."""

    length: int
    payload: list[dict[str, Any]]


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers are stored as weak references for bound methods so subscribers
    can be garbage collected without unsubscribing. Not thread-safe: publish
    and subscribe from the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``."""
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Invoke every handler for ``event``'s type in registration order.

        A handler that raises is logged and does not stop the others.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            return

        dead_indices: list[int] = []
        for i, handler_ref in enumerate(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(i)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for i in reversed(dead_indices):
            handlers.pop(i)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "AgentStatusChanged",
    "AgentErrorRaised",
    "ChatTurnCompleted",
    "ChatTurnFailed",
    "HistoryChanged",
]
