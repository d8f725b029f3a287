"""Standardized error types for note schema, session and chat failures.

Schema errors are raised. Session and chat errors are returned to callers as
values (see :class:`noteagent.agent.session.SessionResult` and
:class:`noteagent.chat.pipeline.ChatResult`) and carry a machine-readable
code plus a human-readable message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes surfaced to callers."""

    # Schema errors
    SCHEMA_ERROR = "SCHEMA_ERROR"

    # Agent lifecycle errors
    AGENT_NOT_READY = "AGENT_NOT_READY"
    AGENT_INIT_ERROR = "AGENT_INIT_ERROR"
    AGENT_START_ERROR = "AGENT_START_ERROR"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"

    # Chat errors
    CHAT_ERROR = "CHAT_ERROR"
    CHAT_TIMEOUT = "CHAT_TIMEOUT"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class NoteAgentError(Exception):
    """Base exception class for all note agent errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    @property
    def code(self) -> str:
        return self.error_code

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary suitable for JSON payloads."""
        result: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Schema Errors
# -----------------------------------------------------------------------------

@dataclass
class SchemaError(NoteAgentError):
    """Raised when a raw node payload is malformed or carries an unknown version.

    ``path`` points at the offending node using dotted/indexed notation such as
    ``root.children[2].tag``.
    """

    error_code: str = field(default=ErrorCode.SCHEMA_ERROR)
    message: str = field(default="Malformed node payload")
    details: dict[str, Any] = field(default_factory=dict)
    path: str = field(default="")

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.path:
            self.details.setdefault("path", self.path)

    def __str__(self) -> str:
        if self.path:
            return f"[{self.error_code}] {self.message} (at {self.path})"
        return super().__str__()


# -----------------------------------------------------------------------------
# Agent Lifecycle Errors
# -----------------------------------------------------------------------------

@dataclass
class AgentNotReady(NoteAgentError):
    """The session has no running capability."""

    error_code: str = field(default=ErrorCode.AGENT_NOT_READY)
    message: str = field(default="Agent is not ready")
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "warning"


@dataclass
class AgentInitError(NoteAgentError):
    """Acquiring the agent capability failed."""

    error_code: str = field(default=ErrorCode.AGENT_INIT_ERROR)
    message: str = field(default="Failed to initialize agent")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentStartError(NoteAgentError):
    """Marking the capability as running failed."""

    error_code: str = field(default=ErrorCode.AGENT_START_ERROR)
    message: str = field(default="Failed to start agent")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class CredentialError(NoteAgentError):
    """The credential handed to a capability factory is malformed."""

    error_code: str = field(default=ErrorCode.INVALID_CREDENTIAL)
    message: str = field(default="Credential is malformed")
    details: dict[str, Any] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Chat Errors
# -----------------------------------------------------------------------------

@dataclass
class ChatError(NoteAgentError):
    """The capability failed while producing an instruction."""

    error_code: str = field(default=ErrorCode.CHAT_ERROR)
    message: str = field(default="Chat failed")
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ChatError":
        message = str(exc) or "Chat failed"
        return cls(message=message, details={"exception": type(exc).__name__})


@dataclass
class ChatTimeout(NoteAgentError):
    """The capability did not answer within the configured timeout."""

    error_code: str = field(default=ErrorCode.CHAT_TIMEOUT)
    message: str = field(default="Chat timeout")
    details: dict[str, Any] = field(default_factory=dict)
    timeout: float | None = field(default=None)

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.timeout is not None:
            self.details.setdefault("timeout", self.timeout)


def error_from_dict(payload: Mapping[str, Any]) -> NoteAgentError:
    """Rebuild a typed error from :meth:`NoteAgentError.to_dict` output."""

    code = str(payload.get("code") or "")
    message = str(payload.get("message") or "")
    details = dict(payload.get("details") or {})
    error_cls = _ERRORS_BY_CODE.get(code)
    if error_cls is None:
        return NoteAgentError(error_code=code or "UNKNOWN", message=message, details=details)
    if message:
        return error_cls(message=message, details=details)
    return error_cls(details=details)


_ERRORS_BY_CODE: dict[str, type[NoteAgentError]] = {
    ErrorCode.SCHEMA_ERROR: SchemaError,
    ErrorCode.AGENT_NOT_READY: AgentNotReady,
    ErrorCode.AGENT_INIT_ERROR: AgentInitError,
    ErrorCode.AGENT_START_ERROR: AgentStartError,
    ErrorCode.INVALID_CREDENTIAL: CredentialError,
    ErrorCode.CHAT_ERROR: ChatError,
    ErrorCode.CHAT_TIMEOUT: ChatTimeout,
}


__all__ = [
    "ErrorCode",
    "NoteAgentError",
    "SchemaError",
    "AgentNotReady",
    "AgentInitError",
    "AgentStartError",
    "CredentialError",
    "ChatError",
    "ChatTimeout",
    "error_from_dict",
]
