"""Note editing agent: typed note trees, agent sessions and chat turns."""

from .agent.actions import (
    InsertNode,
    Instruction,
    InstructionParseError,
    ModifyNode,
    Reply,
    apply_instruction,
    describe_instruction,
    parse_instruction,
)
from .agent.capability import AgentCapability, CapabilityFactory, HttpAgentCapability, http_capability_factory
from .agent.session import AgentConfig, AgentSession, AgentStatus, SessionResult
from .chat.history import ChatHistory, Message
from .chat.pipeline import ChatConfig, ChatPipeline, ChatResult
from .errors import ErrorCode, NoteAgentError, SchemaError
from .notes.document import Document, create_empty_document

__all__ = [
    "AgentCapability",
    "AgentConfig",
    "AgentSession",
    "AgentStatus",
    "CapabilityFactory",
    "ChatConfig",
    "ChatHistory",
    "ChatPipeline",
    "ChatResult",
    "Document",
    "ErrorCode",
    "HttpAgentCapability",
    "InsertNode",
    "Instruction",
    "InstructionParseError",
    "Message",
    "ModifyNode",
    "NoteAgentError",
    "Reply",
    "SchemaError",
    "SessionResult",
    "apply_instruction",
    "create_empty_document",
    "describe_instruction",
    "http_capability_factory",
    "parse_instruction",
]
