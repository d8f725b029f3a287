"""Agent capability boundary and an OpenAI-compatible implementation.

A capability is the opaque runtime that turns a conversation plus the current
note into an :data:`~noteagent.agent.actions.Instruction`. Sessions acquire
one through a :data:`CapabilityFactory` and only ever use the surface of
:class:`AgentCapability`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Protocol, Sequence, Union, runtime_checkable

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..chat.history import Message
from ..errors import CredentialError
from ..notes.document import Document
from .actions import Instruction, InstructionParseError, Reply, parse_instruction
from .prompts import system_prompt

__all__ = [
    "AgentCapability",
    "CapabilityFactory",
    "CapabilitySettings",
    "HttpAgentCapability",
    "http_capability_factory",
    "instruction_from_completion",
    "validate_jwt",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://ai.aimoverse.xyz/api/v1.0.0"
DEFAULT_MODEL = "aimo-chat"
_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@runtime_checkable
class AgentCapability(Protocol):
    """Chat and lifecycle surface of an agent runtime."""

    def start(self) -> None:
        """Mark the capability running; calling it again is harmless."""
        ...

    def is_running(self) -> bool:
        ...

    async def chat(
        self,
        history: Sequence[Message],
        cursor_position: int,
        document: Document,
    ) -> Instruction:
        """Return the agent's instruction for the latest turn in ``history``."""
        ...


CapabilityFactory = Callable[[str], Union[AgentCapability, Awaitable[AgentCapability]]]


def validate_jwt(token: str) -> bool:
    """Return ``True`` when ``token`` has the three-part JWT shape."""

    parts = token.split(".")
    return len(parts) == 3 and all(parts)


@dataclass(slots=True)
class CapabilitySettings:
    """Subset of settings required to talk to the completion endpoint."""

    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    temperature: float = 0.5
    max_tokens: int = 1000
    top_p: float = 0.95
    request_timeout: float | None = 60.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


def instruction_from_completion(content: str) -> Instruction:
    """Decode a completion into an instruction; plain prose becomes a reply."""

    text = content.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    if text.startswith("{"):
        try:
            return parse_instruction(text)
        except InstructionParseError as exc:
            LOGGER.debug("Completion is not a valid instruction (%s); treating it as a reply", exc)
    return Reply(content=content)


class HttpAgentCapability:
    """Capability backed by an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        credential: str,
        settings: CapabilitySettings | None = None,
        *,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._settings = settings or CapabilitySettings()
        self._client = client or self._build_client(credential, self._settings)
        self._running = False

    @classmethod
    def create(
        cls,
        credential: str,
        settings: CapabilitySettings | None = None,
        *,
        client: AsyncOpenAI | None = None,
    ) -> "HttpAgentCapability":
        """Build a capability, rejecting credentials that are not JWT-shaped."""

        if not isinstance(credential, str) or not validate_jwt(credential.strip()):
            raise CredentialError(message="Credential must be a JWT (header.payload.signature)")
        return cls(credential.strip(), settings, client=client)

    @property
    def settings(self) -> CapabilitySettings:
        return self._settings

    def start(self) -> None:
        if self._running:
            LOGGER.warning("Agent is already running")
            return
        self._running = True
        LOGGER.info("Agent runtime started (model=%s)", self._settings.model)

    def is_running(self) -> bool:
        return self._running

    async def chat(
        self,
        history: Sequence[Message],
        cursor_position: int,
        document: Document,
    ) -> Instruction:
        if not self._running:
            raise RuntimeError("Agent is not running. Call start() first.")

        payload = self._build_payload(history, cursor_position, document)
        LOGGER.debug(
            "Requesting completion via %s with %d message(s)",
            self._settings.model,
            len(payload["messages"]),
        )
        if self._settings.debug_logging:
            LOGGER.debug("Completion payload: %s", payload)

        response: Any = None
        async for attempt in self._retrying():
            with attempt:
                response = await self._client.chat.completions.create(**payload)

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise RuntimeError("Completion response contained no choices")
        content = choices[0].message.content or ""
        return instruction_from_completion(content)

    def _build_payload(
        self,
        history: Sequence[Message],
        cursor_position: int,
        document: Document,
    ) -> Dict[str, Any]:
        messages: list[Dict[str, Any]] = [
            {"role": "system", "content": system_prompt(document, cursor_position)},
        ]
        messages.extend(message.to_dict() for message in history)
        return {
            "model": self._settings.model,
            "messages": messages,
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
            "top_p": self._settings.top_p,
        }

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(
                (
                    APIError,
                    APIStatusError,
                    APIConnectionError,
                    RateLimitError,
                    httpx.TimeoutException,
                )
            ),
        )

    @staticmethod
    def _build_client(credential: str, settings: CapabilitySettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=credential,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            default_headers=headers,
            max_retries=0,
        )


def http_capability_factory(settings: CapabilitySettings | None = None) -> CapabilityFactory:
    """Return a factory building :class:`HttpAgentCapability` instances."""

    def _factory(credential: str) -> AgentCapability:
        return HttpAgentCapability.create(credential, settings)

    return _factory
