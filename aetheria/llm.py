"""LLM client — chat sessions against a tool-calling backend.

The gateway talks to the model through two small protocols:

    class ChatModel(Protocol):
        def start_chat(self, *, system: str, tools: list[dict],
                       history: list[HistoryTurn]) -> ChatSession: ...

    class ChatSession(Protocol):
        async def send(self, message: str | list[ToolResult]) -> ModelReply: ...

A reply carries narrative text and/or tool calls. When it carries tool
calls the caller answers them with a list of ToolResult on the next send.

HttpChatModel is the real implementation, speaking the OpenAI-compatible
chat-completions format. Tests use a scripted stub (see conftest.py).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Literal, Protocol

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wire-neutral types
# ---------------------------------------------------------------------------

class ToolCall(BaseModel):
    id: str
    name: str
    arguments: Any = None  # untrusted; parsed by aetheria.tools


class ToolResult(BaseModel):
    call_id: str
    name: str
    response: dict[str, Any]


class ModelReply(BaseModel):
    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)


class HistoryTurn(BaseModel):
    role: Literal["user", "model"]
    text: str


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class ChatSession(Protocol):
    async def send(self, message: str | list[ToolResult]) -> ModelReply: ...


class ChatModel(Protocol):
    def start_chat(
        self, *, system: str, tools: list[dict], history: list[HistoryTurn]
    ) -> ChatSession: ...


# ---------------------------------------------------------------------------
# UpstreamError — every failure coming back from the backend
# ---------------------------------------------------------------------------

class UpstreamError(RuntimeError):
    """Raised when the model backend cannot be reached or returns an error.

    `status` is the HTTP status code when there was one.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


TRANSIENT_STATUSES = (429, 503)
_TRANSIENT_MARKERS = ("429", "503", "quota")


def is_transient(error: BaseException) -> bool:
    """True for rate-limit and service-unavailable faults worth retrying."""
    status = getattr(error, "status", None)
    if status in TRANSIENT_STATUSES:
        return True
    message = str(error).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


# ---------------------------------------------------------------------------
# HttpChatModel — OpenAI-compatible /v1/chat/completions
# ---------------------------------------------------------------------------

class HttpChatModel:
    """Async HTTP client for OpenAI-compatible chat backends with tools.

    Args:
        provider_url: Base URL of the backend, e.g. "http://localhost:8080".
        api_key:      Bearer token, or empty string if not required.
        model:        Model identifier sent with every request.
        timeout:      HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        model: str = "",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    @property
    def url(self) -> str:
        return f"{self._base_url}/v1/chat/completions"

    def headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def start_chat(
        self, *, system: str, tools: list[dict], history: list[HistoryTurn]
    ) -> HttpChatSession:
        return HttpChatSession(self, system=system, tools=tools, history=history)

    async def post(self, body: dict) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self.url, json=body, headers=self.headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise UpstreamError(f"Cannot connect to model backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"Model backend returned HTTP {e.response.status_code}",
                status=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Model backend timed out after {self._timeout}s") from e
        return resp.json()


class HttpChatSession:
    """One conversation. History is only committed after a request succeeds,
    so a failed send can be retried with the same message."""

    def __init__(
        self,
        model: HttpChatModel,
        *,
        system: str,
        tools: list[dict],
        history: list[HistoryTurn],
    ) -> None:
        self._model = model
        self._system = system
        self._tools = tools
        self._messages: list[dict[str, Any]] = [
            {"role": "assistant" if turn.role == "model" else "user", "content": turn.text}
            for turn in history
        ]

    @property
    def messages(self) -> list[dict[str, Any]]:
        return list(self._messages)

    def _pending(self, message: str | list[ToolResult]) -> list[dict[str, Any]]:
        answered = {} if isinstance(message, str) else {r.call_id: r for r in message}
        pending: list[dict[str, Any]] = []
        # Every call in the last assistant turn needs an answer on the wire,
        # including calls left over from an interrupted tool batch.
        last = self._messages[-1] if self._messages else {}
        for call in last.get("tool_calls") or []:
            result = answered.pop(call["id"], None)
            response = result.response if result else {"status": "ignored"}
            pending.append({
                "role": "tool",
                "tool_call_id": call["id"],
                "content": json.dumps(response),
            })
        if isinstance(message, str):
            pending.append({"role": "user", "content": message})
            return pending
        for result in answered.values():
            pending.append({
                "role": "tool",
                "tool_call_id": result.call_id,
                "content": json.dumps(result.response),
            })
        return pending

    def _body(self, pending: list[dict[str, Any]]) -> dict[str, Any]:
        body: dict[str, Any] = {
            "messages": [{"role": "system", "content": self._system}, *self._messages, *pending],
        }
        if self._tools:
            body["tools"] = self._tools
        if self._model._model:
            body["model"] = self._model._model
        return body

    def _parse_reply(self, data: dict) -> tuple[dict[str, Any], ModelReply]:
        choices = data.get("choices")
        if not choices or "message" not in choices[0]:
            raise UpstreamError("Unexpected response format from model backend")
        message = choices[0]["message"]

        calls: list[ToolCall] = []
        for raw in message.get("tool_calls") or []:
            fn = raw.get("function", {})
            arguments: Any = fn.get("arguments")
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments) if arguments.strip() else {}
                except json.JSONDecodeError:
                    logger.warning("tool %r sent non-JSON arguments", fn.get("name"))
            calls.append(ToolCall(id=raw.get("id", ""), name=fn.get("name", ""), arguments=arguments))

        assistant: dict[str, Any] = {"role": "assistant", "content": message.get("content") or ""}
        if message.get("tool_calls"):
            assistant["tool_calls"] = message["tool_calls"]
        return assistant, ModelReply(text=message.get("content") or "", tool_calls=calls)

    async def send(self, message: str | list[ToolResult]) -> ModelReply:
        pending = self._pending(message)
        body = self._body(pending)
        logger.debug(
            "chat request url=%s messages=%d", self._model.url, len(body["messages"])
        )
        data = await self._model.post(body)
        assistant, reply = self._parse_reply(data)
        self._messages.extend(pending)
        self._messages.append(assistant)
        logger.debug(
            "chat reply text_len=%d tool_calls=%d", len(reply.text), len(reply.tool_calls)
        )
        return reply
