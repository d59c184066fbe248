"""Tests for aetheria.llm — HttpChatModel sessions and fault classification."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from aetheria.llm import (
    HistoryTurn,
    HttpChatModel,
    ToolResult,
    UpstreamError,
    is_transient,
)

TOOLS = [{"type": "function", "function": {"name": "rollDice", "parameters": {}}}]


def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _text_body(text: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def _tool_body(*calls: tuple[str, str, dict]) -> dict:
    return {"choices": [{"message": {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {"id": cid, "type": "function", "function": {"name": name, "arguments": json.dumps(args)}}
            for cid, name, args in calls
        ],
    }}]}


@pytest.fixture
def model() -> HttpChatModel:
    return HttpChatModel(provider_url="http://localhost:8080/", model="narrator-7b")


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class TestRequests:
    async def test_posts_to_chat_completions(self, model: HttpChatModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_text_body("ok")))
        session = model.start_chat(system="sys", tools=TOOLS, history=[])
        with patch("httpx.AsyncClient.post", mock_post):
            await session.send("hello")
        assert mock_post.call_args[0][0] == "http://localhost:8080/v1/chat/completions"

    async def test_body_has_system_tools_and_model(self, model: HttpChatModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_text_body("ok")))
        session = model.start_chat(system="You narrate.", tools=TOOLS, history=[])
        with patch("httpx.AsyncClient.post", mock_post):
            await session.send("hello")
        body = mock_post.call_args.kwargs["json"]
        assert body["model"] == "narrator-7b"
        assert body["tools"] == TOOLS
        assert body["messages"][0] == {"role": "system", "content": "You narrate."}
        assert body["messages"][-1] == {"role": "user", "content": "hello"}

    async def test_history_is_replayed(self, model: HttpChatModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_text_body("ok")))
        history = [HistoryTurn(role="user", text="I wait."), HistoryTurn(role="model", text="Time passes.")]
        session = model.start_chat(system="sys", tools=TOOLS, history=history)
        with patch("httpx.AsyncClient.post", mock_post):
            await session.send("again")
        roles = [m["role"] for m in mock_post.call_args.kwargs["json"]["messages"]]
        assert roles == ["system", "user", "assistant", "user"]

    async def test_bearer_token_sent_when_api_key_set(self) -> None:
        model = HttpChatModel(provider_url="http://localhost:8080", api_key="secret")
        mock_post = AsyncMock(return_value=_mock_response(_text_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await model.start_chat(system="s", tools=[], history=[]).send("x")
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer secret"

    async def test_no_auth_header_without_api_key(self, model: HttpChatModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_text_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await model.start_chat(system="s", tools=[], history=[]).send("x")
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]


# ---------------------------------------------------------------------------
# Replies and tool results
# ---------------------------------------------------------------------------

class TestReplies:
    async def test_text_reply(self, model: HttpChatModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_text_body("The tavern is dark.")))
        with patch("httpx.AsyncClient.post", mock_post):
            reply = await model.start_chat(system="s", tools=TOOLS, history=[]).send("look")
        assert reply.text == "The tavern is dark."
        assert reply.tool_calls == []

    async def test_tool_calls_parsed(self, model: HttpChatModel) -> None:
        body = _tool_body(("c1", "rollDice", {"reason": "Climb", "difficulty": 30}))
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            reply = await model.start_chat(system="s", tools=TOOLS, history=[]).send("climb")
        [call] = reply.tool_calls
        assert call.id == "c1"
        assert call.name == "rollDice"
        assert call.arguments == {"reason": "Climb", "difficulty": 30}
        assert reply.text == ""

    async def test_non_json_arguments_kept_raw(self, model: HttpChatModel) -> None:
        body = {"choices": [{"message": {"content": None, "tool_calls": [
            {"id": "c1", "function": {"name": "rollDice", "arguments": "{oops"}},
        ]}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            reply = await model.start_chat(system="s", tools=TOOLS, history=[]).send("x")
        assert reply.tool_calls[0].arguments == "{oops"

    async def test_tool_results_answer_each_call(self, model: HttpChatModel) -> None:
        first = _mock_response(_tool_body(
            ("c1", "rollDice", {"reason": "a", "difficulty": 1}),
            ("c2", "mysteryTool", {}),
        ))
        second = _mock_response(_text_body("Done."))
        mock_post = AsyncMock(side_effect=[first, second])
        session = model.start_chat(system="s", tools=TOOLS, history=[])
        with patch("httpx.AsyncClient.post", mock_post):
            await session.send("go")
            reply = await session.send([ToolResult(call_id="c1", name="rollDice", response={"result": 50})])

        assert reply.text == "Done."
        tool_msgs = [m for m in mock_post.call_args.kwargs["json"]["messages"] if m["role"] == "tool"]
        assert [m["tool_call_id"] for m in tool_msgs] == ["c1", "c2"]
        assert json.loads(tool_msgs[0]["content"]) == {"result": 50}
        assert json.loads(tool_msgs[1]["content"]) == {"status": "ignored"}

    async def test_text_after_interrupted_batch_answers_open_calls(self, model: HttpChatModel) -> None:
        first = _mock_response(_tool_body(("c1", "rollDice", {"reason": "Climb"})))
        second = _mock_response(_text_body("You wait."))
        mock_post = AsyncMock(side_effect=[first, second])
        session = model.start_chat(system="s", tools=TOOLS, history=[])
        with patch("httpx.AsyncClient.post", mock_post):
            await session.send("climb")
            # The tool batch was abandoned; the next turn is plain text
            reply = await session.send("next turn")

        assert reply.text == "You wait."
        messages = mock_post.call_args.kwargs["json"]["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "tool", "user"]
        assert messages[3]["tool_call_id"] == "c1"
        assert json.loads(messages[3]["content"]) == {"status": "ignored"}
        assert messages[4]["content"] == "next turn"

    async def test_failed_send_not_committed_to_history(self, model: HttpChatModel) -> None:
        session = model.start_chat(system="s", tools=[], history=[])
        busy = AsyncMock(return_value=_mock_response({}, status=429))
        with patch("httpx.AsyncClient.post", busy):
            with pytest.raises(UpstreamError):
                await session.send("hello")
        assert session.messages == []

        ok = AsyncMock(return_value=_mock_response(_text_body("hi")))
        with patch("httpx.AsyncClient.post", ok):
            await session.send("hello")
        assert [m["role"] for m in session.messages] == ["user", "assistant"]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestErrors:
    async def test_connect_error(self, model: HttpChatModel) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(UpstreamError, match="Cannot connect"):
                await model.start_chat(system="s", tools=[], history=[]).send("x")

    async def test_timeout(self, model: HttpChatModel) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(UpstreamError, match="timed out"):
                await model.start_chat(system="s", tools=[], history=[]).send("x")

    async def test_http_error_carries_status(self, model: HttpChatModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=503))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(UpstreamError, match="HTTP 503") as info:
                await model.start_chat(system="s", tools=[], history=[]).send("x")
        assert info.value.status == 503

    async def test_malformed_response(self, model: HttpChatModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "kobold"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(UpstreamError, match="Unexpected response format"):
                await model.start_chat(system="s", tools=[], history=[]).send("x")


class TestIsTransient:
    @pytest.mark.parametrize("status", [429, 503])
    def test_transient_statuses(self, status: int) -> None:
        assert is_transient(UpstreamError("busy", status=status))

    def test_message_matching(self) -> None:
        assert is_transient(UpstreamError("Resource exhausted: quota exceeded"))
        assert is_transient(RuntimeError("got 429 from upstream"))

    def test_other_faults_are_terminal(self) -> None:
        assert not is_transient(UpstreamError("Model backend returned HTTP 400", status=400))
        assert not is_transient(UpstreamError("Cannot connect to model backend"))
