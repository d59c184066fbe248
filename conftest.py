import random

import pytest

from aetheria.gateway import ModelGateway
from aetheria.llm import HistoryTurn, ModelReply, ToolResult
from aetheria.orchestrator import GameSession
from aetheria.storage import SaveStore


class ScriptedSession:
    def __init__(self, model: "ScriptedModel") -> None:
        self._model = model

    async def send(self, message: str | list[ToolResult]) -> ModelReply:
        self._model.sent.append(message)
        if not self._model.replies:
            raise AssertionError(
                f"ScriptedModel: unexpected send (no replies queued). sent so far: {self._model.sent}"
            )
        reply = self._model.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class ScriptedModel:
    """Deterministic chat backend for tests.

    Queue ModelReply objects (or exceptions to raise) in the order sends
    will happen. Every send is recorded in `sent`, every session opened in
    `chats`. The queue is shared across sessions.
    """

    def __init__(self, replies: list | None = None) -> None:
        self.replies: list = list(replies or [])
        self.sent: list = []
        self.chats: list[dict] = []
        self.fail_start: Exception | None = None

    def queue(self, *replies) -> None:
        self.replies.extend(replies)

    def start_chat(self, *, system: str, tools: list[dict], history: list[HistoryTurn]) -> ScriptedSession:
        if self.fail_start is not None:
            raise self.fail_start
        self.chats.append({"system": system, "tools": tools, "history": list(history)})
        return ScriptedSession(self)

    def assert_exhausted(self) -> None:
        """Assert every queued reply was consumed — catches missing sends."""
        if self.replies:
            raise AssertionError(f"ScriptedModel: unused replies remain: {self.replies}")


@pytest.fixture
def model() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def gateway(model: ScriptedModel) -> ModelGateway:
    return ModelGateway(model, retry_delay=0, rng=random.Random(7))


@pytest.fixture
def store(tmp_path) -> SaveStore:
    return SaveStore(tmp_path)


@pytest.fixture
def game(gateway: ModelGateway, store: SaveStore) -> GameSession:
    return GameSession(gateway, store, sim_cooldown=0)
