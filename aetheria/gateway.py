"""Model session gateway — owns the conversation with the narrator model.

One call to send_turn():
  1. Send the text (starting a session first if there is none).
  2. While the reply contains tool calls:
       a. Run exactly one handler per call, matched by tool name. Unknown
          tools are skipped.
       b. Each handler validates its arguments and returns a ToolUpdate plus
          a small acknowledgment for the model.
       c. Send all acknowledgments back as one batch.
  3. Return the final narrative text together with every ToolUpdate, in
     the order the tools ran.

The gateway never touches game state. Applying updates is the caller's
job (see aetheria.orchestrator).

Every remote call is retried on rate-limit / unavailable faults with
exponential backoff. The tool loop is bounded by max_tool_batches.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, Literal, Union

from pydantic import BaseModel, Field

from aetheria import tools
from aetheria.llm import (
    ChatModel,
    ChatSession,
    HistoryTurn,
    ModelReply,
    ToolResult,
    UpstreamError,
    is_transient,
)
from aetheria.models import ChatMessage, LocationNode, LoreEntry, RollOutcome
from aetheria.prompts import SYSTEM_PROMPT
from aetheria.reconciler import locations_to_lore, new_id, tag_lore, to_location_nodes

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    """Raised when a chat session cannot be opened."""


class ToolLoopExceeded(RuntimeError):
    """Raised when the model keeps calling tools past max_tool_batches."""


# ---------------------------------------------------------------------------
# Tool updates — what each handler hands back to the caller
# ---------------------------------------------------------------------------

class DiceRoll(BaseModel):
    kind: Literal["roll"] = "roll"
    reason: str
    result: int
    dc: int
    outcome: RollOutcome


class LoreUpdate(BaseModel):
    kind: Literal["lore"] = "lore"
    entries: list[LoreEntry]


class LocationsUpdate(BaseModel):
    """Map nodes plus their journal mirror entries."""

    kind: Literal["locations"] = "locations"
    nodes: list[LocationNode]
    mirrored: list[LoreEntry]


class PeopleUpdate(BaseModel):
    kind: Literal["people"] = "people"
    npcs: list[tools.NpcPatch]


class InventoryUpdate(BaseModel):
    kind: Literal["inventory"] = "inventory"
    operations: list[tools.InventoryOp]


class QuestUpdate(BaseModel):
    kind: Literal["quests"] = "quests"
    operations: list[tools.QuestOp]


class WorldNameUpdate(BaseModel):
    kind: Literal["world"] = "world"
    world_name: str


ToolUpdate = Union[
    DiceRoll, LoreUpdate, LocationsUpdate, PeopleUpdate,
    InventoryUpdate, QuestUpdate, WorldNameUpdate,
]


class GatewayReply(BaseModel):
    text: str
    updates: list[ToolUpdate] = Field(default_factory=list)


Handler = Callable[[Any], tuple[ToolUpdate, dict[str, Any]]]


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class ModelGateway:
    """Session lifecycle, tool dispatch and retry around a ChatModel.

    Args:
        model:            The chat backend.
        max_retries:      Retries per remote call on transient faults.
        retry_delay:      Initial backoff in seconds; doubles per retry.
        max_tool_batches: Tool-call rounds allowed per send_turn().
        rng:              Random source for dice rolls.
    """

    def __init__(
        self,
        model: ChatModel,
        *,
        system_prompt: str = SYSTEM_PROMPT,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        max_tool_batches: int = 16,
        rng: random.Random | None = None,
    ) -> None:
        self._model = model
        self._system_prompt = system_prompt
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_tool_batches = max_tool_batches
        self._rng = rng or random.Random()
        self._session: ChatSession | None = None
        self._handlers: dict[str, Handler] = {
            tools.ROLL_DICE: self._roll_dice,
            tools.UPDATE_JOURNAL: self._update_journal,
            tools.UPDATE_LOCATIONS: self._update_locations,
            tools.UPDATE_PEOPLE: self._update_people,
            tools.MANAGE_INVENTORY: self._manage_inventory,
            tools.MANAGE_QUESTS: self._manage_quests,
            tools.SET_WORLD_CONTEXT: self._set_world_context,
        }

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def has_session(self) -> bool:
        return self._session is not None

    def start_session(self) -> None:
        """Open a fresh session with no history."""
        self._open([])
        logger.info("started new narrator session")

    def resume_session(self, messages: list[ChatMessage]) -> None:
        """Open a session replaying a saved transcript.

        System messages are local-only and are not replayed.
        """
        history = [
            HistoryTurn(role=m.role, text=m.text)
            for m in messages
            if m.role in ("user", "model")
        ]
        self._open(history)
        logger.info("resumed narrator session with %d history turns", len(history))

    def _open(self, history: list[HistoryTurn]) -> None:
        try:
            self._session = self._model.start_chat(
                system=self._system_prompt,
                tools=tools.TOOL_DECLARATIONS,
                history=history,
            )
        except Exception as e:
            self._session = None
            raise SessionError(f"Could not open narrator session: {e}") from e

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_turn(self, text: str) -> GatewayReply:
        """Send `text` and resolve every tool call until narrative comes back."""
        if self._session is None:
            self.start_session()
        session = self._session
        assert session is not None

        reply = await self._with_retry(functools.partial(session.send, text))
        updates: list[ToolUpdate] = []
        batches = 0

        while reply.tool_calls:
            batches += 1
            if batches > self.max_tool_batches:
                raise ToolLoopExceeded(
                    f"Model still calling tools after {self.max_tool_batches} batches"
                )

            results: list[ToolResult] = []
            for call in reply.tool_calls:
                handler = self._handlers.get(call.name)
                if handler is None:
                    logger.warning("Unknown tool %r called — ignored", call.name)
                    continue
                update, ack = handler(call.arguments)
                updates.append(update)
                results.append(ToolResult(call_id=call.id, name=call.name, response=ack))

            logger.debug("tool batch %d: %d results", batches, len(results))
            reply = await self._with_retry(functools.partial(session.send, results))

        return GatewayReply(text=reply.text, updates=updates)

    async def _with_retry(self, call: Callable[[], Awaitable[ModelReply]]) -> ModelReply:
        delay = self.retry_delay
        for attempt in range(self.max_retries + 1):
            try:
                return await call()
            except UpstreamError as e:
                if attempt < self.max_retries and is_transient(e):
                    logger.warning(
                        "Model backend busy (%s), retry %d/%d in %.1fs",
                        e, attempt + 1, self.max_retries, delay,
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                    continue
                raise
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Tool handlers
    # ------------------------------------------------------------------

    def _roll_dice(self, arguments: Any) -> tuple[ToolUpdate, dict[str, Any]]:
        args = tools.parse_args(tools.ROLL_DICE, tools.RollDiceArgs, arguments)
        roll = self._rng.randint(1, 100)
        outcome: RollOutcome = "Success" if roll >= args.difficulty else "Failure"
        update = DiceRoll(reason=args.reason, result=roll, dc=args.difficulty, outcome=outcome)
        return update, {"result": roll, "outcome": outcome}

    def _update_journal(self, arguments: Any) -> tuple[ToolUpdate, dict[str, Any]]:
        args = tools.parse_args(tools.UPDATE_JOURNAL, tools.JournalArgs, arguments)
        return LoreUpdate(entries=tag_lore(args.entries)), {"status": "journal_updated"}

    def _update_locations(self, arguments: Any) -> tuple[ToolUpdate, dict[str, Any]]:
        args = tools.parse_args(tools.UPDATE_LOCATIONS, tools.LocationsArgs, arguments)
        nodes = to_location_nodes(args.locations)
        update = LocationsUpdate(nodes=nodes, mirrored=locations_to_lore(nodes))
        return update, {"status": "map_updated"}

    def _update_people(self, arguments: Any) -> tuple[ToolUpdate, dict[str, Any]]:
        args = tools.parse_args(tools.UPDATE_PEOPLE, tools.PeopleArgs, arguments)
        tagged = [npc.model_copy(update={"id": new_id()}) for npc in args.npcs]
        return PeopleUpdate(npcs=tagged), {"status": "dossier_updated"}

    def _manage_inventory(self, arguments: Any) -> tuple[ToolUpdate, dict[str, Any]]:
        args = tools.parse_args(tools.MANAGE_INVENTORY, tools.InventoryArgs, arguments)
        return InventoryUpdate(operations=args.operations), {"status": "inventory_updated"}

    def _manage_quests(self, arguments: Any) -> tuple[ToolUpdate, dict[str, Any]]:
        args = tools.parse_args(tools.MANAGE_QUESTS, tools.QuestArgs, arguments)
        return QuestUpdate(operations=args.operations), {"status": "quests_updated"}

    def _set_world_context(self, arguments: Any) -> tuple[ToolUpdate, dict[str, Any]]:
        args = tools.parse_args(tools.SET_WORLD_CONTEXT, tools.WorldContextArgs, arguments)
        return WorldNameUpdate(world_name=args.world_name), {"status": "world_name_set"}
