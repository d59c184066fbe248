"""Game session orchestrator — world setup and one player turn end-to-end.

Turn flow:
  1. Append the player's message to the transcript.
  2. Gateway call with the player's text. Apply every tool update (rolls,
     lore, map, people, inventory, quests, world name), append the
     narrative, fold the footer into game status.
  3. Cool down: both calls count against upstream rate limits.
  4. Gateway call with the world-simulation prompt. Only lore, map, people
     and quest updates are applied. Perceptible narrative is appended as an
     italic aside.
  5. Append one system message summarising which collections changed.

A failure in step 2 aborts the turn with an error message in the
transcript. A failure in step 4 only drops the simulation.

World setup sends two priming prompts before the player exists: one that
fills lore, map and world name through tools only, one that writes the
prologue.
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from pydantic import BaseModel, Field

from aetheria.footer import STATUS_MARKER, parse_footer
from aetheria.gateway import (
    DiceRoll,
    GatewayReply,
    InventoryUpdate,
    LocationsUpdate,
    LoreUpdate,
    ModelGateway,
    PeopleUpdate,
    QuestUpdate,
    SessionError,
    WorldNameUpdate,
)
from aetheria.models import (
    Character,
    ChatMessage,
    GameStage,
    MessageRole,
    RollInfo,
    SessionState,
)
from aetheria.prompts import PROLOGUE_PROMPT, SIMULATION_PROMPT, WORLD_DATA_PROMPT, intro_prompt
from aetheria.reconciler import (
    apply_inventory_ops,
    apply_quest_ops,
    merge_locations,
    merge_lore,
    merge_npcs,
)
from aetheria.storage import PersistedStateCorruption, SaveStore

logger = logging.getLogger(__name__)

# Which tool updates each kind of call is allowed to apply.
PLAYER_ACTION = frozenset({"roll", "lore", "locations", "people", "inventory", "quests", "world"})
SIMULATION = frozenset({"lore", "locations", "people", "quests"})
PRIMING = frozenset({"lore", "locations", "people", "world"})

COLLECTION_LABELS = {
    "lore": "ARCHIVE",
    "locations": "GRID",
    "npcs": "DOSSIER",
    "inventory": "INVENTORY",
    "quests": "MISSION",
}

FATAL_INIT_MESSAGE = "FATAL ERROR: AETHER DISCONNECTED."


class TurnReport(BaseModel):
    """What one turn did. `changes` maps collection → names of records touched."""

    narrative: str | None = None
    aside: str | None = None
    rolls: list[DiceRoll] = Field(default_factory=list)
    changes: dict[str, list[str]] = Field(default_factory=dict)
    simulated: bool = False
    error: str | None = None


def change_summary(touched: dict[str, list[str]], suffix: str = "") -> list[str]:
    return [
        f">> {COLLECTION_LABELS[collection]}{suffix}: {len(names)} UPDATED"
        for collection, names in touched.items()
        if names
    ]


class GameSession:
    """Owns the SessionState and drives every change to it.

    Args:
        gateway:      Model gateway used for all remote calls.
        store:        Where snapshots are saved. None disables persistence.
        sim_cooldown: Seconds to wait between the action and simulation calls.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        store: SaveStore | None = None,
        *,
        sim_cooldown: float = 2.0,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.sim_cooldown = sim_cooldown
        self.state = SessionState()
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """Restore the saved game. Returns False if there is nothing usable."""
        if self.store is None:
            return False
        try:
            saved = self.store.load()
        except PersistedStateCorruption:
            logger.warning("Save file corrupted, starting new game", exc_info=True)
            return False
        if saved is None:
            return False

        self.state = saved
        if saved.messages:
            try:
                self.gateway.resume_session(saved.messages)
            except SessionError:
                logger.exception("Could not resume narrator session")
        logger.info("loaded save: stage=%s messages=%d", saved.stage.value, len(saved.messages))
        return True

    async def start(self) -> None:
        """Load the saved game, or build a new world if there is none."""
        if not self.load():
            await self.initialize_world()

    def _persist(self) -> None:
        """Save the current state. A failed write is logged, the game goes on."""
        if self.store is None or self.state.stage == GameStage.LOADING:
            return
        try:
            self.store.save(self.state)
        except OSError:
            logger.exception("Could not save game to %s", self.store.path)

    # ------------------------------------------------------------------
    # Transcript helpers
    # ------------------------------------------------------------------

    def _append(self, role: MessageRole, text: str, roll: RollInfo | None = None) -> ChatMessage:
        msg = ChatMessage(id=uuid.uuid4().hex, role=role, text=text, roll=roll)
        self.state.messages = [*self.state.messages, msg]
        return msg

    def _append_roll(self, roll: DiceRoll) -> None:
        self._append(
            "system",
            f"CHECK: {roll.reason} [DC:{roll.dc}]",
            roll=RollInfo(result=roll.result, dc=roll.dc, outcome=roll.outcome),
        )

    def _fold_footer(self, text: str) -> None:
        fields = parse_footer(text)
        if fields:
            self.state.status = self.state.status.model_copy(update=fields)

    # ------------------------------------------------------------------
    # Applying tool updates
    # ------------------------------------------------------------------

    def _apply(
        self,
        reply: GatewayReply,
        allowed: frozenset[str],
        touched: dict[str, list[str]],
        rolls: list[DiceRoll] | None = None,
    ) -> None:
        state = self.state
        for update in reply.updates:
            if update.kind not in allowed:
                logger.debug("%s update not applied for this call", update.kind)
                continue

            if isinstance(update, DiceRoll):
                self._append_roll(update)
                if rolls is not None:
                    rolls.append(update)
            elif isinstance(update, LoreUpdate):
                state.lore = merge_lore(state.lore, update.entries)
                touched.setdefault("lore", []).extend(e.title for e in update.entries)
            elif isinstance(update, LocationsUpdate):
                state.locations = merge_locations(state.locations, update.nodes)
                touched.setdefault("locations", []).extend(n.name for n in update.nodes)
                state.lore = merge_lore(state.lore, update.mirrored)
                touched.setdefault("lore", []).extend(e.title for e in update.mirrored)
            elif isinstance(update, PeopleUpdate):
                state.npcs = merge_npcs(state.npcs, update.npcs)
                touched.setdefault("npcs", []).extend(n.name for n in update.npcs)
            elif isinstance(update, InventoryUpdate):
                state.inventory = apply_inventory_ops(state.inventory, update.operations)
                touched.setdefault("inventory", []).extend(op.item_name for op in update.operations)
            elif isinstance(update, QuestUpdate):
                state.quests = apply_quest_ops(state.quests, update.operations)
                touched.setdefault("quests", []).extend(op.quest_title for op in update.operations)
            elif isinstance(update, WorldNameUpdate):
                state.status = state.status.model_copy(update={"world_name": update.world_name})

    # ------------------------------------------------------------------
    # World setup and stages
    # ------------------------------------------------------------------

    async def initialize_world(self) -> None:
        """Wipe state and generate a new world plus prologue."""
        async with self._lock:
            self.state = SessionState()
            logger.info("initializing new world")
            try:
                self.gateway.start_session()
                data = await self.gateway.send_turn(WORLD_DATA_PROMPT)
                self._apply(data, PRIMING, {})
                prologue = await self.gateway.send_turn(PROLOGUE_PROMPT)
                self._apply(prologue, PRIMING, {})
            except Exception:
                logger.exception("World initialization failed")
                self.state.messages = []
                self._append("system", FATAL_INIT_MESSAGE)
                return

            self.state.messages = []
            self._append("model", prologue.text)
            self.state.stage = GameStage.PROLOGUE
            self._persist()
            logger.info(
                "world %r ready: %d lore, %d locations",
                self.state.status.world_name, len(self.state.lore), len(self.state.locations),
            )

    async def reset(self) -> None:
        """Drop the save and start over with a new world."""
        if self.store is not None:
            self.store.clear()
        await self.initialize_world()

    def require_stage(self, *stages: GameStage) -> None:
        if self.state.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise ValueError(f"Game is in stage {self.state.stage.value}, expected {allowed}")

    def open_character_creation(self) -> None:
        self.require_stage(GameStage.PROLOGUE)
        self.state.stage = GameStage.CHARACTER_CREATION
        self._persist()

    def back_to_prologue(self) -> None:
        self.require_stage(GameStage.CHARACTER_CREATION)
        self.state.stage = GameStage.PROLOGUE
        self._persist()

    async def create_character(self, character: Character) -> TurnReport:
        """Lock in the character and play the opening scene."""
        self.require_stage(GameStage.CHARACTER_CREATION)
        self.state.character = character
        self.state.stage = GameStage.PLAYING
        self._persist()
        logger.info("character %r created, starting play", character.name)
        return await self.play_turn(intro_prompt(character), echo_input=False)

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def play_turn(self, text: str, *, echo_input: bool = True) -> TurnReport:
        """Play one turn. Never raises; failures end up in the report and transcript."""
        async with self._lock:
            return await self._play_turn(text, echo_input)

    async def _play_turn(self, text: str, echo_input: bool) -> TurnReport:
        report = TurnReport()
        if echo_input:
            self._append("user", text)
            self._persist()

        # Player action
        action_touched: dict[str, list[str]] = {}
        try:
            reply = await self.gateway.send_turn(text)
            self._apply(reply, PLAYER_ACTION, action_touched, report.rolls)
        except Exception as e:
            logger.exception("Turn aborted: player action failed")
            self._append("system", f"ERROR: THE AETHER IS SILENT. {e}")
            self._persist()
            report.error = str(e)
            return report

        self._append("model", reply.text)
        self._fold_footer(reply.text)
        self._persist()
        report.narrative = reply.text

        await asyncio.sleep(self.sim_cooldown)

        # World simulation
        sim_touched: dict[str, list[str]] = {}
        try:
            sim = await self.gateway.send_turn(SIMULATION_PROMPT)
            self._apply(sim, SIMULATION, sim_touched)
        except Exception:
            logger.warning("World simulation failed, skipped this turn", exc_info=True)
        else:
            report.simulated = True
            aside = sim.text.strip()
            if aside and STATUS_MARKER not in sim.text:
                self._append("model", f"*{aside}*")
                report.aside = aside

        summary = change_summary(action_touched) + change_summary(sim_touched, " (SIM)")
        if summary:
            self._append("system", "\n".join(summary))
        self._persist()

        for touched in (action_touched, sim_touched):
            for collection, names in touched.items():
                report.changes.setdefault(collection, []).extend(names)
        logger.info(
            "turn done: rolls=%d changes=%s simulated=%s",
            len(report.rolls),
            {k: len(v) for k, v in report.changes.items()},
            report.simulated,
        )
        return report
