"""Core domain models.

Every collection the narrator can touch lives on SessionState. Pydantic is
used for validation and serialisation at every data boundary: tool
arguments coming from the model, the persisted save blob, and API
responses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

LoreType = Literal["Faction", "God", "Location", "Race", "Magic", "Creature", "Other"]
LocationType = Literal["City", "Forest", "Dungeon", "Village", "Ruins", "Temple", "Landmark"]
NpcStatus = Literal["Alive", "Deceased", "Missing", "Unknown"]
ItemType = Literal[
    "Weapon", "Armor", "Consumable", "Key Item", "Material", "Misc", "Focus", "Artifact",
]
QuestStatus = Literal["Active", "Completed", "Failed"]
MessageRole = Literal["user", "model", "system"]
RollOutcome = Literal["Success", "Failure", "Mixed"]
DispositionBucket = Literal["hostile", "friendly", "neutral"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameStage(str, Enum):
    LOADING = "Loading"
    PROLOGUE = "Prologue"
    CHARACTER_CREATION = "CharacterCreation"
    PLAYING = "Playing"


class Character(BaseModel):
    """The player character. Fixed once play begins."""

    model_config = ConfigDict(frozen=True)

    name: str
    race: str
    occupation: str
    background: str
    height: str
    build: str
    strengths: tuple[str, str, str]
    weakness: str


class LoreEntry(BaseModel):
    id: str
    title: str
    type: LoreType
    description: str
    known: bool = True


class Coordinates(BaseModel):
    x: int
    y: int


class LocationNode(BaseModel):
    """A map node. Coordinates are miles from the world centre."""

    name: str
    type: LocationType
    coordinates: Coordinates
    description: str


class Npc(BaseModel):
    id: str
    name: str
    role: str = ""
    description: str = ""
    disposition: str = "Neutral"  # free text: "Wary", "Indebted", ...
    location: str = "Unknown"
    status: NpcStatus = "Unknown"

    @property
    def disposition_bucket(self) -> DispositionBucket:
        return disposition_bucket(self.disposition)


def disposition_bucket(disposition: str) -> DispositionBucket:
    """Sort a free-text disposition into hostile / friendly / neutral."""
    d = disposition.lower()
    if "hostile" in d or "enemy" in d:
        return "hostile"
    if "friendly" in d or "ally" in d or "indebted" in d:
        return "friendly"
    return "neutral"


class Item(BaseModel):
    id: str
    name: str
    type: ItemType = "Misc"
    description: str = ""
    quantity: int = Field(default=1, ge=1)
    is_equipped: bool = False
    effect: str | None = None


class Quest(BaseModel):
    id: str
    title: str
    description: str = ""
    status: QuestStatus = "Active"
    objectives: list[str] = Field(default_factory=list)


class RollInfo(BaseModel):
    """A dice check attached to a system message. The reason is in the text."""

    result: int
    dc: int
    outcome: RollOutcome


class ChatMessage(BaseModel):
    """A single entry in the append-only transcript."""

    id: str
    role: MessageRole
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)
    roll: RollInfo | None = None


class GameStatus(BaseModel):
    """Transient status fed by tool calls and the narrative footer."""

    world_name: str | None = None
    health: str | None = None
    time: str | None = None


class SessionState(BaseModel):
    """Everything that gets saved: the whole game in one blob."""

    character: Character | None = None
    messages: list[ChatMessage] = Field(default_factory=list)
    lore: list[LoreEntry] = Field(default_factory=list)
    locations: list[LocationNode] = Field(default_factory=list)
    npcs: list[Npc] = Field(default_factory=list)
    inventory: list[Item] = Field(default_factory=list)
    quests: list[Quest] = Field(default_factory=list)
    status: GameStatus = Field(default_factory=GameStatus)
    stage: GameStage = GameStage.LOADING

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-safe copy of the full state."""
        return self.model_dump(mode="json")

    @classmethod
    def restore(cls, data: Any) -> SessionState:
        """Rebuild state from a snapshot. Raises ValidationError if malformed."""
        return cls.model_validate(data)
