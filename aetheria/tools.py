"""Tool registry offered to the narrator model, and argument parsing.

The model is constrained by the JSON schemas below, but nothing enforces
them on the way back: every tool call's arguments are parsed into a
pydantic model before anything touches game state. Anything that doesn't
fit raises MalformedToolArguments.

Tool declarations use the OpenAI "function" tool format:

    {"type": "function", "function": {"name", "description", "parameters"}}
"""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aetheria.models import ItemType, LocationType, LoreType, NpcStatus

ROLL_DICE = "rollDice"
UPDATE_JOURNAL = "updateJournal"
UPDATE_LOCATIONS = "updateLocations"
UPDATE_PEOPLE = "updatePeople"
MANAGE_INVENTORY = "manageInventory"
MANAGE_QUESTS = "manageQuests"
SET_WORLD_CONTEXT = "setWorldContext"

TOOL_NAMES = (
    ROLL_DICE,
    UPDATE_JOURNAL,
    UPDATE_LOCATIONS,
    UPDATE_PEOPLE,
    MANAGE_INVENTORY,
    MANAGE_QUESTS,
    SET_WORLD_CONTEXT,
)

_LORE_TYPES = ["Faction", "God", "Location", "Race", "Magic", "Creature", "Other"]
_LOCATION_TYPES = ["City", "Forest", "Dungeon", "Village", "Ruins", "Temple", "Landmark"]
_NPC_STATUSES = ["Alive", "Deceased", "Missing", "Unknown"]
_ITEM_TYPES = ["Weapon", "Armor", "Consumable", "Key Item", "Material", "Misc", "Focus", "Artifact"]
_COORD_HINT = (
    "Coordinate in miles relative to map center (Player starts near 0,0). "
    "Scale is large (-1500 to 1500)."
)


class MalformedToolArguments(ValueError):
    """Raised when a tool call's arguments don't match the declared schema."""

    def __init__(self, tool: str, detail: str) -> None:
        super().__init__(f"Malformed arguments for tool {tool!r}: {detail}")
        self.tool = tool
        self.detail = detail


# ---------------------------------------------------------------------------
# Declarations sent to the model
# ---------------------------------------------------------------------------

def _function(name: str, description: str, properties: dict, required: list[str]) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


TOOL_DECLARATIONS: list[dict[str, Any]] = [
    _function(
        ROLL_DICE,
        "Rolls a d100 dice to determine the outcome of a risky action.",
        {
            "reason": {
                "type": "string",
                "description": 'The reason for the roll (e.g., "Climbing the wall", "Attacking the guard")',
            },
            "difficulty": {
                "type": "integer",
                "description": "The target number (DC) to beat (0-100).",
            },
        },
        ["reason", "difficulty"],
    ),
    _function(
        UPDATE_JOURNAL,
        "Updates the player journal with new lore entries.",
        {
            "entries": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {"type": "string"},
                        "type": {"type": "string", "enum": _LORE_TYPES},
                        "description": {"type": "string"},
                    },
                    "required": ["title", "type", "description"],
                },
            },
        },
        ["entries"],
    ),
    _function(
        UPDATE_LOCATIONS,
        "Updates the map with known locations using relative coordinates (in miles).",
        {
            "locations": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "type": {"type": "string", "enum": _LOCATION_TYPES},
                        "x": {"type": "integer", "description": f"X {_COORD_HINT}"},
                        "y": {"type": "integer", "description": f"Y {_COORD_HINT}"},
                        "description": {"type": "string"},
                    },
                    "required": ["name", "type", "x", "y", "description"],
                },
            },
        },
        ["locations"],
    ),
    _function(
        UPDATE_PEOPLE,
        "Updates the dossier of known NPCs, tracking their disposition and location.",
        {
            "npcs": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "role": {"type": "string", "description": "Occupation or Title"},
                        "description": {
                            "type": "string",
                            "description": "Physical description and notes",
                        },
                        "disposition": {
                            "type": "string",
                            "description": "Current relationship: Friendly, Neutral, Wary, Hostile, Indebted, etc.",
                        },
                        "location": {
                            "type": "string",
                            "description": "Where they are currently located or their known travel route.",
                        },
                        "status": {"type": "string", "enum": _NPC_STATUSES},
                    },
                    "required": ["name", "role", "description", "disposition", "location", "status"],
                },
            },
        },
        ["npcs"],
    ),
    _function(
        MANAGE_INVENTORY,
        "Adds, removes, or updates items in the player inventory.",
        {
            "operations": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "action": {
                            "type": "string",
                            "enum": ["add", "remove", "equip", "unequip"],
                            "description": "The action to perform.",
                        },
                        "itemName": {"type": "string"},
                        "quantity": {
                            "type": "integer",
                            "description": "Quantity to add or remove. Default 1.",
                        },
                        "itemDetails": {
                            "type": "object",
                            "description": "Required for 'add' action. Details about the item.",
                            "properties": {
                                "type": {"type": "string", "enum": _ITEM_TYPES},
                                "description": {"type": "string"},
                                "effect": {
                                    "type": "string",
                                    "description": "Magical effect or stat bonus if any.",
                                },
                            },
                        },
                    },
                    "required": ["action", "itemName"],
                },
            },
        },
        ["operations"],
    ),
    _function(
        MANAGE_QUESTS,
        "Starts, updates, or completes quests.",
        {
            "operations": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "action": {
                            "type": "string",
                            "enum": ["start", "update", "complete", "fail"],
                            "description": "Action to perform.",
                        },
                        "questTitle": {"type": "string"},
                        "description": {
                            "type": "string",
                            "description": "Description or new journal entry for the quest.",
                        },
                        "objectives": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Current active objectives.",
                        },
                    },
                    "required": ["action", "questTitle"],
                },
            },
        },
        ["operations"],
    ),
    _function(
        SET_WORLD_CONTEXT,
        "Sets the name of the world/continent generated.",
        {
            "worldName": {
                "type": "string",
                "description": "The name of the fantasy world/continent.",
            },
        },
        ["worldName"],
    ),
]


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------

class _ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RollDiceArgs(_ToolArgs):
    reason: str
    difficulty: int


class LoreInput(_ToolArgs):
    title: str
    type: LoreType
    description: str


class JournalArgs(_ToolArgs):
    entries: list[LoreInput]


class LocationInput(_ToolArgs):
    name: str
    type: LocationType
    x: int
    y: int
    description: str


class LocationsArgs(_ToolArgs):
    locations: list[LocationInput]


class NpcPatch(_ToolArgs):
    """An incoming NPC record. Only `name` is required; the rest patch."""

    id: str | None = None
    name: str
    role: str | None = None
    description: str | None = None
    disposition: str | None = None
    location: str | None = None
    status: NpcStatus | None = None


class PeopleArgs(_ToolArgs):
    npcs: list[NpcPatch]


class ItemDetails(_ToolArgs):
    type: ItemType = "Misc"
    description: str = ""
    effect: str | None = None


class InventoryOp(_ToolArgs):
    action: Literal["add", "remove", "equip", "unequip"]
    item_name: str = Field(alias="itemName")
    quantity: int | None = None
    item_details: ItemDetails | None = Field(default=None, alias="itemDetails")


class InventoryArgs(_ToolArgs):
    operations: list[InventoryOp]


class QuestOp(_ToolArgs):
    action: Literal["start", "update", "complete", "fail"]
    quest_title: str = Field(alias="questTitle")
    description: str | None = None
    objectives: list[str] | None = None


class QuestArgs(_ToolArgs):
    operations: list[QuestOp]


class WorldContextArgs(_ToolArgs):
    world_name: str = Field(alias="worldName")


ArgsT = TypeVar("ArgsT", bound=_ToolArgs)


def parse_args(tool: str, model: type[ArgsT], arguments: Any) -> ArgsT:
    """Validate raw tool arguments against `model`.

    Raises MalformedToolArguments if `arguments` is not an object or fails
    validation.
    """
    if not isinstance(arguments, dict):
        raise MalformedToolArguments(
            tool, f"expected a JSON object, got {type(arguments).__name__}"
        )
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        raise MalformedToolArguments(tool, str(e)) from e
