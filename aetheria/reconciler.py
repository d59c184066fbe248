"""Pure merge functions, one per entity collection.

Each function takes the current collection and a batch of incoming
records or operations and returns a new list. Inputs are never mutated.

    lore, locations   append-only (no dedupe by title/name)
    npcs              upsert by name, field by field
    inventory         add / remove / equip / unequip by item name
    quests            start / update / complete / fail by title
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from aetheria.models import Coordinates, Item, LocationNode, LoreEntry, Npc, Quest
from aetheria.tools import InventoryOp, LocationInput, LoreInput, NpcPatch, QuestOp

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex[:12]


# ---------------------------------------------------------------------------
# Lore and locations (append-only)
# ---------------------------------------------------------------------------

def tag_lore(entries: Iterable[LoreInput]) -> list[LoreEntry]:
    """Give incoming lore a fresh id and mark it known."""
    return [
        LoreEntry(id=new_id(), title=e.title, type=e.type, description=e.description, known=True)
        for e in entries
    ]


def to_location_nodes(locations: Iterable[LocationInput]) -> list[LocationNode]:
    return [
        LocationNode(
            name=loc.name,
            type=loc.type,
            coordinates=Coordinates(x=loc.x, y=loc.y),
            description=loc.description,
        )
        for loc in locations
    ]


def locations_to_lore(nodes: Iterable[LocationNode]) -> list[LoreEntry]:
    """Mirror map nodes into the journal as Location entries."""
    return [
        LoreEntry(
            id=new_id(),
            title=node.name,
            type="Location",
            description=f"[{node.type}] {node.description}",
            known=True,
        )
        for node in nodes
    ]


def merge_lore(current: list[LoreEntry], entries: Iterable[LoreEntry]) -> list[LoreEntry]:
    return [*current, *entries]


def merge_locations(
    current: list[LocationNode], nodes: Iterable[LocationNode]
) -> list[LocationNode]:
    return [*current, *nodes]


# ---------------------------------------------------------------------------
# NPCs (upsert by name)
# ---------------------------------------------------------------------------

def merge_npcs(current: list[Npc], patches: Iterable[NpcPatch]) -> list[Npc]:
    """Upsert NPCs by name.

    Fields present on a patch overwrite the existing record; fields left
    out are kept. An existing NPC keeps its id. Unknown names are inserted.
    """
    updated = list(current)
    for patch in patches:
        fields = patch.model_dump(exclude_none=True, exclude={"id"})
        for i, npc in enumerate(updated):
            if npc.name == patch.name:
                updated[i] = npc.model_copy(update=fields)
                break
        else:
            updated.append(Npc(id=patch.id or new_id(), **fields))
    return updated


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

def _op_quantity(op: InventoryOp) -> int:
    return op.quantity if op.quantity and op.quantity > 0 else 1


def _find(items: list[Item], name: str) -> int | None:
    for i, item in enumerate(items):
        if item.name == name:
            return i
    return None


def apply_inventory_ops(current: list[Item], ops: Iterable[InventoryOp]) -> list[Item]:
    """Apply inventory operations in order.

    add      stacks onto an existing item, or creates one when item
             details are given (without details a new name is ignored)
    remove   decrements, deleting the item at zero or below
    equip    sets is_equipped on an existing item
    unequip  clears it
    """
    updated = list(current)
    for op in ops:
        idx = _find(updated, op.item_name)
        qty = _op_quantity(op)

        if op.action == "add":
            if idx is not None:
                item = updated[idx]
                updated[idx] = item.model_copy(update={"quantity": item.quantity + qty})
            elif op.item_details is not None:
                updated.append(Item(
                    id=new_id(),
                    name=op.item_name,
                    type=op.item_details.type,
                    description=op.item_details.description,
                    quantity=qty,
                    is_equipped=False,
                    effect=op.item_details.effect,
                ))
            else:
                logger.debug("add for unknown item %r without details ignored", op.item_name)

        elif op.action == "remove":
            if idx is None:
                continue
            remaining = updated[idx].quantity - qty
            if remaining <= 0:
                del updated[idx]
            else:
                updated[idx] = updated[idx].model_copy(update={"quantity": remaining})

        elif op.action in ("equip", "unequip"):
            if idx is not None:
                updated[idx] = updated[idx].model_copy(
                    update={"is_equipped": op.action == "equip"}
                )

    return updated


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------

def apply_quest_ops(current: list[Quest], ops: Iterable[QuestOp]) -> list[Quest]:
    """Apply quest operations in order.

    start is idempotent per title. complete and fail set the status on an
    existing quest, whatever it was before. update only ever touches
    description and objectives, never the status.
    """
    updated = list(current)
    for op in ops:
        idx = next((i for i, q in enumerate(updated) if q.title == op.quest_title), None)

        if op.action == "start":
            if idx is None:
                updated.append(Quest(
                    id=new_id(),
                    title=op.quest_title,
                    description=op.description or "",
                    status="Active",
                    objectives=list(op.objectives or []),
                ))
            continue

        if idx is None:
            continue
        quest = updated[idx]
        if op.action == "complete":
            updated[idx] = quest.model_copy(update={"status": "Completed"})
        elif op.action == "fail":
            updated[idx] = quest.model_copy(update={"status": "Failed"})
        elif op.action == "update":
            fields: dict = {}
            if op.description:
                fields["description"] = op.description
            if op.objectives is not None:
                fields["objectives"] = list(op.objectives)
            if fields:
                updated[idx] = quest.model_copy(update=fields)

    return updated
