"""Read-only snapshots of the session state for the presentation layer."""

from __future__ import annotations

from typing import Any

from aetheria.footer import split_footer
from aetheria.models import SessionState

DEFAULT_RACES = ["Human", "Elf", "Dwarf", "Orc"]


def story(state: SessionState) -> list[dict[str, Any]]:
    """Transcript entries with the narrative and footer lines split apart."""
    entries = []
    for msg in state.messages:
        narrative, footer = split_footer(msg.text)
        entries.append({
            **msg.model_dump(mode="json"),
            "narrative": narrative.strip(),
            "footer": [line for line in (footer or "").splitlines() if line.strip()],
        })
    return entries


def journal(state: SessionState, lore_type: str | None = None) -> list[dict[str, Any]]:
    entries = state.lore
    if lore_type and lore_type != "All":
        entries = [e for e in entries if e.type == lore_type]
    return [e.model_dump(mode="json") for e in entries]


def world_map(state: SessionState) -> dict[str, Any]:
    return {
        "world_name": state.status.world_name,
        "locations": [loc.model_dump(mode="json") for loc in state.locations],
    }


def people(state: SessionState) -> dict[str, list[dict[str, Any]]]:
    """NPCs grouped by disposition bucket."""
    groups: dict[str, list[dict[str, Any]]] = {"hostile": [], "friendly": [], "neutral": []}
    for npc in state.npcs:
        groups[npc.disposition_bucket].append(npc.model_dump(mode="json"))
    return groups


def inventory(state: SessionState) -> dict[str, list[dict[str, Any]]]:
    return {
        "equipped": [i.model_dump(mode="json") for i in state.inventory if i.is_equipped],
        "backpack": [i.model_dump(mode="json") for i in state.inventory if not i.is_equipped],
    }


def quests(state: SessionState) -> dict[str, list[dict[str, Any]]]:
    groups: dict[str, list[dict[str, Any]]] = {"Active": [], "Completed": [], "Failed": []}
    for quest in state.quests:
        groups[quest.status].append(quest.model_dump(mode="json"))
    return groups


def available_races(state: SessionState) -> list[str]:
    """Races offered at character creation: Race lore, or a stock list."""
    races = [e.title for e in state.lore if e.type == "Race"]
    return races or list(DEFAULT_RACES)
