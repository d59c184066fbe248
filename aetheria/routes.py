"""FastAPI endpoints under /api.

Read-only snapshots (state, story, journal, map, people, inventory,
quests, races), stage moves (new game, prologue, character), the turn
endpoint, and settings. There is exactly one game per server.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from aetheria import views
from aetheria.config import get_config, update_config
from aetheria.models import Character, GameStage
from aetheria.orchestrator import GameSession

router = APIRouter()


class TurnBody(BaseModel):
    message: str


def get_game(request: Request) -> GameSession:
    return request.app.state.game


def _conflict(e: ValueError) -> HTTPException:
    return HTTPException(409, str(e))


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

@router.get("/state")
async def get_state(game: GameSession = Depends(get_game)):
    """Full session snapshot."""
    return game.state.snapshot()


@router.get("/story")
async def get_story(game: GameSession = Depends(get_game)):
    """Transcript with narrative and footer split."""
    return views.story(game.state)


@router.get("/journal")
async def get_journal(type: str | None = None, game: GameSession = Depends(get_game)):
    """Lore entries, optionally filtered by type."""
    return views.journal(game.state, type)


@router.get("/map")
async def get_map(game: GameSession = Depends(get_game)):
    return views.world_map(game.state)


@router.get("/people")
async def get_people(game: GameSession = Depends(get_game)):
    """NPCs grouped as hostile / friendly / neutral."""
    return views.people(game.state)


@router.get("/inventory")
async def get_inventory(game: GameSession = Depends(get_game)):
    return views.inventory(game.state)


@router.get("/quests")
async def get_quests(game: GameSession = Depends(get_game)):
    return views.quests(game.state)


@router.get("/races")
async def get_races(game: GameSession = Depends(get_game)):
    """Races offered by character creation."""
    return views.available_races(game.state)


# ---------------------------------------------------------------------------
# Game flow
# ---------------------------------------------------------------------------

@router.post("/new-game")
async def new_game(game: GameSession = Depends(get_game)):
    """Discard the save and generate a new world."""
    await game.reset()
    return game.state.snapshot()


@router.post("/prologue/continue")
async def continue_prologue(game: GameSession = Depends(get_game)):
    try:
        game.open_character_creation()
    except ValueError as e:
        raise _conflict(e)
    return {"stage": game.state.stage}


@router.post("/prologue/back")
async def back_to_prologue(game: GameSession = Depends(get_game)):
    try:
        game.back_to_prologue()
    except ValueError as e:
        raise _conflict(e)
    return {"stage": game.state.stage}


@router.post("/character")
async def create_character(body: Character, game: GameSession = Depends(get_game)):
    """Submit the character sheet and play the opening scene."""
    try:
        report = await game.create_character(body)
    except ValueError as e:
        raise _conflict(e)
    return report


@router.post("/turn")
async def play_turn(body: TurnBody, game: GameSession = Depends(get_game)):
    """Play one turn and return what changed."""
    if not body.message.strip():
        raise HTTPException(400, "Message is empty")
    try:
        game.require_stage(GameStage.PLAYING)
    except ValueError as e:
        raise _conflict(e)
    return await game.play_turn(body.message)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@router.get("/settings")
async def get_settings(request: Request):
    return get_config(request.app.state.data_dir)


@router.patch("/settings")
async def update_settings(body: dict, request: Request):
    """Update settings (partial merge) and reconnect the narrator."""
    from aetheria.app import apply_config

    config = update_config(request.app.state.data_dir, body)
    apply_config(request.app.state.game, config)
    return config
