import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI

from aetheria.config import get_config
from aetheria.gateway import ModelGateway
from aetheria.llm import HttpChatModel
from aetheria.orchestrator import GameSession
from aetheria.routes import router
from aetheria.storage import SaveStore

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def build_gateway(config: dict[str, Any]) -> ModelGateway:
    model = HttpChatModel(
        provider_url=config["provider_url"],
        api_key=config["api_key"],
        model=config["model"],
        timeout=float(config["timeout"]),
    )
    return ModelGateway(
        model,
        max_retries=int(config["max_retries"]),
        retry_delay=float(config["retry_delay"]),
        max_tool_batches=int(config["max_tool_batches"]),
    )


def apply_config(game: GameSession, config: dict[str, Any]) -> None:
    """Swap in a gateway built from `config`, keeping the conversation."""
    game.gateway = build_gateway(config)
    game.sim_cooldown = float(config["sim_cooldown"])
    if game.state.messages:
        game.gateway.resume_session(game.state.messages)


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    resolved.mkdir(parents=True, exist_ok=True)
    config = get_config(resolved)
    game = GameSession(
        build_gateway(config),
        SaveStore(resolved),
        sim_cooldown=float(config["sim_cooldown"]),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await game.start()
        yield

    app = FastAPI(title="Aetheria", lifespan=lifespan)
    app.state.data_dir = resolved
    app.state.game = game
    app.include_router(router, prefix="/api")
    logger.info("data dir: %s, model backend: %s", resolved, config["provider_url"])
    return app
