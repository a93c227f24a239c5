"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.api.game import router as game_router
from src.api.health import router as health_router
from src.config import settings
from src.core.engine import LoopEngine
from src.core.event_bus import EventBus
from src.core.logging import get_logger, setup_logging
from src.services.corpus_loader import load_corpus_dir

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Initializing loop engine...")
    event_bus = EventBus()
    engine = LoopEngine(settings, event_bus=event_bus)

    result = load_corpus_dir(settings.DIALOGUE_DIR, engine)
    logger.info(
        "Corpus ready: %s (%d entries)", ", ".join(result.collections), result.entries
    )

    app.state.event_bus = event_bus
    app.state.engine = engine

    yield

    logger.info("Shutting down...")
    engine.end_session()
    event_bus.clear()
    app.state.engine = None


app = FastAPI(title="Looptale", lifespan=lifespan)

app.include_router(health_router)
app.include_router(game_router)
