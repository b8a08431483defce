from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .ai.interpreter import build_interpreter
from .command import router as command_router
from .config import settings
from .habits import router as habits_router
from .logging_setup import configure_logging
from .services.persistence import build_persistence
from .services.sessions import HabitSessionRegistry


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)

    persistence = build_persistence(settings.database_url)
    await persistence.open()
    app.state.persistence = persistence
    app.state.sessions = HabitSessionRegistry(
        persistence,
        serialize=settings.serialize_mutations,
        idle_seconds=settings.session_idle_seconds,
    )
    app.state.interpreter = build_interpreter(settings.gemini_api_key, settings.gemini_model)

    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; habit commands will reply with a configuration hint")
    logger.info("{} started ({} store)", settings.app_name, type(persistence).__name__)

    yield

    await persistence.close()
    app.state.sessions = None


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(habits_router)
app.include_router(command_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
