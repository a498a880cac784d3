# mediashelf/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from sqlmodel import Session

from mediashelf.core.config import get_settings
from mediashelf.core.errors import AccountError, account_error_handler
from mediashelf.database import create_db_and_tables, engine

# Import models so SQLModel metadata is populated before create_all()
from mediashelf.models import user as _user_models  # noqa: F401
from mediashelf.models import playlist as _playlist_models  # noqa: F401
from mediashelf.models import playback_session as _session_models  # noqa: F401

# Routers
from mediashelf.routers.users import router as users_router, service as user_service

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("uvicorn")


def bootstrap_root() -> None:
    """Create the root account from ROOT_USERNAME / ROOT_PASSWORD if missing."""
    if not settings.ROOT_PASSWORD:
        return
    with Session(engine) as session:
        user_service.ensure_root(session, settings.ROOT_USERNAME, settings.ROOT_PASSWORD)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
      - Bootstrap the root account when configured.
    """
    logger.info("Startup: connecting to the account store...")
    try:
        create_db_and_tables()
        bootstrap_root()
        logger.info("Startup: account store ready.")
    except Exception as e:
        logger.error(f"Startup: account store FAILED: {e}")
        raise
    yield
    logger.info("Shutdown: closing account store connections.")
    engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AccountError, account_error_handler)

app.include_router(users_router, prefix=settings.API_PREFIX)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "mediashelf-accounts"}
