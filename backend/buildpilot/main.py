"""
BuildPilot - Conversational Project Builder

FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import init_db, close_db
from .config import settings
from .api import projects_router, run_router, files_router, preview_router, events_router
from .preview import get_preview_registry
from .tracer import setup_follow_through_logging

# Configure logging based on mode
if settings.debug:
    log_level = logging.DEBUG
elif settings.follow_through:
    log_level = logging.WARNING  # Suppress normal logs, let tracer handle output
else:
    log_level = logging.INFO

logging.basicConfig(
    level=log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Quiet down noisy loggers when not in debug mode
if not settings.debug:
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

# Setup follow-through tracing
setup_follow_through_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting BuildPilot...")

    # A missing key is reported per run (MISSING_API_KEY), not at startup
    try:
        settings.validate_provider_key()
        logger.info(f"Using LLM provider: {settings.llm_provider}")
    except ValueError as e:
        logger.warning(f"Configuration warning: {e}")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down BuildPilot...")
    await get_preview_registry().stop_all()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title="BuildPilot",
    description="""
    Conversational project builder.

    Describe an app in chat; BuildPilot asks for the platform once, then writes
    and updates the project's files in a per-project sandbox.

    ## Features
    - **Platform gate**: one clarifying question when the platform is unclear
    - **Intent routing**: mockup, build, change or chat, decided by rules
    - **Incremental builds**: generated files land in the sandbox, never in chat
    - **Rolling memory**: a short digest of the conversation grounds every build
    - **Preview**: static bundles, Next.js dev servers and Expo web exports
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(projects_router)
app.include_router(run_router)
app.include_router(files_router)
app.include_router(preview_router)
app.include_router(events_router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "BuildPilot",
        "version": "1.0.0",
        "description": "Conversational project builder",
        "provider": settings.llm_provider,
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
