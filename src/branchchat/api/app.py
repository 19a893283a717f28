"""
BranchChat FastAPI Application.

Serves the branchable conversation API and the server-mediated chat endpoint.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware

from branchchat import __version__
from branchchat.api.routes import auth, branches, chat, conversations, messages
from branchchat.config import settings
from branchchat.db.connection import check_connection
from branchchat.logging_config import setup_logging
from branchchat.startup import check_readiness, run_all_startup_checks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and run startup checks before serving requests."""
    setup_logging(context="api")

    logger.info("Running startup checks...")
    run_all_startup_checks()
    logger.info("Startup checks passed")

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="BranchChat API",
    description="API for branchable LLM conversations",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API health check."""
    return {
        "status": "ok",
        "message": "BranchChat API is running",
        "version": __version__,
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    db_status = "healthy" if check_connection() else "unhealthy"
    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
    }


@app.get("/ready")
async def ready(response: Response) -> dict:
    """Readiness probe; 503 until startup checks pass and the database answers."""
    is_ready, details = check_readiness()
    if not is_ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return details


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(
    conversations.router, prefix="/conversations", tags=["conversations"]
)
app.include_router(branches.router, prefix="/branches", tags=["branches"])
app.include_router(messages.router, prefix="/messages", tags=["messages"])
app.include_router(chat.router, prefix="", tags=["chat"])
