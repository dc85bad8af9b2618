"""
Main FastAPI application entry point.
Responsibilities: App setup, router registration, startup/shutdown hooks.
"""
from fastapi import FastAPI

from . import __version__
from .config import COMPLETION_MODEL, OLLAMA_URL
from .context import get_context
from .db.migrations import run_sql_migrations
from .logging_config import logger
from .ollama_boot import ensure_ollama_models
from .routes import chat, health, messages
from .services.model_service import resolve_model

# -------------------------------------------------
# App setup
# -------------------------------------------------

app = FastAPI(title="LexChat", version=__version__)

# Register routers
app.include_router(health.router)
app.include_router(messages.router)
app.include_router(chat.router)


@app.on_event("startup")
async def startup_event():
    """Apply migrations, load the embedder and pull local models if needed."""
    try:
        ctx = get_context()

        logger.info("Running database migrations...")
        applied = run_sql_migrations(ctx.engine)
        logger.info("Database migrations completed", files=applied)

        logger.info("Warming up embedder...")
        await ctx.embedder.warm_up()
        logger.info("Embedder ready")

        provider, model = resolve_model(COMPLETION_MODEL)
        if provider == "ollama":
            logger.info("Ensuring Ollama models are available...", model=model)
            await ensure_ollama_models(OLLAMA_URL, [model])
            logger.info("Ollama models ready")

    except Exception as e:
        logger.error("Startup initialization error", exc_info=e)
        # Continue anyway - degraded mode still answers


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Application shutting down")
