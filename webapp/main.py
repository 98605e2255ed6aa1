"""
ragserve Web Application - OpenAI-compatible RAG server

Serves chat completions, embeddings and knowledge-base management over
FastAPI. Every failure is returned as HTTP 200 with {"status", "msg"}.

Usage:
    # Local mode
    python -m webapp.main

    # Or via entry point (after pip install -e .)
    ragserve

    # Server mode (accessible on network)
    ragserve --host 0.0.0.0 --port 8000 --config configs/ragserve.json

    # Debug mode (verbose logging, full prompts)
    ragserve --debug

    # Or via environment variable:
    RAGSERVE_DEBUG=1 ragserve

    # Toggle debug at runtime via API:
    POST /v1/debug/toggle
"""

import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core import __version__
from core.config import AppConfig
from webapp.context import AppContext
from webapp.errors import install_error_handlers
from webapp.logging_config import get_logger, is_debug_mode, set_debug_mode, setup_logging
from webapp.routers import chat, embeddings, knowledge_base

log = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    if getattr(app.state, "context", None) is None:
        app.state.context = AppContext.from_config(app.state.config)
    ctx = app.state.context
    log.info("=" * 60)
    log.info(f"  ragserve {__version__} starting")
    log.info(f"  Model:      {ctx.model_name}")
    log.info(f"  Embedder:   {ctx.embedder.name} (dim={ctx.embedder.dim})")
    log.info(f"  Debug mode: {'ON' if is_debug_mode() else 'OFF'}")
    log.info("=" * 60)
    yield
    log.info("ragserve shutting down...")


def create_app(context: Optional[AppContext] = None, config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        context: Pre-built context (tests); otherwise built from ``config`` at startup
        config: Configuration, defaults to AppConfig.load()
    """
    app = FastAPI(
        title="ragserve",
        description="Retrieval-augmented generation server",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = context.config if context is not None else (config or AppConfig.load())
    app.state.context = context

    install_error_handlers(app)

    app.include_router(chat.router, prefix="/v1", tags=["chat"])
    app.include_router(embeddings.router, prefix="/v1", tags=["embeddings"])
    app.include_router(knowledge_base.router, prefix="/v1/knowledgebases", tags=["knowledgebases"])

    @app.get("/health")
    async def health_check():
        """Liveness check."""
        return {"status": "healthy", "version": __version__, "debug": is_debug_mode()}

    @app.post("/v1/debug/toggle")
    async def toggle_debug():
        new_state = not is_debug_mode()
        set_debug_mode(new_state)
        log.info(f"Debug mode {'enabled' if new_state else 'disabled'}")
        return {"debug_mode": new_state}

    return app


def app_factory() -> FastAPI:
    """Factory used by uvicorn (``--factory``); reads $RAGSERVE_CONFIG."""
    return create_app(config=AppConfig.load())


# ============================================================================
# CLI Entry Point
# ============================================================================

def main():
    """CLI entry point for the ragserve command."""
    import argparse

    parser = argparse.ArgumentParser(description="ragserve - retrieval-augmented generation server")
    parser.add_argument("--host", default=None, help="Host to bind to (default: from config, 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: from config, 8000)")
    parser.add_argument("--config", default=None, help="Path to JSON config (also: RAGSERVE_CONFIG)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging (also: RAGSERVE_DEBUG=1)")

    args = parser.parse_args()

    if args.config:
        os.environ["RAGSERVE_CONFIG"] = str(Path(args.config).resolve())
    config = AppConfig.load(args.config)

    env_debug = os.environ.get("RAGSERVE_DEBUG", "").lower() in ("1", "true", "yes", "on")
    debug = args.debug or env_debug or config.logging.debug

    setup_logging(debug=debug, log_to_file=config.logging.log_to_file, log_dir=config.logging.directory)

    host = args.host or config.server.host
    port = args.port or config.server.port
    log.info(f"Listening on http://{host}:{port}")

    uvicorn.run(
        "webapp.main:app_factory",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
        log_level="debug" if debug else "info",
    )


if __name__ == "__main__":
    main()
