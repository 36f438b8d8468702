"""
ToolStack FastAPI Application
=============================

REST API for index synchronization and the tools chatbot.

Endpoints:
    GET  /api/health                - Health check
    POST /api/sync/tools/{tool_id}  - Incremental sync of one tool
    POST /api/sync/full[/{target}]  - Bulk resync
    POST /api/chat                  - RAG chatbot

Usage:
    uvicorn toolstack.api.main:app --reload --port 8000

    Or with CLI:
    python -m toolstack.api.main
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..data.config import get_settings
from ..errors import InternalError, ToolStackError
from ..factory import ServiceFactory
from ..orchestrator.logging_config import setup_logging
from .chat_routes import router as chat_router
from .dependencies import get_factory
from .models import HealthResponse
from .sync_routes import router as sync_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    if getattr(app.state, "factory", None) is None:
        settings = get_settings()
        setup_logging(
            level=settings.logging.level,
            json_output=settings.logging.json_logs,
            log_file=settings.logging.log_file,
        )
        app.state.factory = ServiceFactory(settings)

    logger.info(f"Starting ToolStack API ({app.state.factory.environment.value})...")

    yield

    await app.state.factory.aclose()
    logger.info("Shutting down ToolStack API...")


async def toolstack_error_handler(request: Request, exc: ToolStackError):
    message = exc.message
    if exc.http_status >= 500 and not isinstance(exc, InternalError):
        # Upstream details stay in the server log
        logger.error(f"Unhandled {type(exc).__name__} on {request.url.path}: {exc.message}")
        message = "Internal error"
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": {"status": exc.status, "message": message}},
    )


def create_app(factory: Optional[ServiceFactory] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        factory: Pre-built services (tests); built from Settings on startup if None
    """
    app = FastAPI(
        title="ToolStack API",
        description="Developer tools directory: index sync and chatbot",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.factory = factory

    # In production, set CORS_ORIGINS (comma-separated) for the web front-end domains
    origins = ["http://localhost:3000", "http://127.0.0.1:3000", "https://www.toolstack.pro"]
    extra_origins = os.getenv("CORS_ORIGINS", "")
    if extra_origins:
        origins.extend([o.strip() for o in extra_origins.split(",") if o.strip()])

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ToolStackError, toolstack_error_handler)

    app.include_router(sync_router)
    app.include_router(chat_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(factory: ServiceFactory = Depends(get_factory)):
        """Status of the source store and both indexes."""
        store, vector, text = await asyncio.gather(
            factory.store.check_health(),
            factory.vector_index.check_health(),
            factory.text_index.check_health(),
        )

        statuses = (store["status"], vector["status"], text["status"])
        overall = "healthy" if all(s == "connected" for s in statuses) else "degraded"

        return HealthResponse(
            status=overall,
            version=__version__,
            environment=factory.environment.value,
            store=store["status"],
            vectorIndex=vector["status"],
            textIndex=text["status"],
        )

    return app


app = create_app()


def main():
    import uvicorn

    uvicorn.run(
        "toolstack.api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
