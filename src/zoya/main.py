from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings
from .logging import configure_logging, logger
from .middleware import AccessLogMiddleware, RequestIDMiddleware
from .providers import shutdown_providers
from .routers import cards, health, review, tts


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("app_startup", environment=settings.environment, llm_provider=settings.llm_provider)
    try:
        yield
    finally:
        # release the shared LLM executor and cached clients
        shutdown_providers()
        logger.info("app_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    configure_logging()
    app = FastAPI(title="Zoya Cards API", version=__version__, lifespan=_lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added later runs further out: RequestID assigns the id before AccessLog reads it.
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(health.router)
    app.include_router(cards.router, prefix="/api/cards")
    app.include_router(review.router, prefix="/api/review")
    app.include_router(tts.router)
    return app


app = create_app()
