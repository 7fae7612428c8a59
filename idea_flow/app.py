"""Application factory for the idea generation FastAPI backend."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .memory import IdeaStore, InMemoryIdeaStore
from .pipeline import BusinessIdeaPipeline
from .routers import ideas


DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3001",
]

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler unless one is already configured."""

    logging.basicConfig(level=level, format=LOG_FORMAT)


def create_app(
    settings: Settings | None = None,
    *,
    pipeline: BusinessIdeaPipeline | None = None,
    store: IdeaStore | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance."""

    settings = settings or get_settings()

    app = FastAPI(
        title="Idea Flow Backend",
        version="0.1.0",
        description="Generates SBA-style business plans from founder preferences.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins) or DEFAULT_ALLOWED_ORIGINS,
        allow_origin_regex=r"http://localhost:\d+$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.pipeline = pipeline or BusinessIdeaPipeline.from_settings(settings)
    app.state.store = store or InMemoryIdeaStore()
    app.include_router(ideas.router)
    return app


def build_default_app() -> FastAPI:
    """ASGI entry point: environment settings and process-wide logging."""

    settings = get_settings()
    configure_logging(settings.log_level)
    return create_app(settings)


app = build_default_app()
