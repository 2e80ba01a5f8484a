import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from streamcore.config import get_settings
from streamcore.dependencies import get_llm_router
from streamcore.routers import chat, health, models, render

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    logger.info("streamcore backend started (default model %s)", settings.default_model)

    yield

    await get_llm_router().aclose()
    get_llm_router.cache_clear()
    logger.info("streamcore backend shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title="streamcore API",
        description="Streaming chat over local and hosted LLM backends",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(models.router)
    app.include_router(chat.router)
    app.include_router(render.router)

    # CORS: read allowed origins from env, with localhost defaults
    origins = ["http://localhost:8501", "http://127.0.0.1:8501"]
    extra_origins = os.environ.get("ALLOWED_ORIGINS", "")
    if extra_origins:
        origins.extend(o.strip() for o in extra_origins.split(",") if o.strip())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


app = create_app()


@app.get("/")
async def read_root():
    return {
        "status": "ok",
        "message": "streamcore backend is running",
        "docs": "/docs",
    }
