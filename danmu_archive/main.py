"""danmu-archive FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from danmu_archive import __version__, config
from danmu_archive.db import connection, migrations
from danmu_archive.observability import initialize as initialize_observability, shutdown as shutdown_observability
from danmu_archive.routers.api import ingest_router, lives_router, senders_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("danmu")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("danmu-archive starting up (backend=%s)", config.DB_BACKEND)
    initialize_observability(app)

    db = await connection.get_connection()
    await migrations.run_migrations(db)

    yield

    logger.info("danmu-archive shutting down")
    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="danmu-archive API",
    description="Ingest ASS live-chat recordings and query archived danmaku",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(ingest_router)
app.include_router(lives_router)
app.include_router(senders_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "backend": config.DB_BACKEND,
        "db": "connected" if connection._connection else "disconnected",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.HOST, port=config.PORT)
