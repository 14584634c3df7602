"""
reflect.api.main — FastAPI application entry point
=====================================================

Run with::

    reflect-api                     # port from config.yaml (api_port)
    uvicorn reflect.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from reflect.api.deps import get_config, get_engine, get_service  # noqa: E402
from reflect.api.routes.data import router as data_router  # noqa: E402
from reflect.database.engine import init_db  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — create tables, drain pending syncs."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    engine = get_engine()
    init_db(engine)
    logger.info("Reflect API started — engine ready (%s)", engine.url.database)
    yield
    await get_service().close()
    logger.info("Reflect API shutting down")


app = FastAPI(
    title="Reflect API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(data_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


def main() -> None:
    """Serve the API on the port configured in ``config.yaml``."""
    cfg = get_config()
    uvicorn.run(app, host=os.getenv("REFLECT_HOST", "127.0.0.1"), port=cfg.api_port)


if __name__ == "__main__":
    main()
