"""FastAPI application - serves the live detection API."""

import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livebpm.api.websocket import router as ws_router

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"

app = FastAPI(title="livebpm", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ws_router, prefix="/api")


@app.get("/api/health")
async def health():
    return {"status": "ok"}


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once; existing handlers are left alone."""
    if logging.getLogger().handlers:
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def run():
    import uvicorn
    from livebpm.config import settings
    configure_logging(settings.log_level)
    uvicorn.run(
        "livebpm.main:app",
        host=settings.host,
        port=settings.port,
    )
