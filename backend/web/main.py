"""Execution Web Backend - FastAPI Application."""

import logging
import os

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from backend.web.core.config import CORS_ORIGINS, DEFAULT_PORT, HOST
from backend.web.core.lifespan import lifespan
from backend.web.routers import execution

# Create FastAPI app
app = FastAPI(title="Execution Web Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(execution.router)


@app.get("/health")
async def health_check(request: Request) -> dict:
    manager = getattr(request.app.state, "execution_manager", None)
    return {"status": "ok", "sessions": len(manager.registry) if manager else 0}


def _resolve_port() -> int:
    """Resolve backend port: EXECWS_PORT > PORT > 8001."""
    port = os.environ.get("EXECWS_PORT") or os.environ.get("PORT")
    if port:
        return int(port)
    return DEFAULT_PORT


def run() -> None:
    logging.basicConfig(
        level=os.environ.get("EXECWS_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # @@@module-launch-target - Package-qualified target keeps module launch (`python -m backend.web.main`) import-safe.
    uvicorn.run("backend.web.main:app", host=HOST, port=_resolve_port())


if __name__ == "__main__":
    run()
