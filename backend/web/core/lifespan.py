"""Application lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from execution import create_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    # Tests (or embedding apps) may install their own manager before startup
    manager = getattr(app.state, "execution_manager", None)
    if manager is None:
        manager = create_manager()
        app.state.execution_manager = manager

    try:
        yield
    finally:
        stopped = await manager.shutdown()
        if stopped:
            logger.info("Stopped %d session(s) on shutdown", stopped)
