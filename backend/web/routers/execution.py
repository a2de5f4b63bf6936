"""Execution session WebSocket gateway.

One socket may own several sessions. Messages without a session id target
the session most recently started on that socket. Sessions are stopped when
their socket goes away.
"""

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from backend.web.core.config import OUTPUT_PUMP_GRACE_SEC
from backend.web.models.requests import (
    InputMessage,
    RunMessage,
    StartMessage,
    StopMessage,
    UpsertMessage,
    client_message_adapter,
)
from execution.errors import ExecutionError, UnknownSession
from execution.manager import ExecutionManager
from execution.output_relay import OutputSubscription

logger = logging.getLogger(__name__)

router = APIRouter(tags=["execution"])


class ExecutionConnection:
    """Per-socket state: owned sessions and their output pumps."""

    def __init__(self, websocket: WebSocket, manager: ExecutionManager):
        self.websocket = websocket
        self.manager = manager
        self._send_lock = asyncio.Lock()
        self._sessions: list[str] = []
        self._pumps: dict[str, asyncio.Task] = {}

    async def send(self, event: str, **data: Any) -> None:
        async with self._send_lock:
            await self.websocket.send_json({"event": event, **data})

    def _target(self, session_id: str | None) -> str:
        if session_id is None:
            if not self._sessions:
                raise UnknownSession("<none>")
            return self._sessions[-1]
        # @@@socket-owns-session - a socket may only drive sessions it started.
        if session_id not in self._sessions:
            raise UnknownSession(session_id)
        return session_id

    async def handle(self, raw: Any) -> None:
        request = raw.get("event") if isinstance(raw, dict) else None
        try:
            message = client_message_adapter.validate_python(raw)
        except ValidationError as exc:
            await self.send("error", request=request, code="invalid_message", message=str(exc))
            return

        try:
            await self._dispatch(message)
        except ExecutionError as exc:
            logger.info("Request %s failed: %s", request, exc)
            await self.send("error", request=request, code=exc.code, message=str(exc))

    async def _dispatch(self, message) -> None:
        if isinstance(message, StartMessage):
            await self._start(message)
            return

        session_id = self._target(message.session_id)
        if isinstance(message, UpsertMessage):
            await self.manager.upsert_files(session_id, message.files)
        elif isinstance(message, RunMessage):
            await self.manager.start_program(session_id)
        elif isinstance(message, InputMessage):
            await self.manager.send_input(session_id, message.text)
        elif isinstance(message, StopMessage):
            await self._stop(session_id)
        await self.send("ack", request=message.event, session_id=session_id)

    async def _start(self, message: StartMessage) -> None:
        session_id = await self.manager.start_session(message.profile)
        try:
            subscription = await self.manager.subscribe_output(session_id)
        except ExecutionError:
            await self.manager.stop_session(session_id)
            raise
        self._sessions.append(session_id)
        await self.send("session", session_id=session_id, profile=message.profile.value)
        self._pumps[session_id] = asyncio.create_task(self._pump(session_id, subscription))

    async def _pump(self, session_id: str, subscription: OutputSubscription) -> None:
        try:
            async with subscription:
                async for chunk in subscription:
                    await self.send("output", session_id=session_id, data=chunk)
            await self.send("exit", session_id=session_id)
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug("Output pump for %s stopped: %s", session_id, exc)

    async def _stop(self, session_id: str) -> None:
        self._sessions.remove(session_id)
        await self.manager.stop_session(session_id)
        await self._cancel_pump(session_id)

    async def _cancel_pump(self, session_id: str) -> None:
        task = self._pumps.pop(session_id, None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await asyncio.wait_for(task, OUTPUT_PUMP_GRACE_SEC)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            pass

    async def close(self) -> None:
        for session_id in list(self._sessions):
            try:
                await self.manager.stop_session(session_id)
            except UnknownSession:
                pass
            except ExecutionError as exc:
                logger.warning("Failed to stop session %s on disconnect: %s", session_id, exc)
        self._sessions.clear()
        for session_id in list(self._pumps):
            await self._cancel_pump(session_id)


@router.websocket("/ws/execution")
async def execution_socket(websocket: WebSocket) -> None:
    """Interactive execution channel: start, upsert, run, input, stop."""
    await websocket.accept()
    connection = ExecutionConnection(websocket, websocket.app.state.execution_manager)
    try:
        while True:
            text = await websocket.receive_text()
            try:
                raw = json.loads(text)
            except ValueError:
                await connection.send("error", request=None, code="invalid_message", message="Message is not valid JSON")
                continue
            await connection.handle(raw)
    except WebSocketDisconnect:
        logger.debug("Execution socket disconnected")
    finally:
        # Test clients and proxies may cancel the handler right after disconnect.
        await asyncio.shield(connection.close())
