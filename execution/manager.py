"""Execution session manager.

Upstream API consumed by the transport layer:
    start_session → upsert_files / start_program / send_input → stop_session
with subscribe_output streaming program output back.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Mapping
from pathlib import Path

from execution import commands
from execution.config import ExecutionConfig
from execution.errors import ExecutionError, ProvisionError, SessionTerminated
from execution.orchestrator import SandboxOrchestrator
from execution.output_relay import OutputCallback, OutputRelay, OutputSubscription
from execution.profiles import ProfileName, resolve_profile
from execution.provider import SandboxProvider
from execution.registry import SessionRegistry
from execution.session import Session, SessionState

logger = logging.getLogger(__name__)


class ExecutionManager:
    def __init__(
        self,
        provider: SandboxProvider,
        config: ExecutionConfig | None = None,
        registry: SessionRegistry | None = None,
    ):
        self.config = config or ExecutionConfig.from_env()
        self.provider = provider
        self.registry = registry or SessionRegistry()
        self.orchestrator = SandboxOrchestrator(provider, self.config)
        self.relay = OutputRelay(provider)

    # ==================== Lifecycle ====================

    async def start_session(self, profile: ProfileName | str = ProfileName.PYTHON) -> str:
        """Provision a sandbox for a new session and return its id.

        A session whose sandbox failed to come up is never registered.
        """
        session_profile = resolve_profile(profile, self.config)
        session_id = self.registry.create()
        workspace_dir = self.config.workspace_root / session_id
        try:
            workspace_dir.mkdir(parents=True, exist_ok=False)
        except OSError as exc:
            raise ProvisionError(f"Failed to create workspace {workspace_dir}: {exc}") from exc

        session = Session(session_id=session_id, workspace_dir=workspace_dir, profile=session_profile)
        try:
            session.sandbox = await self.orchestrator.provision(session_id, session_profile, workspace_dir)
        except BaseException:
            # Also reached when the caller is cancelled mid-provision.
            await self._remove_workspace(workspace_dir)
            raise

        session.state = SessionState.RUNNING
        try:
            self.registry.register(session_id, session)
        except ExecutionError:
            session.state = SessionState.TERMINATED
            await self.orchestrator.terminate(session.sandbox)
            await self._remove_workspace(workspace_dir)
            raise
        logger.info("Started %s session %s", session_profile.name.value, session_id)
        return session_id

    async def stop_session(self, session_id: str) -> None:
        """Terminate the sandbox, drop the registry entry and delete the workspace."""
        session = self.registry.resolve(session_id)
        async with session.write_lock:
            if session.is_terminated:
                return
            session.state = SessionState.TERMINATED
        self.registry.remove(session_id)
        try:
            if session.sandbox is not None:
                await self.orchestrator.terminate(session.sandbox)
        finally:
            await self._remove_workspace(session.workspace_dir)
        logger.info("Stopped session %s", session_id)

    async def shutdown(self) -> int:
        """Stop every live session. Returns how many were stopped."""
        session_ids = self.registry.list_ids()
        results = await asyncio.gather(
            *(self.stop_session(session_id) for session_id in session_ids),
            return_exceptions=True,
        )
        stopped = 0
        for session_id, result in zip(session_ids, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to stop session %s during shutdown: %s", session_id, result)
            else:
                stopped += 1
        return stopped

    # ==================== Commands ====================

    async def upsert_files(self, session_id: str, files: Mapping[str, str]) -> None:
        session = self.registry.resolve(session_id)
        await self.orchestrator.deliver(session, commands.upsert(files))

    async def start_program(self, session_id: str) -> None:
        session = self.registry.resolve(session_id)
        await self.orchestrator.deliver(session, commands.run())

    async def send_input(self, session_id: str, text: str) -> None:
        session = self.registry.resolve(session_id)
        await self.orchestrator.deliver(session, commands.send_input(text))

    # ==================== Output ====================

    async def subscribe_output(self, session_id: str) -> OutputSubscription:
        session = self._running_session(session_id)
        return await self.relay.subscribe(session.sandbox)

    async def attach_output(self, session_id: str, on_data: OutputCallback) -> None:
        session = self._running_session(session_id)
        await self.relay.attach(session.sandbox, on_data)

    # ==================== Inspection ====================

    def get_session(self, session_id: str) -> Session:
        return self.registry.resolve(session_id)

    def list_sessions(self) -> list[dict]:
        sessions = []
        for session_id in self.registry.list_ids():
            try:
                session = self.registry.resolve(session_id)
            except ExecutionError:
                continue
            sessions.append(
                {
                    "session_id": session_id,
                    "profile": session.profile.name.value,
                    "state": session.state.value,
                    "container": session.sandbox.name if session.sandbox else None,
                }
            )
        return sessions

    def _running_session(self, session_id: str) -> Session:
        session = self.registry.resolve(session_id)
        if session.is_terminated or session.sandbox is None:
            raise SessionTerminated(session_id)
        return session

    async def _remove_workspace(self, workspace_dir: Path) -> None:
        await asyncio.to_thread(shutil.rmtree, workspace_dir, ignore_errors=True)
