"""Sandbox orchestrator: provisioning, one-shot execs and control-file delivery."""

from __future__ import annotations

import logging
from pathlib import Path

from execution.commands import ControlWrite, append_command
from execution.config import ExecutionConfig
from execution.errors import ExecError, ProvisionError, SessionTerminated
from execution.profiles import SessionProfile
from execution.provider import BindMount, ContainerSpec, ExecResult, SandboxHandle, SandboxProvider
from execution.session import Session, SessionState

logger = logging.getLogger(__name__)

SESSION_LABEL = "execws.session_id"


class SandboxOrchestrator:
    """Turns session-level intents into engine operations.

    Never stores sandbox handles; callers pass them in on every call.
    """

    def __init__(self, provider: SandboxProvider, config: ExecutionConfig):
        self.provider = provider
        self.config = config

    def container_spec(self, session_id: str, profile: SessionProfile, workspace_dir: Path) -> ContainerSpec:
        return ContainerSpec(
            name=f"execws-{session_id}",
            image=profile.image,
            command=profile.listener_command,
            working_dir=profile.listener_dir,
            runtime=self.config.runtime.value,
            tty=True,
            open_stdin=True,
            mounts=(BindMount(source=str(workspace_dir.resolve()), target=self.config.mount_path),),
            env={
                "EXECWS_ENTRY_FILE": profile.entry_file,
                "EXECWS_CONTROL_FILE": profile.control_file,
                "EXECWS_WORKSPACE": self.config.mount_path,
            },
            labels={SESSION_LABEL: session_id},
        )

    async def provision(self, session_id: str, profile: SessionProfile, workspace_dir: Path) -> SandboxHandle:
        spec = self.container_spec(session_id, profile, workspace_dir)
        try:
            sandbox = await self.provider.create(spec)
        except (RuntimeError, OSError) as exc:
            raise ProvisionError(f"Failed to create sandbox from image {profile.image}: {exc}") from exc

        try:
            await self.provider.start(sandbox)
        except BaseException as exc:
            # @@@no-half-started - a created-but-unstarted container must not outlive the failed
            # provision, cancellation included.
            try:
                await self.provider.remove(sandbox)
            except (RuntimeError, OSError) as cleanup_exc:
                logger.warning("Failed to remove unstarted sandbox %s: %s", sandbox.name, cleanup_exc)
            if isinstance(exc, (RuntimeError, OSError)):
                raise ProvisionError(f"Failed to start sandbox {sandbox.name}: {exc}") from exc
            raise

        logger.info("Provisioned sandbox %s (image=%s, runtime=%s)", sandbox.name, profile.image, spec.runtime)
        return sandbox

    async def exec_one_shot(
        self,
        sandbox: SandboxHandle,
        command: list[str],
        stdin: bytes | None = None,
    ) -> ExecResult:
        """Run one command and return only after it has completed."""
        try:
            result = await self.provider.exec(sandbox, command, stdin=stdin, timeout=self.config.command_timeout_sec)
        except (RuntimeError, OSError) as exc:
            raise ExecError(f"Exec in sandbox {sandbox.name} failed: {exc}") from exc
        if not result.success:
            detail = result.stderr.strip() or result.stdout.strip()
            raise ExecError(f"Exec in sandbox {sandbox.name} exited with {result.exit_code}: {detail}")
        return result

    async def deliver(self, session: Session, write: ControlWrite) -> None:
        """Append records to the session's control file.

        The session's write lock is held until the exec completes, so a
        session's records land in the order their calls were made.
        """
        async with session.write_lock:
            if session.is_terminated:
                raise SessionTerminated(session.session_id)
            if session.sandbox is None or session.state is not SessionState.RUNNING:
                raise ExecError(f"Session {session.session_id} has no running sandbox")
            await self.exec_one_shot(
                session.sandbox,
                append_command(session.profile.control_file),
                stdin=write.payload,
            )
        logger.debug("Delivered %d record(s) to session %s", len(write.records), session.session_id)

    async def terminate(self, sandbox: SandboxHandle) -> None:
        try:
            await self.provider.remove(sandbox)
        except (RuntimeError, OSError) as exc:
            raise ExecError(f"Failed to remove sandbox {sandbox.name}: {exc}") from exc
        logger.info("Removed sandbox %s", sandbox.name)
