"""
Docker sandbox provider.

Implements SandboxProvider on top of the docker CLI, driven through asyncio
subprocesses.
"""

from __future__ import annotations

import asyncio
import logging

from execution.provider import ContainerSpec, ExecResult, OutputStream, SandboxHandle, SandboxProvider

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4096


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill a CLI child that is still running and wait for it to exit."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


class DockerAttachStream(OutputStream):
    """Output of ``docker attach`` read off the CLI's stdout pipe.

    Sessions run with a TTY, so all program output arrives on stdout. The
    CLI's own stderr is only read when the attach is refused.
    """

    def __init__(self, proc: asyncio.subprocess.Process, prefix: bytes = b""):
        self._proc = proc
        self._prefix = prefix
        self._closed = False

    async def read(self) -> bytes:
        if self._closed:
            return b""
        if self._prefix:
            data, self._prefix = self._prefix, b""
            return data
        if self._proc.stdout is None:
            return b""
        return await self._proc.stdout.read(_CHUNK_SIZE)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._proc.returncode is None:
            try:
                self._proc.terminate()
            except ProcessLookupError:
                pass
        await self._proc.wait()

    @property
    def exit_status(self) -> int | None:
        return self._proc.returncode


class DockerProvider(SandboxProvider):
    """
    Local Docker sandbox provider.

    Notes:
    - Requires the docker CLI on the host.
    - One container per session, labelled with the session id.
    - ``docker_host`` maps to ``-H``; None keeps the CLI default socket.
    - ``attach`` waits ``attach_check_sec`` for the CLI to reject the attach
      before handing out the stream.
    """

    name = "docker"

    def __init__(
        self,
        docker_host: str | None = None,
        command_timeout_sec: float = 20.0,
        docker_bin: str = "docker",
        attach_check_sec: float = 0.25,
    ):
        self.docker_host = docker_host
        self.command_timeout_sec = command_timeout_sec
        self.docker_bin = docker_bin
        self.attach_check_sec = attach_check_sec

    def _base_cmd(self) -> list[str]:
        cmd = [self.docker_bin]
        if self.docker_host:
            cmd.extend(["-H", self.docker_host])
        return cmd

    def build_create_cmd(self, spec: ContainerSpec) -> list[str]:
        cmd = [*self._base_cmd(), "create", "--name", spec.name]
        for key, value in spec.labels.items():
            cmd.extend(["--label", f"{key}={value}"])
        if spec.open_stdin:
            cmd.append("-i")
        if spec.tty:
            cmd.append("-t")
        cmd.extend(["--runtime", spec.runtime, "-w", spec.working_dir])
        for key, value in spec.env.items():
            cmd.extend(["-e", f"{key}={value}"])
        for mount in spec.mounts:
            volume = f"{mount.source}:{mount.target}"
            if mount.read_only:
                volume += ":ro"
            cmd.extend(["-v", volume])
        cmd.append(spec.image)
        cmd.extend(spec.command)
        return cmd

    async def create(self, spec: ContainerSpec) -> SandboxHandle:
        result = await self._run(self.build_create_cmd(spec))
        container_id = result.stdout.strip()
        if not container_id:
            raise RuntimeError("Failed to create docker container")
        logger.debug("Created container %s (%s)", spec.name, container_id[:12])
        return SandboxHandle(container_id=container_id, name=spec.name)

    async def start(self, sandbox: SandboxHandle) -> None:
        await self._run([*self._base_cmd(), "start", sandbox.container_id])

    async def remove(self, sandbox: SandboxHandle) -> None:
        await self._run([*self._base_cmd(), "rm", "-f", sandbox.container_id])

    async def exec(
        self,
        sandbox: SandboxHandle,
        command: list[str],
        stdin: bytes | None = None,
        timeout: float | None = None,
    ) -> ExecResult:
        cmd = [*self._base_cmd(), "exec"]
        if stdin is not None:
            cmd.append("-i")
        cmd.append(sandbox.container_id)
        cmd.extend(command)
        return await self._run(cmd, input_bytes=stdin, timeout=timeout, check=False)

    async def attach(self, sandbox: SandboxHandle) -> OutputStream:
        cmd = [*self._base_cmd(), "attach", "--no-stdin", "--sig-proxy=false", sandbox.container_id]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise RuntimeError(f"Failed to run docker attach: {exc}") from exc

        # @@@attach-liveness - a refused attach exits at once with only stderr; a live one keeps running.
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.attach_check_sec)
        except asyncio.TimeoutError:
            return DockerAttachStream(proc)
        except asyncio.CancelledError:
            await _reap(proc)
            raise

        early = await proc.stdout.read() if proc.stdout is not None else b""
        if proc.returncode != 0 and not early:
            stderr = await proc.stderr.read() if proc.stderr is not None else b""
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise RuntimeError(detail or f"docker attach exited with status {proc.returncode}")
        return DockerAttachStream(proc, prefix=early)

    async def _run(
        self,
        cmd: list[str],
        *,
        input_bytes: bytes | None = None,
        timeout: float | None = None,
        check: bool = True,
    ) -> ExecResult:
        effective_timeout = timeout if timeout is not None else self.command_timeout_sec
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if input_bytes is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise RuntimeError(f"Failed to run docker CLI: {exc}") from exc
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(input_bytes), timeout=effective_timeout)
        except asyncio.TimeoutError as exc:
            await _reap(proc)
            raise RuntimeError(f"Docker command timed out after {effective_timeout}s: {' '.join(cmd[:3])}") from exc
        except asyncio.CancelledError:
            await _reap(proc)
            raise
        result = ExecResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        if check and not result.success:
            raise RuntimeError(result.stderr.strip() or "Docker command failed")
        return result
