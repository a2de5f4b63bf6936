"""In-memory stand-in for the container engine.

Keeps one control file per container and logs every exec so tests can check
ordering and isolation without Docker.
"""

from __future__ import annotations

import asyncio
import shlex
from dataclasses import dataclass, field

from execution.provider import ContainerSpec, ExecResult, OutputStream, SandboxHandle, SandboxProvider


class FakeOutputStream(OutputStream):
    def __init__(self, chunks: list[bytes], error: Exception | None = None, hold: bool = False):
        self._chunks = list(chunks)
        self._error = error
        self._hold = hold
        self._released: asyncio.Event | None = None
        self.closed = False
        self.reads = 0

    async def read(self) -> bytes:
        self.reads += 1
        if self.closed:
            return b""
        if self._chunks:
            await asyncio.sleep(0)
            return self._chunks.pop(0)
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        if self._hold:
            if self._released is None:
                self._released = asyncio.Event()
            await self._released.wait()
        return b""

    async def close(self) -> None:
        self.closed = True
        if self._released is not None:
            self._released.set()

    @property
    def exit_status(self) -> int | None:
        return 0 if self.closed else None


@dataclass
class FakeContainer:
    spec: ContainerSpec
    handle: SandboxHandle
    running: bool = False
    files: dict[str, str] = field(default_factory=dict)


class FakeSandboxProvider(SandboxProvider):
    name = "fake"

    def __init__(
        self,
        *,
        fail_create: bool = False,
        fail_start: bool = False,
        fail_attach: bool = False,
        exec_delay: float = 0.0,
        start_delay: float = 0.0,
        output_chunks: list[bytes] | None = None,
        hold_output: bool = False,
    ):
        self.fail_create = fail_create
        self.fail_start = fail_start
        self.fail_attach = fail_attach
        self.exec_delay = exec_delay
        self.start_delay = start_delay
        self.output_chunks = output_chunks or []
        self.hold_output = hold_output
        self.containers: dict[str, FakeContainer] = {}
        self.removed: list[str] = []
        self.exec_log: list[tuple[str, list[str], bytes | None]] = []
        self.events: list[tuple[str, str]] = []
        self.streams: list[FakeOutputStream] = []

    async def create(self, spec: ContainerSpec) -> SandboxHandle:
        if self.fail_create:
            raise RuntimeError(f"Unable to find image '{spec.image}' locally")
        container_id = f"cid-{len(self.containers) + 1:04d}"
        handle = SandboxHandle(container_id=container_id, name=spec.name)
        self.containers[container_id] = FakeContainer(spec=spec, handle=handle)
        return handle

    async def start(self, sandbox: SandboxHandle) -> None:
        if self.fail_start:
            raise RuntimeError("unknown or invalid runtime name: runsc")
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        self.containers[sandbox.container_id].running = True

    async def remove(self, sandbox: SandboxHandle) -> None:
        container = self.containers.get(sandbox.container_id)
        if container is None:
            raise RuntimeError(f"No such container: {sandbox.container_id}")
        container.running = False
        self.removed.append(sandbox.container_id)

    async def exec(
        self,
        sandbox: SandboxHandle,
        command: list[str],
        stdin: bytes | None = None,
        timeout: float | None = None,
    ) -> ExecResult:
        container = self.containers.get(sandbox.container_id)
        if container is None or not container.running:
            return ExecResult(exit_code=1, stderr=f"container {sandbox.container_id} is not running")
        self.exec_log.append((sandbox.container_id, list(command), stdin))
        self.events.append(("start", sandbox.container_id))
        if self.exec_delay:
            await asyncio.sleep(self.exec_delay)
        if command[:2] == ["sh", "-c"]:
            argv = shlex.split(command[2])
            if argv[:2] == ["cat", ">>"]:
                path = argv[2]
                container.files[path] = container.files.get(path, "") + (stdin or b"").decode("utf-8")
        self.events.append(("end", sandbox.container_id))
        return ExecResult(exit_code=0)

    async def attach(self, sandbox: SandboxHandle) -> OutputStream:
        if self.fail_attach:
            raise RuntimeError("You cannot attach to a stopped container")
        stream = FakeOutputStream(self.output_chunks, hold=self.hold_output)
        self.streams.append(stream)
        return stream

    def control_lines(self, sandbox: SandboxHandle, path: str = "/commandListener/commands.txt") -> list[str]:
        return self.containers[sandbox.container_id].files.get(path, "").splitlines()
