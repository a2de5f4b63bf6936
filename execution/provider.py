"""
Abstract container engine interface.

The engine (Docker, or a fake in tests) owns sandbox creation, isolation and
process supervision. Everything here is async so one slow engine call never
stalls other sessions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SandboxHandle:
    """Opaque reference to one running sandbox."""
    container_id: str
    name: str


@dataclass(frozen=True)
class BindMount:
    source: str
    target: str
    read_only: bool = False


@dataclass(frozen=True)
class ContainerSpec:
    """Everything the engine needs to create one sandbox."""
    name: str
    image: str
    command: tuple[str, ...]
    working_dir: str
    runtime: str = "runc"
    tty: bool = True
    open_stdin: bool = True
    mounts: tuple[BindMount, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class ExecResult:
    """Result of a one-shot command."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class OutputStream(ABC):
    """Raw combined stdout/stderr byte stream of a sandbox."""

    @abstractmethod
    async def read(self) -> bytes:
        """Next chunk as soon as it is available; ``b""`` at end of stream."""

    @abstractmethod
    async def close(self) -> None:
        """Release the stream. Safe to call more than once."""

    @property
    def exit_status(self) -> int | None:
        """Exit status of the attach channel once finished, if known."""
        return None


class SandboxProvider(ABC):
    """
    Container engine boundary.

    Implementations:
    - DockerProvider: local Docker engine through the docker CLI
    """

    name: str

    @abstractmethod
    async def create(self, spec: ContainerSpec) -> SandboxHandle:
        """Create (but do not start) a sandbox."""

    @abstractmethod
    async def start(self, sandbox: SandboxHandle) -> None:
        """Start a created sandbox."""

    @abstractmethod
    async def remove(self, sandbox: SandboxHandle) -> None:
        """Stop and delete a sandbox."""

    @abstractmethod
    async def exec(
        self,
        sandbox: SandboxHandle,
        command: list[str],
        stdin: bytes | None = None,
        timeout: float | None = None,
    ) -> ExecResult:
        """Run a non-interactive command and wait for it to finish."""

    @abstractmethod
    async def attach(self, sandbox: SandboxHandle) -> OutputStream:
        """Open the sandbox's combined output stream."""
