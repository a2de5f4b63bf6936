"""Session model."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from execution.profiles import SessionProfile
from execution.provider import SandboxHandle


class SessionState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    TERMINATED = "terminated"


@dataclass
class Session:
    """One client-visible session, bound 1:1 to a sandbox.

    ``write_lock`` serializes control-file writes; only the orchestrator takes it.
    """

    session_id: str
    workspace_dir: Path
    profile: SessionProfile
    sandbox: SandboxHandle | None = None
    state: SessionState = SessionState.CREATED
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def is_terminated(self) -> bool:
        return self.state is SessionState.TERMINATED
