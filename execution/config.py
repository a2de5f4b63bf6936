"""Execution service configuration.

Priority: explicit config file > environment variables > defaults.
"""

from __future__ import annotations

import json
import os
import tempfile
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class IsolationRuntime(str, Enum):
    """OCI runtimes the engine may use for a sandbox."""

    RUNC = "runc"
    RUNSC = "runsc"
    RUNSC_DEBUG = "runsc-debug"


DEFAULT_PYTHON_IMAGE = "python-interactive"
DEFAULT_WORKSPACE_ROOT = Path(tempfile.gettempdir()) / "execws" / "sessions"


class ExecutionConfig(BaseModel):
    runtime: IsolationRuntime = IsolationRuntime.RUNC
    python_image: str = DEFAULT_PYTHON_IMAGE
    # None -> docker CLI default (unix socket, or the named pipe on Windows)
    docker_host: str | None = None
    workspace_root: Path = DEFAULT_WORKSPACE_ROOT
    mount_path: str = "/workspace"
    listener_dir: str = "/commandListener"
    command_timeout_sec: float = Field(default=20.0, gt=0)

    @field_validator("mount_path", "listener_dir")
    @classmethod
    def _absolute_container_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"Container path must be absolute: {value}")
        return value.rstrip("/") or "/"

    @classmethod
    def from_env(cls) -> ExecutionConfig:
        data: dict[str, object] = {}
        if runtime := os.getenv("DOCKER_RUNTIME"):
            data["runtime"] = runtime
        if image := os.getenv("DOCKER_IMAGE_PYTHON"):
            data["python_image"] = image
        if host := os.getenv("DOCKER_HOST"):
            data["docker_host"] = host
        if root := os.getenv("EXECWS_WORKSPACE_ROOT"):
            data["workspace_root"] = Path(root).expanduser()
        if timeout := os.getenv("EXECWS_COMMAND_TIMEOUT"):
            data["command_timeout_sec"] = float(timeout)
        return cls(**data)

    @classmethod
    def load(cls, path: str | Path) -> ExecutionConfig:
        """Load a JSON config file; keys missing from the file fall back to env/defaults."""
        path = Path(path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Execution config not found: {path}")
        base = cls.from_env().model_dump()
        base.update(json.loads(path.read_text()))
        return cls(**base)


def resolve_config(config_path: str | None = None) -> ExecutionConfig:
    path = config_path or os.getenv("EXECWS_CONFIG")
    if path:
        return ExecutionConfig.load(path)
    return ExecutionConfig.from_env()
