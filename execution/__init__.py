"""Execution — interactive sandboxed code-execution sessions.

Usage:
    from execution import ExecutionConfig, create_manager

    manager = create_manager(ExecutionConfig.from_env())
    session_id = await manager.start_session("python")
    await manager.upsert_files(session_id, {"main.py": encoded})
    await manager.start_program(session_id)
"""

from __future__ import annotations

from execution.config import ExecutionConfig, IsolationRuntime, resolve_config
from execution.manager import ExecutionManager
from execution.profiles import ProfileName, SessionProfile
from execution.provider import SandboxProvider


def create_manager(
    config: ExecutionConfig | None = None,
    provider: SandboxProvider | None = None,
) -> ExecutionManager:
    """Factory: build an ExecutionManager backed by Docker unless a provider is given."""
    config = config or resolve_config()
    if provider is None:
        from execution.providers.docker import DockerProvider

        provider = DockerProvider(
            docker_host=config.docker_host,
            command_timeout_sec=config.command_timeout_sec,
        )
    return ExecutionManager(provider=provider, config=config)


__all__ = [
    "ExecutionConfig",
    "ExecutionManager",
    "IsolationRuntime",
    "ProfileName",
    "SandboxProvider",
    "SessionProfile",
    "create_manager",
    "resolve_config",
]
