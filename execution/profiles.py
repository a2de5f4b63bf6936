"""Session profiles: which image runs a session and how its listener is laid out.

Adding a language means adding a ProfileName member and a builder entry.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from execution.config import ExecutionConfig
from execution.errors import InvalidCommand

CONTROL_FILE_NAME = "commands.txt"


class ProfileName(str, Enum):
    PYTHON = "python"


@dataclass(frozen=True)
class SessionProfile:
    name: ProfileName
    image: str
    entry_file: str
    listener_command: tuple[str, ...]
    listener_dir: str

    @property
    def control_file(self) -> str:
        return f"{self.listener_dir}/{CONTROL_FILE_NAME}"


def _python_profile(config: ExecutionConfig) -> SessionProfile:
    return SessionProfile(
        name=ProfileName.PYTHON,
        image=config.python_image,
        entry_file="main.py",
        listener_command=("node", f"{config.listener_dir}/commandListener.js"),
        listener_dir=config.listener_dir,
    )


_BUILDERS: dict[ProfileName, Callable[[ExecutionConfig], SessionProfile]] = {
    ProfileName.PYTHON: _python_profile,
}


def resolve_profile(name: ProfileName | str, config: ExecutionConfig) -> SessionProfile:
    try:
        profile_name = ProfileName(name)
    except ValueError:
        raise InvalidCommand(f"Unknown session profile: {name}") from None
    return _BUILDERS[profile_name](config)


def available_profiles() -> list[str]:
    return [p.value for p in _BUILDERS]
