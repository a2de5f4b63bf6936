"""Pytest configuration for execution tests.

Ensures the project root is in sys.path so imports work correctly.
"""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from execution.config import ExecutionConfig  # noqa: E402
from execution.manager import ExecutionManager  # noqa: E402
from tests.fakes.engine import FakeSandboxProvider  # noqa: E402


@pytest.fixture
def config(tmp_path):
    return ExecutionConfig(workspace_root=tmp_path / "sessions")


@pytest.fixture
def provider():
    return FakeSandboxProvider()


@pytest.fixture
def manager(provider, config):
    return ExecutionManager(provider=provider, config=config)
