"""Pytest configuration for deepagent tests.

Ensures the project root is in sys.path so imports work correctly.
"""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from core.checkpoint import MemorySaver  # noqa: E402
from core.filesystem import StateBackend  # noqa: E402
from core.state import AgentState  # noqa: E402


@pytest.fixture
def state():
    return AgentState()


@pytest.fixture
def state_backend(state):
    return StateBackend(state)


@pytest.fixture
def memory_saver():
    return MemorySaver()
