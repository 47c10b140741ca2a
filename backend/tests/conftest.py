"""Pytest configuration and shared fixtures for engine tests."""
import pytest
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nbsync.core.errors import NoticeBoard
from nbsync.kernel.manager import KernelSessionManager
from nbsync.orchestration import ExecutionCoordinator
from nbsync.state import DocumentStore
from tests.test_utils import (
    FakeChannelFactory,
    FakeExecutionService,
    FakePersistence,
    FakeSessionService,
    code_notebook,
)


@pytest.fixture
def notices():
    return NoticeBoard()


@pytest.fixture
def notebook():
    """Three code cells: c1, c2, c3."""
    return code_notebook("c1", "c2", "c3")


@pytest.fixture
def store(notebook):
    return DocumentStore(notebook)


@pytest.fixture
def kernel_channels():
    return FakeChannelFactory()


@pytest.fixture
def collab_channels():
    return FakeChannelFactory()


@pytest.fixture
def session_service():
    return FakeSessionService()


@pytest.fixture
def persistence():
    return FakePersistence()


@pytest.fixture
def execution_service():
    return FakeExecutionService()


@pytest.fixture
def session(store, session_service, kernel_channels, notices):
    """Session manager for nb-1; call `await session.open()` to connect."""
    return KernelSessionManager("nb-1", session_service, kernel_channels, notices, store=store)


@pytest.fixture
def coordinator(store, session, notices):
    return ExecutionCoordinator(store, session, notices)
