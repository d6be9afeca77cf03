"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
Every fixture that touches the disk uses a per-test temporary directory.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from contextlib import closing
from pathlib import Path
from typing import AsyncGenerator

from kvsnap.network.tcp_server import KVServer
from kvsnap.persistence.engine import PersistenceEngine
from kvsnap.protocol.parser import ProtocolParser
from kvsnap.service import KVService
from kvsnap.store.actor import StoreActor


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class FakeClock:
    """Controllable replacement for time.time() in snapshot filenames."""

    def __init__(self, start: float = 1_700_000_000):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 1) -> None:
        self.now += seconds


# ============================================================================
# Persistence Fixtures
# ============================================================================

@pytest.fixture
def snapshot_dir(tmp_path: Path) -> Path:
    """An empty directory for snapshot files."""
    path = tmp_path / "snapshots"
    path.mkdir()
    return path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(snapshot_dir: Path, clock: FakeClock) -> PersistenceEngine:
    """A PersistenceEngine writing into snapshot_dir with a fake clock."""
    return PersistenceEngine(directory=str(snapshot_dir), prefix="TESTSNAP", clock=clock)


@pytest.fixture
def list_snapshots(snapshot_dir: Path):
    """Return a callable listing the sorted file names in snapshot_dir."""
    def lister() -> list:
        return sorted(p.name for p in snapshot_dir.iterdir())
    return lister


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def actor(engine: PersistenceEngine) -> AsyncGenerator[StoreActor, None]:
    """A running StoreActor; the engine's writer is NOT started."""
    act = StoreActor(engine)
    await act.start()

    yield act

    await act.stop()


@pytest_asyncio.fixture
async def service(snapshot_dir: Path) -> AsyncGenerator[KVService, None]:
    """A running KVService with a long snapshot interval."""
    svc = KVService(interval=300, snapshot_dir=str(snapshot_dir))
    await svc.start()

    yield svc

    await svc.stop()


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def server(server_port: int, snapshot_dir: Path) -> AsyncGenerator[KVServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a KVServer on a random free port
    2. Starts it in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    svc = KVService(interval=300, snapshot_dir=str(snapshot_dir))
    srv = KVServer(host='127.0.0.1', port=server_port, service=svc)

    # Start server in background task
    server_task = asyncio.create_task(srv.start())

    # Wait for server to be ready
    await asyncio.sleep(0.1)

    yield srv

    # Cleanup
    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Usage:
        async with AsyncClient('127.0.0.1', 8080) as client:
            response = await client.send_command("PUT key value")
            assert response == "OK stored"
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except Exception:
                pass

    async def send_command(self, command: str) -> str:
        """
        Send a command and receive the response.

        Returns:
            Response string (stripped of trailing newline)
        """
        if not command.endswith('\n'):
            command += '\n'

        self.writer.write(command.encode())
        await self.writer.drain()

        response = await self.reader.readline()
        return response.decode().strip()

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                response = await client.send_command("GET key")
    """
    def factory() -> AsyncClient:
        return AsyncClient('127.0.0.1', server_port)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
