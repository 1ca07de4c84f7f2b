import pytest

import backend.mcp_server as mcp_server
from worldbuilding.memory import MemoryStore


@pytest.fixture(autouse=True)
def fresh_memory_store():
    """Give every test an empty shared memory store."""
    mcp_server.set_memory_store(MemoryStore())
    yield
