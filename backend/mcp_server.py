"""FastMCP server exposing character memories as MCP tools.

Tools:
  - add_memory(character_id, content, type, importance): store a memory
  - find_relevant_memories(character_id, context, limit): ranked search
  - list_memories(character_id): full log, oldest first

The store is the same MemoryStore the HTTP app hands to its orchestrator;
tests swap it with set_memory_store().

Usage:
    uv run python -m backend.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from worldbuilding.memory import MemoryStore

mcp = FastMCP("worldbuilding-memory")

_store = MemoryStore()


def set_memory_store(store: MemoryStore) -> None:
    """Replace the active memory store (used in tests)."""
    global _store
    _store = store


def get_memory_store() -> MemoryStore:
    """Return the active memory store."""
    return _store


@mcp.tool()
def add_memory(character_id: str, content: str, type: str = "conversation", importance: int = 5) -> dict:
    """Store a memory for a character and return it."""
    return _store.add_memory(character_id, content, type, importance).model_dump()


@mcp.tool()
def find_relevant_memories(character_id: str, context: str, limit: int = 5) -> list[dict]:
    """Return the character's memories most relevant to `context`."""
    return [m.model_dump() for m in _store.find_relevant_memories(character_id, context, limit)]


@mcp.tool()
def list_memories(character_id: str) -> list[dict]:
    """Return every memory stored for a character, oldest first."""
    return [m.model_dump() for m in _store.get_memories(character_id)]


if __name__ == "__main__":
    mcp.run()
