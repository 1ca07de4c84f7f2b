"""Tests for the per-character memory store and its relevance search."""

import pytest

from worldbuilding.memory import MemoryStore, format_memories, relevance
from worldbuilding.models import ChatMessage


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


# ── add_memory ───────────────────────────────────────────────


def test_add_memory_defaults(store):
    record = store.add_memory("c1", "The player found a sword")
    assert record.character_id == "c1"
    assert record.content == "The player found a sword"
    assert record.type == "conversation"
    assert record.importance == 5
    assert record.timestamp
    assert store.get_memories("c1") == [record]


def test_add_memory_ids_are_unique(store):
    ids = {store.add_memory("c1", f"memory {i}").id for i in range(50)}
    assert len(ids) == 50


@pytest.mark.parametrize("given,stored", [(0, 1), (-3, 1), (42, 10), (7, 7)])
def test_add_memory_clamps_importance(store, given, stored):
    assert store.add_memory("c1", "x", importance=given).importance == stored


def test_get_memories_is_chronological_copy(store):
    first = store.add_memory("c1", "first")
    second = store.add_memory("c1", "second")
    memories = store.get_memories("c1")
    memories.clear()
    assert store.get_memories("c1") == [first, second]


def test_clear(store):
    store.add_memory("c1", "a")
    store.add_memory("c2", "b")
    store.clear("c1")
    assert store.get_memories("c1") == []
    assert len(store.get_memories("c2")) == 1
    store.clear()
    assert store.get_memories("c2") == []


# ── find_relevant_memories ──────────────────────────────────


def test_sword_scenario(store):
    store.add_memory("c1", "The player found a sword")
    results = store.find_relevant_memories("c1", "Tell me about the sword")
    assert len(results) == 1
    assert results[0].content == "The player found a sword"
    # 1 matching word ("sword") out of 5 context words
    assert results[0].relevance == pytest.approx(0.2)


def test_no_overlap_returns_empty(store):
    store.add_memory("c1", "The player found a sword")
    assert store.find_relevant_memories("c1", "What is the weather like") == []


def test_unknown_character_returns_empty(store):
    assert store.find_relevant_memories("nobody", "sword") == []


def test_memories_are_scoped_per_character(store):
    store.add_memory("c1", "The player found a sword")
    assert store.find_relevant_memories("c2", "Tell me about the sword") == []


def test_short_words_never_match(store):
    store.add_memory("c1", "the cat sat on a mat")
    assert store.find_relevant_memories("c1", "the cat sat") == []


def test_results_sorted_by_relevance(store):
    store.add_memory("c1", "a dragon")
    store.add_memory("c1", "dragon castle gold")
    results = store.find_relevant_memories("c1", "dragon castle gold hoard")
    assert [r.content for r in results] == ["dragon castle gold", "a dragon"]
    assert results[0].relevance == pytest.approx(0.75)
    assert results[1].relevance == pytest.approx(0.25)


def test_limit_and_threshold(store):
    for i in range(10):
        store.add_memory("c1", f"sword number {i}")
    store.add_memory("c1", "nothing relevant here")
    results = store.find_relevant_memories("c1", "sword", limit=3)
    assert len(results) == 3
    assert all(0.1 < r.relevance <= 1.0 for r in results)
    relevances = [r.relevance for r in results]
    assert relevances == sorted(relevances, reverse=True)


def test_search_failure_returns_empty(store, monkeypatch):
    store.add_memory("c1", "The player found a sword")

    def boom(character_id):
        raise RuntimeError("storage gone")

    monkeypatch.setattr(store, "get_memories", boom)
    assert store.find_relevant_memories("c1", "sword") == []


def test_relevance_bounds():
    assert relevance([], "anything") == 0.0
    assert relevance(["sword"], "a sword") == 1.0


# ── process_conversation ────────────────────────────────────


def test_process_conversation_stores_exchange(store):
    record = store.process_conversation("c1", [
        ChatMessage(sender="user", text="Hi there"),
        ChatMessage(sender="character", text="Hello traveler"),
    ])
    assert record is not None
    assert record.content == 'User said "Hi there" and I responded "Hello traveler"'
    assert record.importance == 4
    assert record.type == "conversation"
    assert store.get_memories("c1") == [record]


def test_process_conversation_uses_first_of_each_role(store):
    record = store.process_conversation("c1", [
        ChatMessage(sender="character", text="Welcome"),
        ChatMessage(sender="user", text="First"),
        ChatMessage(sender="user", text="Second"),
    ])
    assert record.content == 'User said "First" and I responded "Welcome"'


def test_process_conversation_needs_two_messages(store):
    assert store.process_conversation("c1", [ChatMessage(sender="user", text="Hi")]) is None
    assert store.process_conversation("c1", []) is None
    assert store.get_memories("c1") == []


def test_process_conversation_needs_both_roles(store):
    messages = [ChatMessage(sender="user", text="Hi"), ChatMessage(sender="user", text="Anyone?")]
    assert store.process_conversation("c1", messages) is None
    assert store.get_memories("c1") == []


def test_format_memories(store):
    record = store.add_memory("c1", "The player found a sword", importance=7)
    assert format_memories([record]) == ["The player found a sword (conversation, importance: 7)"]
