"""Per-character conversational memory.

An append-only log of short text snippets per character, searched with a
bag-of-words overlap score. No stemming and no embeddings: relevance is the
fraction of query words (longer than three letters) that literally appear in
a memory.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Sequence

from .models import MAX_IMPORTANCE, MIN_IMPORTANCE, ChatMessage, MemoryRecord, ScoredMemory

logger = logging.getLogger(__name__)

RELEVANCE_THRESHOLD = 0.1
MIN_WORD_LENGTH = 4
EXCHANGE_IMPORTANCE = 4

_WORD_SPLIT = re.compile(r"\W+")


def _words(text: str) -> list[str]:
    return _WORD_SPLIT.split(text.lower())


def relevance(context_words: Sequence[str], content: str) -> float:
    """Fraction of context words that also occur in `content`, in [0, 1]."""
    if not context_words:
        return 0.0
    memory_words = set(_words(content))
    matches = sum(
        1 for word in context_words
        if len(word) >= MIN_WORD_LENGTH and word in memory_words
    )
    return matches / len(context_words)


def format_memories(memories: Sequence[MemoryRecord]) -> list[str]:
    """Render memories as prompt lines."""
    return [f"{m.content} ({m.type}, importance: {m.importance})" for m in memories]


class MemoryStore:
    """In-process memory log keyed by character id."""

    def __init__(self) -> None:
        self._memories: dict[str, list[MemoryRecord]] = {}
        self._lock = threading.Lock()

    def add_memory(
        self,
        character_id: str,
        content: str,
        type: str = "conversation",
        importance: int = 5,
    ) -> MemoryRecord:
        record = MemoryRecord(
            character_id=character_id,
            content=content,
            type=type,
            importance=max(MIN_IMPORTANCE, min(MAX_IMPORTANCE, int(importance))),
        )
        with self._lock:
            self._memories.setdefault(character_id, []).append(record)
        logger.debug("memory added character=%s id=%s", character_id, record.id)
        return record

    def get_memories(self, character_id: str) -> list[MemoryRecord]:
        """All memories for a character, oldest first."""
        with self._lock:
            return list(self._memories.get(character_id, []))

    def clear(self, character_id: str | None = None) -> None:
        with self._lock:
            if character_id is None:
                self._memories.clear()
            else:
                self._memories.pop(character_id, None)

    def find_relevant_memories(
        self, character_id: str, context: str, limit: int = 5
    ) -> list[ScoredMemory]:
        """Memories relevant to `context`, most relevant first.

        Never raises; a failed search is logged and yields no memories.
        """
        try:
            context_words = _words(context)
            scored = [
                ScoredMemory(**m.model_dump(), relevance=relevance(context_words, m.content))
                for m in self.get_memories(character_id)
            ]
            scored = [m for m in scored if m.relevance > RELEVANCE_THRESHOLD]
            scored.sort(key=lambda m: m.relevance, reverse=True)
            return scored[:max(limit, 0)]
        except Exception:
            logger.exception("memory search failed for character=%s", character_id)
            return []

    def process_conversation(
        self, character_id: str, messages: Sequence[ChatMessage]
    ) -> MemoryRecord | None:
        """Store one memory summarising the first user/character exchange."""
        if not messages or len(messages) < 2:
            return None
        user_msg = next((m for m in messages if m.sender == "user"), None)
        char_msg = next((m for m in messages if m.sender == "character"), None)
        if user_msg is None or char_msg is None:
            return None
        return self.add_memory(
            character_id,
            f'User said "{user_msg.text}" and I responded "{char_msg.text}"',
            "conversation",
            EXCHANGE_IMPORTANCE,
        )
