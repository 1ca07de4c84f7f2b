"""Core domain models.

Characters, campaign/world context and conversation messages arrive as plain
data from the storage layer; every operation in the orchestration core takes
these types. Pydantic validates them at the boundary and accepts both the
camelCase keys the frontend sends and snake_case names.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 10

RoleplayMode = Literal["lax", "family-friendly"]


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Characters and context
# ---------------------------------------------------------------------------

class CampaignContext(_Model):
    """Campaign details attached directly to a character."""

    campaign_name: str | None = None
    current_scene: str | None = None
    objectives: str | None = None
    other_characters: str | None = None


class Character(_Model):
    """A user-authored character. Read-only to the orchestration core."""

    id: str | None = None
    name: str = ""
    personality: str | None = None
    background: str | None = None
    appearance: str | None = None
    traits: str | None = None
    is_game_master: bool = False
    campaign_context: CampaignContext | None = None


GAME_MASTER = Character(
    id="GM",
    name="Game Master",
    personality=(
        "An engaging and fair Game Master who narrates the campaign, describes "
        "scenes, controls NPCs, and guides the story."
    ),
    background=(
        "As the Game Master, you manage the game world and create an immersive "
        "experience for the players."
    ),
    appearance="The omniscient narrator and guide of the campaign.",
    traits="Fair, creative, descriptive, adaptable",
    is_game_master=True,
)


class Scene(_Model):
    title: str | None = None
    description: str | None = None


class EnrichedContext(_Model):
    """Campaign state injected into a prompt (name, scene, notable events)."""

    name: str | None = None
    description: str | None = None
    current_scene: Scene | None = None
    important_memories: str | None = None


class WorldContext(_Model):
    name: str | None = None
    description: str | None = None
    rules: str | None = None
    lore: str | None = None


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

class ChatMessage(_Model):
    """One turn of a conversation.

    Simple chats tag turns with `sender`; campaign chats carry an explicit
    `speaker` name instead.
    """

    sender: Literal["user", "character"] | None = None
    speaker: str | None = None
    text: str = ""

    def label(self, character_name: str, user_label: str = "User") -> str:
        if self.speaker:
            return self.speaker
        return user_label if self.sender == "user" else character_name


class GenerationOptions(_Model):
    """Per-call generation knobs and optional prompt context."""

    model: str | None = None
    temperature: float = 0.7
    max_tokens: int = 500
    top_p: float = 0.9
    is_game_master: bool = False
    gm_prompt: str | None = None
    campaign_id: str | None = None
    enriched_context: EnrichedContext | None = None
    world_context: WorldContext | None = None
    rp_mode: RoleplayMode = "lax"
    memories: list[str] = Field(default_factory=list)


class CharacterResponse(_Model):
    """What a provider returns: the reply text and which backend produced it."""

    response: str
    source: str
    error: str | None = None


# ---------------------------------------------------------------------------
# Memories
# ---------------------------------------------------------------------------

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MemoryRecord(_Model):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    character_id: str
    content: str
    type: str = "conversation"
    importance: int = Field(default=5, ge=MIN_IMPORTANCE, le=MAX_IMPORTANCE)
    timestamp: str = Field(default_factory=_now)


class ScoredMemory(MemoryRecord):
    """A memory paired with its relevance to a query, in [0, 1]."""

    relevance: float = Field(ge=0.0, le=1.0)
