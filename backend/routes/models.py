"""Pydantic request/response models for API endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from worldbuilding.models import Character, ChatMessage, GenerationOptions


class ChatBody(BaseModel):
    character: Character
    message: str
    history: list[ChatMessage] = Field(default_factory=list)
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class CreateMemory(BaseModel):
    content: str
    type: str = "conversation"
    importance: int = 5


class SetProviderBody(BaseModel):
    service: str


class CheckConnectionBody(BaseModel):
    provider_url: str


# Gateway bodies mirror the frontend's camelCase keys. Fields are loose so
# missing or malformed values can be answered with 400 rather than 422.

class GatewayChatBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    system_prompt: Any = Field(default=None, alias="systemPrompt")
    user_message: Any = Field(default=None, alias="userMessage")


class GatewayMessagesBody(BaseModel):
    messages: Any = None
    character: Any = None
    context: Any = None
