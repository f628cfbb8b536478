"""
Pydantic schemas for the discussion API.

Field names are snake_case in Python and camelCase on the wire
(`selectedProviders`, `providerName`) to match the browser client.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Constants
# =============================================================================

MAX_MESSAGE_LENGTH = 20000
DEFAULT_SELECTED_PROVIDERS = ["llama3.2:3b"]


# =============================================================================
# Chat Schemas
# =============================================================================


class ChatMessage(BaseModel):
    """A conversation turn sent by the client."""

    role: Literal["user", "assistant", "system"]
    content: str = Field(..., max_length=MAX_MESSAGE_LENGTH)
    provider: Optional[str] = None


class ChatRequest(BaseModel):
    """Request for one synchronous round."""

    messages: list[ChatMessage]
    selected_providers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SELECTED_PROVIDERS),
        alias="selectedProviders",
    )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "messages": [{"role": "user", "content": "/code write a CSV parser"}],
                "selectedProviders": ["mistral:7b", "codellama:7b"],
            }
        }


class RoundResponseItem(BaseModel):
    """One provider's reply (or error entry) in a round."""

    provider: str
    provider_name: str = Field(..., alias="providerName")
    content: str
    color: str
    role: str = "assistant"
    expertise: Optional[str] = None
    error: Optional[bool] = None

    class Config:
        populate_by_name = True


class ChatResponse(BaseModel):
    """Round result in provider selection order."""

    responses: list[RoundResponseItem]


# =============================================================================
# Catalog Schemas
# =============================================================================


class ProviderItem(BaseModel):
    id: str
    name: str
    description: str
    color: str
    type: str
    reliability: str
    expertise: str


class ProviderListResponse(BaseModel):
    providers: list[ProviderItem]


class ProviderHealthItem(BaseModel):
    """Result of probing one provider."""

    provider: str
    status: Literal["working", "failed"]
    response: Optional[str] = None
    error: Optional[str] = None


class ProviderHealthResponse(BaseModel):
    results: list[ProviderHealthItem]
    working: int
    total: int


# =============================================================================
# History Schemas
# =============================================================================


class MessageItem(BaseModel):
    id: Optional[int] = None
    role: str
    content: str
    provider: Optional[str] = None
    timestamp: datetime


class MessageListResponse(BaseModel):
    messages: list[MessageItem]


class DocumentListResponse(BaseModel):
    documents: list[dict[str, Any]]


# =============================================================================
# Project Schemas
# =============================================================================


class ProjectCreateRequest(BaseModel):
    """Request to create a project brief."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    requirements: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Inventory CLI",
                "description": "Command line tool for tracking parts",
                "requirements": "Python, SQLite, CSV export",
            }
        }


class ProjectCreateResponse(BaseModel):
    success: bool = True
    project_id: int = Field(..., alias="projectId")
    project_brief: str = Field(..., alias="projectBrief")

    class Config:
        populate_by_name = True


class ProjectListResponse(BaseModel):
    projects: list[dict[str, Any]]
