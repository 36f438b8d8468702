"""
ToolStack API Models
====================

Pydantic models for API request/response serialization.
Field names follow the JSON the web client already sends and reads.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    environment: str
    store: str
    vectorIndex: str
    textIndex: str


class ErrorBody(BaseModel):
    status: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorBody


# =============================================================================
# Chat
# =============================================================================

class ChatRequest(BaseModel):
    """
    Chat request.

    Both fields are optional at the schema level so a missing field is
    answered with invalid-argument instead of a schema validation error.
    """
    messages: Optional[Any] = Field(None, description="Conversation so far, oldest first")
    toolQuery: Optional[str] = Field(None, description="Text used to retrieve tools")


class ChatResponse(BaseModel):
    message: str


# =============================================================================
# Sync
# =============================================================================

class ChangeEventRequest(BaseModel):
    """Before/after snapshots of one tool. ``after`` is null for a delete."""
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


class IncrementalSyncResponse(BaseModel):
    toolId: str
    action: str
    text: Optional[bool] = None
    vector: Optional[bool] = None
    errors: Dict[str, str] = Field(default_factory=dict)


class SyncDetails(BaseModel):
    """Counters of one bulk resync invocation."""
    totalTools: int
    successCount: int
    errorCount: int
    successRate: str
    target: str
    runId: str
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    batches: int = 0
    completed: bool = True
    resumeCursor: Optional[str] = None
    sourceCount: Optional[int] = None
    indexedCounts: Dict[str, int] = Field(default_factory=dict)
    consistencyWarning: Optional[str] = None
    error: Optional[str] = None
    durationSeconds: float = 0.0


class FullSyncResponse(BaseModel):
    success: bool
    summary: str
    details: SyncDetails


class FullSyncErrorResponse(BaseModel):
    success: bool = False
    error: str
