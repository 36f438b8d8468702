"""
ToolStack Data Module
=====================

Configuration, domain models and source store access.
"""

from .config import DeploymentEnvironment, Settings, get_settings
from .models import (
    ChangeEvent,
    ConversationMessage,
    DeletionSignal,
    IndexedDocument,
    MessageRole,
    ReferenceEntity,
    ToolRecord,
    VectorMatch,
)
from .tool_store import ToolStore

__all__ = [
    "DeploymentEnvironment",
    "Settings",
    "get_settings",
    "ChangeEvent",
    "ConversationMessage",
    "DeletionSignal",
    "IndexedDocument",
    "MessageRole",
    "ReferenceEntity",
    "ToolRecord",
    "VectorMatch",
    "ToolStore",
]
