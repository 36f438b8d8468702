"""
ToolStack Data Models
=====================

Dataclasses for the records the sync pipeline reads and the documents it
writes to the vector and text indexes.
"""

import logging
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class MessageRole(str, Enum):
    """Roles accepted from chat callers."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ReferenceEntity:
    """A category or ecosystem a tool points at."""
    id: str
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ToolRecord:
    """A developer tool as stored in the primary store."""
    id: str
    name: str
    description: str = ""
    category_id: Optional[str] = None
    ecosystem_id: Optional[str] = None
    badges: List[str] = field(default_factory=list)
    github_link: Optional[str] = None
    github_stars: Optional[int] = None
    logo_url: str = ""
    website_url: str = ""
    like_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.badges = [str(b) for b in (self.badges or [])]
        self.like_count = max(0, int(self.like_count or 0))
        if not self.github_link:
            if self.github_stars is not None:
                logger.warning(f"Tool {self.id} has github_stars without github_link, dropping stars")
            self.github_link = None
            self.github_stars = None
        elif self.github_stars is not None:
            self.github_stars = int(self.github_stars)

    @classmethod
    def from_dict(cls, tool_id: str, data: Dict[str, Any]) -> "ToolRecord":
        """
        Build a record from a change-event snapshot.

        Accepts either ``category_id``/``ecosystem_id`` or the bare
        ``category``/``ecosystem`` keys used by older snapshots.
        """
        return cls(
            id=str(tool_id),
            name=data.get("name") or "",
            description=data.get("description") or "",
            category_id=data.get("category_id", data.get("category")),
            ecosystem_id=data.get("ecosystem_id", data.get("ecosystem")),
            badges=data.get("badges") or [],
            github_link=data.get("github_link"),
            github_stars=data.get("github_stars"),
            logo_url=data.get("logo_url") or "",
            website_url=data.get("website_url") or "",
            like_count=data.get("like_count") or 0,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class IndexedDocument:
    """
    Flat projection of a ToolRecord written to both indexes.

    Category and ecosystem hold display names, never ids. Always derived
    from the current record, never edited in place.
    """
    id: str
    name: str
    description: str
    category: str
    ecosystem: str
    badges: List[str] = field(default_factory=list)
    github_link: Optional[str] = None
    github_stars: Optional[int] = None
    logo_url: str = ""
    website_url: str = ""
    like_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_embedding_text(self) -> str:
        """Text the embedding model sees for this tool."""
        lines = [
            f"Tool: {self.name}",
            f"Description: {self.description}",
            f"Category: {self.category}",
            f"Ecosystem: {self.ecosystem}",
        ]
        if self.badges:
            lines.append(f"Tags: {', '.join(self.badges)}")
        return "\n".join(lines)

    def vector_metadata(self) -> Dict[str, Any]:
        """Metadata stored next to the vector (no logo, likes or id)."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "ecosystem": self.ecosystem,
            "badges": list(self.badges),
            "github_link": self.github_link or "",
            "github_stars": self.github_stars,
            "website_url": self.website_url,
        }


@dataclass
class DeletionSignal:
    """Normalizer output for a record that no longer exists."""
    id: str


@dataclass
class ChangeEvent:
    """One observed mutation of a tool record."""
    tool_id: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    @property
    def is_delete(self) -> bool:
        return self.after is None


@dataclass
class ConversationMessage:
    """A chat turn supplied by the caller."""
    role: MessageRole
    content: str

    def __post_init__(self):
        if isinstance(self.role, str):
            self.role = MessageRole(self.role)

    def to_openai(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class VectorMatch:
    """A nearest-neighbour hit from the vector index."""
    id: str
    score: float
    metadata: Optional[Dict[str, Any]] = None


def slugify_tool_name(name: str) -> str:
    """Normalize a tool name for use in its public URL."""
    slug = name.lower()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip()


def tool_slug(tool_id: str, name: str) -> str:
    return f"{tool_id}-{slugify_tool_name(name)}"
