"""
In-memory stand-ins for the external services, used across the test suite.
"""

import copy
import dataclasses
import math
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from toolstack.data.config import DeploymentEnvironment
from toolstack.data.models import ReferenceEntity, ToolRecord, VectorMatch
from toolstack.errors import UpstreamServiceError
from toolstack.rag.completion import CompletionResult
from toolstack.rag.text_index import TextSearchResult

DIMENSIONS = 16


def embed_text(text: str) -> List[float]:
    """Deterministic bag-of-words vector."""
    vector = [0.0] * DIMENSIONS
    for word in text.lower().split():
        vector[sum(ord(c) for c in word) % DIMENSIONS] += 1.0
    return vector


def cosine(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeToolStore:
    def __init__(
        self,
        tools: Iterable[ToolRecord] = (),
        categories: Optional[Dict[str, str]] = None,
        ecosystems: Optional[Dict[str, str]] = None,
    ):
        self.tools: Dict[str, ToolRecord] = {t.id: t for t in tools}
        self.categories = categories or {}
        self.ecosystems = ecosystems or {}
        self.fail_fetch_after: Optional[int] = None  # fail once this many pages were served
        self.fetch_calls: List[Tuple[Optional[str], int]] = []
        self.reference_calls: List[Tuple[str, str]] = []
        self.closed = False

    async def fetch_batch(self, cursor: Optional[str], limit: int):
        if self.fail_fetch_after is not None and len(self.fetch_calls) >= self.fail_fetch_after:
            raise UpstreamServiceError("source-store", "connection refused")
        self.fetch_calls.append((cursor, limit))
        ordered = sorted(self.tools.values(), key=lambda t: t.id)
        if cursor is not None:
            ordered = [t for t in ordered if t.id > cursor]
        page = ordered[:limit]
        next_cursor = page[-1].id if len(page) == limit else None
        return page, next_cursor

    async def count_tools(self) -> int:
        return len(self.tools)

    async def get_category(self, category_id: str) -> Optional[ReferenceEntity]:
        self.reference_calls.append(("category", category_id))
        name = self.categories.get(category_id)
        return ReferenceEntity(id=category_id, name=name) if name else None

    async def get_ecosystem(self, ecosystem_id: str) -> Optional[ReferenceEntity]:
        self.reference_calls.append(("ecosystem", ecosystem_id))
        name = self.ecosystems.get(ecosystem_id)
        return ReferenceEntity(id=ecosystem_id, name=name) if name else None

    async def check_health(self) -> Dict[str, Any]:
        return {"status": "connected", "tools": len(self.tools)}

    def close(self):
        self.closed = True


class FakeTextIndex:
    def __init__(self, environment: DeploymentEnvironment = DeploymentEnvironment.DEV):
        self.index_name = environment.text_index_name
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.fail_ids: Set[str] = set()
        self.writes: List[Tuple[str, str]] = []
        self.closed = False

    def _check(self, doc_id: str):
        if doc_id in self.fail_ids:
            raise UpstreamServiceError("text-index", f"write rejected for {doc_id}")

    async def create(self, document: Dict[str, Any]):
        self._check(document["id"])
        if document["id"] in self.docs:
            raise UpstreamServiceError("text-index", "document already exists")
        self.docs[document["id"]] = copy.deepcopy(document)
        self.writes.append(("create", document["id"]))

    async def update(self, doc_id: str, document: Dict[str, Any]):
        self._check(doc_id)
        self.docs[doc_id].update(copy.deepcopy(document))
        self.writes.append(("update", doc_id))

    async def upsert(self, document: Dict[str, Any]):
        self._check(document["id"])
        self.docs[document["id"]] = copy.deepcopy(document)
        self.writes.append(("upsert", document["id"]))

    async def retrieve(self, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self.docs.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def delete(self, doc_id: str) -> bool:
        self._check(doc_id)
        self.writes.append(("delete", doc_id))
        return self.docs.pop(doc_id, None) is not None

    async def search(self, query: str, query_by=None, per_page: int = 10) -> TextSearchResult:
        if query.strip() in ("", "*"):
            hits = list(self.docs.values())
        else:
            terms = query.lower().split()
            hits = [
                d for d in self.docs.values()
                if any(t in f"{d['name']} {d['description']}".lower() for t in terms)
            ]
        return TextSearchResult(found=len(hits), hits=copy.deepcopy(hits[:per_page]))

    async def count(self) -> int:
        return len(self.docs)

    async def check_health(self) -> Dict[str, Any]:
        return {"status": "connected", "index": self.index_name}

    async def close(self):
        self.closed = True


class FakeVectorIndex:
    def __init__(self, environment: DeploymentEnvironment = DeploymentEnvironment.DEV):
        self.namespace = environment.vector_namespace
        self.vectors: Dict[str, Tuple[List[float], Optional[Dict[str, Any]]]] = {}
        self.fail_ids: Set[str] = set()
        self.query_calls = 0
        self.closed = False

    async def upsert(self, vector_id: str, vector: List[float], metadata: Dict[str, Any]):
        if vector_id in self.fail_ids:
            raise UpstreamServiceError("vector-index", f"upsert rejected for {vector_id}")
        self.vectors[vector_id] = (list(vector), copy.deepcopy(metadata))

    async def delete_one(self, vector_id: str) -> bool:
        return self.vectors.pop(vector_id, None) is not None

    async def query(self, vector: List[float], top_k: int = 5, include_metadata: bool = True) -> List[VectorMatch]:
        self.query_calls += 1
        ranked = sorted(
            (
                VectorMatch(id=vid, score=cosine(vector, stored), metadata=meta if include_metadata else None)
                for vid, (stored, meta) in self.vectors.items()
            ),
            key=lambda m: m.score,
            reverse=True,
        )
        return ranked[:top_k]

    async def fetch(self, vector_id: str) -> Optional[VectorMatch]:
        if vector_id not in self.vectors:
            return None
        vector, meta = self.vectors[vector_id]
        return VectorMatch(id=vector_id, score=1.0, metadata=meta)

    async def count(self) -> int:
        return len(self.vectors)

    async def check_health(self) -> Dict[str, Any]:
        return {"status": "connected", "namespace": self.namespace}

    def close(self):
        self.closed = True


class FakeEmbedder:
    def __init__(self, fail_on: Iterable[str] = ()):
        self.fail_on = list(fail_on)
        self.calls: List[str] = []
        self.closed = False

    async def embed_query(self, text: str) -> List[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise UpstreamServiceError("embedding", "rate limit exceeded")
        return embed_text(text)

    async def close(self):
        self.closed = True


class FakeCompletion:
    def __init__(self, reply: str = "Try Prisma.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def complete(self, messages, max_tokens: int = 500, temperature: float = 0.7) -> CompletionResult:
        self.calls.append({"messages": messages, "max_tokens": max_tokens, "temperature": temperature})
        if self.error is not None:
            raise self.error
        return CompletionResult(content=self.reply, model="fake", tokens_input=10, tokens_output=5, cost_usd=0.0)

    async def close(self):
        self.closed = True


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.messages: List[str] = []
        self.fail = fail

    async def send_async(self, text: str) -> bool:
        if self.fail:
            raise RuntimeError("telegram unreachable")
        self.messages.append(text)
        return True


CATEGORIES = {"c1": "ORM", "c2": "Testing"}
ECOSYSTEMS = {"e1": "TypeScript", "e2": "Python"}


def make_tool(index: int, **overrides) -> ToolRecord:
    data = {
        "id": f"t{index:03d}",
        "name": f"Tool {index}",
        "description": f"Developer tool number {index}",
        "category_id": "c1" if index % 2 else "c2",
        "ecosystem_id": "e1" if index % 3 else "e2",
        "badges": ["open-source"] if index % 2 else [],
        "github_link": f"https://github.com/example/tool-{index}",
        "github_stars": index * 10,
        "logo_url": f"https://cdn.example.com/{index}.png",
        "website_url": f"https://tool-{index}.example.com",
        "like_count": index,
    }
    data.update(overrides)
    return ToolRecord(**data)


def make_store(count: int) -> FakeToolStore:
    return FakeToolStore(
        [make_tool(i) for i in range(1, count + 1)],
        categories=dict(CATEGORIES),
        ecosystems=dict(ECOSYSTEMS),
    )


def snapshot(tool: ToolRecord) -> Dict[str, Any]:
    """Change-event payload for a tool, as the change relay sends it."""
    data = dataclasses.asdict(tool)
    data.pop("id")
    data.pop("created_at")
    data.pop("updated_at")
    return data
