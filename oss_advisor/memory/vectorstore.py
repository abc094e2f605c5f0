"""
Vector Store
============

Storage backends for conversation memory. Both expose the same async
interface:

    await store.add_documents([VectorDocument(...), ...])
    docs = await store.similarity_search(query_vector, k=6,
                                         filter={"conversation_id": "abc"})

Backends:
- SupabaseVectorStore: rows in a Postgres/pgvector table, searched through
  the `match_documents` RPC. Selected for http(s):// URLs.
- LocalVectorStore: a JSON file plus a numpy matrix, searched with cosine
  similarity in-process. Selected for file:// URLs (development, tests).

Cosine Similarity:
    cos(A, B) = (A · B) / (||A|| * ||B||)
    1 means same direction (most similar), 0 means unrelated.

Filters are exact matches on metadata keys; every key must match.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import unquote, urlparse

import httpx
import numpy as np

from oss_advisor.utils.config import VectorStoreConfig
from oss_advisor.utils.errors import ConfigError, VectorStoreError
from oss_advisor.utils.logger import Logger

logger = Logger("VectorStore")


@dataclass
class VectorDocument:
    """
    A stored piece of text with its embedding.

    Attributes:
        content: The stored text
        embedding: Its vector
        metadata: Filterable fields (conversation_id, role, timestamp, flags)
        id: Unique identifier
        score: Similarity to the query (set by searches)
    """
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    score: float | None = None

    def to_dict(self, include_embedding: bool = True) -> dict:
        data = {"id": self.id, "content": self.content, "metadata": self.metadata}
        if include_embedding:
            data["embedding"] = self.embedding
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "VectorDocument":
        return cls(
            id=data["id"],
            content=data["content"],
            embedding=data.get("embedding", []),
            metadata=data.get("metadata") or {},
        )


class VectorStore(Protocol):
    """What the memory layer needs from a vector backend."""

    async def add_documents(self, documents: list[VectorDocument]) -> None:
        ...

    async def similarity_search(
        self,
        query_vector: list[float],
        k: int,
        filter: dict[str, Any] | None = None
    ) -> list[VectorDocument]:
        ...


def _matches(metadata: dict[str, Any], filter: dict[str, Any] | None) -> bool:
    if not filter:
        return True
    return all(metadata.get(key) == value for key, value in filter.items())


# ==============================================================================
# Local backend
# ==============================================================================

class LocalVectorStore:
    """
    File-backed vector store with cosine similarity search.

    Data lives in two files under `storage_path`:
    - documents.json: content and metadata
    - embeddings.npy: the embedding matrix, one row per document

    Example:
        store = LocalVectorStore(Path("data/memory"))
        await store.add_documents([VectorDocument("I like Python", [0.1, 0.3])])
        docs = await store.similarity_search([0.1, 0.2], k=3)
    """

    def __init__(self, storage_path: Path, persist: bool = True):
        """
        Args:
            storage_path: Directory for the data files
            persist: Write to disk after every add
        """
        self.storage_path = storage_path
        self.persist = persist
        self.documents_file = storage_path / "documents.json"
        self.embeddings_file = storage_path / "embeddings.npy"

        self._documents: list[VectorDocument] = []
        self._embeddings: np.ndarray | None = None
        self._lock = asyncio.Lock()

        if persist:
            storage_path.mkdir(parents=True, exist_ok=True)
            self._load()

        logger.info(f"Local vector store initialized with {len(self._documents)} documents")

    def _load(self) -> None:
        if not self.documents_file.exists():
            return

        with open(self.documents_file) as f:
            docs_data = json.load(f)
        self._documents = [VectorDocument.from_dict(d) for d in docs_data]

        if self.embeddings_file.exists():
            self._embeddings = np.load(self.embeddings_file)
            # documents.json does not repeat the vectors
            for doc, row in zip(self._documents, self._embeddings):
                if not doc.embedding:
                    doc.embedding = row.tolist()
        elif self._documents:
            self._embeddings = np.array([d.embedding for d in self._documents], dtype=float)

        logger.debug(f"Loaded {len(self._documents)} documents from disk")

    def _write(self, documents: list[dict], embeddings: np.ndarray) -> None:
        with open(self.documents_file, "w") as f:
            json.dump(documents, f)
        np.save(self.embeddings_file, embeddings)

    async def _save(self) -> None:
        """Write both files off the event loop; vectors go to the .npy file only."""
        documents = [doc.to_dict(include_embedding=False) for doc in self._documents]
        await asyncio.to_thread(self._write, documents, self._embeddings.copy())

    async def add_documents(self, documents: list[VectorDocument]) -> None:
        if not documents:
            return

        async with self._lock:
            rows = np.array([doc.embedding for doc in documents], dtype=float)
            if self._embeddings is None:
                self._embeddings = rows
            else:
                if rows.shape[1] != self._embeddings.shape[1]:
                    raise VectorStoreError(
                        f"Embedding dimension {rows.shape[1]} does not match "
                        f"store dimension {self._embeddings.shape[1]}"
                    )
                self._embeddings = np.vstack([self._embeddings, rows])
            self._documents.extend(documents)

            if self.persist:
                await self._save()

        logger.debug(f"Added {len(documents)} documents")

    async def similarity_search(
        self,
        query_vector: list[float],
        k: int,
        filter: dict[str, Any] | None = None
    ) -> list[VectorDocument]:
        """Top-k documents matching `filter`, most similar first."""
        if self._embeddings is None or not self._documents or k <= 0:
            return []

        query = np.array(query_vector, dtype=float)
        query_norm = np.linalg.norm(query) or 1.0
        doc_norms = np.linalg.norm(self._embeddings, axis=1)
        doc_norms = np.where(doc_norms == 0, 1, doc_norms)

        similarities = np.dot(self._embeddings, query) / (doc_norms * query_norm)

        candidates = [
            (i, float(similarities[i]))
            for i, doc in enumerate(self._documents)
            if _matches(doc.metadata, filter)
        ]
        candidates.sort(key=lambda item: item[1], reverse=True)

        return [
            VectorDocument(
                id=self._documents[i].id,
                content=self._documents[i].content,
                embedding=self._documents[i].embedding,
                metadata=dict(self._documents[i].metadata),
                score=score,
            )
            for i, score in candidates[:k]
        ]

    def __len__(self) -> int:
        return len(self._documents)


# ==============================================================================
# Supabase backend
# ==============================================================================

class SupabaseVectorStore:
    """
    Memory rows in a Supabase (pgvector) table.

    Expects the usual LangChain-compatible schema: a table with
    content/metadata/embedding columns and a `match_documents(query_embedding,
    match_count, filter)` function that filters with `metadata @> filter`.
    """

    def __init__(
        self,
        url: str,
        key: str,
        table_name: str,
        query_name: str = "match_documents",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0
    ):
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.table_name = table_name
        self.query_name = query_name
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self._transport = transport
        self._timeout = timeout

        logger.info(f"Supabase vector store initialized for table \"{table_name}\"")

    async def _post(self, path: str, payload: Any, extra_headers: dict | None = None) -> httpx.Response:
        headers = {**self._headers, **(extra_headers or {})}
        async with httpx.AsyncClient(
            base_url=self.base_url,
            transport=self._transport,
            timeout=self._timeout
        ) as client:
            response = await client.post(path, json=payload, headers=headers)

        if response.status_code >= 400:
            raise VectorStoreError(
                f"Supabase returned {response.status_code} for {path}: {response.text[:200]}"
            )
        return response

    async def add_documents(self, documents: list[VectorDocument]) -> None:
        if not documents:
            return

        rows = [
            {"content": doc.content, "metadata": doc.metadata, "embedding": doc.embedding}
            for doc in documents
        ]
        await self._post(f"/{self.table_name}", rows, {"Prefer": "return=minimal"})
        logger.debug(f"Inserted {len(rows)} rows into {self.table_name}")

    async def similarity_search(
        self,
        query_vector: list[float],
        k: int,
        filter: dict[str, Any] | None = None
    ) -> list[VectorDocument]:
        response = await self._post(
            f"/rpc/{self.query_name}",
            {"query_embedding": query_vector, "match_count": k, "filter": filter or {}},
        )

        return [
            VectorDocument(
                id=str(row.get("id", "")),
                content=row.get("content", ""),
                embedding=[],
                metadata=row.get("metadata") or {},
                score=row.get("similarity"),
            )
            for row in response.json()
        ]


def create_vector_store(config: VectorStoreConfig) -> VectorStore:
    """
    Pick a backend from the configured URL.

    Raises:
        ConfigError: For unsupported URL schemes
    """
    parsed = urlparse(config.url)

    if parsed.scheme in ("http", "https"):
        return SupabaseVectorStore(config.url, config.key, config.table_name)

    if parsed.scheme == "file":
        path = Path(unquote(parsed.netloc + parsed.path))
        return LocalVectorStore(path / config.table_name)

    raise ConfigError(f"Unsupported VECTOR_STORE_URL scheme: '{parsed.scheme}'")
