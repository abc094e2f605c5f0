"""
Memory System
=============

Conversation memory persisted in a vector store:

1. TURNS: every user message and assistant answer, truncated and tagged
   with derived flags (mentions_name, mentions_skills, mentions_interests)
2. SEARCH: semantic recall scoped to one conversation, with a name-first
   phase for identity questions, returned in chronological order
3. BACKENDS: Supabase (pgvector over REST) or a local numpy file store

Usage:
    from oss_advisor.memory import MemoryStore, TurnRole

    store = MemoryStore(vector_store, embedder)
    await store.append("chat-1", TurnRole.USER, "I'm a Python beginner")
    turns = (await store.search("chat-1", "what should I learn?")).value_or([])
"""

from oss_advisor.memory.models import (
    ConversationTurn,
    DerivedFlag,
    MemoryResult,
    TurnRole,
    derive_flags,
)
from oss_advisor.memory.store import MemoryStore, is_identity_query
from oss_advisor.memory.embeddings import EmbeddingGenerator
from oss_advisor.memory.vectorstore import (
    LocalVectorStore,
    SupabaseVectorStore,
    VectorDocument,
    create_vector_store,
)

__all__ = [
    "ConversationTurn",
    "DerivedFlag",
    "MemoryResult",
    "TurnRole",
    "derive_flags",
    "MemoryStore",
    "is_identity_query",
    "EmbeddingGenerator",
    "LocalVectorStore",
    "SupabaseVectorStore",
    "VectorDocument",
    "create_vector_store",
]
