"""
Memory Store
============

Append-only conversation log with similarity search, scoped per
conversation.

Writes and reads are best-effort: every failure is returned as a failed
MemoryResult instead of raised, so a broken vector store never breaks a
conversation.

Search strategy:
    1. If the query looks identity-related ("name", "who am i"), search
       only turns flagged mentions_name.
    2. If that finds nothing (or the query was not identity-related),
       search all turns of the conversation.
    3. Sort whatever was found by timestamp, oldest first.
"""

import re
from datetime import datetime
from typing import Protocol

from oss_advisor.memory.models import ConversationTurn, DerivedFlag, MemoryResult, TurnRole
from oss_advisor.memory.vectorstore import VectorDocument, VectorStore
from oss_advisor.utils.logger import Logger

logger = Logger("Memory")

IDENTITY_QUERY = re.compile(r"name|who am i", re.IGNORECASE)


class Embedder(Protocol):
    async def generate(self, text: str) -> list[float]:
        ...


def is_identity_query(text: str) -> bool:
    """True for questions like "what's my name?" or "who am I?"."""
    return bool(IDENTITY_QUERY.search(text))


class MemoryStore:
    """
    Conversation memory on top of a vector store.

    Example:
        store = MemoryStore(vector_store, embedder)

        await store.append("chat-1", TurnRole.USER, "My name is Dana")
        result = await store.search("chat-1", "what is my name?")
        turns = result.value_or([])
    """

    def __init__(self, vector_store: VectorStore, embedder: Embedder):
        self.vector_store = vector_store
        self.embedder = embedder

    async def append(
        self,
        conversation_id: str,
        role: TurnRole,
        text: str,
        derived_flags: frozenset[DerivedFlag] | None = None,
        timestamp: datetime | None = None,
        responding_to: str | None = None
    ) -> MemoryResult[ConversationTurn]:
        """
        Store one turn.

        Returns:
            The stored turn, or the error that prevented storing it
        """
        if not conversation_id or not text:
            logger.warning("Missing conversation id or text for memory save - skipping")
            return MemoryResult.failure(ValueError("conversation_id and text are required"))

        turn = ConversationTurn.create(
            conversation_id=conversation_id,
            role=role,
            text=text,
            derived_flags=derived_flags,
            timestamp=timestamp,
            responding_to=responding_to,
        )

        try:
            embedding = await self.embedder.generate(turn.text)
            await self.vector_store.add_documents([
                VectorDocument(content=turn.text, embedding=embedding, metadata=turn.to_metadata())
            ])
        except Exception as e:
            return MemoryResult.failure(e)

        logger.debug(f"Saved {role.value} turn for chat {conversation_id}")
        return MemoryResult.success(turn)

    async def search(
        self,
        conversation_id: str,
        query_text: str,
        k: int = 6,
        flag: DerivedFlag | None = None
    ) -> MemoryResult[list[ConversationTurn]]:
        """
        Find up to `k` relevant turns of one conversation, oldest first.

        Args:
            conversation_id: Scope of the search
            query_text: Text to compare against stored turns
            k: Maximum number of turns
            flag: Restrict the first search phase to turns with this flag;
                  defaults to mentions_name for identity questions
        """
        if not conversation_id or not query_text:
            return MemoryResult.success([])

        if flag is None and is_identity_query(query_text):
            flag = DerivedFlag.MENTIONS_NAME

        scope = {"conversation_id": conversation_id}

        try:
            embedding = await self.embedder.generate(query_text)

            documents: list[VectorDocument] = []
            if flag is not None:
                documents = await self.vector_store.similarity_search(
                    embedding, k, {**scope, flag.value: True}
                )
                logger.debug(f"Filtered search ({flag.value}) found {len(documents)} turns")

            if not documents:
                documents = await self.vector_store.similarity_search(embedding, k, scope)
        except Exception as e:
            return MemoryResult.failure(e)

        turns = []
        for doc in documents:
            try:
                turns.append(ConversationTurn.from_document(doc.content, doc.metadata))
            except ValueError:
                logger.warning(f"Skipping stored document {doc.id} with unknown role")

        turns.sort(key=lambda turn: turn.timestamp)

        logger.info(f"Retrieved {len(turns)} relevant turns for chat {conversation_id}")
        return MemoryResult.success(turns)
