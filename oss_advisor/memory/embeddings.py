"""
Embedding Generation
====================

Turns conversation text into vectors for similarity search, using
OpenAI's embedding models.

The same user question is often embedded twice per request (once to
search memory, once to store the turn), so vectors are cached in-process
keyed by an md5 of the text.
"""

import hashlib
from collections import OrderedDict

from openai import AsyncOpenAI

from oss_advisor.utils.config import EMBEDDING_MODEL
from oss_advisor.utils.logger import Logger

logger = Logger("Embeddings")


class EmbeddingGenerator:
    """
    Generates text embeddings with an LRU-bounded cache.

    Example:
        generator = EmbeddingGenerator(api_key="sk-...")
        vector = await generator.generate("Which React issues are good for beginners?")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = EMBEDDING_MODEL,
        client: AsyncOpenAI | None = None,
        cache_size: int = 1024
    ):
        """
        Args:
            api_key: OpenAI API key (ignored when `client` is given)
            model: Embedding model name
            client: Preconfigured AsyncOpenAI client
            cache_size: Maximum number of cached vectors
        """
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.cache_size = cache_size
        self._cache: OrderedDict[str, list[float]] = OrderedDict()

        logger.info(f"Embedding generator initialized with model: {model}")

    def _hash_text(self, text: str) -> str:
        return hashlib.md5(f"{self.model}:{text}".encode()).hexdigest()

    async def generate(self, text: str) -> list[float]:
        """
        Embed a single text.

        Raises:
            openai.OpenAIError: If the embedding request fails
        """
        cache_key = self._hash_text(text)
        cached = self._cache.get(cache_key)
        if cached is not None:
            self._cache.move_to_end(cache_key)
            logger.debug("Embedding cache hit")
            return cached

        response = await self.client.embeddings.create(model=self.model, input=text)
        embedding = list(response.data[0].embedding)

        self._cache[cache_key] = embedding
        if len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

        logger.debug(f"Generated embedding (dim={len(embedding)})")
        return embedding
