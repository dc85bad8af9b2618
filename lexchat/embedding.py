"""
Embedding capabilities.

Default: local sentence-transformers to avoid extra API usage.
"""
import asyncio
from typing import List

import numpy as np
from openai import AsyncOpenAI, OpenAIError

from .errors import CapabilityError, EmbedderUnavailableError
from .interfaces import Embedder
from .logging_config import logger


class SentenceTransformerEmbedder(Embedder):

    def __init__(self, model_name: str):
        self.model_name = model_name
        self._model = None

    def _load(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise EmbedderUnavailableError("sentence-transformers is not installed") from e

            logger.info("Loading embedding model", model=self.model_name)
            try:
                # Explicit tokenizer settings avoid a FutureWarning
                self._model = SentenceTransformer(
                    self.model_name,
                    tokenizer_kwargs={"clean_up_tokenization_spaces": False},
                )
            except OSError as e:
                raise EmbedderUnavailableError(f"Could not load {self.model_name}: {e}") from e
            logger.info("Embedding model loaded", model=self.model_name)
        return self._model

    def _encode(self, texts: List[str]) -> List[List[float]]:
        model = self._load()
        try:
            vecs = model.encode(texts, normalize_embeddings=True, show_progress_bar=False)
        except (RuntimeError, ValueError) as e:
            # e.g. CUDA out of memory or a tokenizer error
            raise CapabilityError(f"Embedding failed: {e}") from e
        if isinstance(vecs, np.ndarray):
            return vecs.tolist()
        return [list(v) for v in vecs]

    async def warm_up(self) -> None:
        await asyncio.to_thread(self._encode, ["test"])

    async def embed(self, texts: List[str]) -> List[List[float]]:
        return await asyncio.to_thread(self._encode, texts)


class OpenAIEmbedder(Embedder):

    def __init__(self, client: AsyncOpenAI, model: str, dimensions: int):
        self.client = client
        self.model = model
        # Must match the vector column width in chunk_vectors
        self.dimensions = dimensions

    async def embed(self, texts: List[str]) -> List[List[float]]:
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=texts,
                dimensions=self.dimensions,
            )
        except OpenAIError as e:
            raise CapabilityError(f"Embedding request failed: {e}") from e

        data = sorted(response.data, key=lambda d: d.index)
        if len(data) != len(texts):
            raise CapabilityError(
                f"Embedding response has {len(data)} vectors for {len(texts)} texts"
            )
        for d in data:
            if len(d.embedding) != self.dimensions:
                raise CapabilityError(
                    f"Embedding has {len(d.embedding)} dimensions, expected {self.dimensions}"
                )
        return [list(d.embedding) for d in data]


class DisabledEmbedder(Embedder):
    """Stand-in used when no embedding backend is configured."""

    async def embed(self, texts: List[str]) -> List[List[float]]:
        raise EmbedderUnavailableError("No embedding backend is configured")
