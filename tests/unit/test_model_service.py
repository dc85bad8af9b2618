"""Unit tests for model resolution and capability wiring."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from lexchat.embedding import DisabledEmbedder, OpenAIEmbedder, SentenceTransformerEmbedder
from lexchat.errors import CapabilityError, EmbedderUnavailableError
from lexchat.ollama_client import OllamaCompletionService
from lexchat.services import model_service
from lexchat.services.model_service import (
    UnconfiguredCompletionService,
    build_completion_service,
    build_embedder,
    build_extractor,
    resolve_model,
)
from lexchat.text_extraction import LocalDocumentExtractor


class TestResolveModel:

    @pytest.mark.parametrize(
        "model_string, expected",
        [
            ("openai:gpt-4o-mini", ("openai", "gpt-4o-mini")),
            ("ollama:qwen2.5:7b", ("ollama", "qwen2.5:7b")),
            (None, ("openai", "gpt-4o-mini")),
            ("", ("openai", "gpt-4o-mini")),
            ("mistral:large", ("openai", "gpt-4o-mini")),
            ("ollama:", ("openai", "gpt-4o-mini")),
        ],
    )
    def test_resolve(self, model_string, expected):
        assert resolve_model(model_string) == expected


class TestBuilders:

    def test_missing_openai_key_gives_unconfigured_completion(self, monkeypatch):
        monkeypatch.setattr(model_service.config, "OPENAI_API_KEY", None)
        service = build_completion_service("openai:gpt-4o-mini")
        assert isinstance(service, UnconfiguredCompletionService)

    def test_ollama_completion(self):
        service = build_completion_service("ollama:llama3.1:8b")
        assert isinstance(service, OllamaCompletionService)
        assert service.model == "llama3.1:8b"

    def test_unconfigured_completion_raises_on_stream(self):
        service = UnconfiguredCompletionService("no key")
        with pytest.raises(CapabilityError, match="no key"):
            service.stream_chat([], 0.3, 10)

    def test_embedder_providers(self, monkeypatch):
        monkeypatch.setattr(model_service.config, "OPENAI_API_KEY", None)
        assert isinstance(build_embedder("local"), SentenceTransformerEmbedder)
        assert isinstance(build_embedder("openai"), DisabledEmbedder)
        assert isinstance(build_embedder("none"), DisabledEmbedder)

    @pytest.mark.asyncio
    async def test_disabled_embedder_is_unavailable(self):
        with pytest.raises(EmbedderUnavailableError):
            await DisabledEmbedder().embed(["query"])

    def test_vision_extractor_without_key_falls_back_to_local(self, monkeypatch):
        monkeypatch.setattr(model_service.config, "OPENAI_API_KEY", None)
        assert isinstance(build_extractor("vision"), LocalDocumentExtractor)
        assert isinstance(build_extractor("local"), LocalDocumentExtractor)


class _EmbeddingsAPI:
    """Stands in for ``client.embeddings``; returns ``width``-long vectors."""

    def __init__(self, width: int):
        self.width = width
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        data = [
            SimpleNamespace(index=i, embedding=[0.1] * self.width)
            for i in range(len(kwargs["input"]))
        ]
        return SimpleNamespace(data=list(reversed(data)))


class TestEmbedders:

    @pytest.mark.asyncio
    async def test_openai_embedder_requests_configured_width(self):
        api = _EmbeddingsAPI(width=384)
        embedder = OpenAIEmbedder(SimpleNamespace(embeddings=api), "text-embedding-3-small", 384)

        vectors = await embedder.embed(["a", "b"])

        assert [len(v) for v in vectors] == [384, 384]
        assert api.calls[0]["dimensions"] == 384

    @pytest.mark.asyncio
    async def test_openai_embedder_rejects_wrong_width(self):
        embedder = OpenAIEmbedder(SimpleNamespace(embeddings=_EmbeddingsAPI(width=1536)), "m", 384)

        with pytest.raises(CapabilityError, match="1536 dimensions, expected 384"):
            await embedder.embed(["a"])

    @pytest.mark.asyncio
    async def test_local_encode_failure_is_a_capability_error(self):
        class BrokenModel:
            def encode(self, texts, **kwargs):
                raise RuntimeError("CUDA out of memory")

        embedder = SentenceTransformerEmbedder("all-MiniLM-L6-v2")
        embedder._model = BrokenModel()

        with pytest.raises(CapabilityError, match="CUDA out of memory"):
            await embedder.embed(["query"])
