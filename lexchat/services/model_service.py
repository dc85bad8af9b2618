"""
Model service for LLM provider management.
Resolves the configured model string and builds the matching backends.
"""
from typing import Optional, Tuple

from .. import config
from ..embedding import DisabledEmbedder, OpenAIEmbedder, SentenceTransformerEmbedder
from ..errors import CapabilityError
from ..interfaces import CompletionService, Embedder, Extractor
from ..logging_config import logger
from ..ollama_client import OllamaCompletionService
from ..openai_client import OpenAICompletionService, create_client
from ..text_extraction import LocalDocumentExtractor, VisionModelExtractor

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


def resolve_model(model_string: Optional[str] = None) -> Tuple[str, str]:
    """
    Resolve a model string to provider and model name.

    Args:
        model_string: Format "provider:model_name" (e.g., "openai:gpt-4o-mini")
                     or None for default

    Returns:
        Tuple of (provider, model_name)

    Examples:
        >>> resolve_model("openai:gpt-4o-mini")
        ('openai', 'gpt-4o-mini')

        >>> resolve_model("ollama:qwen2.5:7b")
        ('ollama', 'qwen2.5:7b')

        >>> resolve_model(None)
        ('openai', 'gpt-4o-mini')
    """
    if not model_string:
        return "openai", DEFAULT_OPENAI_MODEL

    provider, _, model_name = model_string.partition(":")
    if provider in ("openai", "ollama") and model_name:
        return provider, model_name

    # Fallback to default if format is unexpected
    return "openai", DEFAULT_OPENAI_MODEL


class UnconfiguredCompletionService(CompletionService):
    """Fails every request; the query pipeline turns that into its apology answer."""

    def __init__(self, reason: str):
        self.reason = reason

    def stream_chat(self, messages, temperature, max_tokens):
        # Raises when called, inside the caller's async-for error handling
        raise CapabilityError(self.reason)


def build_completion_service(model_string: str) -> CompletionService:
    provider, model_name = resolve_model(model_string)
    if provider == "ollama":
        return OllamaCompletionService(config.OLLAMA_URL, model_name, config.COMPLETION_TIMEOUT_SECONDS)
    try:
        client = create_client(config.OPENAI_API_KEY, config.COMPLETION_TIMEOUT_SECONDS)
    except CapabilityError as e:
        logger.warning("Completion service not configured", reason=str(e))
        return UnconfiguredCompletionService(str(e))
    return OpenAICompletionService(client, model_name)


def build_embedder(provider: str) -> Embedder:
    """
    Args:
        provider: "local", "openai" or "none"
    """
    if provider == "local":
        return SentenceTransformerEmbedder(config.EMBED_MODEL)
    if provider == "openai":
        try:
            client = create_client(config.OPENAI_API_KEY, config.COMPLETION_TIMEOUT_SECONDS)
        except CapabilityError:
            return DisabledEmbedder()
        return OpenAIEmbedder(client, config.OPENAI_EMBED_MODEL, config.EMBED_DIM)
    return DisabledEmbedder()


def build_extractor(kind: str) -> Extractor:
    """
    Args:
        kind: "local" (pypdf / python-docx) or "vision"
    """
    if kind == "vision":
        try:
            client = create_client(config.OPENAI_API_KEY, config.COMPLETION_TIMEOUT_SECONDS)
        except CapabilityError as e:
            logger.warning("Vision extractor not configured, using local parsers", reason=str(e))
            return LocalDocumentExtractor()
        return VisionModelExtractor(client, config.VISION_MODEL)
    return LocalDocumentExtractor()
