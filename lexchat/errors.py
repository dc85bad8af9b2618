"""
Exception types shared by the ingestion and query pipelines.
"""


class LexChatError(Exception):
    """Base class for all errors raised by this package."""


class CapabilityError(LexChatError):
    """An external capability (embedder, extractor, completion, index) failed
    or answered with a shape we do not understand."""


class EmbedderUnavailableError(CapabilityError):
    """The embedder is not configured or cannot be reached."""


class ExtractionError(LexChatError):
    """No meaningful text could be produced for a document."""
