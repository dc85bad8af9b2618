"""LexChat: chat with your legal documents."""

__version__ = "0.1.0"
