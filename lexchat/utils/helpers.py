"""
Utility helper functions.
"""
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

PREVIEW_CHARS = 200


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def load_json(value: Any, default=None):
    """Decode a JSON text column, tolerating NULL and already-decoded values."""
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return default


def section_label(section: Optional[str], page: Optional[int] = None) -> str:
    """
    Human readable location of a chunk.

    Bare numbers come from "Section N" headings; Article / Clause labels
    already carry their keyword.

    Examples:
        >>> section_label("12", 3)
        'Section 12 (Page 3)'
        >>> section_label("Clause 5.2")
        'Clause 5.2'
    """
    label = ""
    if section:
        label = f"Section {section}" if section[0].isdigit() else section
    if page:
        label = f"{label} (Page {page})".strip()
    return label


def build_citations(chunks: List[Dict]) -> List[Dict]:
    """
    Build the citation list stored with an assistant message.

    Each retrieved chunk becomes one citation whose ``ref`` matches the
    ``[N]`` marker it was given in the prompt.

    Args:
        chunks: Retrieved chunks in prompt order, with 'content' and optional
            'document_id', 'chunk_index', 'section', 'page' keys

    Returns:
        List of citations with a short content preview
    """
    citations = []
    for ref, chunk in enumerate(chunks, start=1):
        content = chunk.get("content", "")
        preview = content[:PREVIEW_CHARS].strip()
        if len(content) > PREVIEW_CHARS:
            preview += "..."

        citations.append({
            "ref": ref,
            "document_id": chunk.get("document_id"),
            "chunk_index": chunk.get("chunk_index"),
            "section": chunk.get("section") or None,
            "page": chunk.get("page") or None,
            "preview": preview,
        })

    return citations
