"""
Legal-aware text chunking.

Text is split on section boundaries first (Section / Article / Clause /
numbered headings / CHAPTER / SCHEDULE), long sections are split again on
sentence boundaries with a word overlap, and text without any section
boundary falls back to a fixed sliding window.
"""
import re
import uuid
from dataclasses import dataclass, field
from typing import Dict, List

from .config import MAX_CHUNK_LENGTH, CHUNK_OVERLAP

# Zero-width split points in front of a line that opens a legal section
_SECTION_BOUNDARY = re.compile(
    r"(?=(?:^|\n)(?:Section\s+\d|Article\s+\d|Clause\s+\d|\d+\.\s+[A-Z]|CHAPTER\s|SCHEDULE\s))",
    re.IGNORECASE,
)
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")

_SECTION_LABEL = re.compile(r"Section\s+(\d+[\w.]*)", re.IGNORECASE)
_ARTICLE_LABEL = re.compile(r"Article\s+(\d+[\w.]*)", re.IGNORECASE)
_CLAUSE_LABEL = re.compile(r"Clause\s+(\d+[\w.]*)", re.IGNORECASE)

# ~5 characters per word
_OVERLAP_WORDS = CHUNK_OVERLAP // 5


@dataclass
class TextChunk:
    id: str
    index: int
    content: str
    metadata: Dict[str, object] = field(default_factory=dict)


def extract_section_metadata(text: str) -> Dict[str, object]:
    """
    Find the legal section label a piece of text belongs to.

    Clause wins over Article, which wins over Section.

    Examples:
        >>> extract_section_metadata("Section 420 of IPC")
        {'section': '420'}
        >>> extract_section_metadata("Clause 5.2 states that")
        {'section': 'Clause 5.2'}
    """
    meta: Dict[str, object] = {}

    match = _SECTION_LABEL.search(text)
    if match:
        meta["section"] = match.group(1)

    match = _ARTICLE_LABEL.search(text)
    if match:
        meta["section"] = f"Article {match.group(1)}"

    match = _CLAUSE_LABEL.search(text)
    if match:
        meta["section"] = f"Clause {match.group(1)}"

    return meta


def _split_sections(text: str) -> List[str]:
    return [part for part in _SECTION_BOUNDARY.split(text) if part.strip()]


def _split_long_section(section: str) -> List[tuple]:
    """
    Greedily pack sentences into buffers of at most MAX_CHUNK_LENGTH.
    Each new buffer is seeded with the tail words of the previous one.

    Returns:
        List of (content, metadata) pairs
    """
    section_meta = extract_section_metadata(section)
    pieces = []

    def flush(buffer: str):
        # A buffer that lost its heading to the split still belongs to the section
        pieces.append((buffer.strip(), extract_section_metadata(buffer) or dict(section_meta)))

    current = ""
    for sentence in _SENTENCE_BOUNDARY.split(section):
        if len(current + " " + sentence) > MAX_CHUNK_LENGTH and current:
            flush(current)
            tail = current.split(" ")[-_OVERLAP_WORDS:]
            current = " ".join(tail) + " " + sentence
        else:
            current = current + " " + sentence if current else sentence

    if current.strip():
        flush(current)

    return pieces


def _sliding_window(text: str) -> List[str]:
    windows = []
    pos = 0
    while pos < len(text):
        end = min(pos + MAX_CHUNK_LENGTH, len(text))
        window = text[pos:end].strip()
        if window:
            windows.append(window)
        if end >= len(text):
            break
        pos = end - CHUNK_OVERLAP
    return windows


def chunk_text(text: str) -> List[TextChunk]:
    """
    Split raw document text into ordered, metadata-tagged chunks.

    Args:
        text: Raw extracted document text

    Returns:
        Chunks with gapless 0-based indices and unique ids.
        Empty for empty or whitespace-only input.
    """
    if not text or not text.strip():
        return []

    pieces = []
    if _SECTION_BOUNDARY.search(text):
        for section in _split_sections(text):
            if len(section) <= MAX_CHUNK_LENGTH:
                pieces.append((section.strip(), extract_section_metadata(section)))
            else:
                pieces.extend(_split_long_section(section))

    if not pieces:
        pieces = [(window, {}) for window in _sliding_window(text)]

    return [
        TextChunk(id=str(uuid.uuid4()), index=i, content=content, metadata=meta)
        for i, (content, meta) in enumerate(pieces)
    ]
