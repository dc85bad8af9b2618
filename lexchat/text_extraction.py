"""
Text extraction capabilities: stored documents and web pages to plain text.
"""
import asyncio
import base64
import html
import io
import re
import zipfile

import aiohttp
from pypdf import PdfReader
from pypdf.errors import PyPdfError
from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from openai import AsyncOpenAI, OpenAIError

from .errors import CapabilityError, ExtractionError
from .interfaces import Extractor, UrlFetcher
from .logging_config import logger

EXTRACTION_INSTRUCTION = (
    "Extract all text from this document. Preserve the structure, sections, "
    "and numbering. Return only the extracted text, nothing else."
)

_SCRIPT_OR_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


def decode_text(data: bytes) -> str:
    """Best-effort UTF-8 decoding; undecodable bytes are replaced."""
    return data.decode("utf-8", errors="replace")


def strip_markup(markup: str) -> str:
    """Reduce an HTML page to whitespace-normalised plain text."""
    text = _SCRIPT_OR_STYLE.sub(" ", markup)
    text = _TAG.sub(" ", text)
    text = html.unescape(text)
    return _WHITESPACE.sub(" ", text).strip()


def read_text_from_pdf(data: bytes) -> str:
    pdf = PdfReader(io.BytesIO(data))
    parts = []
    for page in pdf.pages:
        parts.append(page.extract_text() or "")
    return "\n".join(parts)


def read_text_from_docx(data: bytes) -> str:
    """
    Extract text from DOCX bytes including both paragraphs and tables.
    Tables are converted to readable text format.
    """
    doc = DocxDocument(io.BytesIO(data))
    parts = []

    for para in doc.paragraphs:
        text = para.text.strip()
        if text:
            parts.append(text)

    for table in doc.tables:
        table_text = extract_table_text(table)
        if table_text:
            parts.append("\n" + table_text)

    return "\n\n".join(parts)


def extract_table_text(table) -> str:
    """
    Convert a DOCX table to readable text format.
    Each row is preserved with clear separators.
    """
    lines = []

    for row in table.rows:
        cells = [cell.text.strip() for cell in row.cells]

        # Skip completely empty rows
        if not any(cells):
            continue

        lines.append(" | ".join(cells))

    return "\n".join(lines)


class LocalDocumentExtractor(Extractor):
    """Parses PDF (pypdf) and DOCX (python-docx) in process."""

    async def extract_text(self, data: bytes, file_type: str) -> str:
        try:
            if file_type == "pdf":
                return read_text_from_pdf(data)
            if file_type == "docx":
                return read_text_from_docx(data)
        except (PyPdfError, PackageNotFoundError, zipfile.BadZipFile, ValueError, KeyError) as e:
            raise CapabilityError(f"Could not parse {file_type} document: {e}") from e
        raise CapabilityError(f"No local parser for file type '{file_type}'")


class VisionModelExtractor(Extractor):
    """
    Hands the raw document to a vision-capable chat model and asks it to
    transcribe the text, keeping the legal structure intact.
    """

    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self.model = model

    async def extract_text(self, data: bytes, file_type: str) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                temperature=0,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": EXTRACTION_INSTRUCTION},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:application/octet-stream;base64,{encoded}"},
                        },
                    ],
                }],
            )
        except OpenAIError as e:
            raise CapabilityError(f"Vision extraction failed: {e}") from e

        if not response.choices or not isinstance(response.choices[0].message.content, str):
            raise CapabilityError("Vision model returned no text content")
        return response.choices[0].message.content


class HttpUrlFetcher(UrlFetcher):

    def __init__(self, timeout_seconds: float = 30):
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def fetch_text(self, url: str) -> str:
        logger.info("Fetching URL", url=url)
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as resp:
                    if not 200 <= resp.status < 300:
                        raise ExtractionError(f"Failed to fetch URL: {resp.status}")
                    body = await resp.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExtractionError(f"Failed to fetch URL: {e}") from e
        return strip_markup(body)
