"""Unit tests for document and web-page text extraction."""

from __future__ import annotations

import io

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from docx import Document as DocxDocument

from lexchat.errors import CapabilityError, ExtractionError
from lexchat.text_extraction import (
    HttpUrlFetcher,
    LocalDocumentExtractor,
    decode_text,
    strip_markup,
)


def _docx_bytes() -> bytes:
    doc = DocxDocument()
    doc.add_paragraph("Section 1 The tenant pays rent.")
    doc.add_paragraph("   ")
    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Party"
    table.cell(0, 1).text = "Role"
    table.cell(1, 0).text = "Alice"
    table.cell(1, 1).text = "Tenant"
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


class TestDecodeAndStrip:

    def test_decode_replaces_invalid_bytes(self):
        assert decode_text(b"caf\xc3\xa9 \xff") == "café �"

    def test_strip_markup(self):
        page = (
            "<html><head><style>p {color: red}</style>"
            "<script>var x = '<b>';</script></head>"
            "<body><h1>Terms</h1>\n<p>Fees &amp; charges</p></body></html>"
        )
        assert strip_markup(page) == "Terms Fees & charges"


class TestLocalDocumentExtractor:

    @pytest.mark.asyncio
    async def test_docx_paragraphs_and_tables(self):
        text = await LocalDocumentExtractor().extract_text(_docx_bytes(), "docx")
        assert "Section 1 The tenant pays rent." in text
        assert "Party | Role" in text
        assert "Alice | Tenant" in text

    @pytest.mark.asyncio
    async def test_corrupt_pdf_is_capability_error(self):
        with pytest.raises(CapabilityError):
            await LocalDocumentExtractor().extract_text(b"not a pdf at all", "pdf")

    @pytest.mark.asyncio
    async def test_corrupt_docx_is_capability_error(self):
        with pytest.raises(CapabilityError):
            await LocalDocumentExtractor().extract_text(b"not a zip", "docx")

    @pytest.mark.asyncio
    async def test_legacy_doc_has_no_local_parser(self):
        with pytest.raises(CapabilityError, match="No local parser"):
            await LocalDocumentExtractor().extract_text(b"\xd0\xcf\x11\xe0", "doc")


class TestHttpUrlFetcher:

    @staticmethod
    def _app() -> web.Application:
        async def page(request):
            return web.Response(
                text="<html><body><p>Clause 1 Notice period is 30 days.</p></body></html>",
                content_type="text/html",
            )

        async def missing(request):
            return web.Response(status=404, text="gone")

        app = web.Application()
        app.router.add_get("/page", page)
        app.router.add_get("/missing", missing)
        return app

    @pytest.mark.asyncio
    async def test_fetches_and_strips_markup(self):
        async with TestServer(self._app()) as server:
            text = await HttpUrlFetcher(5).fetch_text(str(server.make_url("/page")))
        assert text == "Clause 1 Notice period is 30 days."

    @pytest.mark.asyncio
    async def test_non_2xx_is_extraction_error(self):
        async with TestServer(self._app()) as server:
            with pytest.raises(ExtractionError, match="404"):
                await HttpUrlFetcher(5).fetch_text(str(server.make_url("/missing")))

    @pytest.mark.asyncio
    async def test_unreachable_host_is_extraction_error(self):
        with pytest.raises(ExtractionError):
            await HttpUrlFetcher(2).fetch_text("http://127.0.0.1:9/unreachable")
