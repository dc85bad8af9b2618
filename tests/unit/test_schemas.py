"""Unit tests for request schemas, the queue message and upload validation."""

from __future__ import annotations

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from lexchat.config import MAX_FILE_SIZE_BYTES, MAX_MESSAGE_CHARS
from lexchat.schemas import IngestionMessage, SendMessageBody, UpdateChatBody
from lexchat.upload import file_extension, is_allowed_extension, validate_upload


class TestIngestionMessage:

    def _payload(self, **overrides):
        payload = {
            "documentId": "d1",
            "jobId": "j1",
            "chatId": "c1",
            "userId": "u1",
            "r2Key": "u1/c1/d1/lease.pdf",
            "filename": "lease.pdf",
            "fileType": "pdf",
        }
        payload.update(overrides)
        return payload

    def test_parses_wire_names(self):
        msg = IngestionMessage.model_validate(self._payload())
        assert msg.document_id == "d1"
        assert msg.r2_key == "u1/c1/d1/lease.pdf"
        assert msg.source_url is None

    def test_payload_round_trip_drops_missing_source(self):
        msg = IngestionMessage.model_validate(self._payload())
        payload = msg.to_payload()
        assert payload["r2Key"] == "u1/c1/d1/lease.pdf"
        assert "sourceUrl" not in payload

    def test_requires_exactly_one_source(self):
        with pytest.raises(ValidationError):
            IngestionMessage.model_validate(self._payload(sourceUrl="https://example.com"))
        with pytest.raises(ValidationError):
            IngestionMessage.model_validate(self._payload(r2Key=None))

    def test_url_message(self):
        msg = IngestionMessage.model_validate(
            self._payload(r2Key=None, sourceUrl="https://example.com/terms", fileType="url")
        )
        assert msg.source_url == "https://example.com/terms"


class TestBodies:

    def test_message_length_limit(self):
        SendMessageBody(content="x" * MAX_MESSAGE_CHARS)
        with pytest.raises(ValidationError):
            SendMessageBody(content="x" * (MAX_MESSAGE_CHARS + 1))

    def test_title_required_on_update(self):
        with pytest.raises(ValidationError):
            UpdateChatBody(title="")


class TestUploadValidation:

    @pytest.mark.parametrize(
        "filename, ext",
        [("Lease.PDF", "pdf"), ("notes.txt", "txt"), ("archive.tar.gz", "gz"), ("README", "")],
    )
    def test_file_extension(self, filename, ext):
        assert file_extension(filename) == ext

    @pytest.mark.parametrize("filename", ["a.pdf", "a.txt", "a.doc", "a.DOCX"])
    def test_allowed(self, filename):
        assert is_allowed_extension(filename)
        validate_upload(filename, 1024)

    def test_unsupported_type(self):
        with pytest.raises(HTTPException) as exc:
            validate_upload("photo.png", 10)
        assert exc.value.status_code == 400
        assert "not supported" in exc.value.detail

    def test_too_large(self):
        validate_upload("big.pdf", MAX_FILE_SIZE_BYTES)
        with pytest.raises(HTTPException) as exc:
            validate_upload("big.pdf", MAX_FILE_SIZE_BYTES + 1)
        assert "too large" in exc.value.detail
