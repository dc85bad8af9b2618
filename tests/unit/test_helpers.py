"""Unit tests for small helper functions."""

from __future__ import annotations

import pytest

from lexchat.utils.helpers import build_citations, load_json, section_label


class TestSectionLabel:

    @pytest.mark.parametrize(
        "section, page, expected",
        [
            ("12", None, "Section 12"),
            ("12", 3, "Section 12 (Page 3)"),
            ("Article 14", None, "Article 14"),
            ("Clause 5.2", 0, "Clause 5.2"),
            (None, 4, "(Page 4)"),
            ("", None, ""),
        ],
    )
    def test_labels(self, section, page, expected):
        assert section_label(section, page) == expected


class TestLoadJson:

    def test_decodes_text(self):
        assert load_json('[{"ref": 1}]') == [{"ref": 1}]

    def test_null_and_empty_give_default(self):
        assert load_json(None, default=[]) == []
        assert load_json("", default={}) == {}

    def test_invalid_json_gives_default(self):
        assert load_json("{not json", default=None) is None

    def test_already_decoded_value_passes_through(self):
        assert load_json({"a": 1}) == {"a": 1}


class TestBuildCitations:

    def test_refs_follow_prompt_order(self):
        chunks = [
            {"content": "First", "document_id": "d1", "chunk_index": 0, "section": "1", "page": None},
            {"content": "Second", "document_id": "d1", "chunk_index": 4, "section": "", "page": 2},
        ]
        citations = build_citations(chunks)
        assert [c["ref"] for c in citations] == [1, 2]
        assert citations[0]["section"] == "1"
        assert citations[0]["page"] is None
        assert citations[1]["section"] is None
        assert citations[1]["page"] == 2

    def test_long_content_preview_is_truncated(self):
        citations = build_citations([{"content": "a" * 500}])
        assert citations[0]["preview"] == "a" * 200 + "..."

    def test_empty(self):
        assert build_citations([]) == []
