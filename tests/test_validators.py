"""Tests for validators.py -- (is_valid, message) input checks."""

import pytest

from blog_sync_mcp.validators import (
    LIST_KINDS,
    validate_commit_message,
    validate_content,
    validate_document_id,
    validate_list_kind,
)


class TestValidateDocumentId:
    @pytest.mark.parametrize("document_id", ["a" * 40, "0123456789abcdef" * 2, " " + "f" * 40 + " "])
    def test_valid(self, document_id):
        assert validate_document_id(document_id) == (True, "")

    @pytest.mark.parametrize("document_id", ["", "   "])
    def test_empty(self, document_id):
        assert validate_document_id(document_id) == (False, "Document id cannot be empty")

    @pytest.mark.parametrize("document_id", ["A" * 40, "a" * 39, "g" * 32, "sf-trip"])
    def test_bad_format(self, document_id):
        ok, message = validate_document_id(document_id)
        assert ok is False
        assert "32 or 40 character hex" in message


class TestValidateCommitMessage:
    def test_valid(self):
        assert validate_commit_message("Add SF trip") == (True, "")

    def test_empty(self):
        assert validate_commit_message("  \n") == (False, "Commit message cannot be empty")

    def test_too_long(self):
        ok, message = validate_commit_message("x" * 11, max_length=10)
        assert ok is False
        assert "maximum length of 10" in message


class TestValidateContent:
    def test_empty_allowed(self):
        assert validate_content("") == (True, "")

    def test_size_counts_bytes(self):
        assert validate_content("é" * 5, max_size=10) == (True, "")
        ok, message = validate_content("é" * 6, max_size=10)
        assert ok is False
        assert "maximum size of 10 bytes" in message


@pytest.mark.parametrize("kind", LIST_KINDS)
def test_list_kinds(kind):
    assert validate_list_kind(kind) == (True, "")


def test_unknown_list_kind():
    assert validate_list_kind("archived") == (
        False,
        "Kind must be one of all, drafts, published",
    )
