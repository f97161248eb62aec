"""Tests for ontology_sync.checksum.

Covers:
- Determinism and sensitivity to real content changes
- Normalisation of BOM, CRLF, trailing whitespace and trailing blank lines
- verify_checksum / short_checksum helpers
"""

import hashlib

from ontology_sync.checksum import (
    content_checksum,
    normalize_content,
    short_checksum,
    verify_checksum,
)


class TestContentChecksum:
    """Tests for content_checksum()."""

    def test_identical_content_same_checksum(self):
        assert content_checksum("a: 1\n") == content_checksum("a: 1\n")

    def test_different_content_different_checksum(self):
        assert content_checksum("a: 1") != content_checksum("a: 2")

    def test_is_sha256_hex_of_normalized_text(self):
        expected = hashlib.sha256(b"a: 1\nb: 2").hexdigest()
        assert content_checksum("a: 1\r\nb: 2\r\n") == expected

    def test_bom_ignored(self):
        assert content_checksum("\ufeffa: 1") == content_checksum("a: 1")

    def test_crlf_and_cr_equal_lf(self):
        lf = content_checksum("a\nb\n")
        assert content_checksum("a\r\nb\r\n") == lf
        assert content_checksum("a\rb\r") == lf

    def test_trailing_whitespace_ignored(self):
        assert content_checksum("a   \nb\t\n") == content_checksum("a\nb\n")

    def test_trailing_blank_lines_ignored(self):
        assert content_checksum("a\n\n\n") == content_checksum("a")

    def test_leading_whitespace_significant(self):
        assert content_checksum("  a") != content_checksum("a")

    def test_empty_content(self):
        assert content_checksum("") == hashlib.sha256(b"").hexdigest()


class TestNormalizeContent:
    """Tests for normalize_content()."""

    def test_all_steps(self):
        raw = "\ufeffkey: value  \r\nother: x\r\n\r\n"
        assert normalize_content(raw) == "key: value\nother: x"


class TestHelpers:
    """Tests for verify_checksum() and short_checksum()."""

    def test_verify_checksum_matches(self):
        checksum = content_checksum("abc")
        assert verify_checksum("abc\n", checksum)

    def test_verify_checksum_mismatch(self):
        assert not verify_checksum("abd", content_checksum("abc"))

    def test_short_checksum_truncates(self):
        assert short_checksum("0123456789abcdef") == "01234567..."

    def test_short_checksum_leaves_short_values(self):
        assert short_checksum("abc") == "abc"
