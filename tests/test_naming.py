"""Tests for ontology_sync.naming."""

from ontology_sync.naming import names_equal, normalize_name, normalize_names


class TestNormalizeName:
    """Tests for normalize_name()."""

    def test_lowercases(self):
        assert normalize_name("Person") == "person"

    def test_folds_whitespace_runs_to_single_separator(self):
        assert normalize_name("Date  Of\tBirth") == "date-of-birth"

    def test_strips_surrounding_whitespace(self):
        assert normalize_name("  email ") == "email"

    def test_idempotent(self):
        once = normalize_name(" Job  Title ")
        assert normalize_name(once) == once

    def test_existing_separators_kept(self):
        assert normalize_name("page-reference") == "page-reference"


class TestNamesEqual:
    """Tests for names_equal()."""

    def test_case_and_spacing_differences_are_equal(self):
        assert names_equal("Job Title", "job-title")

    def test_different_names_not_equal(self):
        assert not names_equal("email", "e-mail")


class TestNormalizeNames:
    """Tests for normalize_names()."""

    def test_preserves_order(self):
        assert normalize_names(["B Name", "a"]) == ["b-name", "a"]

    def test_none_passes_through(self):
        assert normalize_names(None) is None
