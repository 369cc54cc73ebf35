"""Tests for utility functions."""

from __future__ import annotations

from bib_librarian.utils import (
    collapse_whitespace,
    keep_alphanumeric,
    last_name_from_person,
    normalize_key,
    split_authors_bibtex,
    to_title_case,
)


class TestTextNormalization:
    """Tests for normalization helpers."""

    def test_collapse_whitespace(self):
        assert collapse_whitespace("  Deep \n  Learning\t") == "Deep Learning"

    def test_collapse_whitespace_none(self):
        assert collapse_whitespace(None) == ""

    def test_normalize_key(self):
        assert normalize_key("Phys. Rev. B") == "physrevb"
        assert normalize_key("phys rev b") == "physrevb"

    def test_keep_alphanumeric_keeps_case(self):
        assert keep_alphanumeric("Quantum-Dots:") == "QuantumDots"

    def test_keep_alphanumeric_keeps_unicode_letters(self):
        assert keep_alphanumeric("Müller") == "Müller"

    def test_to_title_case(self):
        assert to_title_case("journal of the american chemical society") == "Journal Of The American Chemical Society"

    def test_to_title_case_leaves_rest_of_word(self):
        assert to_title_case("IEEE transactions") == "IEEE Transactions"


class TestSplitAuthors:
    """Tests for split_authors_bibtex function."""

    def test_split_simple(self):
        assert split_authors_bibtex("Smith, John and Doe, Jane") == ["Smith, John", "Doe, Jane"]

    def test_split_single(self):
        assert split_authors_bibtex("Smith, John") == ["Smith, John"]

    def test_split_empty(self):
        assert split_authors_bibtex("") == []

    def test_split_keeps_braced_and(self):
        assert split_authors_bibtex("{Barnes and Noble} and Doe, Jane") == ["{Barnes and Noble}", "Doe, Jane"]

    def test_split_uppercase_and(self):
        assert split_authors_bibtex("Smith, John AND Doe, Jane") == ["Smith, John", "Doe, Jane"]


class TestLastNameFromPerson:
    def test_comma_format(self):
        assert last_name_from_person("Smith, John") == "Smith"

    def test_given_family_format(self):
        assert last_name_from_person("John Smith") == "Smith"

    def test_braced_family_name(self):
        assert last_name_from_person("Dick {van Dyke}") == "van Dyke"

    def test_empty(self):
        assert last_name_from_person("   ") == ""
