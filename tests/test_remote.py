"""Tests for DOI resolution and Crossref suggestions with a mocked transport."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from bib_librarian.remote import DoiClient, crossref_item_to_suggestion, doi_normalize

DOI_BIBTEX = """@article{Abbott_2016,
  title={Observation of Gravitational Waves from a Binary Black Hole Merger},
  volume={116},
  journal={Physical Review Letters},
  author={Abbott, B. P. and Abbott, R.},
  year={2016},
  doi={10.1103/physrevlett.116.061102}
}"""

CROSSREF_ITEM = {
    "DOI": "10.1000/xyz",
    "title": ["Fast Things"],
    "author": [{"given": "Jane", "family": "Doe"}, {"name": "ACME Consortium"}],
    "issued": {"date-parts": [[2019, 5]]},
}


def make_client(handler):
    return DoiClient(transport=httpx.MockTransport(handler), max_retries=3)


class TestDoiNormalize:
    """Tests for doi_normalize."""

    def test_plain(self):
        assert doi_normalize(" 10.1000/xyz ") == "10.1000/xyz"

    def test_url_prefix(self):
        assert doi_normalize("https://doi.org/10.1000/xyz") == "10.1000/xyz"

    def test_doi_prefix(self):
        assert doi_normalize("doi:10.1000/xyz") == "10.1000/xyz"

    def test_empty(self):
        assert doi_normalize("") is None
        assert doi_normalize(None) is None


class TestCrossrefSuggestion:
    def test_converts_item(self):
        suggestion = crossref_item_to_suggestion(CROSSREF_ITEM)
        assert suggestion.title == "Fast Things"
        assert suggestion.author == "Jane Doe, ACME Consortium"
        assert suggestion.year == "2019"
        assert suggestion.doi == "10.1000/xyz"

    def test_missing_doi(self):
        assert crossref_item_to_suggestion({"title": ["x"]}) is None

    def test_fallbacks(self):
        suggestion = crossref_item_to_suggestion({"DOI": "10.1/a"})
        assert suggestion.title == "Untitled"
        assert suggestion.author == "Unknown Author"
        assert suggestion.year == ""


class TestFetchByDoi:
    """Tests for DoiClient.fetch_by_doi."""

    def test_fetch(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["accept"] = request.headers.get("Accept")
            return httpx.Response(200, text=DOI_BIBTEX)

        with make_client(handler) as client:
            library = client.fetch_by_doi("https://doi.org/10.1103/PhysRevLett.116.061102")
        assert seen["url"] == "https://doi.org/10.1103/PhysRevLett.116.061102"
        assert seen["accept"] == "application/x-bibtex"
        record = library.get("Abbott_2016")
        assert record.get_plain("journal") == "Physical Review Letters"

    def test_not_found(self):
        with make_client(lambda request: httpx.Response(404, text="not found")) as client:
            with pytest.raises(RuntimeError):
                client.fetch_by_doi("10.1000/missing")

    def test_empty_doi(self):
        with make_client(lambda request: httpx.Response(200)) as client:
            with pytest.raises(ValueError):
                client.fetch_by_doi("  ")

    def test_retries_then_succeeds(self):
        responses = iter([httpx.Response(503), httpx.Response(200, text=DOI_BIBTEX)])
        with patch("bib_librarian.remote.time.sleep") as sleep:
            with make_client(lambda request: next(responses)) as client:
                library = client.fetch_by_doi("10.1103/PhysRevLett.116.061102")
        assert len(library) == 1
        sleep.assert_called_once()

    def test_gives_up_after_retries(self):
        """No backoff sleep follows the final attempt."""
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("offline", request=request)

        with patch("bib_librarian.remote.time.sleep") as sleep:
            with make_client(handler) as client:
                with pytest.raises(RuntimeError, match="Network failure"):
                    client.fetch_by_doi("10.1000/xyz")
        assert sleep.call_count == 2
        assert len(attempts) == 3


class TestSearchSuggestions:
    """Tests for DoiClient.search_suggestions."""

    def test_search(self):
        seen = {}

        def handler(request):
            seen["query"] = request.url.params.get("query")
            seen["rows"] = request.url.params.get("rows")
            return httpx.Response(200, json={"message": {"items": [CROSSREF_ITEM, {"title": ["no doi"]}]}})

        with make_client(handler) as client:
            suggestions = client.search_suggestions(" fast things ", rows=2)
        assert seen == {"query": "fast things", "rows": "2"}
        assert [s.doi for s in suggestions] == ["10.1000/xyz"]

    def test_blank_query(self):
        with make_client(lambda request: httpx.Response(500)) as client:
            assert client.search_suggestions("   ") == []

    def test_server_error(self):
        with make_client(lambda request: httpx.Response(400)) as client:
            with pytest.raises(RuntimeError):
                client.search_suggestions("x")
