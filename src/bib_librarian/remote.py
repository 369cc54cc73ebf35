"""Network collaborators: DOI resolution and Crossref search suggestions.

These only produce input for the library (a parsed Library or a list of
suggestions); nothing in the core calls them implicitly.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from bib_librarian.model import Library
from bib_librarian.storage import BibLoader

logger = logging.getLogger(__name__)

DOI_RESOLVER = "https://doi.org"
CROSSREF_API = "https://api.crossref.org/works"
USER_AGENT = "bib-librarian (mailto:unknown@example.com)"


@dataclass
class SearchSuggestion:
    """One Crossref hit offered to the user before importing by DOI."""

    title: str
    author: str
    year: str
    doi: str


def doi_normalize(doi: str | None) -> str | None:
    """Normalize a DOI by removing URL prefix and surrounding whitespace."""
    if not doi:
        return None
    d = doi.strip()
    for prefix in ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "http://dx.doi.org/", "doi:"):
        if d.lower().startswith(prefix):
            d = d[len(prefix) :]
            break
    return d.strip() or None


def crossref_item_to_suggestion(item: dict[str, Any]) -> SearchSuggestion | None:
    doi = doi_normalize(item.get("DOI"))
    if not doi:
        return None
    titles = item.get("title") or []
    authors = []
    for a in item.get("author", []) or []:
        name = " ".join(p for p in (a.get("given"), a.get("family")) if p) or a.get("name") or ""
        if name:
            authors.append(name)
    year = ""
    for dt_key in ("published-print", "published-online", "issued", "created"):
        parts = (item.get(dt_key) or {}).get("date-parts")
        if parts and parts[0] and parts[0][0]:
            year = str(parts[0][0])
            break
    return SearchSuggestion(
        title=titles[0] if titles else "Untitled",
        author=", ".join(authors) if authors else "Unknown Author",
        year=year,
        doi=doi,
    )


class DoiClient:
    """HTTP client for DOI content negotiation and Crossref search, with retries."""

    RETRYABLE_STATUS = {429, 500, 502, 503, 504}

    def __init__(
        self,
        timeout: float = 20.0,
        user_agent: str = USER_AGENT,
        max_retries: int = 4,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent},
            follow_redirects=True,
            transport=transport,
        )
        self.max_retries = max(max_retries, 1)
        self.loader = BibLoader()

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> DoiClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _get(self, url: str, params: dict[str, Any] | None = None, accept: str | None = None) -> httpx.Response:
        backoff = 1.0
        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                headers = {"Accept": accept} if accept else {}
                resp = self.client.get(url, params=params, headers=headers)
                if resp.status_code in self.RETRYABLE_STATUS:
                    raise httpx.HTTPStatusError("Retryable status", request=resp.request, response=resp)
                return resp
            except httpx.HTTPError as e:
                last_error = e
                if attempt == self.max_retries - 1:
                    break
                logger.debug("Request to %s failed (%s); retrying in %.0fs", url, e, backoff)
                time.sleep(backoff)
                backoff = min(backoff * 2, 16.0)
        raise RuntimeError(f"Network failure after retries for {url}: {last_error}")

    def fetch_by_doi(self, doi: str) -> Library:
        """Resolve a DOI to a parsed Library (usually one record).

        Raises:
            ValueError: for an empty DOI.
            RuntimeError: when the DOI cannot be resolved.
            BibParseError: when the returned BibTeX cannot be parsed.
        """
        norm = doi_normalize(doi)
        if not norm:
            raise ValueError("Empty DOI")
        resp = self._get(f"{DOI_RESOLVER}/{norm}", accept="application/x-bibtex")
        if resp.status_code != 200:
            raise RuntimeError(f"DOI lookup failed: {resp.status_code}")
        logger.debug("Fetched BibTeX for %s (%d bytes)", norm, len(resp.text))
        return self.loader.loads(resp.text)

    def search_suggestions(self, query: str, rows: int = 5) -> list[SearchSuggestion]:
        """Query Crossref and return candidate works for the user to pick from."""
        query = query.strip()
        if not query:
            return []
        resp = self._get(CROSSREF_API, params={"query": query, "rows": rows})
        if resp.status_code != 200:
            raise RuntimeError(f"Crossref search failed: {resp.status_code}")
        items = (resp.json().get("message") or {}).get("items") or []
        suggestions = []
        for item in items:
            suggestion = crossref_item_to_suggestion(item)
            if suggestion is not None:
                suggestions.append(suggestion)
        return suggestions
