"""Fuzzy duplicate detection by title similarity.

Titles are compared with Jaro-Winkler similarity. Year is deliberately not
part of the comparison, so a preprint and its published version (often a year
apart) still land in the same group.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rapidfuzz.distance import JaroWinkler

from bib_librarian.model import EntryInfo, Library, Record
from bib_librarian.utils import collapse_whitespace

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.93
MIN_TITLE_LENGTH = 5


@dataclass
class DuplicateCandidate:
    """A record that matched the group's original, with its similarity (0.0-1.0)."""

    info: EntryInfo
    similarity: float


@dataclass
class DuplicateGroup:
    original: EntryInfo
    candidates: list[DuplicateCandidate] = field(default_factory=list)


def normalize_title(record: Record) -> str:
    """Lowercased, whitespace-collapsed plain title ('' when absent)."""
    return collapse_whitespace(record.get_plain("title") or "").lower()


def title_similarity(title_a: str, title_b: str) -> float:
    return JaroWinkler.similarity(title_a, title_b)


def find_duplicates(
    library: Library,
    threshold: float = SIMILARITY_THRESHOLD,
    min_title_length: int = MIN_TITLE_LENGTH,
) -> list[DuplicateGroup]:
    """Group records whose normalized titles are more similar than ``threshold``.

    Greedy pairwise scan in library order: each unvisited record collects every
    later unvisited record that matches it, and those matches are marked
    visited so they cannot start or join another group. Records with titles
    shorter than ``min_title_length`` are left out of the comparison.

    Returns:
        Groups in order of their original record; candidates in encounter order.
    """
    records = list(library)
    titles = [normalize_title(r) for r in records]
    eligible = [len(t) >= min_title_length for t in titles]
    visited = [False] * len(records)
    groups: list[DuplicateGroup] = []

    for i, record in enumerate(records):
        if visited[i] or not eligible[i]:
            continue
        candidates = []
        for j in range(i + 1, len(records)):
            if visited[j] or not eligible[j]:
                continue
            score = title_similarity(titles[i], titles[j])
            if score > threshold:
                candidates.append(DuplicateCandidate(EntryInfo.from_record(records[j]), score))
                visited[j] = True
        if candidates:
            visited[i] = True
            groups.append(DuplicateGroup(EntryInfo.from_record(record), candidates))

    logger.debug("Duplicate scan over %d records found %d group(s)", len(records), len(groups))
    return groups
