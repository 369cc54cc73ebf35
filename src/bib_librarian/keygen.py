"""Citation-key generation.

Keys are assembled from an ordered list of parts (author, year, title word,
journal word). Missing data degrades to fixed fallback tokens, so generation
never fails. Uniqueness is resolved separately by the Library on insert.
"""

from __future__ import annotations

import itertools
import logging
import string
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from bib_librarian.utils import keep_alphanumeric, last_name_from_person, split_authors_bibtex

if TYPE_CHECKING:
    from bib_librarian.model import Record

logger = logging.getLogger(__name__)

__all__ = [
    "KeyPart",
    "KeyConfig",
    "DEFAULT_FIELD_ORDER",
    "generate_key",
    "ensure_unique_key",
]


class KeyPart(Enum):
    AUTHOR_LAST_NAME = "AuthorLastName"
    YEAR = "Year"
    SHORT_YEAR = "ShortYear"
    TITLE_FIRST_WORD = "TitleFirstWord"
    JOURNAL_FIRST_WORD = "JournalFirstWord"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    KeyPart.AUTHOR_LAST_NAME: "Author (Last Name)",
    KeyPart.YEAR: "Year (Full)",
    KeyPart.SHORT_YEAR: "Year (Short)",
    KeyPart.TITLE_FIRST_WORD: "Title (1st Word)",
    KeyPart.JOURNAL_FIRST_WORD: "Journal (1st Word)",
}

DEFAULT_FIELD_ORDER = [
    "author",
    "title",
    "year",
    "date",
    "journaltitle",
    "journal",
    "volume",
    "number",
    "pages",
    "doi",
    "url",
]


@dataclass
class KeyConfig:
    """Key-generation and formatting preferences for a session.

    Attributes:
        parts: Ordered key parts joined into a citation key
        separator: String placed between key parts
        abbreviate_journals: Abbreviate journal names of imported records
        indent_char: Character used to indent fields (space or tab)
        indent_width: Number of indent characters per field line
        field_order: Fields written first, in this order, by the formatter
    """

    parts: list[KeyPart] = field(
        default_factory=lambda: [KeyPart.AUTHOR_LAST_NAME, KeyPart.YEAR, KeyPart.TITLE_FIRST_WORD]
    )
    separator: str = ""
    abbreviate_journals: bool = False
    indent_char: str = " "
    indent_width: int = 4
    field_order: list[str] = field(default_factory=lambda: list(DEFAULT_FIELD_ORDER))

    @property
    def indent(self) -> str:
        return self.indent_char * self.indent_width

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyConfig:
        """Create config from a dictionary (e.g., loaded from YAML).

        Unknown keys are ignored and unknown part names are dropped.
        """
        defaults = cls()
        parts = []
        for name in data.get("parts", [p.value for p in defaults.parts]) or []:
            try:
                parts.append(KeyPart(name))
            except ValueError:
                logger.warning("Unknown key part %r ignored", name)
        indent_char = str(data.get("indent_char", defaults.indent_char))
        return cls(
            parts=parts,
            separator=str(data.get("separator", defaults.separator) or ""),
            abbreviate_journals=bool(data.get("abbreviate_journals", defaults.abbreviate_journals)),
            indent_char="\t" if indent_char == "\t" else " ",
            indent_width=int(data.get("indent_width", defaults.indent_width)),
            field_order=[str(f).lower() for f in data.get("field_order", defaults.field_order) or []],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary for serialization."""
        return {
            "parts": [p.value for p in self.parts],
            "separator": self.separator,
            "abbreviate_journals": self.abbreviate_journals,
            "indent_char": self.indent_char,
            "indent_width": self.indent_width,
            "field_order": list(self.field_order),
        }


def _first_word(value: str | None, fallback: str) -> str:
    if value is None:
        return fallback
    words = value.split()
    return words[0] if words else ""


def _key_segment(record: Record, part: KeyPart) -> str:
    if part is KeyPart.AUTHOR_LAST_NAME:
        authors = split_authors_bibtex(record.fields["author"].render()) if "author" in record.fields else []
        last = last_name_from_person(authors[0]) if authors else ""
        return last or "Unknown"
    if part in (KeyPart.YEAR, KeyPart.SHORT_YEAR):
        year = record.get_plain("year")
        if year is None:
            year = "0000"
        if part is KeyPart.SHORT_YEAR and len(year) >= 4:
            return year[-2:]
        return year
    if part is KeyPart.TITLE_FIRST_WORD:
        return _first_word(record.get_plain("title"), "Untitled")
    return _first_word(record.get_plain("journal"), "Preprint")


def generate_key(record: Record, config: KeyConfig) -> str:
    """Build a citation key for ``record`` from ``config.parts``.

    Each segment keeps only alphanumeric characters (case is preserved), and
    segments are joined with ``config.separator``.

    Example:
        Smith, John / 2024 / "Quantum Error Correction" -> "Smith2024Quantum"
    """
    segments = [keep_alphanumeric(_key_segment(record, part)) for part in config.parts]
    return config.separator.join(segments)


def ensure_unique_key(base_key: str, exists: Callable[[str], bool]) -> str:
    """Return ``base_key`` or the first unused suffixed variant.

    Tries ``base_key``, then ``base_key`` + 'a'..'z', then ``_1``, ``_2``, ...
    The numeric suffix space is unbounded, so this always terminates.
    """
    if not exists(base_key):
        return base_key
    for letter in string.ascii_lowercase:
        candidate = f"{base_key}{letter}"
        if not exists(candidate):
            return candidate
    for i in itertools.count(1):
        candidate = f"{base_key}_{i}"
        if not exists(candidate):
            return candidate
    raise AssertionError("unreachable")
