"""Record and Library data model.

A Record is one bibliographic entry: an entry type, a citation key, and an
ordered mapping of field names to RichText values. A Library is the keyed
collection of Records owned by a session.

Field values are kept as typed chunks rather than opaque strings so that
protected groups (``{DNA}``) and math (``$\\alpha$``) survive a round trip
through the formatter without being re-escaped.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bib_librarian.keygen import KeyConfig, ensure_unique_key, generate_key
from bib_librarian.utils import split_authors_bibtex


class ChunkKind(Enum):
    """Kinds of text chunk inside a field value."""

    NORMAL = "normal"
    VERBATIM = "verbatim"
    MATH = "math"


@dataclass(frozen=True)
class Chunk:
    kind: ChunkKind
    text: str

    def render(self) -> str:
        if self.kind is ChunkKind.VERBATIM:
            return "{" + self.text + "}"
        if self.kind is ChunkKind.MATH:
            return "$" + self.text + "$"
        return self.text


@dataclass(frozen=True)
class RichText:
    """A field value as a sequence of typed chunks."""

    chunks: tuple[Chunk, ...] = ()

    @classmethod
    def parse(cls, raw: str) -> RichText:
        """Split raw BibTeX field text into chunks.

        Top-level brace groups become VERBATIM chunks, ``$...$`` becomes MATH,
        everything else is NORMAL. Escaped characters (``\\$``, ``\\{``) stay
        in NORMAL text. An unbalanced group is kept as NORMAL text.
        """
        chunks: list[Chunk] = []
        normal: list[str] = []

        def flush() -> None:
            if normal:
                chunks.append(Chunk(ChunkKind.NORMAL, "".join(normal)))
                normal.clear()

        i = 0
        n = len(raw)
        while i < n:
            ch = raw[i]
            if ch == "\\" and i + 1 < n:
                normal.append(raw[i : i + 2])
                i += 2
                continue
            if ch == "{":
                end = _matching_brace(raw, i)
                if end is None:
                    normal.append(raw[i:])
                    break
                flush()
                chunks.append(Chunk(ChunkKind.VERBATIM, raw[i + 1 : end]))
                i = end + 1
                continue
            if ch == "$":
                end = _closing_dollar(raw, i + 1)
                if end is None:
                    normal.append(raw[i:])
                    break
                flush()
                chunks.append(Chunk(ChunkKind.MATH, raw[i + 1 : end]))
                i = end + 1
                continue
            normal.append(ch)
            i += 1
        flush()
        return cls(tuple(chunks))

    @classmethod
    def plain_text(cls, text: str) -> RichText:
        """Wrap text as a single NORMAL chunk without interpreting it."""
        return cls((Chunk(ChunkKind.NORMAL, text),)) if text else cls()

    def render(self) -> str:
        """BibTeX source form, with group braces and math dollars restored."""
        return "".join(c.render() for c in self.chunks)

    def plain(self) -> str:
        """Chunk texts concatenated without delimiters."""
        return "".join(c.text for c in self.chunks)

    def __str__(self) -> str:
        return self.render()


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    i = start
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def _closing_dollar(text: str, start: int) -> int | None:
    i = start
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == "$":
            return i
        i += 1
    return None


@dataclass
class Record:
    """One bibliographic entry."""

    entry_type: str
    key: str = ""
    fields: dict[str, RichText] = field(default_factory=dict)

    @classmethod
    def from_fields(cls, entry_type: str, key: str = "", **values: str) -> Record:
        """Build a record from raw BibTeX field strings."""
        return cls(entry_type, key, {k.lower(): RichText.parse(v) for k, v in values.items()})

    @classmethod
    def from_bibtexparser(cls, entry: dict[str, Any]) -> Record:
        """Convert a bibtexparser entry dict (ENTRYTYPE/ID + fields)."""
        fields = {}
        for name, value in entry.items():
            if name in ("ENTRYTYPE", "ID"):
                continue
            fields[name.lower()] = RichText.parse(str(value).strip())
        return cls(entry.get("ENTRYTYPE", "misc").lower(), entry.get("ID", ""), fields)

    def to_bibtexparser(self) -> dict[str, str]:
        entry = {"ENTRYTYPE": self.entry_type, "ID": self.key}
        for name, value in self.fields.items():
            entry[name] = value.render()
        return entry

    def get_plain(self, name: str) -> str | None:
        """Plain text of a field, or None when the field is absent."""
        value = self.fields.get(name)
        return value.plain() if value is not None else None

    def set_field(self, name: str, value: str | RichText) -> None:
        if isinstance(value, str):
            value = RichText.parse(value)
        self.fields[name.lower()] = value

    def authors(self) -> list[str]:
        """Author names as written in the author field."""
        value = self.fields.get("author")
        if value is None:
            return []
        return split_authors_bibtex(value.render())

    def copy(self) -> Record:
        return Record(self.entry_type, self.key, dict(self.fields))


@dataclass
class EntryInfo:
    """Read-only display data for one record."""

    key: str
    title: str
    author: str
    year: str

    @classmethod
    def from_record(cls, record: Record) -> EntryInfo:
        authors = [a.replace("{", "").replace("}", "") for a in record.authors()]
        return cls(
            key=record.key,
            title=record.get_plain("title") or "Untitled",
            author=", ".join(authors) if authors else "Unknown Author",
            year=record.get_plain("year") or "",
        )


class Library:
    """Key-indexed collection of records in insertion order.

    Keys are unique under exact (case-sensitive) comparison. Records that
    differ only in key case are kept apart.
    """

    def __init__(self, records: list[Record] | None = None) -> None:
        self._records: dict[str, Record] = {}
        for record in records or []:
            self.add(record)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records.values()))

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Library):
            return NotImplemented
        return list(self._records.items()) == list(other._records.items())

    def __repr__(self) -> str:
        return f"Library({list(self._records)!r})"

    def keys(self) -> list[str]:
        return list(self._records)

    def get(self, key: str) -> Record | None:
        return self._records.get(key)

    def find_case_insensitive(self, key: str) -> Record | None:
        """Exact match first, then the first record whose key matches ignoring case."""
        if key in self._records:
            return self._records[key]
        lowered = key.lower()
        for k, record in self._records.items():
            if k.lower() == lowered:
                return record
        return None

    def add(self, record: Record, config: KeyConfig | None = None) -> str:
        """Insert a record, generating and de-duplicating its key.

        Returns the key the record was stored under.
        """
        if not record.key:
            record.key = generate_key(record, config or KeyConfig())
        record.key = ensure_unique_key(record.key, self._records.__contains__)
        self._records[record.key] = record
        return record.key

    def remove(self, key: str) -> Record | None:
        return self._records.pop(key, None)

    def replace(self, key: str, record: Record) -> None:
        """Swap the record stored under ``key`` in place, keeping its position."""
        if key not in self._records:
            raise KeyError(key)
        if record.key != key:
            others = set(self._records) - {key}
            record.key = ensure_unique_key(record.key or key, others.__contains__)
        items = [(record.key, record) if k == key else (k, r) for k, r in self._records.items()]
        self._records = dict(items)

    def clear(self) -> None:
        self._records.clear()

    def copy(self) -> Library:
        """Deep copy, used for undo snapshots."""
        lib = Library()
        lib._records = copy.deepcopy(self._records)
        return lib
